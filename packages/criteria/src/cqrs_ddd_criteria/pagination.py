"""PaginationParser — limit/page/offset from request params."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .predicates import Page
from .settings import CriteriaSettings

if TYPE_CHECKING:
    from collections.abc import Mapping


class PaginationParser:
    """Parse ``limit`` + ``page`` (1-based) or ``offset`` into a :class:`Page`."""

    def __init__(self, settings: CriteriaSettings | None = None) -> None:
        self._settings = settings or CriteriaSettings()

    def parse(
        self,
        query_params: Mapping[str, Any],
        *,
        offset_key: str = "offset",
    ) -> Page | None:
        names = self._settings.params
        raw_limit = query_params.get(names.limit)
        raw_page = query_params.get(names.page)
        raw_offset = query_params.get(offset_key)
        if raw_limit is None and raw_page is None and raw_offset is None:
            return None

        limit = self._settings.default_limit
        if raw_limit is not None:
            try:
                limit = min(self._settings.max_limit, max(1, int(raw_limit)))
            except (TypeError, ValueError):
                limit = self._settings.default_limit

        offset = 0
        if raw_page is not None:
            try:
                offset = (max(1, int(raw_page)) - 1) * limit
            except (TypeError, ValueError):
                offset = 0
        elif raw_offset is not None:
            try:
                offset = max(0, int(raw_offset))
            except (TypeError, ValueError):
                offset = 0
        return Page(limit=limit, offset=offset)
