"""Stable cache keys from entity, method, arguments and applied criteria."""

from __future__ import annotations

import dataclasses
import hashlib
import json
from collections.abc import Iterable, Mapping
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from .criteria import CriteriaStack, Criterion


def _qualname(cls: type[Any]) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


def _sort_key(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def _canonical(value: Any) -> Any:
    """
    Reduce *value* to JSON primitives with a fixed order.

    Values JSON cannot tell apart from a primitive (``Decimal("1")`` vs
    ``"1"``, ``{1: x}`` vs ``{"1": x}``, a tuple vs a list) are wrapped in
    a single-key object naming their type, so they never collide.
    """
    if value is None or isinstance(value, bool | int | float | str):
        return value
    if isinstance(value, Criterion | CriteriaStack):
        return _canonical(value.to_dict())
    if isinstance(value, Enum):
        return {"__enum__": [_qualname(type(value)), _canonical(value.value)]}
    if isinstance(value, BaseModel):
        return {"__model__": [_qualname(type(value)), _canonical(value.model_dump())]}
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        to_dict = getattr(value, "to_dict", None)
        data = to_dict() if callable(to_dict) else dataclasses.asdict(value)
        return {"__dataclass__": [_qualname(type(value)), _canonical(data)]}
    if isinstance(value, Mapping):
        pairs = [[_canonical(k), _canonical(v)] for k, v in value.items()]
        return {"__map__": sorted(pairs, key=lambda pair: _sort_key(pair[0]))}
    if isinstance(value, set | frozenset):
        return {"__set__": sorted((_canonical(v) for v in value), key=_sort_key)}
    if isinstance(value, tuple):
        return {"__tuple__": [_canonical(v) for v in value]}
    if isinstance(value, list):
        return [_canonical(v) for v in value]
    if isinstance(value, datetime):
        return {"__datetime__": value.isoformat()}
    if isinstance(value, date):
        return {"__date__": value.isoformat()}
    if isinstance(value, time):
        return {"__time__": value.isoformat()}
    if isinstance(value, Decimal):
        return {"__decimal__": str(value)}
    if isinstance(value, UUID):
        return {"__uuid__": str(value)}
    if isinstance(value, bytes):
        return {"__bytes__": value.hex()}
    if isinstance(value, type):
        return {"__type__": _qualname(value)}
    raise TypeError(
        f"Cannot derive a cache key from {type(value).__name__!r}; "
        "give the owning criterion a to_dict() that describes it"
    )


def serialize_criteria(criteria: CriteriaStack | Iterable[Criterion]) -> list[Any]:
    if isinstance(criteria, CriteriaStack):
        criteria = [] if criteria.skipped else criteria.list()
    return [_canonical(c) for c in criteria]


def derive_cache_key(
    entity_type: str,
    method: str,
    args: Iterable[Any] = (),
    criteria: CriteriaStack | Iterable[Criterion] = (),
) -> str:
    """
    ``"<entity>@<method>:<sha256>"`` over canonical JSON of args + criteria.

    Mapping keys are sorted at every depth; argument order is kept.
    Values with no canonical form raise :class:`TypeError` rather than
    leaking object identity into the key.
    """
    payload = json.dumps(
        [[_canonical(a) for a in args], serialize_criteria(criteria)],
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return f"{entity_type}@{method}:{digest}"
