"""SearchableFields — per-entity whitelist of fields and their operators."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from fnmatch import fnmatchcase
from types import MappingProxyType
from typing import Any, NamedTuple

from .exceptions import FieldNotAllowedError, OperatorNotAllowedError
from .operators import FilterOperator, resolve_operator
from .settings import DEFAULT_IDENTIFIER_FIELDS


class FieldPath(NamedTuple):
    """A possibly relationship-qualified field (``relation.field``)."""

    relation: str | None
    field: str

    @classmethod
    def parse(cls, path: str) -> FieldPath:
        relation, _, field = path.rpartition(".")
        return cls(relation or None, field)

    def __str__(self) -> str:
        return f"{self.relation}.{self.field}" if self.relation else self.field


class SearchableFields(Mapping[str, frozenset[FilterOperator]]):
    """
    Immutable ``field -> allowed operators`` mapping.

    Built from the loose shapes entity configuration usually comes in::

        SearchableFields({"name": "like", "status": ["in", "="], "role_id": "="})
        SearchableFields(["email", "id"])           # operator "=" for each

    The first operator listed for a field is its default (used when a
    directive omits the operator). *identifier_fields* overrides, for this
    entity, the glob patterns naming surrogate identifier fields; left
    unset, callers fall back to ``CriteriaSettings.identifier_fields``.
    """

    def __init__(
        self,
        fields: Mapping[str, str | Iterable[str]] | Iterable[str],
        *,
        includes: Iterable[str] | None = None,
        identifier_fields: Iterable[str] | None = None,
    ) -> None:
        allowed: dict[str, frozenset[FilterOperator]] = {}
        defaults: dict[str, FilterOperator] = {}

        items: Iterable[tuple[str, Any]]
        if isinstance(fields, Mapping):
            items = fields.items()
        else:
            items = ((name, FilterOperator.EQ.value) for name in fields)

        for name, declared in items:
            names = (
                [declared]
                if isinstance(declared, str | FilterOperator)
                else list(declared)
            )
            if not names:
                raise ValueError(f"Field {name!r} declares no operators")
            ops: list[FilterOperator] = []
            for op_name in names:
                op = resolve_operator(op_name)
                if op is None:
                    raise ValueError(f"Unknown operator {op_name!r} for field {name!r}")
                ops.append(op)
            allowed[name] = frozenset(ops)
            defaults[name] = ops[0]

        self._allowed = MappingProxyType(allowed)
        self._defaults = MappingProxyType(defaults)
        self._identifier_patterns: tuple[str, ...] | None = (
            None if identifier_fields is None else tuple(identifier_fields)
        )
        if includes is None:
            derived = {FieldPath.parse(name).relation for name in allowed}
            self._includes = frozenset(r for r in derived if r)
        else:
            self._includes = frozenset(includes)

    # -- Mapping -------------------------------------------------------------

    def __getitem__(self, field: str) -> frozenset[FilterOperator]:
        return self._allowed[field]

    def __iter__(self) -> Iterator[str]:
        return iter(self._allowed)

    def __len__(self) -> int:
        return len(self._allowed)

    def __repr__(self) -> str:
        inner = ", ".join(
            f"{name}: {sorted(op.value for op in ops)}"
            for name, ops in self._allowed.items()
        )
        return f"SearchableFields({{{inner}}})"

    # -- queries -------------------------------------------------------------

    @property
    def includes(self) -> frozenset[str]:
        return self._includes

    def default_operator(self, field: str) -> FilterOperator:
        return self._defaults[field]

    def is_identifier(
        self,
        field: str,
        default_patterns: Iterable[str] = DEFAULT_IDENTIFIER_FIELDS,
    ) -> bool:
        """Whether *field* carries surrogate identifiers (``id`` / ``*_id``)."""
        patterns = self._identifier_patterns
        if patterns is None:
            patterns = tuple(default_patterns)
        name = FieldPath.parse(field).field
        return any(fnmatchcase(name, pattern) for pattern in patterns)

    def text_fields(self) -> list[str]:
        """Fields free-text search may apply substring matching to."""
        return [
            name
            for name, ops in self._allowed.items()
            if any(op.is_text for op in ops)
        ]

    # -- validation ----------------------------------------------------------

    def require_field(
        self,
        field: str,
        *,
        channel: str | None = None,
        fragment: str | None = None,
    ) -> frozenset[FilterOperator]:
        """Return the allowed operators or raise FieldNotAllowedError."""
        if field not in self._allowed:
            raise FieldNotAllowedError(
                field, list(self._allowed), channel=channel, fragment=fragment
            )
        return self._allowed[field]

    def require_operator(
        self,
        field: str,
        operator: FilterOperator,
        accepted: frozenset[FilterOperator],
        *,
        channel: str | None = None,
        fragment: str | None = None,
    ) -> None:
        """Operator must be globally accepted *and* allowed for the field."""
        allowed = self.require_field(field, channel=channel, fragment=fragment)
        if operator not in accepted or operator not in allowed:
            raise OperatorNotAllowedError(
                operator.value,
                field,
                [op.value for op in allowed & accepted],
                channel=channel,
                fragment=fragment,
            )

    def require_include(
        self,
        relation: str,
        *,
        channel: str | None = None,
        fragment: str | None = None,
    ) -> None:
        if relation not in self._includes:
            raise FieldNotAllowedError(
                relation,
                sorted(self._includes),
                purpose="includable",
                channel=channel,
                fragment=fragment,
            )
