"""
In-memory query adapter.

Evaluates compiled predicates against plain records (dicts or objects).
Relation-scoped predicates use existence semantics: a record matches when
*any* related item satisfies the condition, mirroring ``relationship.any()``.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any

from ..operators import FilterOperator
from ..predicates import (
    CompiledQuery,
    FieldPredicate,
    Predicate,
    PredicateGroup,
    SearchKind,
    SearchPredicate,
)
from ..relevance import matches_fuzzy, matches_term, resolve_path


def _sql_pattern_to_regex(pattern: str) -> str:
    """Convert SQL LIKE pattern (``%``, ``_``) to an anchored Python regex."""
    out = []
    for char in pattern:
        if char == "%":
            out.append(".*")
        elif char == "_":
            out.append(".")
        else:
            out.append(re.escape(char))
    return "^" + "".join(out) + "$"


def _like(field_value: Any, pattern: Any, flags: int = 0) -> bool:
    if field_value is None:
        return False
    regex = _sql_pattern_to_regex(str(pattern))
    return re.match(regex, str(field_value), flags | re.DOTALL) is not None


def _as_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value).date()
        except ValueError:
            return None
    return None


def _compare(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def evaluate(field_value: Any, condition_value: Any) -> bool:
        if field_value is None or condition_value is None:
            return False
        try:
            return op(field_value, condition_value)
        except TypeError:
            return False

    return evaluate


def _same(field_value: Any, condition_value: Any) -> bool:
    """Equality that lets a numeric-looking value match a text field and back."""
    if field_value == condition_value:
        return True
    pair = (field_value, condition_value)
    if sum(isinstance(v, str) for v in pair) != 1:
        return False
    if any(v is None or isinstance(v, bool) for v in pair):
        return False
    return str(field_value) == str(condition_value)


def _between(field_value: Any, bounds: Sequence[Any]) -> bool:
    low, high = bounds
    return _compare(lambda v, _: low <= v <= high)(field_value, bounds)


def _date_between(field_value: Any, bounds: Sequence[Any]) -> bool:
    value = _as_date(field_value)
    low, high = (_as_date(b) for b in bounds)
    if value is None or low is None or high is None:
        return False
    return low <= value <= high


MEMORY_OPERATORS: dict[FilterOperator, Callable[[Any, Any], bool]] = {
    FilterOperator.EQ: _same,
    FilterOperator.NE: lambda v, c: not _same(v, c),
    FilterOperator.GT: _compare(lambda v, c: v > c),
    FilterOperator.LT: _compare(lambda v, c: v < c),
    FilterOperator.GE: _compare(lambda v, c: v >= c),
    FilterOperator.LE: _compare(lambda v, c: v <= c),
    FilterOperator.LIKE: _like,
    FilterOperator.ILIKE: lambda v, c: _like(v, c, re.IGNORECASE),
    FilterOperator.NOT_LIKE: lambda v, c: v is not None and not _like(v, c),
    FilterOperator.IN: lambda v, c: any(_same(v, item) for item in c),
    FilterOperator.NOT_IN: lambda v, c: (
        v is not None and not any(_same(v, item) for item in c)
    ),
    FilterOperator.BETWEEN: _between,
    FilterOperator.NOT_BETWEEN: lambda v, c: v is not None and not _between(v, c),
    FilterOperator.DATE_BETWEEN: _date_between,
}


@dataclass(frozen=True)
class MemoryQuery:
    """Immutable list of records plus the relations requested for loading."""

    records: tuple[Any, ...] = ()
    includes: tuple[str, ...] = ()

    @classmethod
    def of(cls, records: Iterable[Any]) -> MemoryQuery:
        return cls(tuple(records))

    def all(self) -> list[Any]:
        return list(self.records)

    def __len__(self) -> int:
        return len(self.records)


class MemoryQueryAdapter:
    """``IQueryAdapter`` over :class:`MemoryQuery` (or any iterable)."""

    def __init__(self, id_field: str = "id") -> None:
        self.id_field = id_field

    def apply(self, query: Any, compiled: CompiledQuery) -> MemoryQuery:
        if not isinstance(query, MemoryQuery):
            query = MemoryQuery.of(query)

        records = [r for r in query.records if self.matches_all(r, compiled.predicates)]

        for directive in reversed(compiled.sort):
            records.sort(
                key=lambda r, f=directive.field: _sort_key(resolve_path(r, f)),
                reverse=directive.direction == "desc",
            )

        if compiled.relevance is not None:
            tiebreak = None if compiled.sort else self._identifier
            records = compiled.relevance.order(records, tiebreak)

        if compiled.page is not None:
            start = compiled.page.offset
            records = records[start : start + compiled.page.limit]

        includes = tuple(dict.fromkeys(query.includes + compiled.includes))
        return replace(query, records=tuple(records), includes=includes)

    # -- predicate evaluation ------------------------------------------------

    def matches_all(self, record: Any, predicates: Iterable[Predicate]) -> bool:
        return all(self.matches(record, p) for p in predicates)

    def matches(self, record: Any, predicate: Predicate) -> bool:
        if isinstance(predicate, PredicateGroup):
            results = (self.matches(record, p) for p in predicate.predicates)
            return all(results) if predicate.join == "and" else any(results)
        if isinstance(predicate, SearchPredicate):
            return self._matches_search(record, predicate)
        return self._matches_field(record, predicate)

    def _matches_field(self, record: Any, predicate: FieldPredicate) -> bool:
        evaluate = MEMORY_OPERATORS[predicate.operator]
        value = resolve_path(record, predicate.path)
        if predicate.relation is not None and isinstance(value, list):
            return any(evaluate(v, predicate.value) for v in _flatten(value))
        return bool(evaluate(value, predicate.value))

    def _matches_search(self, record: Any, predicate: SearchPredicate) -> bool:
        values = [resolve_path(record, f) for f in predicate.fields]

        def hit(term: str) -> bool:
            if predicate.kind is SearchKind.FUZZY:
                distance = predicate.distance or 0
                return any(matches_fuzzy(v, term, distance) for v in values)
            return any(matches_term(v, term) for v in values)

        if predicate.kind is SearchKind.EXCLUDED:
            return not any(hit(t) for t in predicate.terms)
        if predicate.kind is SearchKind.OPTIONAL:
            return any(hit(t) for t in predicate.terms)
        return all(hit(t) for t in predicate.terms)

    def _identifier(self, record: Any) -> Any:
        return _sort_key(resolve_path(record, self.id_field))


def _flatten(values: list[Any]) -> list[Any]:
    out: list[Any] = []
    for value in values:
        if isinstance(value, list):
            out.extend(_flatten(value))
        else:
            out.append(value)
    return out


def _sort_key(value: Any) -> tuple[int, Any]:
    # None sorts first; mixed types are ordered by their string form
    if value is None:
        return (0, "")
    if isinstance(value, int | float | date | datetime) and not isinstance(value, bool):
        return (1, value)
    return (2, str(value))
