"""
Abstract predicates produced by the compiler.

The predicate list is backend neutral. Query adapters
(:mod:`cqrs_ddd_criteria.adapters`) translate it into an in-memory filter
or a SQLAlchemy ``Select``. The list is AND-combined; OR only appears
inside a :class:`PredicateGroup` or an optional-term
:class:`SearchPredicate`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal, Union

from .fields import FieldPath
from .operators import FilterOperator

if TYPE_CHECKING:
    from .relevance import RelevanceRanker


class SearchKind(str, Enum):
    PHRASE = "phrase"
    REQUIRED = "required"
    EXCLUDED = "excluded"
    FUZZY = "fuzzy"
    OPTIONAL = "optional"


@dataclass(frozen=True)
class FieldPredicate:
    """``field <operator> value``; relation-scoped when ``relation`` is set."""

    field: str
    operator: FilterOperator
    value: Any
    relation: str | None = None

    @property
    def path(self) -> str:
        return str(FieldPath(self.relation, self.field))

    def to_dict(self) -> dict[str, Any]:
        value = list(self.value) if isinstance(self.value, tuple) else self.value
        return {
            "type": "field",
            "field": self.path,
            "op": self.operator.value,
            "value": value,
        }


@dataclass(frozen=True)
class SearchPredicate:
    """
    Free-text match over the entity's text fields.

    * ``phrase`` / ``required`` / ``fuzzy``: some field matches the term,
    * ``excluded``: no field matches the term,
    * ``optional``: some field matches some term (OR group of plain terms).
    """

    kind: SearchKind
    terms: tuple[str, ...]
    fields: tuple[str, ...]
    weight: int = 0
    distance: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": "search",
            "kind": self.kind.value,
            "terms": list(self.terms),
            "fields": list(self.fields),
            "weight": self.weight,
        }
        if self.distance is not None:
            data["distance"] = self.distance
        return data


@dataclass(frozen=True)
class PredicateGroup:
    """AND / OR combination of nested predicates."""

    join: Literal["and", "or"]
    predicates: tuple[Predicate, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "group",
            "join": self.join,
            "predicates": [p.to_dict() for p in self.predicates],
        }


Predicate = Union[FieldPredicate, SearchPredicate, PredicateGroup]  # noqa: UP007


@dataclass(frozen=True)
class SortDirective:
    field: str
    direction: Literal["asc", "desc"] = "asc"

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "direction": self.direction}


@dataclass(frozen=True)
class Page:
    limit: int
    offset: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"limit": self.limit, "offset": self.offset}


@dataclass(frozen=True)
class CompiledQuery:
    """Everything a query adapter needs to run one request."""

    predicates: tuple[Predicate, ...] = ()
    relevance: RelevanceRanker | None = None
    sort: tuple[SortDirective, ...] = ()
    includes: tuple[str, ...] = ()
    page: Page | None = None
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_empty(self) -> bool:
        return not (self.predicates or self.sort or self.includes or self.page)

    def to_dict(self) -> dict[str, Any]:
        return {
            "predicates": [p.to_dict() for p in self.predicates],
            "relevance": self.relevance.to_dict() if self.relevance else None,
            "sort": [s.to_dict() for s in self.sort],
            "includes": list(self.includes),
            "page": self.page.to_dict() if self.page else None,
        }
