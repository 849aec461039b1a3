"""Closed set of comparison operators accepted in directives."""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple


class Arity(NamedTuple):
    """Number of values an operator takes. ``maximum=None`` means unbounded."""

    minimum: int
    maximum: int | None

    def accepts(self, count: int) -> bool:
        if count < self.minimum:
            return False
        return self.maximum is None or count <= self.maximum

    def describe(self) -> str:
        if self.maximum is None:
            return f"at least {self.minimum}"
        if self.minimum == self.maximum:
            return f"exactly {self.minimum}"
        return f"{self.minimum} to {self.maximum}"


SCALAR = Arity(1, 1)
PAIR = Arity(2, 2)
MANY = Arity(1, None)


class FilterOperator(str, Enum):
    """Supported directive operators."""

    # Standard comparison
    EQ = "="
    NE = "!="
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="

    # String operations
    LIKE = "like"
    ILIKE = "ilike"
    NOT_LIKE = "not_like"

    # Set membership
    IN = "in"
    NOT_IN = "not_in"

    # Ranges
    BETWEEN = "between"
    NOT_BETWEEN = "not_between"
    DATE_BETWEEN = "date_between"

    @property
    def arity(self) -> Arity:
        return _ARITY.get(self, SCALAR)

    @property
    def is_text(self) -> bool:
        return self in TEXT_OPERATORS

    @property
    def is_multi_valued(self) -> bool:
        return self.arity.maximum != 1


_ARITY: dict[FilterOperator, Arity] = {
    FilterOperator.IN: MANY,
    FilterOperator.NOT_IN: MANY,
    FilterOperator.BETWEEN: PAIR,
    FilterOperator.NOT_BETWEEN: PAIR,
    FilterOperator.DATE_BETWEEN: PAIR,
}

TEXT_OPERATORS: frozenset[FilterOperator] = frozenset(
    {FilterOperator.LIKE, FilterOperator.ILIKE, FilterOperator.NOT_LIKE}
)

ALL_OPERATORS: frozenset[FilterOperator] = frozenset(FilterOperator)

# Map common spellings to FilterOperator members
_OP_ALIASES: dict[str, FilterOperator] = {
    "eq": FilterOperator.EQ,
    "=": FilterOperator.EQ,
    "==": FilterOperator.EQ,
    "ne": FilterOperator.NE,
    "!=": FilterOperator.NE,
    "<>": FilterOperator.NE,
    "gt": FilterOperator.GT,
    ">": FilterOperator.GT,
    "gte": FilterOperator.GE,
    ">=": FilterOperator.GE,
    "lt": FilterOperator.LT,
    "<": FilterOperator.LT,
    "lte": FilterOperator.LE,
    "<=": FilterOperator.LE,
    "like": FilterOperator.LIKE,
    "ilike": FilterOperator.ILIKE,
    "not_like": FilterOperator.NOT_LIKE,
    "notlike": FilterOperator.NOT_LIKE,
    "in": FilterOperator.IN,
    "not_in": FilterOperator.NOT_IN,
    "notin": FilterOperator.NOT_IN,
    "between": FilterOperator.BETWEEN,
    "not_between": FilterOperator.NOT_BETWEEN,
    "date_between": FilterOperator.DATE_BETWEEN,
}


def resolve_operator(name: str | FilterOperator) -> FilterOperator | None:
    """Return the operator for *name* (case-insensitive) or ``None``."""
    if isinstance(name, FilterOperator):
        return name
    return _OP_ALIASES.get(name.strip().lower())


def operator_names() -> list[str]:
    """All spellings accepted by :func:`resolve_operator`."""
    return sorted(_OP_ALIASES)
