"""
SQLAlchemy query adapter.

Translates a :class:`CompiledQuery` onto a ``Select`` using only
SQLAlchemy's expression language:

* field predicates    -> column comparisons; ``relation.field`` becomes
                         ``relationship.any()`` / ``relationship.has()``
* search predicates   -> OR of case-insensitive substring matches over the
                         search fields (fuzzy terms degrade to substring)
* relevance           -> ``ORDER BY`` sum of ``CASE`` weights, descending
* sort / page         -> ``order_by`` / ``limit`` / ``offset``
* includes            -> ``selectinload`` per relation path
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import ColumnElement, Select, and_, asc, case, desc, func, not_, or_
from sqlalchemy.orm import selectinload

from ..operators import FilterOperator
from ..predicates import (
    CompiledQuery,
    FieldPredicate,
    Predicate,
    PredicateGroup,
    SearchKind,
    SearchPredicate,
)

if TYPE_CHECKING:
    from ..relevance import RelevanceRanker

ColumnBuilder = Callable[[Any], ColumnElement[bool]]

SQLA_OPERATORS: dict[FilterOperator, Callable[[Any, Any], ColumnElement[bool]]] = {
    FilterOperator.EQ: lambda col, v: col.is_(None) if v is None else col == v,
    FilterOperator.NE: lambda col, v: col.is_not(None) if v is None else col != v,
    FilterOperator.GT: lambda col, v: col > v,
    FilterOperator.LT: lambda col, v: col < v,
    FilterOperator.GE: lambda col, v: col >= v,
    FilterOperator.LE: lambda col, v: col <= v,
    FilterOperator.LIKE: lambda col, v: col.like(v),
    FilterOperator.ILIKE: lambda col, v: col.ilike(v),
    FilterOperator.NOT_LIKE: lambda col, v: col.not_like(v),
    FilterOperator.IN: lambda col, v: col.in_(list(v)),
    FilterOperator.NOT_IN: lambda col, v: col.not_in(list(v)),
    FilterOperator.BETWEEN: lambda col, v: col.between(v[0], v[1]),
    FilterOperator.NOT_BETWEEN: lambda col, v: not_(col.between(v[0], v[1])),
    FilterOperator.DATE_BETWEEN: lambda col, v: func.date(col).between(
        str(v[0]), str(v[1])
    ),
}


def _scoped(model: type[Any], path: str, build: ColumnBuilder) -> ColumnElement[bool]:
    """Build *build(column)* for *path*, traversing relationships."""
    if "." in path:
        rel_name, nested = path.split(".", 1)
        rel_attr = getattr(model, rel_name, None)
        if rel_attr is None:
            raise AttributeError(f"Model {model} has no relationship {rel_name}")
        target_model = rel_attr.property.mapper.class_
        inner = _scoped(target_model, nested, build)
        if rel_attr.property.uselist:
            return cast("ColumnElement[bool]", rel_attr.any(inner))
        return cast("ColumnElement[bool]", rel_attr.has(inner))

    column = getattr(model, path, None)
    if column is None:
        raise AttributeError(f"Model {model} has no attribute {path}")
    return build(column)


def _term_hit(term: str) -> ColumnBuilder:
    def build(col: Any) -> ColumnElement[bool]:
        return and_(col.is_not(None), col.icontains(term, autoescape=True))

    return build


class SQLAlchemyQueryAdapter:
    """``IQueryAdapter`` producing SQLAlchemy ``Select`` statements."""

    def __init__(self, model: type[Any], id_field: str = "id") -> None:
        self.model = model
        self.id_field = id_field

    def apply(self, query: Select[Any], compiled: CompiledQuery) -> Select[Any]:
        if compiled.predicates:
            query = query.where(*(self.build(p) for p in compiled.predicates))

        if compiled.relevance is not None:
            query = query.order_by(desc(self.relevance_expression(compiled.relevance)))

        query = self._apply_sort(query, compiled)

        if compiled.relevance is not None and not compiled.sort:
            id_col = getattr(self.model, self.id_field, None)
            if id_col is not None:
                query = query.order_by(asc(id_col))

        if compiled.page is not None:
            query = query.limit(compiled.page.limit).offset(compiled.page.offset)

        for relation in compiled.includes:
            query = query.options(self._load_option(relation))
        return query

    # -- predicates ----------------------------------------------------------

    def build(self, predicate: Predicate) -> ColumnElement[bool]:
        if isinstance(predicate, PredicateGroup):
            parts = [self.build(p) for p in predicate.predicates]
            return and_(*parts) if predicate.join == "and" else or_(*parts)
        if isinstance(predicate, SearchPredicate):
            return self._build_search(predicate)
        return self._build_field(predicate)

    def _build_field(self, predicate: FieldPredicate) -> ColumnElement[bool]:
        operator = SQLA_OPERATORS[predicate.operator]
        return _scoped(
            self.model, predicate.path, lambda col: operator(col, predicate.value)
        )

    def _matches_term(self, term: str, fields: tuple[str, ...]) -> ColumnElement[bool]:
        return or_(*(_scoped(self.model, f, _term_hit(term)) for f in fields))

    def _build_search(self, predicate: SearchPredicate) -> ColumnElement[bool]:
        hits = [self._matches_term(t, predicate.fields) for t in predicate.terms]
        if predicate.kind is SearchKind.EXCLUDED:
            return not_(or_(*hits))
        if predicate.kind is SearchKind.OPTIONAL:
            return or_(*hits)
        return and_(*hits)

    def relevance_expression(self, ranker: RelevanceRanker) -> ColumnElement[Any]:
        """Sum of ``CASE WHEN <token matches> THEN weight ELSE 0 END``."""
        terms = [
            case((self._matches_term(t.text, ranker.fields), t.weight), else_=0)
            for t in ranker.tokens
        ]
        total: ColumnElement[Any] = terms[0]
        for term in terms[1:]:
            total = total + term
        return total

    # -- ordering / loading --------------------------------------------------

    def _apply_sort(self, query: Select[Any], compiled: CompiledQuery) -> Select[Any]:
        for directive in compiled.sort:
            model, name = self.model, directive.field
            if "." in name:
                rel_name, name = name.rsplit(".", 1)
                rel_attr = getattr(self.model, rel_name)
                model = rel_attr.property.mapper.class_
                query = query.outerjoin(rel_attr)
            column = getattr(model, name, None)
            if column is None:
                raise AttributeError(f"Model {model} has no attribute {name}")
            query = query.order_by(
                desc(column) if directive.direction == "desc" else asc(column)
            )
        return query

    def _load_option(self, relation: str) -> Any:
        model = self.model
        option: Any = None
        for name in relation.split("."):
            rel_attr = getattr(model, name, None)
            if rel_attr is None:
                raise AttributeError(f"Model {model} has no relationship {name}")
            option = (
                selectinload(rel_attr)
                if option is None
                else option.selectinload(rel_attr)
            )
            model = rel_attr.property.mapper.class_
        return option
