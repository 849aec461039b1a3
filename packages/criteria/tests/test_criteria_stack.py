"""Tests for CriteriaStack and the built-in criteria."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from cqrs_ddd_criteria.adapters.memory import MemoryQuery, MemoryQueryAdapter
from cqrs_ddd_criteria.criteria import (
    CallableCriterion,
    CriteriaContext,
    CriteriaStack,
    Criterion,
    PredicateCriterion,
    RequestCriterion,
    StackMode,
)
from cqrs_ddd_criteria.fields import SearchableFields
from cqrs_ddd_criteria.operators import FilterOperator
from cqrs_ddd_criteria.predicates import FieldPredicate


class AppendCriterion(Criterion):
    """Records its tag on a list-shaped query."""

    def __init__(self, tag: str, key: str | None = None) -> None:
        self.tag = tag
        self.key = key

    def apply(self, query: Any, context: CriteriaContext) -> Any:
        return [*query, self.tag]


class RateLimitCriterion(AppendCriterion):
    pass


@pytest.fixture
def context(user_fields: SearchableFields) -> CriteriaContext:
    return CriteriaContext("User", user_fields, MagicMock())


def test_apply_all_is_fifo(context: CriteriaContext) -> None:
    stack = CriteriaStack().push(AppendCriterion("a")).push(AppendCriterion("b"))
    stack.push(AppendCriterion("c"))

    assert stack.apply_all([], context) == ["a", "b", "c"]
    # Re-folding starts from the current state, each criterion once
    assert stack.apply_all([], context) == ["a", "b", "c"]


def test_skip_semantics(context: CriteriaContext) -> None:
    stack = CriteriaStack([AppendCriterion("a"), AppendCriterion("b")])
    query = ["base"]

    stack.set_skip(True)
    assert stack.mode is StackMode.SKIPPED
    assert stack.apply_all(query, context) is query
    # Skipping is sticky until reset explicitly
    assert stack.apply_all(query, context) is query

    stack.set_skip(False)
    assert stack.mode is StackMode.ACTIVE
    assert stack.apply_all(query, context) == ["base", "a", "b"]


def test_pop_by_type_is_structural(context: CriteriaContext) -> None:
    stack = CriteriaStack()
    stack.push(AppendCriterion("a")).push(RateLimitCriterion("limit"))

    stack.pop(RateLimitCriterion)

    assert stack.apply_all([], context) == ["a"]


def test_pop_by_type_matches_exact_class(context: CriteriaContext) -> None:
    stack = CriteriaStack([AppendCriterion("a"), RateLimitCriterion("limit")])
    stack.pop(AppendCriterion)
    assert stack.apply_all([], context) == ["limit"]


def test_pop_by_equivalent_instance(context: CriteriaContext) -> None:
    stack = CriteriaStack([RateLimitCriterion("limit"), AppendCriterion("a")])
    stack.pop(RateLimitCriterion("another instance"))
    assert [c.tag for c in stack] == ["a"]


def test_pop_by_external_key(context: CriteriaContext) -> None:
    stack = CriteriaStack(
        [AppendCriterion("a", key="tenant"), AppendCriterion("b", key="active")]
    )
    stack.pop("tenant")
    assert stack.apply_all([], context) == ["b"]
    assert "active" in stack
    assert "tenant" not in stack


def test_pop_unknown_identity_is_noop() -> None:
    stack = CriteriaStack([AppendCriterion("a")])
    stack.pop(RateLimitCriterion).pop("missing")
    assert len(stack) == 1


def test_clear_and_list() -> None:
    stack = CriteriaStack([AppendCriterion("a")])
    listed = stack.list()
    listed.append(AppendCriterion("b"))
    assert len(stack) == 1

    stack.clear()
    assert stack.list() == []


def test_push_rejects_non_criteria() -> None:
    with pytest.raises(TypeError):
        CriteriaStack().push(lambda q, c: q)  # type: ignore[arg-type]


def test_get_by_criterion_bypasses_stack(context: CriteriaContext) -> None:
    stack = CriteriaStack([AppendCriterion("a")])
    assert stack.get_by_criterion(AppendCriterion("x"), [], context) == ["x"]
    assert stack.apply_all([], context) == ["a"]


def test_structural_serialization() -> None:
    stack = CriteriaStack([AppendCriterion("a", key="k")])
    (data,) = stack.to_dict()
    assert data["type"].endswith("AppendCriterion")
    assert data["state"] == {"tag": "a", "key": "k"}

    assert stack.set_skip().to_dict() == []


def test_callable_criterion(context: CriteriaContext) -> None:
    criterion = CallableCriterion(lambda q, ctx: [*q, ctx.entity_type], key="entity")
    assert CriteriaStack([criterion]).apply_all([], context) == ["User"]
    assert criterion.to_dict() == {"type": "callable", "key": "entity"}
    assert criterion.identity == "entity"


def test_request_and_predicate_criteria(
    user_fields: SearchableFields, users: list[dict]
) -> None:
    context = CriteriaContext("User", user_fields, MemoryQueryAdapter())
    stack = CriteriaStack()
    stack.push(RequestCriterion({"filter": "status:in:active,pending"}))
    stack.push(
        PredicateCriterion(
            FieldPredicate("role_id", FilterOperator.EQ, 77), key="role-scope"
        )
    )

    result = stack.apply_all(MemoryQuery.of(users), context)

    assert [u["id"] for u in result.all()] == [1, 3]

    stack.pop("role-scope")
    result = stack.apply_all(MemoryQuery.of(users), context)
    assert [u["id"] for u in result.all()] == [1, 2, 3]


def test_request_criterion_uses_context_compiler(user_fields: SearchableFields) -> None:
    compiler = MagicMock()
    adapter = MagicMock()
    context = CriteriaContext("User", user_fields, adapter, compiler)

    RequestCriterion({"search": "x"}).apply("query", context)

    compiler.compile.assert_called_once_with({"search": "x"}, user_fields)
    adapter.apply.assert_called_once_with("query", compiler.compile.return_value)
