"""Tests for CriteriaSettings and PaginationParser."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from cqrs_ddd_criteria.operators import FilterOperator, operator_names, resolve_operator
from cqrs_ddd_criteria.pagination import PaginationParser
from cqrs_ddd_criteria.predicates import Page
from cqrs_ddd_criteria.settings import CriteriaSettings, SearchActivationMode


def test_defaults() -> None:
    settings = CriteriaSettings()
    assert settings.fuzzy_default_distance == 2
    assert settings.relevance_weights.phrase == 10
    assert settings.id_codec_min_length == 4
    assert settings.id_codec_max_length == 20
    assert settings.search_activation_mode is SearchActivationMode.AUTO
    assert settings.params.include == "with"
    assert settings.default_limit == 15


def test_camel_case_options() -> None:
    settings = CriteriaSettings.model_validate(
        {
            "fuzzyDefaultDistance": 1,
            "relevanceWeights": {"phrase": 7},
            "idCodecAlphabet": "abcdefghijklmnopqrstuvwxyz",
            "idCodecMinLength": 6,
            "idCodecMaxLength": 12,
            "searchActivationMode": "always-enhanced",
        }
    )
    assert settings.fuzzy_default_distance == 1
    assert settings.relevance_weights.phrase == 7
    assert settings.relevance_weights.required == 5
    assert settings.id_codec_min_length == 6
    assert settings.search_activation_mode is SearchActivationMode.ALWAYS_ENHANCED


def test_settings_are_frozen_and_strict() -> None:
    settings = CriteriaSettings()
    with pytest.raises(ValidationError):
        settings.fuzzy_default_distance = 3  # type: ignore[misc]
    with pytest.raises(ValidationError):
        CriteriaSettings.model_validate({"unknownOption": True})


@pytest.mark.parametrize(
    "data",
    [
        {"idCodecMinLength": 30, "idCodecMaxLength": 20},
        {"defaultLimit": 500, "maxLimit": 100},
        {"fuzzyDefaultDistance": -1},
        {"searchActivationMode": "sometimes"},
        {"acceptedOperators": ["=", "soundex"]},
    ],
)
def test_invalid_settings(data: dict) -> None:
    with pytest.raises(ValidationError):
        CriteriaSettings.model_validate(data)


def test_accepted_operators_resolve_aliases() -> None:
    settings = CriteriaSettings(accepted_operators=["eq", ">=", "IN"])
    assert settings.accepted_operators == frozenset(
        {FilterOperator.EQ, FilterOperator.GE, FilterOperator.IN}
    )


def test_is_cacheable() -> None:
    assert CriteriaSettings().is_cacheable("all")
    only = CriteriaSettings(cache_only=("paginate",))
    assert only.is_cacheable("paginate")
    assert not only.is_cacheable("all")
    excepted = CriteriaSettings(cache_except=("find",))
    assert not excepted.is_cacheable("find")
    assert excepted.is_cacheable("all")


def test_operator_helpers() -> None:
    assert resolve_operator(" NotIn ") is FilterOperator.NOT_IN
    assert resolve_operator("soundex") is None
    assert "between" in operator_names()
    assert FilterOperator.BETWEEN.arity.describe() == "exactly 2"
    assert FilterOperator.IN.arity.describe() == "at least 1"
    assert FilterOperator.LIKE.is_text
    assert not FilterOperator.EQ.is_multi_valued


# -- pagination ------------------------------------------------------------


@pytest.mark.parametrize(
    ("params", "expected"),
    [
        ({}, None),
        ({"limit": "10"}, Page(10, 0)),
        ({"limit": "10", "page": "3"}, Page(10, 20)),
        ({"page": "2"}, Page(15, 15)),
        ({"limit": "1000"}, Page(100, 0)),
        ({"limit": "0"}, Page(1, 0)),
        ({"limit": "abc"}, Page(15, 0)),
        ({"page": "-4"}, Page(15, 0)),
        ({"offset": "7", "limit": "5"}, Page(5, 7)),
        ({"offset": "nope"}, Page(15, 0)),
    ],
)
def test_pagination(params: dict, expected: Page | None) -> None:
    assert PaginationParser().parse(params) == expected
