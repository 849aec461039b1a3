"""Tests for the search expression parser and activation policy."""

from __future__ import annotations

import pytest

from cqrs_ddd_criteria.exceptions import SearchParseError
from cqrs_ddd_criteria.relevance import RelevanceRanker
from cqrs_ddd_criteria.search import (
    SearchExpressionParser,
    SearchToken,
    TokenKind,
    should_use_enhanced,
)
from cqrs_ddd_criteria.settings import CriteriaSettings, SearchActivationMode


@pytest.fixture
def parser() -> SearchExpressionParser:
    return SearchExpressionParser()


def test_classification(parser: SearchExpressionParser) -> None:
    tokens = parser.parse('"a b" +c -d e~2 f')

    assert [(t.text, t.kind, t.weight, t.distance) for t in tokens] == [
        ("a b", TokenKind.PHRASE, 10, None),
        ("c", TokenKind.REQUIRED, 5, None),
        ("d", TokenKind.EXCLUDED, 0, None),
        ("e", TokenKind.FUZZY, 2, 2),
        ("f", TokenKind.PLAIN, 3, None),
    ]


def test_classification_without_plain_term(parser: SearchExpressionParser) -> None:
    kinds = [t.kind for t in parser.parse('"a b" +c -d e~2')]
    assert kinds == [
        TokenKind.PHRASE,
        TokenKind.REQUIRED,
        TokenKind.EXCLUDED,
        TokenKind.FUZZY,
    ]


def test_phrase_whitespace_is_collapsed(parser: SearchExpressionParser) -> None:
    (token,) = parser.parse('"  senior    developer "')
    assert token == SearchToken("senior developer", TokenKind.PHRASE, 10)


def test_phrase_adjacent_to_term(parser: SearchExpressionParser) -> None:
    tokens = parser.parse('abc"x y"def')
    assert [(t.text, t.kind) for t in tokens] == [
        ("abc", TokenKind.PLAIN),
        ("x y", TokenKind.PHRASE),
        ("def", TokenKind.PLAIN),
    ]


def test_prefixed_phrases(parser: SearchExpressionParser) -> None:
    tokens = parser.parse('+"senior dev" -"junior   dev" ann')
    assert [(t.text, t.kind, t.weight) for t in tokens] == [
        ("senior dev", TokenKind.PHRASE, 10),
        ("junior dev", TokenKind.EXCLUDED, 0),
        ("ann", TokenKind.PLAIN, 3),
    ]


def test_fuzzy_default_distance_from_settings() -> None:
    parser = SearchExpressionParser(CriteriaSettings(fuzzy_default_distance=1))
    (token,) = parser.parse("colour~")
    assert token.kind is TokenKind.FUZZY
    assert token.distance == 1


def test_custom_weights() -> None:
    settings = CriteriaSettings.model_validate(
        {"relevanceWeights": {"phrase": 20, "required": 8, "optional": 1, "fuzzy": 4}}
    )
    tokens = SearchExpressionParser(settings).parse('"x y" +a b c~1')
    assert [t.weight for t in tokens] == [20, 8, 1, 4]


@pytest.mark.parametrize(
    "expr",
    ['"unterminated', 'ok "still open', '""', "+", "foo -", "~2", "+a~1", "word~x"],
)
def test_parse_errors(parser: SearchExpressionParser, expr: str) -> None:
    with pytest.raises(SearchParseError) as exc_info:
        parser.parse(expr)
    assert exc_info.value.channel == "search"
    assert exc_info.value.fragment


@pytest.mark.parametrize(
    ("expr", "expected"),
    [
        ("john", False),
        ("  john  ", False),
        ("john smith", True),
        ('"john"', True),
        ("+john", True),
        ("-john", True),
        ("jon~1", True),
        ("a-b", False),
    ],
)
def test_activation_policy_auto(expr: str, expected: bool) -> None:
    assert should_use_enhanced(expr) is expected


def test_activation_policy_forced() -> None:
    assert should_use_enhanced("john", SearchActivationMode.ALWAYS_ENHANCED)
    assert not should_use_enhanced('"a b" +c', SearchActivationMode.ALWAYS_BASIC)


def test_relevance_ranker_orders_by_total_weight(
    parser: SearchExpressionParser
) -> None:
    tokens = parser.parse('"senior developer" +active manager')
    ranker = RelevanceRanker(tokens, ["name", "status"])
    records = [
        {"id": 3, "name": "Manager", "status": "active"},
        {"id": 1, "name": "Senior Developer", "status": "active"},
        {"id": 2, "name": "Senior Developer", "status": "inactive"},
        {"id": 4, "name": "Nobody", "status": "gone"},
    ]

    assert ranker.score(records[1]) == 15
    assert ranker.score(records[0]) == 8
    ordered = ranker.order(records, tiebreak=lambda r: r["id"])
    # "inactive" contains "active" so record 2 also earns the required weight
    assert [r["id"] for r in ordered] == [1, 2, 3, 4]


def test_relevance_ties_use_caller_key() -> None:
    ranker = RelevanceRanker([SearchToken("x", TokenKind.PLAIN, 3)], ["name"])
    records = [{"id": 9, "name": "x"}, {"id": 2, "name": "x"}]
    assert [r["id"] for r in ranker.order(records, tiebreak=lambda r: r["id"])] == [
        2,
        9,
    ]


def test_fuzzy_token_scores_within_distance() -> None:
    token = SearchToken("colour", TokenKind.FUZZY, 2, distance=1)
    ranker = RelevanceRanker([token], ["title"])
    assert ranker.score({"title": "Color theory"}) == 2
    assert ranker.score({"title": "Colr"}) == 0
