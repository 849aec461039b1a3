"""
Free-text search expression parser.

Grammar (whitespace separated)::

    "exact phrase"   phrase    (weight 10)
    +term            required  (weight 5, all required terms must match)
    -term            excluded  (no weight, matching records are removed)
    +"phrase"        phrase    (phrases are always required)
    -"phrase"        excluded  (the whole phrase)
    term~N           fuzzy     (weight 2, N = max edit distance, default 2)
    term             plain     (weight 3, OR-combined, ranking only)

Escaped quotes are not supported; an unterminated quote is an error.
The parser only classifies and weighs tokens. Ordering is left to
:class:`~cqrs_ddd_criteria.relevance.RelevanceRanker`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .exceptions import SearchParseError
from .settings import CriteriaSettings, SearchActivationMode

if TYPE_CHECKING:
    from .settings import RelevanceWeights


class TokenKind(str, Enum):
    PHRASE = "phrase"
    REQUIRED = "required"
    EXCLUDED = "excluded"
    FUZZY = "fuzzy"
    PLAIN = "plain"


@dataclass(frozen=True)
class SearchToken:
    """One classified unit of a search expression."""

    text: str
    kind: TokenKind
    weight: int
    distance: int | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "text": self.text,
            "kind": self.kind.value,
            "weight": self.weight,
        }
        if self.distance is not None:
            data["distance"] = self.distance
        return data


def should_use_enhanced(
    expr: str,
    mode: SearchActivationMode = SearchActivationMode.AUTO,
) -> bool:
    """
    Activation policy for the enhanced parser.

    In ``auto`` mode a single bare term stays on the cheap basic path;
    quotes, ``+``/``-`` prefixes, ``~`` markers or several terms switch to
    the enhanced parser.
    """
    if mode is SearchActivationMode.ALWAYS_ENHANCED:
        return True
    if mode is SearchActivationMode.ALWAYS_BASIC:
        return False
    if '"' in expr or "~" in expr:
        return True
    terms = expr.split()
    if len(terms) > 1:
        return True
    return any(term[0] in "+-" for term in terms)


class SearchExpressionParser:
    """Tokenize a search expression into weighted :class:`SearchToken` s."""

    def __init__(self, settings: CriteriaSettings | None = None) -> None:
        settings = settings or CriteriaSettings()
        self._weights: RelevanceWeights = settings.relevance_weights
        self._default_distance = settings.fuzzy_default_distance

    def parse(self, expr: str) -> list[SearchToken]:
        tokens: list[SearchToken] = []
        i, n = 0, len(expr)
        while i < n:
            if expr[i].isspace():
                i += 1
                continue

            # A +/- directly before a quote applies to the whole phrase
            prefix = ""
            if expr[i] in "+-" and expr.startswith('"', i + 1):
                prefix, i = expr[i], i + 1

            if expr[i] == '"':
                end = expr.find('"', i + 1)
                if end < 0:
                    raise SearchParseError(
                        "Unterminated quoted phrase",
                        channel="search",
                        fragment=expr[i:],
                    )
                phrase = " ".join(expr[i + 1 : end].split())
                if not phrase:
                    raise SearchParseError(
                        "Empty quoted phrase",
                        channel="search",
                        fragment=expr[i : end + 1],
                    )
                if prefix == "-":
                    tokens.append(SearchToken(phrase, TokenKind.EXCLUDED, 0))
                else:
                    tokens.append(
                        SearchToken(phrase, TokenKind.PHRASE, self._weights.phrase)
                    )
                i = end + 1
                continue

            start = i
            while i < n and not expr[i].isspace() and expr[i] != '"':
                i += 1
            tokens.append(self._classify(expr[start:i]))
        return tokens

    def _classify(self, word: str) -> SearchToken:
        prefix = word[0]
        if prefix in "+-":
            text = word[1:]
            if not text:
                raise SearchParseError(
                    f"Dangling {prefix!r} operator", channel="search", fragment=word
                )
            if "~" in text:
                raise SearchParseError(
                    "Fuzzy marker cannot be combined with +/- prefixes",
                    channel="search",
                    fragment=word,
                )
            if prefix == "+":
                return SearchToken(text, TokenKind.REQUIRED, self._weights.required)
            return SearchToken(text, TokenKind.EXCLUDED, 0)

        if "~" in word:
            text, _, raw_distance = word.partition("~")
            if not text:
                raise SearchParseError(
                    "Fuzzy marker without a term", channel="search", fragment=word
                )
            if raw_distance and not raw_distance.isdigit():
                raise SearchParseError(
                    f"Invalid fuzzy distance {raw_distance!r}",
                    channel="search",
                    fragment=word,
                )
            distance = int(raw_distance) if raw_distance else self._default_distance
            return SearchToken(text, TokenKind.FUZZY, self._weights.fuzzy, distance)

        return SearchToken(word, TokenKind.PLAIN, self._weights.optional)
