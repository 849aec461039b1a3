"""Relevance scoring and in-memory term matching for search tokens."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from rapidfuzz.distance import Levenshtein

from .search import SearchToken, TokenKind

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

_WORD = re.compile(r"\w+", re.UNICODE)


def resolve_path(obj: Any, path: str) -> Any:
    """
    Resolve a dot-separated path on a mapping or object.

    Lists are traversed implicitly: ``tags.name`` on a record whose
    ``tags`` is a list returns ``[tag.name for tag in tags]``.
    """
    for part in path.split("."):
        if obj is None:
            return None
        if isinstance(obj, list | tuple):
            return [resolve_path(item, part) for item in obj]
        obj = obj.get(part) if isinstance(obj, dict) else getattr(obj, part, None)
    return obj


def _texts(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, list | tuple):
        return [text for item in value for text in _texts(item)]
    return [str(value)]


def matches_term(value: Any, term: str) -> bool:
    """Case-insensitive substring match against a (possibly list) value."""
    needle = term.casefold()
    return any(needle in text.casefold() for text in _texts(value))


def matches_fuzzy(value: Any, term: str, distance: int) -> bool:
    """Any word of *value* within *distance* edits of *term*."""
    needle = term.casefold()
    for text in _texts(value):
        folded = text.casefold()
        if needle in folded:
            return True
        for word in _WORD.findall(folded):
            if Levenshtein.distance(needle, word, score_cutoff=distance) <= distance:
                return True
    return False


def token_matches(token: SearchToken, record: Any, fields: Sequence[str]) -> bool:
    """Does *token* match any of *fields* on *record*."""
    for path in fields:
        value = resolve_path(record, path)
        if token.kind is TokenKind.FUZZY:
            if matches_fuzzy(value, token.text, token.distance or 0):
                return True
        elif matches_term(value, token.text):
            return True
    return False


class RelevanceRanker:
    """
    Orders candidates by the summed weight of the tokens they match.

    Ties are broken by a stable caller-supplied key (typically the record
    identifier); the ranker itself never invents an order.
    """

    def __init__(self, tokens: Iterable[SearchToken], fields: Iterable[str]) -> None:
        self.tokens = tuple(t for t in tokens if t.weight > 0)
        self.fields = tuple(fields)

    def score(self, record: Any) -> int:
        return sum(
            token.weight
            for token in self.tokens
            if token_matches(token, record, self.fields)
        )

    def order(
        self,
        records: Iterable[Any],
        tiebreak: Callable[[Any], Any] | None = None,
    ) -> list[Any]:
        scored = [(self.score(record), record) for record in records]
        if tiebreak is None:
            scored.sort(key=lambda item: -item[0])
        else:
            scored.sort(key=lambda item: (-item[0], tiebreak(item[1])))
        return [record for _, record in scored]

    def to_dict(self) -> dict[str, Any]:
        return {
            "tokens": [t.to_dict() for t in self.tokens],
            "fields": list(self.fields),
        }
