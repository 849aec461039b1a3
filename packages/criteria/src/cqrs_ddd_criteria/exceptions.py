"""
Criteria exception hierarchy.

All exceptions inherit from ``CriteriaError`` and provide ``to_dict()``
for API-friendly (4xx) error responses. Errors raised while compiling a
request carry the ``channel`` (``search``, ``filter``, ``orderBy`` ...)
and the raw ``fragment`` that failed.
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any


class CriteriaError(Exception):
    """Root exception for the criteria package."""

    def __init__(
        self,
        message: str,
        *,
        channel: str | None = None,
        fragment: str | None = None,
    ) -> None:
        self.message = message
        self.channel = channel
        self.fragment = fragment
        super().__init__(message)

    def __str__(self) -> str:
        if self.channel:
            return f"[{self.channel}] {self.message}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "channel": self.channel,
            "fragment": self.fragment,
        }


# ── Parse errors ─────────────────────────────────────────────────────


class ParseError(CriteriaError):
    """Malformed search or directive syntax."""

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "error": "PARSE_ERROR"}


class SearchParseError(ParseError):
    """Raised when a free-text search expression cannot be tokenized."""


class DirectiveParseError(ParseError):
    """Raised when a ``field:operator:value`` directive is malformed."""


# ── Validation errors ────────────────────────────────────────────────


class ValidationError(CriteriaError):
    """A well-formed directive was rejected by the field whitelist."""

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "error": "VALIDATION_ERROR"}


class FieldNotAllowedError(ValidationError):
    """
    Field is not in the searchable-field whitelist.

    Provides fuzzy-matched suggestions for likely intended fields.
    """

    def __init__(
        self,
        field: str,
        allowed_fields: list[str],
        *,
        purpose: str = "searchable",
        channel: str | None = None,
        fragment: str | None = None,
    ) -> None:
        self.field = field
        self.allowed_fields = allowed_fields
        self.suggestions = get_close_matches(field, allowed_fields, n=3, cutoff=0.6)

        message = f"Field {field!r} is not {purpose}."
        if self.suggestions:
            message += f" Did you mean: {', '.join(self.suggestions)}?"
        super().__init__(message, channel=channel, fragment=fragment)

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "error": "FIELD_NOT_ALLOWED",
            "field": self.field,
            "suggestions": self.suggestions,
        }


class OperatorNotAllowedError(ValidationError):
    """Operator is unknown, globally disabled, or not allowed for the field."""

    def __init__(
        self,
        operator: str,
        field: str,
        allowed_operators: list[str],
        *,
        channel: str | None = None,
        fragment: str | None = None,
    ) -> None:
        self.operator = operator
        self.field = field
        self.allowed_operators = sorted(allowed_operators)
        message = (
            f"Operator {operator!r} not allowed for field {field!r}. "
            f"Allowed: {', '.join(self.allowed_operators)}"
        )
        super().__init__(message, channel=channel, fragment=fragment)

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "error": "OPERATOR_NOT_ALLOWED",
            "operator": self.operator,
            "field": self.field,
            "allowed_operators": self.allowed_operators,
        }


class ArityError(ValidationError):
    """Wrong number of values for an operator (e.g. ``between`` with one)."""

    def __init__(
        self,
        operator: str,
        expected: str,
        received: int,
        *,
        channel: str | None = None,
        fragment: str | None = None,
    ) -> None:
        self.operator = operator
        self.expected = expected
        self.received = received
        message = (
            f"Operator {operator!r} expects {expected} value(s), got {received}"
        )
        if fragment:
            message += f" in {fragment!r}"
        super().__init__(message, channel=channel, fragment=fragment)

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "error": "ARITY_ERROR",
            "operator": self.operator,
            "expected": self.expected,
            "received": self.received,
        }


# ── Codec errors ─────────────────────────────────────────────────────


class CodecError(CriteriaError):
    """A token looked like an encoded identifier but did not decode."""

    def __init__(
        self,
        token: str,
        *,
        channel: str | None = None,
        fragment: str | None = None,
    ) -> None:
        self.token = token
        super().__init__(
            f"Identifier {token!r} could not be decoded",
            channel=channel,
            fragment=fragment,
        )

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "error": "CODEC_ERROR", "token": self.token}


class CodecConfigurationError(CriteriaError):
    """Invalid alphabet / length configuration. Raised at construction time."""
