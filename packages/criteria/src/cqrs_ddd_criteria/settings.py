"""CriteriaSettings — configuration surface for compiler, codec and cache."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .operators import ALL_OPERATORS, FilterOperator, resolve_operator

DEFAULT_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
DEFAULT_IDENTIFIER_FIELDS = ("id", "*_id")

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def is_flag_set(value: Any) -> bool:
    """Read a request flag: ``true`` / ``1`` / ``yes`` / ``on``, any case."""
    if isinstance(value, bool):
        return value
    return value is not None and str(value).strip().lower() in _TRUTHY


class SearchActivationMode(str, Enum):
    """When the enhanced search parser is used."""

    AUTO = "auto"
    ALWAYS_ENHANCED = "always-enhanced"
    ALWAYS_BASIC = "always-basic"


class _Settings(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class RelevanceWeights(_Settings):
    """Score contributed by each matching token kind."""

    phrase: int = 10
    required: int = 5
    optional: int = 3
    fuzzy: int = 2


class RequestParams(_Settings):
    """Names of the request parameters read by the compiler."""

    search: str = "search"
    search_fields: str = "searchFields"
    filter: str = "filter"
    order_by: str = "orderBy"
    sorted_by: str = "sortedBy"
    include: str = "with"
    search_join: str = "searchJoin"
    enhanced: str = "enhanced"
    limit: str = "limit"
    page: str = "page"
    skip_cache: str = "skipCache"


class CriteriaSettings(_Settings):
    """
    Immutable configuration.

    Accepts snake_case names or the camelCase spellings
    (``fuzzyDefaultDistance``, ``idCodecAlphabet`` ...)::

        settings = CriteriaSettings.model_validate(
            {"fuzzyDefaultDistance": 1, "searchActivationMode": "always-basic"}
        )
    """

    fuzzy_default_distance: int = Field(default=2, ge=0)
    relevance_weights: RelevanceWeights = Field(default_factory=RelevanceWeights)

    id_codec_alphabet: str = DEFAULT_ALPHABET
    id_codec_salt: str = ""
    id_codec_min_length: int = Field(default=4, ge=1)
    id_codec_max_length: int = Field(default=20, ge=1)

    search_activation_mode: SearchActivationMode = SearchActivationMode.AUTO
    accepted_operators: frozenset[FilterOperator] = ALL_OPERATORS
    identifier_fields: tuple[str, ...] = DEFAULT_IDENTIFIER_FIELDS
    decode_search: bool = True
    decode_filters: bool = True

    params: RequestParams = Field(default_factory=RequestParams)

    default_limit: int = Field(default=15, ge=1)
    max_limit: int = Field(default=100, ge=1)

    cache_ttl: int = Field(default=1800, ge=0)
    cache_only: tuple[str, ...] | None = None
    cache_except: tuple[str, ...] | None = None

    @field_validator("accepted_operators", mode="before")
    @classmethod
    def _resolve_operators(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        resolved: set[FilterOperator] = set()
        for item in value:
            op = resolve_operator(item) if isinstance(item, str) else None
            if op is None:
                raise ValueError(f"Unknown operator: {item!r}")
            resolved.add(op)
        return frozenset(resolved)

    @model_validator(mode="after")
    def _check_lengths(self) -> CriteriaSettings:
        if self.id_codec_min_length > self.id_codec_max_length:
            raise ValueError("id_codec_min_length must not exceed id_codec_max_length")
        if self.default_limit > self.max_limit:
            raise ValueError("default_limit must not exceed max_limit")
        return self

    def is_cacheable(self, method: str) -> bool:
        """Apply the ``cache_only`` / ``cache_except`` method lists."""
        if self.cache_only is not None:
            return method in self.cache_only
        if self.cache_except is not None:
            return method not in self.cache_except
        return True
