"""Request-driven criteria — search/filter/sort compilation, stack, id codec."""

from __future__ import annotations

from .cache_keys import derive_cache_key
from .caching import CachingQueryExecutor, ICacheService, InMemoryCacheService
from .codec import DecodeResult, SurrogateIdCodec
from .compiler import CriteriaCompiler
from .criteria import (
    CallableCriterion,
    CriteriaContext,
    CriteriaStack,
    Criterion,
    IQueryAdapter,
    PredicateCriterion,
    RequestCriterion,
    StackMode,
)
from .directives import DirectiveParser, FilterDirective
from .exceptions import (
    ArityError,
    CodecConfigurationError,
    CodecError,
    CriteriaError,
    DirectiveParseError,
    FieldNotAllowedError,
    OperatorNotAllowedError,
    ParseError,
    SearchParseError,
    ValidationError,
)
from .fields import FieldPath, SearchableFields
from .operators import FilterOperator, resolve_operator
from .pagination import PaginationParser
from .predicates import (
    CompiledQuery,
    FieldPredicate,
    Page,
    Predicate,
    PredicateGroup,
    SearchKind,
    SearchPredicate,
    SortDirective,
)
from .relevance import RelevanceRanker
from .search import (
    SearchExpressionParser,
    SearchToken,
    TokenKind,
    should_use_enhanced,
)
from .settings import (
    CriteriaSettings,
    RelevanceWeights,
    RequestParams,
    SearchActivationMode,
    is_flag_set,
)

__all__ = [
    # Compiler
    "CriteriaCompiler",
    "CompiledQuery",
    # Parsers
    "DirectiveParser",
    "FilterDirective",
    "PaginationParser",
    "SearchExpressionParser",
    "SearchToken",
    "TokenKind",
    "should_use_enhanced",
    # Whitelist / operators
    "FieldPath",
    "FilterOperator",
    "SearchableFields",
    "resolve_operator",
    # Predicates
    "FieldPredicate",
    "Page",
    "Predicate",
    "PredicateGroup",
    "RelevanceRanker",
    "SearchKind",
    "SearchPredicate",
    "SortDirective",
    # Criteria stack
    "CallableCriterion",
    "CriteriaContext",
    "CriteriaStack",
    "Criterion",
    "IQueryAdapter",
    "PredicateCriterion",
    "RequestCriterion",
    "StackMode",
    # Codec
    "DecodeResult",
    "SurrogateIdCodec",
    # Caching
    "CachingQueryExecutor",
    "ICacheService",
    "InMemoryCacheService",
    "derive_cache_key",
    # Settings
    "CriteriaSettings",
    "RelevanceWeights",
    "RequestParams",
    "SearchActivationMode",
    "is_flag_set",
    # Exceptions
    "ArityError",
    "CodecConfigurationError",
    "CodecError",
    "CriteriaError",
    "DirectiveParseError",
    "FieldNotAllowedError",
    "OperatorNotAllowedError",
    "ParseError",
    "SearchParseError",
    "ValidationError",
]
