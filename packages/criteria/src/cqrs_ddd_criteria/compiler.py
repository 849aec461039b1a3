"""
CriteriaCompiler — raw request params -> :class:`CompiledQuery`.

Channels are compiled in a fixed order:

1. ``with``          relations to eager-load (whitelisted)
2. ``search``        ``;`` separated; ``field:value`` parts become field
                     predicates, everything else is free text parsed by the
                     basic or enhanced parser (see :func:`should_use_enhanced`)
3. ``filter``        directive list
4. ``orderBy`` / ``sortedBy``
5. ``limit`` / ``page``

Any failure aborts the whole compile; there is no best-effort result.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, Literal

from .codec import SurrogateIdCodec
from .directives import (
    DirectiveParser,
    FilterDirective,
    parse_scalar,
    split_directives,
)
from .exceptions import ValidationError
from .operators import FilterOperator
from .pagination import PaginationParser
from .predicates import (
    CompiledQuery,
    FieldPredicate,
    Predicate,
    PredicateGroup,
    SearchKind,
    SearchPredicate,
)
from .relevance import RelevanceRanker
from .search import (
    SearchExpressionParser,
    SearchToken,
    TokenKind,
    should_use_enhanced,
)
from .settings import CriteriaSettings, SearchActivationMode, is_flag_set

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .fields import SearchableFields

logger = logging.getLogger("cqrs_ddd.criteria.compiler")

_FIELD_DIRECTIVE = re.compile(r"^[A-Za-z_][\w.]*\s*:")


def _text(value: Any) -> str | None:
    """Query strings may repeat a key; repeated values are ``;`` joined."""
    if value is None:
        return None
    if isinstance(value, list | tuple):
        return ";".join(str(v) for v in value if v is not None)
    return str(value)


def _weight(predicate: Predicate) -> int:
    if isinstance(predicate, SearchPredicate):
        return predicate.weight
    if isinstance(predicate, PredicateGroup):
        return max((_weight(p) for p in predicate.predicates), default=0)
    return 0


class CriteriaCompiler:
    """Single entry point that turns request params into predicates."""

    def __init__(
        self,
        settings: CriteriaSettings | None = None,
        codec: SurrogateIdCodec | None = None,
    ) -> None:
        self.settings = settings or CriteriaSettings()
        self.codec = codec or SurrogateIdCodec.from_settings(self.settings)
        self._search_parser = SearchExpressionParser(self.settings)
        self._directives = DirectiveParser(self.settings, self.codec)
        self._pagination = PaginationParser(self.settings)

    def compile(
        self,
        params: Mapping[str, Any],
        searchable: SearchableFields,
    ) -> CompiledQuery:
        names = self.settings.params

        includes = self._directives.parse_includes(
            _text(params.get(names.include)), searchable
        )

        predicates: list[Predicate] = []
        relevance: RelevanceRanker | None = None
        metadata: dict[str, Any] = {}

        raw_search = _text(params.get(names.search))
        if raw_search and raw_search.strip():
            text, search_directives = self._split_search(raw_search, searchable)
            if text:
                search_predicates, relevance, mode = self._compile_free_text(
                    text, params, searchable
                )
                predicates.extend(search_predicates)
                metadata["search_mode"] = mode
            predicates.extend(self._join_search_directives(search_directives, params))

        filters = self._directives.parse(
            _text(params.get(names.filter)), searchable, "filter"
        )
        predicates.extend(d.to_predicate() for d in filters)

        sort = self._directives.parse_sort(
            _text(params.get(names.order_by)),
            _text(params.get(names.sorted_by)),
            searchable,
        )
        page = self._pagination.parse(params)

        logger.debug(
            "Compiled %d predicate(s), %d sort key(s), includes=%s, mode=%s",
            len(predicates),
            len(sort),
            includes,
            metadata.get("search_mode"),
        )
        return CompiledQuery(
            predicates=tuple(predicates),
            relevance=relevance,
            sort=tuple(sort),
            includes=tuple(includes),
            page=page,
            metadata=metadata,
        )

    # -- search channel ------------------------------------------------------

    def _split_search(
        self, raw: str, searchable: SearchableFields
    ) -> tuple[str, list[FilterDirective]]:
        text_parts: list[str] = []
        directives: list[FilterDirective] = []
        for part in split_directives(raw):
            if _FIELD_DIRECTIVE.match(part):
                directive = self._directives.parse_one(part, searchable, "search")
                directives.append(self._widen_text_match(directive))
            else:
                text_parts.append(part)
        return " ".join(text_parts).strip(), directives

    @staticmethod
    def _widen_text_match(directive: FilterDirective) -> FilterDirective:
        """``search=name:john`` matches substrings, unlike the filter channel."""
        if not directive.operator.is_text:
            return directive
        values = tuple(
            text if "%" in text else f"%{text}%"
            for text in (str(v) for v in directive.values)
        )
        return FilterDirective(
            directive.field,
            directive.operator,
            values,
            directive.relation,
            directive.channel,
            directive.raw,
        )

    def _join_search_directives(
        self,
        directives: list[FilterDirective],
        params: Mapping[str, Any],
    ) -> list[Predicate]:
        field_predicates = [d.to_predicate() for d in directives]
        if len(field_predicates) > 1 and self._search_join(params) == "or":
            return [PredicateGroup("or", tuple(field_predicates))]
        return list(field_predicates)

    def _search_join(self, params: Mapping[str, Any]) -> Literal["and", "or"]:
        raw = _text(params.get(self.settings.params.search_join)) or "or"
        return "and" if raw.strip().lower() == "and" else "or"

    def _compile_free_text(
        self,
        text: str,
        params: Mapping[str, Any],
        searchable: SearchableFields,
    ) -> tuple[list[Predicate], RelevanceRanker | None, str]:
        names = self.settings.params
        targets = self._directives.parse_search_fields(
            _text(params.get(names.search_fields)), searchable
        ) or {name: searchable.default_operator(name) for name in searchable}

        mode = self.settings.search_activation_mode
        if is_flag_set(params.get(names.enhanced)):
            mode = SearchActivationMode.ALWAYS_ENHANCED

        if should_use_enhanced(text, mode):
            predicates, relevance = self._compile_enhanced(text, targets)
            return predicates, relevance, "enhanced"
        return [self._compile_basic(text, targets, searchable, params)], None, "basic"

    def _compile_enhanced(
        self,
        text: str,
        targets: dict[str, FilterOperator],
    ) -> tuple[list[Predicate], RelevanceRanker | None]:
        fields = tuple(name for name, op in targets.items() if op.is_text)
        if not fields:
            raise ValidationError(
                "No text fields available for free-text search",
                channel="search",
                fragment=text,
            )

        tokens = self._search_parser.parse(text)
        mandatory: list[Predicate] = []
        optional: list[Predicate] = []
        plain: list[SearchToken] = []
        for token in tokens:
            if token.kind is TokenKind.PLAIN:
                plain.append(token)
            elif token.kind is TokenKind.FUZZY:
                optional.append(
                    SearchPredicate(
                        SearchKind.FUZZY,
                        (token.text,),
                        fields,
                        token.weight,
                        token.distance,
                    )
                )
            else:
                mandatory.append(
                    SearchPredicate(
                        SearchKind(token.kind.value),
                        (token.text,),
                        fields,
                        token.weight,
                    )
                )
        if plain:
            optional.insert(
                0,
                SearchPredicate(
                    SearchKind.OPTIONAL,
                    tuple(t.text for t in plain),
                    fields,
                    self.settings.relevance_weights.optional,
                ),
            )

        predicates = list(mandatory)
        if len(optional) == 1:
            predicates.extend(optional)
        elif optional:
            predicates.append(PredicateGroup("or", tuple(optional)))
        predicates.sort(key=lambda p: -_weight(p))

        ranked = [t for t in tokens if t.weight > 0]
        relevance = RelevanceRanker(ranked, fields) if ranked else None
        return predicates, relevance

    def _compile_basic(
        self,
        term: str,
        targets: dict[str, FilterOperator],
        searchable: SearchableFields,
        params: Mapping[str, Any],
    ) -> Predicate:
        per_field: list[Predicate] = []
        for name, operator in targets.items():
            predicate = self._basic_field_predicate(name, operator, term, searchable)
            if predicate is not None:
                per_field.append(predicate)

        if not per_field:
            raise ValidationError(
                "Search term does not apply to any searchable field",
                channel="search",
                fragment=term,
            )
        if len(per_field) == 1:
            return per_field[0]
        return PredicateGroup(self._search_join(params), tuple(per_field))

    def _basic_field_predicate(
        self,
        name: str,
        operator: FilterOperator,
        term: str,
        searchable: SearchableFields,
    ) -> FieldPredicate | None:
        relation, _, field = name.rpartition(".")
        relation_or_none = relation or None

        identifier = searchable.is_identifier(name, self.settings.identifier_fields)
        if identifier and self.settings.decode_search:
            value = self._identifier_term(term)
            if value is None:
                return None
            return FieldPredicate(field, FilterOperator.EQ, value, relation_or_none)

        if operator.is_text:
            return FieldPredicate(field, operator, f"%{term}%", relation_or_none)
        if operator.arity.minimum > 1:
            return None
        value = parse_scalar(term)
        if operator.is_multi_valued:
            value = (value,)
        return FieldPredicate(field, operator, value, relation_or_none)

    def _identifier_term(self, term: str) -> int | None:
        """A bare search term only targets id fields when it is an identifier."""
        if term.isdigit():
            return int(term)
        if not self.codec.looks_like_encoded(term):
            return None
        result = self.codec.decode(term)
        return result.value if result.ok else None
