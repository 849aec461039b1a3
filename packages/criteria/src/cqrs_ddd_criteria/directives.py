"""
Directive parsing — ``field:operator:value`` lists from the request.

Directives are ``;`` separated::

    status:active                       operator = the field's default
    age:>=:18                           explicit operator
    status:in:active,pending            set-valued operator
    created_at:between:2024-01-01,2024-12-31
    roles.name:like:%admin%             relationship-qualified field

Validation runs in a fixed order: relation split, whitelist lookup,
operator membership (global and per field), value arity, identifier
normalization. Every error names the offending directive verbatim.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from .exceptions import (
    ArityError,
    CodecError,
    DirectiveParseError,
    OperatorNotAllowedError,
    ValidationError,
)
from .fields import FieldPath
from .operators import FilterOperator, resolve_operator
from .predicates import FieldPredicate, SortDirective
from .settings import CriteriaSettings

if TYPE_CHECKING:
    from .codec import SurrogateIdCodec
    from .fields import SearchableFields

_CANONICAL_NUMBER = re.compile(r"^-?(?:0|[1-9]\d*)(\.\d+)?$")


@dataclass(frozen=True)
class FilterDirective:
    """One validated directive."""

    field: str
    operator: FilterOperator
    values: tuple[Any, ...]
    relation: str | None = None
    channel: str = "filter"
    raw: str = ""

    @property
    def path(self) -> str:
        return str(FieldPath(self.relation, self.field))

    @property
    def value(self) -> Any:
        """Scalar for single-valued operators, tuple otherwise."""
        if self.operator.is_multi_valued:
            return self.values
        return self.values[0]

    def to_predicate(self) -> FieldPredicate:
        return FieldPredicate(self.field, self.operator, self.value, self.relation)


def parse_scalar(raw: str) -> Any:
    """
    Coerce a raw directive value to bool / None / int / float / str.

    Only canonical numbers are coerced: ``"01234"`` or ``"1e3"`` stay
    strings, so zero-padded codes still match their text columns.
    """
    lowered = raw.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered == "null":
        return None
    match = _CANONICAL_NUMBER.match(raw)
    if match is None:
        return raw
    return float(raw) if match.group(1) else int(raw)


def split_directives(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(";") if part.strip()]


class DirectiveParser:
    """Parse and validate directive lists against a :class:`SearchableFields`."""

    def __init__(
        self,
        settings: CriteriaSettings | None = None,
        codec: SurrogateIdCodec | None = None,
    ) -> None:
        self._settings = settings or CriteriaSettings()
        self._codec = codec

    # -- field directives ----------------------------------------------------

    def parse(
        self,
        raw: str | None,
        searchable: SearchableFields,
        channel: str = "filter",
    ) -> list[FilterDirective]:
        if not raw:
            return []
        return [
            self.parse_one(part, searchable, channel) for part in split_directives(raw)
        ]

    def parse_one(
        self,
        part: str,
        searchable: SearchableFields,
        channel: str = "filter",
    ) -> FilterDirective:
        tokens = part.split(":", 2)
        if len(tokens) < 2 or not tokens[0].strip():
            raise DirectiveParseError(
                f"Expected field:value or field:operator:value, got {part!r}",
                channel=channel,
                fragment=part,
            )

        path = tokens[0].strip()
        relation, field = FieldPath.parse(path)
        searchable.require_field(path, channel=channel, fragment=part)

        # A middle part that is not an operator belongs to the value ("at:10:30")
        operator: FilterOperator | None = None
        if len(tokens) == 3:
            operator = resolve_operator(tokens[1])
            raw_value = tokens[2] if operator else f"{tokens[1]}:{tokens[2]}"
        else:
            raw_value = tokens[1]
        if operator is None:
            operator = searchable.default_operator(path)

        searchable.require_operator(
            path,
            operator,
            self._settings.accepted_operators,
            channel=channel,
            fragment=part,
        )

        raw_values = self._split_values(raw_value.strip(), operator)
        if not operator.arity.accepts(len(raw_values)):
            raise ArityError(
                operator.value,
                operator.arity.describe(),
                len(raw_values),
                channel=channel,
                fragment=part,
            )

        values = tuple(
            self._convert(v, path, operator, searchable, channel, part)
            for v in raw_values
        )
        return FilterDirective(field, operator, values, relation, channel, part)

    def _split_values(self, raw_value: str, operator: FilterOperator) -> list[str]:
        if operator.is_multi_valued:
            return [v.strip() for v in raw_value.split(",") if v.strip()]
        return [raw_value] if raw_value else []

    def _convert(
        self,
        raw: str,
        path: str,
        operator: FilterOperator,
        searchable: SearchableFields,
        channel: str,
        part: str,
    ) -> Any:
        if operator.is_text:
            return raw
        decode = (
            self._settings.decode_filters
            if channel == "filter"
            else self._settings.decode_search
        )
        identifier = searchable.is_identifier(path, self._settings.identifier_fields)
        if self._codec is not None and decode and identifier:
            try:
                normalized = self._codec.normalize_identifier_value(raw)
            except CodecError as exc:
                raise CodecError(exc.token, channel=channel, fragment=part) from exc
            if normalized is not raw:
                return normalized
        return parse_scalar(raw)

    # -- searchFields --------------------------------------------------------

    def parse_search_fields(
        self,
        raw: str | None,
        searchable: SearchableFields,
        channel: str = "searchFields",
    ) -> dict[str, FilterOperator]:
        """
        ``name:like;email:=`` narrows free-text search to the listed fields,
        optionally overriding their operator. A bare name keeps the default.
        """
        if not raw:
            return {}
        selected: dict[str, FilterOperator] = {}
        for part in split_directives(raw):
            name, _, op_name = part.partition(":")
            name = name.strip()
            allowed = searchable.require_field(name, channel=channel, fragment=part)
            if not op_name:
                selected[name] = searchable.default_operator(name)
                continue
            operator = resolve_operator(op_name)
            if (
                operator is None
                or operator not in self._settings.accepted_operators
                or operator not in allowed
            ):
                raise OperatorNotAllowedError(
                    op_name.strip(),
                    name,
                    [op.value for op in allowed & self._settings.accepted_operators],
                    channel=channel,
                    fragment=part,
                )
            selected[name] = operator
        if not selected:
            raise ValidationError(
                "None of the search fields were accepted",
                channel=channel,
                fragment=raw,
            )
        return selected

    # -- orderBy / sortedBy --------------------------------------------------

    def parse_sort(
        self,
        order_by: str | None,
        sorted_by: str | None,
        searchable: SearchableFields,
    ) -> list[SortDirective]:
        """
        ``orderBy=name,created_at&sortedBy=desc`` — directions pair up by
        position; missing ones reuse the first. ``-field`` means descending.
        """
        if not order_by:
            return []
        directions = [d.strip().lower() for d in (sorted_by or "asc").split(",")]
        out: list[SortDirective] = []
        for index, item in enumerate(f.strip() for f in order_by.split(",")):
            if not item:
                continue
            direction = directions[index] if index < len(directions) else directions[0]
            if item.startswith("-"):
                item, direction = item[1:], "desc"
            if direction not in ("asc", "desc"):
                raise DirectiveParseError(
                    f"Invalid sort direction {direction!r}",
                    channel="sortedBy",
                    fragment=sorted_by,
                )
            searchable.require_field(item, channel="orderBy", fragment=order_by)
            out.append(SortDirective(item, _direction(direction)))
        return out

    # -- with ----------------------------------------------------------------

    def parse_includes(
        self, raw: str | None, searchable: SearchableFields
    ) -> list[str]:
        if not raw:
            return []
        out: list[str] = []
        for part in raw.replace(";", ",").split(","):
            relation = part.strip()
            if not relation:
                continue
            searchable.require_include(relation, channel="with", fragment=raw)
            if relation not in out:
                out.append(relation)
        return out


def _direction(value: str) -> Literal["asc", "desc"]:
    return "desc" if value == "desc" else "asc"
