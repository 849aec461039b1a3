"""
Criteria and the per-request criteria stack.

A :class:`Criterion` is a query transformation ``(query, context) -> query``.
The :class:`CriteriaStack` owns an ordered list of them and folds them over a
base query in push order. The stack is a plain per-request value: it is not
synchronized, and callers sharing one across threads must lock around it.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .compiler import CriteriaCompiler
    from .fields import SearchableFields
    from .predicates import CompiledQuery, Predicate

logger = logging.getLogger("cqrs_ddd.criteria")


@runtime_checkable
class IQueryAdapter(Protocol):
    """Translates a :class:`CompiledQuery` onto a backend query object."""

    def apply(self, query: Any, compiled: CompiledQuery) -> Any:
        """Return a new query narrowed, ordered and paged by *compiled*."""
        ...


@dataclass
class CriteriaContext:
    """What a criterion may need besides the query itself."""

    entity_type: str
    searchable: SearchableFields
    adapter: IQueryAdapter
    compiler: CriteriaCompiler | None = None

    def get_compiler(self) -> CriteriaCompiler:
        if self.compiler is None:
            from .compiler import CriteriaCompiler

            self.compiler = CriteriaCompiler()
        return self.compiler


class Criterion(ABC):
    """
    Base class for stack-pushable query transformations.

    Identity is structural: the concrete class, or ``key`` when one is set.
    ``to_dict`` must describe the criterion completely; it feeds the cache
    key, so two criteria with equal dicts must produce equal results.
    """

    key: str | None = None

    @property
    def identity(self) -> str | type[Criterion]:
        return self.key if self.key is not None else type(self)

    @abstractmethod
    def apply(self, query: Any, context: CriteriaContext) -> Any:
        """Return the transformed query."""

    def to_dict(self) -> dict[str, Any]:
        cls = type(self)
        state = {k: v for k, v in vars(self).items() if not k.startswith("_")}
        return {"type": f"{cls.__module__}.{cls.__qualname__}", "state": state}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(key={self.key!r})"


class RequestCriterion(Criterion):
    """Compile raw request params and hand the result to the query adapter."""

    def __init__(self, params: Mapping[str, Any], *, key: str | None = None) -> None:
        self.params = dict(params)
        self.key = key

    def compile(self, context: CriteriaContext) -> CompiledQuery:
        return context.get_compiler().compile(self.params, context.searchable)

    def apply(self, query: Any, context: CriteriaContext) -> Any:
        return context.adapter.apply(query, self.compile(context))


class PredicateCriterion(Criterion):
    """Fixed predicates, e.g. a tenant or soft-delete scope."""

    def __init__(self, *predicates: Predicate, key: str | None = None) -> None:
        self.predicates = tuple(predicates)
        self.key = key

    def apply(self, query: Any, context: CriteriaContext) -> Any:
        from .predicates import CompiledQuery

        return context.adapter.apply(query, CompiledQuery(predicates=self.predicates))

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "predicates",
            "key": self.key,
            "predicates": [p.to_dict() for p in self.predicates],
        }


class CallableCriterion(Criterion):
    """
    Wrap a plain ``(query, context) -> query`` function.

    The function body is invisible to the cache key, so the key must name
    the behaviour (``"active-only"``, ``"rate-limit:100"`` ...).
    """

    def __init__(
        self,
        func: Callable[[Any, CriteriaContext], Any],
        key: str,
    ) -> None:
        self.func = func
        self.key = key

    def apply(self, query: Any, context: CriteriaContext) -> Any:
        return self.func(query, context)

    def to_dict(self) -> dict[str, Any]:
        return {"type": "callable", "key": self.key}


class StackMode(str, Enum):
    ACTIVE = "active"
    SKIPPED = "skipped"


class CriteriaStack:
    """
    Ordered, mutable collection of criteria.

    Mutators return ``self`` so calls chain::

        stack.push(RequestCriterion(params)).push(active_only).set_skip(False)

    The stack stays in ``skipped`` mode until a caller sets it back.
    """

    def __init__(self, criteria: Iterable[Criterion] | None = None) -> None:
        self._criteria: list[Criterion] = list(criteria or ())
        self._mode = StackMode.ACTIVE

    # -- mutation ------------------------------------------------------------

    def push(self, criterion: Criterion) -> CriteriaStack:
        if not isinstance(criterion, Criterion):
            raise TypeError(
                f"Expected a Criterion, got {type(criterion).__name__}"
            )
        self._criteria.append(criterion)
        return self

    def pop(self, identity: Criterion | type[Criterion] | str) -> CriteriaStack:
        """
        Remove every criterion matching *identity*.

        *identity* is a criterion class (exact type), an instance (matched
        by its own identity) or an external key. Unknown identities are
        ignored.
        """
        target = identity.identity if isinstance(identity, Criterion) else identity
        before = len(self._criteria)
        self._criteria = [c for c in self._criteria if not _matches(c, target)]
        if len(self._criteria) == before:
            logger.debug("pop(%r): no matching criterion", target)
        return self

    def clear(self) -> CriteriaStack:
        self._criteria = []
        return self

    def set_skip(self, skip: bool = True) -> CriteriaStack:
        self._mode = StackMode.SKIPPED if skip else StackMode.ACTIVE
        return self

    # -- inspection ----------------------------------------------------------

    @property
    def mode(self) -> StackMode:
        return self._mode

    @property
    def skipped(self) -> bool:
        return self._mode is StackMode.SKIPPED

    def list(self) -> list[Criterion]:
        return list(self._criteria)

    def __iter__(self) -> Iterator[Criterion]:
        return iter(list(self._criteria))

    def __len__(self) -> int:
        return len(self._criteria)

    def __contains__(self, identity: object) -> bool:
        if isinstance(identity, Criterion):
            identity = identity.identity
        return any(_matches(c, identity) for c in self._criteria)

    # -- application ---------------------------------------------------------

    def apply_all(self, query: Any, context: CriteriaContext) -> Any:
        """Fold the criteria over *query* in push order."""
        if self.skipped:
            return query
        for criterion in list(self._criteria):
            query = criterion.apply(query, context)
        return query

    @staticmethod
    def get_by_criterion(
        criterion: Criterion, query: Any, context: CriteriaContext
    ) -> Any:
        """Apply one criterion one-off, bypassing the stack."""
        return criterion.apply(query, context)

    def to_dict(self) -> list[dict[str, Any]]:
        """Structural form; a skipped stack serializes like an empty one."""
        if self.skipped:
            return []
        return [c.to_dict() for c in self._criteria]


def _matches(criterion: Criterion, identity: object) -> bool:
    if isinstance(identity, str):
        return criterion.key == identity
    return type(criterion) is identity
