"""
Result caching keyed on the applied criteria.

Pattern:
- fetch(method, args, stack, loader): check cache -> run loader -> cache result
- invalidate(): after any write, drop every cached result of the entity

Cache backend failures are logged and degrade to the loader; they never
fail the query.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from .cache_keys import derive_cache_key
from .settings import CriteriaSettings, is_flag_set

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Mapping

    from .criteria import CriteriaStack, Criterion

logger = logging.getLogger("cqrs_ddd.caching")


@runtime_checkable
class ICacheService(Protocol):
    """Async key/value cache with TTL and prefix invalidation."""

    async def get(self, key: str, cls: type[Any] | None = None) -> Any | None:
        """Retrieve a value by key. Returns None if missing."""
        ...

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Set a value with optional TTL (in seconds)."""
        ...

    async def delete(self, key: str) -> None:
        """Delete a value by key."""
        ...

    async def clear_namespace(self, prefix: str) -> None:
        """Clear all keys starting with prefix."""
        ...


class InMemoryCacheService(ICacheService):
    """Process-local cache for tests and single-worker deployments."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._store: dict[str, tuple[Any, float | None]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def get(self, key: str, cls: type[Any] | None = None) -> Any | None:
        async with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and self._clock() >= expires_at:
                del self._store[key]
                return None
        if cls is not None and hasattr(cls, "model_validate"):
            return cls.model_validate(value)
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        async with self._lock:
            self._store[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._store.pop(key, None)

    async def clear_namespace(self, prefix: str) -> None:
        async with self._lock:
            for key in [k for k in self._store if k.startswith(prefix)]:
                del self._store[key]

    def __len__(self) -> int:
        return len(self._store)


class CachingQueryExecutor:
    """
    Read-through cache for criteria-driven queries of one entity type.

    Keys come from :func:`derive_cache_key`, so the same method, arguments
    and structurally equal criteria share one entry.
    """

    def __init__(
        self,
        cache: ICacheService,
        entity_type: str,
        settings: CriteriaSettings | None = None,
        *,
        result_cls: type[Any] | None = None,
    ) -> None:
        self._cache = cache
        self._entity_type = entity_type
        self._settings = settings or CriteriaSettings()
        self._result_cls = result_cls

    @property
    def namespace(self) -> str:
        return f"{self._entity_type}@"

    def key(
        self,
        method: str,
        args: Iterable[Any],
        criteria: CriteriaStack | Iterable[Criterion],
    ) -> str:
        return derive_cache_key(self._entity_type, method, args, criteria)

    def skip_requested(self, params: Mapping[str, Any] | None) -> bool:
        """Whether the request asks to bypass the cache (``skipCache=true``)."""
        if not params:
            return False
        return is_flag_set(params.get(self._settings.params.skip_cache))

    async def fetch(
        self,
        method: str,
        args: Iterable[Any],
        criteria: CriteriaStack | Iterable[Criterion],
        loader: Callable[[], Awaitable[Any]],
        *,
        skip_cache: bool = False,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        """
        Return the cached result or run *loader* and cache what it returns.

        Passing the request *params* lets the caller opt out per request
        through the ``skipCache`` parameter.
        """
        if skip_cache or self.skip_requested(params):
            logger.debug("Cache skipped for %s@%s", self._entity_type, method)
            return await loader()
        if not self._settings.is_cacheable(method):
            return await loader()

        key = self.key(method, list(args), criteria)

        try:
            cached = await self._cache.get(key, cls=self._result_cls)
            if cached is not None:
                logger.debug("Cache hit for %s", key)
                return cached
        except Exception as e:  # noqa: BLE001
            logger.warning("Cache get failed for key %s: %s", key, e)

        result = await loader()

        if result is not None:
            try:
                await self._cache.set(key, result, ttl=self._settings.cache_ttl or None)
            except Exception as e:  # noqa: BLE001
                logger.warning("Cache set failed for key %s: %s", key, e)
        return result

    async def forget(
        self,
        method: str,
        args: Iterable[Any],
        criteria: CriteriaStack | Iterable[Criterion],
    ) -> None:
        key = self.key(method, list(args), criteria)
        try:
            await self._cache.delete(key)
        except Exception as e:  # noqa: BLE001
            logger.warning("Cache invalidate failed for key %s: %s", key, e)

    async def invalidate(self) -> None:
        """Drop every cached result of the entity (call after writes)."""
        try:
            await self._cache.clear_namespace(self.namespace)
        except Exception as e:  # noqa: BLE001
            logger.warning("Cache invalidate failed for %s: %s", self.namespace, e)

    async def write_through(self, writer: Callable[[], Awaitable[Any]]) -> Any:
        """Run a write and invalidate the entity's cached results afterwards."""
        result = await writer()
        await self.invalidate()
        return result
