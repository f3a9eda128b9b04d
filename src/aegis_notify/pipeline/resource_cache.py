"""TTL cache with in-flight request coalescing.

At most one fetch per key runs at a time. Callers that arrive while a fetch
is running attach to it instead of starting another, including forced
refreshes. A failed fetch propagates to every attached caller and leaves any
previously cached value in place until it ages out.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Hashable, TypeVar

from aegis_notify.clients.backend import BackendService
from aegis_notify.core.config import GroupsCacheConfig
from aegis_notify.core.types import Group, Principal

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass
class _CacheEntry(Generic[V]):
    value: V | None = None
    fetched_at: float | None = None
    in_flight: asyncio.Task[V] | None = None


class CoalescingCache(Generic[K, V]):
    """Caches one fetched value per key for ``ttl_seconds``.

    Args:
        fetcher: Coroutine function producing the value for a key.
        ttl_seconds: Maximum age of a cached value.
        clock: Monotonic time source, in seconds.
    """

    def __init__(
        self,
        fetcher: Callable[[K], Awaitable[V]],
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetcher = fetcher
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[K, _CacheEntry[V]] = {}
        self.fetch_count = 0

    async def get(self, key: K, *, force_refresh: bool = False) -> V:
        # Nothing below awaits before the in-flight task is registered, so
        # check-then-start is atomic with respect to other callers.
        entry = self._entries.setdefault(key, _CacheEntry())

        if entry.in_flight is not None:
            logger.debug("Fetch for %r already in flight, attaching", key)
            return await asyncio.shield(entry.in_flight)

        if not force_refresh and self._is_fresh(entry):
            return entry.value  # type: ignore[return-value]

        task = asyncio.ensure_future(self._fetch(key, entry))
        entry.in_flight = task
        return await asyncio.shield(task)

    def peek(self, key: K) -> V | None:
        """Return the cached value for ``key`` regardless of age, without fetching."""
        entry = self._entries.get(key)
        return entry.value if entry else None

    def is_in_flight(self, key: K) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.in_flight is not None

    def invalidate(self, key: K | None = None) -> None:
        """Drop cached values (one key, or all). In-flight fetches keep running."""
        entries = self._entries.values() if key is None else [self._entries.get(key)]
        for entry in entries:
            if entry is not None:
                entry.value = None
                entry.fetched_at = None

    def _is_fresh(self, entry: _CacheEntry[V]) -> bool:
        if entry.fetched_at is None:
            return False
        return (self._clock() - entry.fetched_at) < self._ttl

    async def _fetch(self, key: K, entry: _CacheEntry[V]) -> V:
        self.fetch_count += 1
        try:
            value = await self._fetcher(key)
        except Exception as exc:
            logger.warning("Fetch for %r failed: %s", key, exc)
            raise
        finally:
            entry.in_flight = None
        entry.value = value
        entry.fetched_at = self._clock()
        return value


class UserGroupsCache:
    """The user's group list, cached per principal with coalesced fetches."""

    def __init__(
        self,
        backend: BackendService,
        config: GroupsCacheConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._backend = backend
        self._config = config or GroupsCacheConfig()
        self._cache: CoalescingCache[str, list[Group]] = CoalescingCache(
            self._load, self._config.ttl_seconds, clock,
        )
        self._principals: dict[str, Principal] = {}

    async def get(self, principal: Principal, *, force_refresh: bool = False) -> list[Group]:
        self._principals[principal.external_id] = principal
        return await self._cache.get(principal.external_id, force_refresh=force_refresh)

    def invalidate(self, principal: Principal | None = None) -> None:
        """Drop the cached list; call after creating, editing or leaving a group."""
        logger.info("Invalidating cached group list")
        self._cache.invalidate(principal.external_id if principal else None)

    @property
    def fetch_count(self) -> int:
        return self._cache.fetch_count

    async def _load(self, external_id: str) -> list[Group]:
        groups = await self._backend.fetch_user_groups(self._principals[external_id])
        logger.info("Loaded %d groups for %s", len(groups), external_id)
        return groups
