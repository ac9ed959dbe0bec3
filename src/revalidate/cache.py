"""QueryCache - TTL-aware cache engine with per-key broadcast channels.

Provides:
- fetch(): serve fresh data or call the fetcher, falling back to stale data
- invalidate(): drop an entry and tell watchers it is gone
- watch(): per-key channel of QueryResult snapshots
- set_data(): broadcast-only manual update
- get_all_keys_and_states(): introspection snapshot
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar, cast

from revalidate.adapters.base import AsyncEnumerableAdapter, AsyncStorageAdapter
from revalidate.adapters.memory import AsyncMemoryAdapter
from revalidate.channel import BroadcastChannel
from revalidate.duration import now_us, parse_optional_duration
from revalidate.types import Duration, QueryResult

T = TypeVar("T")

logger = logging.getLogger(__name__)


class QueryCache:
    """Cache engine owning one storage adapter and a channel per key.

    Staleness is evaluated lazily on each fetch from the entry's stored
    instants; nothing refreshes a key that nobody reads.

    Usage:
        cache = QueryCache(auto_remove_expired=True)
        result = await cache.fetch("user:1", load_user, stale_time="30s")
        cache.watch("user:1").listen(print)
    """

    def __init__(
        self,
        adapter: AsyncStorageAdapter | None = None,
        *,
        auto_remove_expired: bool = False,
        default_stale_time: Duration | None = None,
        default_cache_time: Duration | None = None,
        clock: Callable[[], int] = now_us,
    ) -> None:
        self._adapter: AsyncStorageAdapter = (
            adapter if adapter is not None else AsyncMemoryAdapter(clock=clock)
        )
        self._auto_remove_expired = auto_remove_expired
        self._default_stale_time = parse_optional_duration(default_stale_time)
        self._default_cache_time = parse_optional_duration(default_cache_time)
        self._clock = clock
        self._channels: dict[str, BroadcastChannel[QueryResult[Any]]] = {}

    @property
    def adapter(self) -> AsyncStorageAdapter:
        """The backing storage adapter."""
        return self._adapter

    @property
    def auto_remove_expired(self) -> bool:
        return self._auto_remove_expired

    async def fetch(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        *,
        stale_time: Duration | None = None,
        cache_time: Duration | None = None,
    ) -> QueryResult[T]:
        """Return cached data for key, or fetch it.

        Fresh entries are served without calling fetcher. Missing or stale
        entries call fetcher and store the outcome. A failing fetcher never
        raises here: the result carries the error, plus the previous value
        marked stale when one was cached.

        Args:
            key: Cache key
            fetcher: Async zero-argument function producing the data
            stale_time: How long the fetched data counts as fresh
            cache_time: How long the fetched data may be kept at all

        Returns:
            QueryResult, also broadcast on the key's channel
        """
        if self._auto_remove_expired:
            await self.remove_expired()

        entry = await self._adapter.read(key)

        if entry is not None and not entry.is_stale(self._clock()):
            logger.debug("Cache hit for %s", key)
            result: QueryResult[T] = QueryResult(
                data=cast(T, entry.data), is_stale=False
            )
            self._emit(key, result)
            return result

        logger.debug("Cache %s for %s", "miss" if entry is None else "stale", key)
        try:
            fresh = await fetcher()
            await self._adapter.write(
                key,
                fresh,
                stale_time=self._pick(stale_time, self._default_stale_time),
                cache_time=self._pick(cache_time, self._default_cache_time),
            )
            result = QueryResult(data=fresh, is_stale=False)
        except Exception as e:
            logger.warning("Fetch failed for %s", key, exc_info=True)
            if entry is not None:
                result = QueryResult(
                    data=cast(T, entry.data), is_stale=True, error=e
                )
            else:
                result = QueryResult(error=e)

        self._emit(key, result)
        return result

    async def invalidate(self, key: str) -> None:
        """Remove the entry for key and broadcast an empty stale result.

        The next fetch for key will call its fetcher.
        """
        if self._auto_remove_expired:
            await self.remove_expired()
        await self._adapter.remove(key)
        logger.debug("Invalidated %s", key)
        self._emit(key, QueryResult(is_stale=True))

    def watch(self, key: str) -> BroadcastChannel[QueryResult[Any]]:
        """Shared channel of results for key, created on first use."""
        channel = self._channels.get(key)
        if channel is None:
            channel = BroadcastChannel()
            self._channels[key] = channel
        return channel

    def set_data(self, key: str, data: T, *, is_stale: bool = False) -> None:
        """Broadcast data for key without storing it.

        Meant for optimistic updates. A later fetch does not see this value.
        """
        self._emit(key, QueryResult(data=data, is_stale=is_stale))

    async def remove_expired(self) -> int:
        """Remove every entry whose expiry instant has passed.

        Only enumerable adapters can be swept; for others this does nothing.

        Returns:
            Number of entries removed
        """
        if not isinstance(self._adapter, AsyncEnumerableAdapter):
            return 0
        now = self._clock()
        expired = [
            key for key, entry in await self._adapter.items() if entry.is_expired(now)
        ]
        for key in expired:
            await self._adapter.remove(key)
        if expired:
            logger.debug("Removed %d expired entries", len(expired))
        return len(expired)

    async def get_all_keys_and_states(self) -> dict[str, QueryResult[Any]]:
        """Snapshot of stored keys and their current results, for tooling.

        Empty for adapters that cannot list their entries.
        """
        if self._auto_remove_expired:
            await self.remove_expired()
        if not isinstance(self._adapter, AsyncEnumerableAdapter):
            return {}
        now = self._clock()
        return {
            key: QueryResult(data=entry.data, is_stale=entry.is_stale(now))
            for key, entry in await self._adapter.items()
        }

    def dispose(self) -> None:
        """Close every channel and forget them. The store is left as is."""
        for channel in self._channels.values():
            channel.close()
        self._channels.clear()

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _emit(self, key: str, result: QueryResult[Any]) -> None:
        channel = self._channels.get(key)
        if channel is not None:
            channel.emit(result)

    @staticmethod
    def _pick(value: Duration | None, default: int | None) -> Duration | None:
        return value if value is not None else default


__all__ = ["QueryCache"]
