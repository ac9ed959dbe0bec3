"""In-memory storage adapter (async only)."""

import asyncio
from collections.abc import Callable

from revalidate.duration import now_us, parse_optional_duration
from revalidate.types import CacheEntry, Duration


class AsyncMemoryAdapter:
    """Async in-memory storage adapter.

    Unbounded and never evicts on read; expired entries stay until the owning
    cache sweeps them or they are removed.
    """

    def __init__(self, *, clock: Callable[[], int] = now_us) -> None:
        self._cache: dict[str, CacheEntry[object]] = {}
        self._clock = clock
        self._lock = asyncio.Lock()

    async def write(
        self,
        key: str,
        data: object,
        *,
        stale_time: Duration | None = None,
        cache_time: Duration | None = None,
    ) -> None:
        """Store data under key, replacing any existing entry."""
        stale_ms = parse_optional_duration(stale_time)
        cache_ms = parse_optional_duration(cache_time)
        now = self._clock()
        entry: CacheEntry[object] = CacheEntry(
            data=data,
            timestamp=now,
            stale_at=now + stale_ms * 1000 if stale_ms is not None else None,
            expires_at=now + cache_ms * 1000 if cache_ms is not None else None,
        )
        async with self._lock:
            self._cache[key] = entry

    async def read(self, key: str) -> CacheEntry[object] | None:
        """Get a cache entry by key."""
        async with self._lock:
            return self._cache.get(key)

    async def remove(self, key: str) -> None:
        """Delete a cache entry."""
        async with self._lock:
            self._cache.pop(key, None)

    async def items(self) -> list[tuple[str, CacheEntry[object]]]:
        """Snapshot of every stored (key, entry) pair."""
        async with self._lock:
            return list(self._cache.items())

    async def clear(self) -> None:
        """Clear all cached entries."""
        async with self._lock:
            self._cache.clear()

    async def disconnect(self) -> None:
        """Disconnect from the storage backend (no-op for memory)."""
        pass

    def __len__(self) -> int:
        return len(self._cache)
