"""Redis storage adapter."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from revalidate.duration import now_us, parse_optional_duration
from revalidate.types import CacheEntry, Duration


def _serialize_entry(entry: CacheEntry[object]) -> str:
    """Serialize a cache entry to JSON."""
    return json.dumps(
        {
            "data": entry.data,
            "timestamp": entry.timestamp,
            "stale_at": entry.stale_at,
            "expires_at": entry.expires_at,
        }
    )


def _deserialize_entry(data: bytes | str) -> CacheEntry[object]:
    """Deserialize JSON to a cache entry."""
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    obj = json.loads(data)
    return CacheEntry(
        data=obj["data"],
        timestamp=obj["timestamp"],
        stale_at=obj["stale_at"],
        expires_at=obj["expires_at"],
    )


class AsyncRedisAdapter:
    """Async Redis storage adapter.

    Values must be JSON serializable. Entries with a cache time are given a
    Redis expiry at ``expires_at``, so Redis evicts them on its own.
    """

    def __init__(
        self,
        client: Any,  # redis.asyncio.Redis
        *,
        prefix: str = "revalidate",
        clock: Callable[[], int] = now_us,
    ) -> None:
        self._client = client
        self._prefix = prefix
        self._clock = clock

    def _cache_key(self, key: str) -> str:
        """Generate full Redis key for cache entries."""
        return f"{self._prefix}:cache:{key}"

    async def write(
        self,
        key: str,
        data: object,
        *,
        stale_time: Duration | None = None,
        cache_time: Duration | None = None,
    ) -> None:
        """Store data under key, with automatic expiration if cache_time is set."""
        stale_ms = parse_optional_duration(stale_time)
        cache_ms = parse_optional_duration(cache_time)
        now = self._clock()
        entry: CacheEntry[object] = CacheEntry(
            data=data,
            timestamp=now,
            stale_at=now + stale_ms * 1000 if stale_ms is not None else None,
            expires_at=now + cache_ms * 1000 if cache_ms is not None else None,
        )
        if entry.expires_at is not None and entry.expires_at <= now:
            # Already expired; nothing to keep
            await self._client.delete(self._cache_key(key))
            return
        await self._client.set(
            self._cache_key(key),
            _serialize_entry(entry),
            pxat=(entry.expires_at + 999) // 1000,
        )

    async def read(self, key: str) -> CacheEntry[object] | None:
        """Get a cache entry by key."""
        data = await self._client.get(self._cache_key(key))
        if data is None:
            return None
        return _deserialize_entry(data)

    async def remove(self, key: str) -> None:
        """Delete a cache entry."""
        await self._client.delete(self._cache_key(key))

    async def clear(self) -> None:
        """Clear all cached entries under this adapter's prefix."""
        # Use SCAN to find and delete all cache keys
        cursor: int = 0
        pattern = f"{self._prefix}:cache:*"
        while True:
            result = await self._client.scan(cursor, match=pattern, count=100)
            cursor = result[0]
            keys = result[1]
            if keys:
                await self._client.delete(*keys)
            if cursor == 0:
                break

    async def disconnect(self) -> None:
        """Close the Redis connection."""
        await self._client.aclose()
