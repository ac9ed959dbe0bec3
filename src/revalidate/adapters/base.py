"""Base adapter protocols for storage backends."""

from typing import Protocol, runtime_checkable

from revalidate.types import CacheEntry, Duration


@runtime_checkable
class AsyncStorageAdapter(Protocol):
    """Async storage adapter interface."""

    async def write(
        self,
        key: str,
        data: object,
        *,
        stale_time: Duration | None = None,
        cache_time: Duration | None = None,
    ) -> None:
        """Store data under key, replacing any existing entry.

        ``stale_time`` and ``cache_time`` are relative to now; ``None`` leaves
        the matching instant unset.
        """
        ...

    async def read(self, key: str) -> CacheEntry[object] | None:
        """Get the current entry for key, if any."""
        ...

    async def remove(self, key: str) -> None:
        """Delete the entry for key. Removing an absent key is not an error."""
        ...

    async def clear(self) -> None:
        """Clear all cached entries."""
        ...

    async def disconnect(self) -> None:
        """Disconnect from the storage backend."""
        ...


@runtime_checkable
class AsyncEnumerableAdapter(Protocol):
    """Optional mixin for adapters that can list their entries.

    Required for the expiry sweep and for cache introspection.
    """

    async def items(self) -> list[tuple[str, CacheEntry[object]]]:
        """Snapshot of every stored (key, entry) pair."""
        ...
