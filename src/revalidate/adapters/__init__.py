"""Storage adapters for revalidate cache library (async only)."""

from contextlib import suppress

from revalidate.adapters.base import (
    AsyncEnumerableAdapter,
    AsyncStorageAdapter,
)
from revalidate.adapters.memory import AsyncMemoryAdapter

# Optional adapters - only available when dependencies are installed
with suppress(ImportError):
    from revalidate.adapters.redis import AsyncRedisAdapter

__all__ = [
    "AsyncEnumerableAdapter",
    "AsyncMemoryAdapter",
    "AsyncRedisAdapter",
    "AsyncStorageAdapter",
]
