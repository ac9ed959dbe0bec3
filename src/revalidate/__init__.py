"""revalidate - Stale-while-revalidate query cache with reactive updates."""

from contextlib import suppress

# Adapters (async only)
from revalidate.adapters import (
    AsyncEnumerableAdapter,
    AsyncMemoryAdapter,
    AsyncStorageAdapter,
)

# Cache engine and client
from revalidate.cache import QueryCache
from revalidate.channel import BroadcastChannel, Subscription
from revalidate.client import QueryClient

# Duration parsing
from revalidate.duration import parse_duration

# Logging and inspection
from revalidate.logger import (
    LogBuffer,
    LoggingMiddleware,
    LogLevel,
    LogRecordEntry,
    log_buffer,
)
from revalidate.middleware import QueryMiddleware
from revalidate.mutation import Mutation, MutationInProgressError, MutationState
from revalidate.strategy import RefetchStrategy

# Core types
from revalidate.types import (
    CacheEntry,
    Duration,
    Fetcher,
    QueryResult,
    QueryState,
    QueryStatus,
)

# Optional adapter imports - only available when dependencies are installed
with suppress(ImportError):
    from revalidate.adapters import AsyncRedisAdapter

__version__ = "0.1.0"

__all__ = [
    "AsyncEnumerableAdapter",
    "AsyncMemoryAdapter",
    "AsyncRedisAdapter",
    "AsyncStorageAdapter",
    "BroadcastChannel",
    "CacheEntry",
    "Duration",
    "Fetcher",
    "LogBuffer",
    "LogLevel",
    "LogRecordEntry",
    "LoggingMiddleware",
    "Mutation",
    "MutationInProgressError",
    "MutationState",
    "QueryCache",
    "QueryClient",
    "QueryMiddleware",
    "QueryResult",
    "QueryState",
    "QueryStatus",
    "RefetchStrategy",
    "Subscription",
    "log_buffer",
    "parse_duration",
]
