"""Core types for revalidate cache library."""

from __future__ import annotations

import dataclasses
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")

# Duration type alias
Duration = str | int  # "30s", "5m", "2h", "1d" or milliseconds

Fetcher = Callable[[], Awaitable[T]]


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    """A cached value with its capture, staleness and expiry instants."""

    data: T
    timestamp: int  # Unix timestamp, microseconds
    stale_at: int | None = None  # None = never stale
    expires_at: int | None = None  # None = never expires

    def is_stale(self, now: int) -> bool:
        """Check if the entry is past its stale instant."""
        return self.stale_at is not None and now > self.stale_at

    def is_expired(self, now: int) -> bool:
        """Check if the entry is past its expiry instant."""
        return self.expires_at is not None and now > self.expires_at


@dataclass(frozen=True, slots=True)
class QueryResult(Generic[T]):
    """Outcome of a fetch or a manual broadcast.

    ``data`` and ``error`` are independent: a failed refresh of a cached key
    carries the previous value, ``is_stale=True`` and the error together.
    """

    data: T | None = None
    error: BaseException | None = None
    is_stale: bool = False

    @property
    def has_data(self) -> bool:
        return self.data is not None

    @property
    def has_error(self) -> bool:
        return self.error is not None


class QueryStatus(Enum):
    """Coarse status of a query state."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class QueryState(Generic[T]):
    """Snapshot published on a query client's per-key channel."""

    key: str
    data: T | None = None
    error: BaseException | None = None
    is_loading: bool = False
    is_stale: bool = False

    @classmethod
    def loading(cls, key: str) -> QueryState[Any]:
        """State emitted while a request is in flight."""
        return cls(key=key, is_loading=True)

    @classmethod
    def from_result(cls, key: str, result: QueryResult[T]) -> QueryState[T]:
        """Settled state built from a cache result."""
        return cls(
            key=key,
            data=result.data,
            error=result.error,
            is_loading=False,
            is_stale=result.is_stale,
        )

    @property
    def has_data(self) -> bool:
        return self.data is not None

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def status(self) -> QueryStatus:
        if self.is_loading:
            return QueryStatus.LOADING
        if self.error is not None:
            return QueryStatus.ERROR
        if self.data is not None:
            return QueryStatus.SUCCESS
        return QueryStatus.IDLE

    def copy_with(self, **changes: Any) -> QueryState[T]:
        """Return a copy with the given fields replaced."""
        return dataclasses.replace(self, **changes)
