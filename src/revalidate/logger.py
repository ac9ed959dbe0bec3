"""Query logging middleware and the in-memory log buffer.

LoggingMiddleware writes query, invalidation and error events to the
``revalidate.query`` logger and to a bounded LogBuffer that inspection
tooling can read alongside QueryCache.get_all_keys_and_states().
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from revalidate.middleware import QueryMiddleware
from revalidate.types import QueryResult

DEFAULT_MAX_ENTRIES = 100


class LogLevel(Enum):
    """Query log levels. A lower value is more severe."""

    DEBUG = 800
    INFO = 500
    WARNING = 300
    ERROR = 200

    @property
    def logging_level(self) -> int:
        """Matching stdlib logging level."""
        return _LOGGING_LEVELS[self]


_LOGGING_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


@dataclass(frozen=True, slots=True)
class LogRecordEntry:
    """One line of the query log."""

    message: str
    level: LogLevel
    timestamp: datetime = field(default_factory=datetime.now)


class LogBuffer:
    """Ring buffer of recent log entries; the oldest are dropped past capacity."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._entries: deque[LogRecordEntry] = deque(maxlen=max_entries)

    @property
    def max_entries(self) -> int:
        return self._entries.maxlen or 0

    @property
    def entries(self) -> tuple[LogRecordEntry, ...]:
        """Oldest first."""
        return tuple(self._entries)

    def add(self, level: LogLevel, message: str) -> LogRecordEntry:
        entry = LogRecordEntry(message=message, level=level)
        self._entries.append(entry)
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


# Process-wide default buffer
log_buffer = LogBuffer()


class LoggingMiddleware(QueryMiddleware):
    """Logs query client activity."""

    def __init__(
        self,
        *,
        log_queries: bool = True,
        log_invalidations: bool = True,
        log_errors: bool = True,
        min_level: LogLevel = LogLevel.INFO,
        buffer: LogBuffer | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._log_queries = log_queries
        self._log_invalidations = log_invalidations
        self._log_errors = log_errors
        self._min_level = min_level
        self._buffer = buffer if buffer is not None else log_buffer
        self._logger = logger or logging.getLogger("revalidate.query")

    @property
    def buffer(self) -> LogBuffer:
        return self._buffer

    def before_query(self, key: str) -> None:
        if self._log_queries:
            self._log(LogLevel.INFO, f"Executing query: {key}")

    def after_query(self, key: str, result: QueryResult[Any]) -> None:
        if not self._log_queries:
            return
        if result.has_error and self._log_errors:
            self._log(LogLevel.ERROR, f"Query error for {key}: {result.error}")
        else:
            suffix = " (stale)" if result.is_stale else ""
            self._log(LogLevel.INFO, f"Query completed for {key}{suffix}")

    def on_query_exception(self, key: str, error: BaseException) -> None:
        if self._log_queries and self._log_errors:
            self._log(LogLevel.ERROR, f"Query exception for {key}: {error!r}")

    def on_invalidate(self, key: str) -> None:
        if self._log_invalidations:
            self._log(LogLevel.INFO, f"Invalidating query: {key}")

    def on_watch(self, key: str) -> None:
        if self._log_queries:
            self._log(LogLevel.INFO, f"Watching query: {key}")

    def on_dispose(self) -> None:
        self._log(LogLevel.INFO, "Disposing query client")

    def _log(self, level: LogLevel, message: str) -> None:
        if level.value > self._min_level.value:
            return
        self._logger.log(level.logging_level, message)
        self._buffer.add(level, message)


__all__ = [
    "LogBuffer",
    "LogLevel",
    "LogRecordEntry",
    "LoggingMiddleware",
    "log_buffer",
]
