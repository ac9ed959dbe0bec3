"""Query client - strategy-aware orchestration over a QueryCache."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

from revalidate.cache import QueryCache
from revalidate.channel import BroadcastChannel, Subscription
from revalidate.logger import LoggingMiddleware
from revalidate.middleware import QueryMiddleware
from revalidate.strategy import RefetchStrategy
from revalidate.types import Duration, QueryResult, QueryState

T = TypeVar("T")

logger = logging.getLogger(__name__)


class QueryClient:
    """Runs queries through a QueryCache and publishes QueryState per key.

    Each query emits a loading state, then the settled state. When the
    result is stale and the strategy asks for it, the same fetch is repeated
    in the background; its outcome reaches watchers through the cache's
    channel only.

    Usage:
        client = QueryClient()
        client.watch_query("todos").listen(render)
        result = await client.query("todos", load_todos, stale_time="1m")
    """

    def __init__(
        self,
        cache: QueryCache | None = None,
        *,
        default_refetch_strategy: RefetchStrategy = (
            RefetchStrategy.STALE_WHILE_REVALIDATE
        ),
        middleware: Iterable[QueryMiddleware] = (),
    ) -> None:
        self._cache = cache if cache is not None else QueryCache()
        self._default_refetch_strategy = _check_strategy(default_refetch_strategy)
        self._middleware: list[QueryMiddleware] = list(middleware)
        self._channels: dict[str, BroadcastChannel[QueryState[Any]]] = {}
        self._cache_subscriptions: dict[str, Subscription[QueryResult[Any]]] = {}
        self._background_tasks: set[asyncio.Task[None]] = set()

    @property
    def cache(self) -> QueryCache:
        """The cache engine owned by this client."""
        return self._cache

    @property
    def default_refetch_strategy(self) -> RefetchStrategy:
        return self._default_refetch_strategy

    @property
    def middleware(self) -> tuple[QueryMiddleware, ...]:
        return tuple(self._middleware)

    def set_default_refetch_strategy(self, strategy: RefetchStrategy) -> None:
        """Strategy used by query() calls that do not pass one."""
        self._default_refetch_strategy = _check_strategy(strategy)

    def use(self, middleware: QueryMiddleware) -> QueryClient:
        """Append a middleware. Returns the client for chaining."""
        self._middleware.append(middleware)
        return self

    def with_logging(self, **options: Any) -> QueryClient:
        """Install a LoggingMiddleware built from options."""
        return self.use(LoggingMiddleware(**options))

    async def query(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        *,
        stale_time: Duration | None = None,
        cache_time: Duration | None = None,
        refetch_strategy: RefetchStrategy | None = None,
    ) -> QueryResult[T]:
        """Fetch key through the cache, publishing loading and settled states.

        Args:
            key: Cache key
            fetcher: Async zero-argument function producing the data
            stale_time: How long fetched data counts as fresh
            cache_time: How long fetched data may be kept at all
            refetch_strategy: Overrides the client default for this call

        Returns:
            The cache's QueryResult. Errors are reported in it, not raised.
        """
        strategy = (
            _check_strategy(refetch_strategy)
            if refetch_strategy is not None
            else self._default_refetch_strategy
        )

        for middleware in self._middleware:
            middleware.before_query(key)

        self._emit_state(key, QueryState.loading(key))

        try:
            result = await self._cache.fetch(
                key, fetcher, stale_time=stale_time, cache_time=cache_time
            )
        except Exception as e:
            # Storage failures; fetcher errors never get this far
            logger.warning("Query failed for %s", key, exc_info=True)
            result = QueryResult(error=e)
        except BaseException as e:
            for middleware in self._middleware:
                middleware.on_query_exception(key, e)
            raise

        self._emit_state(key, QueryState.from_result(key, result))

        if result.is_stale and strategy.triggers_background_revalidation:
            self._refetch_in_background(key, fetcher, stale_time, cache_time)

        for middleware in self._middleware:
            middleware.after_query(key, result)

        return result

    async def invalidate_query(self, key: str) -> None:
        """Drop the cached entry for key; watchers see an empty stale state."""
        for middleware in self._middleware:
            middleware.on_invalidate(key)
        await self._cache.invalidate(key)

    def watch_query(self, key: str) -> BroadcastChannel[QueryState[Any]]:
        """Shared channel of QueryState for key.

        The first call for a key also starts republishing the cache's results
        for that key as settled states. If the cache was disposed on its own
        since then, the next call reattaches the same state channel to the
        cache's new channel for key.
        """
        for middleware in self._middleware:
            middleware.on_watch(key)

        channel = self._channels.get(key)
        if channel is None:
            channel = BroadcastChannel()
            self._channels[key] = channel
        cache_subscription = self._cache_subscriptions.get(key)
        if cache_subscription is None or not cache_subscription.is_active:
            self._cache_subscriptions[key] = self._cache.watch(key).listen(
                lambda result: self._emit_state(
                    key, QueryState.from_result(key, result)
                )
            )
        return channel

    def set_query_data(self, key: str, data: T, *, is_stale: bool = False) -> None:
        """Broadcast data for key without storing it (optimistic update)."""
        self._cache.set_data(key, data, is_stale=is_stale)

    async def wait_for_background(self) -> None:
        """Wait until every pending background revalidation has finished."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks))

    def dispose(self) -> None:
        """Close all state channels and dispose the owned cache."""
        for middleware in self._middleware:
            middleware.on_dispose()
        for subscription in self._cache_subscriptions.values():
            subscription.cancel()
        self._cache_subscriptions.clear()
        for channel in self._channels.values():
            channel.close()
        self._channels.clear()
        self._cache.dispose()

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _emit_state(self, key: str, state: QueryState[Any]) -> None:
        channel = self._channels.get(key)
        if channel is not None:
            channel.emit(state)

    def _refetch_in_background(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[Any]],
        stale_time: Duration | None,
        cache_time: Duration | None,
    ) -> None:
        """Repeat a fetch in a background task."""

        async def refetch() -> None:
            try:
                await self._cache.fetch(
                    key, fetcher, stale_time=stale_time, cache_time=cache_time
                )
            except Exception:
                # Already surfaced through the original result
                logger.debug("Background refetch failed for %s", key, exc_info=True)

        task = asyncio.create_task(refetch())
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)


def _check_strategy(strategy: Any) -> RefetchStrategy:
    if not isinstance(strategy, RefetchStrategy):
        raise TypeError(f"Expected RefetchStrategy, got {type(strategy)}")
    return strategy


__all__ = ["QueryClient"]
