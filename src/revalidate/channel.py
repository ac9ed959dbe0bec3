"""Per-key broadcast channels.

A channel fans every emitted event out to the subscribers attached at emit
time, in emission order. Late subscribers see only later events; nothing is
replayed.

Two subscription styles are supported:
- listen(callback): callback invoked synchronously on each emit
- subscribe(): async iterator fed through a per-subscriber queue
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any, Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription(Generic[T]):
    """A single subscriber attached to a BroadcastChannel."""

    __slots__ = ("_callback", "_channel", "_queue", "_maxsize", "_active")

    def __init__(
        self,
        channel: BroadcastChannel[T],
        *,
        callback: Callable[[T], Any] | None = None,
        maxsize: int = 0,
    ) -> None:
        self._channel = channel
        self._callback = callback
        self._queue: asyncio.Queue[Any] | None = (
            asyncio.Queue() if callback is None else None
        )
        self._maxsize = maxsize
        self._active = True

    @property
    def is_active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        """Detach from the channel. Safe to call more than once."""
        if not self._active:
            return
        self._active = False
        self._channel._detach(self)
        self._put(_CLOSED)

    def _deliver(self, event: T) -> None:
        if self._callback is not None:
            try:
                self._callback(event)
            except Exception:
                logger.exception("Broadcast listener failed")
        else:
            self._put(event)

    def _put(self, item: Any) -> None:
        if self._queue is None:
            return
        if item is not _CLOSED and 0 < self._maxsize <= self._queue.qsize():
            # Bounded and not being drained: drop the oldest buffered event
            self._queue.get_nowait()
            logger.debug("Broadcast subscriber queue full, dropped oldest event")
        self._queue.put_nowait(item)

    def _close(self) -> None:
        self._active = False
        self._put(_CLOSED)

    def __aiter__(self) -> AsyncIterator[T]:
        return self

    async def __anext__(self) -> T:
        if self._queue is None:
            raise TypeError("callback subscriptions are not iterable")
        item = await self._queue.get()
        if item is _CLOSED:
            # Leave the sentinel for any other reader of this subscription
            self._put(_CLOSED)
            raise StopAsyncIteration
        return item  # type: ignore[no-any-return]

    def __enter__(self) -> Subscription[T]:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cancel()


class BroadcastChannel(Generic[T]):
    """Multi-subscriber, unbuffered notification stream."""

    def __init__(self) -> None:
        self._subscribers: list[Subscription[T]] = []
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def listen(self, callback: Callable[[T], Any]) -> Subscription[T]:
        """Invoke callback for every event emitted from now on."""
        return self._attach(Subscription(self, callback=callback))

    def subscribe(self, maxsize: int = 0) -> Subscription[T]:
        """Async iterator over every event emitted from now on.

        Events are buffered until read. With the default ``maxsize=0`` the
        buffer is unbounded, so a subscriber that stops iterating keeps
        growing it until it is cancelled or the channel closes. A positive
        ``maxsize`` keeps only the newest ``maxsize`` events.

        Must be called while an event loop is running.
        """
        return self._attach(Subscription(self, maxsize=maxsize))

    def emit(self, event: T) -> None:
        """Deliver event to every current subscriber. No-op once closed."""
        if self._closed:
            return
        # Copy so listeners may (un)subscribe while being notified
        for subscription in list(self._subscribers):
            if subscription.is_active:
                subscription._deliver(event)

    def close(self) -> None:
        """Close the channel, ending every subscription."""
        if self._closed:
            return
        self._closed = True
        subscribers, self._subscribers = self._subscribers, []
        for subscription in subscribers:
            subscription._close()

    def _attach(self, subscription: Subscription[T]) -> Subscription[T]:
        if self._closed:
            subscription._close()
        else:
            self._subscribers.append(subscription)
        return subscription

    def _detach(self, subscription: Subscription[T]) -> None:
        try:
            self._subscribers.remove(subscription)
        except ValueError:
            pass
