"""Shared pytest fixtures."""

from typing import Any

import pytest

from revalidate import AsyncMemoryAdapter, QueryCache, QueryClient


class FakeClock:
    """Manual Unix-microsecond clock, advanced in milliseconds."""

    def __init__(self, start: int = 1_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms * 1000


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def async_adapter(clock: FakeClock) -> AsyncMemoryAdapter:
    """Create a fresh AsyncMemoryAdapter for each test."""
    return AsyncMemoryAdapter(clock=clock)


@pytest.fixture
def cache(async_adapter: AsyncMemoryAdapter, clock: FakeClock) -> QueryCache:
    """Create a QueryCache on the shared fake clock."""
    return QueryCache(async_adapter, clock=clock)


@pytest.fixture
def client(cache: QueryCache) -> QueryClient:
    """Create a QueryClient around the cache fixture."""
    return QueryClient(cache)


class Counter:
    """Async fetcher that counts calls and returns (or raises) the next value."""

    def __init__(self, *values: Any) -> None:
        self.values = list(values)
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        value = self.values.pop(0)
        if isinstance(value, BaseException):
            raise value
        return value


async def fails() -> str:
    raise RuntimeError("network down")
