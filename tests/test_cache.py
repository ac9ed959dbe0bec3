"""Tests for the QueryCache engine."""

import asyncio
from typing import Any

import pytest

from revalidate import AsyncMemoryAdapter, QueryCache, QueryResult

from .conftest import Counter, FakeClock, fails


class TestFetch:
    """Tests for fetch hit/miss/stale behavior."""

    async def test_cache_miss_calls_fetcher_once(self, cache: QueryCache) -> None:
        fetcher = Counter("hello")
        result = await cache.fetch("k", fetcher)
        assert result == QueryResult(data="hello", is_stale=False)
        assert fetcher.calls == 1

    async def test_fresh_entry_skips_fetcher(
        self, cache: QueryCache, clock: FakeClock
    ) -> None:
        await cache.fetch("k", Counter("hello"), stale_time="10s")
        fetcher = Counter("other", "other")

        clock.advance(5_000)
        first = await cache.fetch("k", fetcher, stale_time="10s")
        second = await cache.fetch("k", fetcher, stale_time="10s")

        assert first.data == "hello"
        assert second.data == "hello"
        assert fetcher.calls == 0

    async def test_no_stale_time_means_never_stale(
        self, cache: QueryCache, clock: FakeClock
    ) -> None:
        await cache.fetch("k", Counter("v"))
        clock.advance(10**9)
        fetcher = Counter("w")
        result = await cache.fetch("k", fetcher)
        assert result.data == "v"
        assert fetcher.calls == 0

    async def test_stale_entry_refetches(
        self, cache: QueryCache, clock: FakeClock
    ) -> None:
        await cache.fetch("k", Counter("old"), stale_time="1s")
        clock.advance(1_001)
        fetcher = Counter("new")
        result = await cache.fetch("k", fetcher, stale_time="1s")
        assert result == QueryResult(data="new", is_stale=False)
        assert fetcher.calls == 1

    async def test_entry_is_fresh_at_its_stale_instant(
        self, cache: QueryCache, clock: FakeClock
    ) -> None:
        await cache.fetch("k", Counter("old"), stale_time="1s")
        clock.advance(1_000)
        fetcher = Counter("new", "newer")

        at_boundary = await cache.fetch("k", fetcher, stale_time="1s")
        assert at_boundary == QueryResult(data="old", is_stale=False)
        assert fetcher.calls == 0

        clock.advance(1)
        past_boundary = await cache.fetch("k", fetcher, stale_time="1s")
        assert past_boundary == QueryResult(data="new", is_stale=False)
        assert fetcher.calls == 1

    async def test_zero_stale_time_refetches_immediately(self) -> None:
        cache = QueryCache()
        await cache.fetch("k", Counter("A"), stale_time=0)
        result = await cache.fetch("k", Counter("B"), stale_time=0)
        assert result == QueryResult(data="B", is_stale=False)

    async def test_fresh_hit_ignores_failing_fetcher(self, cache: QueryCache) -> None:
        first = await cache.fetch(
            "k", Counter("hello"), stale_time="1s", cache_time="2s"
        )
        second = await cache.fetch("k", fails, stale_time="1s", cache_time="2s")
        assert first == QueryResult(data="hello", is_stale=False)
        assert second == QueryResult(data="hello", is_stale=False)

    async def test_defaults_apply_when_durations_omitted(
        self, async_adapter: AsyncMemoryAdapter, clock: FakeClock
    ) -> None:
        cache = QueryCache(
            async_adapter,
            default_stale_time="1s",
            default_cache_time="1m",
            clock=clock,
        )
        await cache.fetch("k", Counter("v"))
        entry = await async_adapter.read("k")
        assert entry is not None
        assert entry.stale_at == clock.now + 1_000_000
        assert entry.expires_at == clock.now + 60_000_000


class TestFetchErrors:
    """Failures are reported in the result, never raised."""

    async def test_error_without_cached_data(self, cache: QueryCache) -> None:
        result = await cache.fetch("k", fails)
        assert result.data is None
        assert isinstance(result.error, RuntimeError)
        assert result.is_stale is False
        assert await cache.adapter.read("k") is None

    async def test_error_falls_back_to_stale_data(
        self, cache: QueryCache, clock: FakeClock
    ) -> None:
        await cache.fetch("k", Counter("v"), stale_time="1s")
        clock.advance(2_000)
        result = await cache.fetch("k", fails, stale_time="1s")
        assert result.data == "v"
        assert result.is_stale is True
        assert isinstance(result.error, RuntimeError)

    async def test_stale_value_survives_repeated_failures(
        self, cache: QueryCache, clock: FakeClock
    ) -> None:
        await cache.fetch("k", Counter("v"), stale_time=0)
        for _ in range(3):
            clock.advance(1)
            result = await cache.fetch("k", fails, stale_time=0)
            assert result.data == "v"
            assert result.is_stale

    async def test_cancellation_propagates(self, cache: QueryCache) -> None:
        async def cancelled() -> str:
            raise asyncio.CancelledError

        with pytest.raises(asyncio.CancelledError):
            await cache.fetch("k", cancelled)


class TestInvalidate:
    async def test_invalidate_forces_refetch(self, cache: QueryCache) -> None:
        await cache.fetch("k", Counter("v"))
        await cache.invalidate("k")
        fetcher = Counter("w")
        result = await cache.fetch("k", fetcher)
        assert result.data == "w"
        assert fetcher.calls == 1

    async def test_invalidate_twice_emits_twice(self, cache: QueryCache) -> None:
        await cache.fetch("k", Counter("v"))
        seen: list[QueryResult[Any]] = []
        cache.watch("k").listen(seen.append)

        await cache.invalidate("k")
        assert await cache.adapter.read("k") is None
        await cache.invalidate("k")
        assert await cache.adapter.read("k") is None

        assert seen == [QueryResult(is_stale=True), QueryResult(is_stale=True)]

    async def test_invalidate_after_failure_clears_fallback(
        self, cache: QueryCache
    ) -> None:
        await cache.fetch("k", Counter("v"), stale_time=0)
        await cache.invalidate("k")
        result = await cache.fetch("k", fails)
        assert result.data is None
        assert result.has_error


class TestWatch:
    async def test_same_channel_per_key(self, cache: QueryCache) -> None:
        assert cache.watch("k") is cache.watch("k")
        assert cache.watch("k") is not cache.watch("other")

    async def test_no_events_before_first_operation(self, cache: QueryCache) -> None:
        seen: list[QueryResult[Any]] = []
        cache.watch("k").listen(seen.append)
        await asyncio.sleep(0)
        assert seen == []

        await cache.fetch("k", Counter("v"))
        assert seen == [QueryResult(data="v")]

    async def test_hits_are_broadcast_to_all_watchers(self, cache: QueryCache) -> None:
        a: list[QueryResult[Any]] = []
        b: list[QueryResult[Any]] = []
        cache.watch("k").listen(a.append)
        cache.watch("k").listen(b.append)

        await cache.fetch("k", Counter("v"))
        await cache.fetch("k", Counter("unused"))

        assert a == b == [QueryResult(data="v"), QueryResult(data="v")]

    async def test_other_keys_not_notified(self, cache: QueryCache) -> None:
        seen: list[QueryResult[Any]] = []
        cache.watch("a").listen(seen.append)
        await cache.fetch("b", Counter("v"))
        assert seen == []

    async def test_error_results_are_broadcast(self, cache: QueryCache) -> None:
        seen: list[QueryResult[Any]] = []
        cache.watch("k").listen(seen.append)
        await cache.fetch("k", fails)
        assert len(seen) == 1
        assert seen[0].has_error


class TestSetData:
    async def test_broadcasts_without_storing(self, cache: QueryCache) -> None:
        seen: list[QueryResult[Any]] = []
        cache.watch("k").listen(seen.append)

        cache.set_data("k", "optimistic")
        assert seen == [QueryResult(data="optimistic")]
        assert await cache.adapter.read("k") is None

        fetcher = Counter("server")
        result = await cache.fetch("k", fetcher)
        assert result.data == "server"
        assert fetcher.calls == 1

    async def test_is_stale_flag(self, cache: QueryCache) -> None:
        seen: list[QueryResult[Any]] = []
        cache.watch("k").listen(seen.append)
        cache.set_data("k", 1, is_stale=True)
        assert seen == [QueryResult(data=1, is_stale=True)]


class TestAutoExpiry:
    @pytest.fixture
    def expiring_cache(
        self, async_adapter: AsyncMemoryAdapter, clock: FakeClock
    ) -> QueryCache:
        return QueryCache(async_adapter, auto_remove_expired=True, clock=clock)

    async def test_expired_entries_are_swept(
        self,
        expiring_cache: QueryCache,
        async_adapter: AsyncMemoryAdapter,
        clock: FakeClock,
    ) -> None:
        await async_adapter.write("k", "v", cache_time=1)
        clock.advance(10)
        assert "k" not in await expiring_cache.get_all_keys_and_states()

    async def test_sweep_runs_on_fetch(
        self, expiring_cache: QueryCache, clock: FakeClock
    ) -> None:
        await expiring_cache.fetch("k", Counter("v"), cache_time="1s")
        clock.advance(1_001)
        fetcher = Counter("w")
        result = await expiring_cache.fetch("k", fetcher, cache_time="1s")
        assert result.data == "w"
        assert fetcher.calls == 1

    async def test_sweep_runs_on_invalidate(
        self,
        expiring_cache: QueryCache,
        async_adapter: AsyncMemoryAdapter,
        clock: FakeClock,
    ) -> None:
        await async_adapter.write("old", "v", cache_time=1)
        clock.advance(5)
        await expiring_cache.invalidate("other")
        assert await async_adapter.read("old") is None

    async def test_unexpired_entries_kept(
        self, expiring_cache: QueryCache, async_adapter: AsyncMemoryAdapter
    ) -> None:
        await async_adapter.write("k", "v", cache_time="1h")
        await async_adapter.write("forever", "v")
        assert await expiring_cache.remove_expired() == 0
        assert len(async_adapter) == 2

    async def test_disabled_by_default(
        self, cache: QueryCache, clock: FakeClock
    ) -> None:
        await cache.fetch("k", Counter("v"), cache_time=1)
        clock.advance(10)
        fetcher = Counter("w")
        result = await cache.fetch("k", fetcher)
        assert result.data == "v"
        assert fetcher.calls == 0

    async def test_non_enumerable_adapter_is_not_swept(self) -> None:
        class OpaqueAdapter:
            def __init__(self) -> None:
                self.inner = AsyncMemoryAdapter()

            async def write(self, key, data, *, stale_time=None, cache_time=None):
                await self.inner.write(
                    key, data, stale_time=stale_time, cache_time=cache_time
                )

            async def read(self, key):
                return await self.inner.read(key)

            async def remove(self, key):
                await self.inner.remove(key)

            async def clear(self):
                await self.inner.clear()

            async def disconnect(self):
                pass

        cache = QueryCache(OpaqueAdapter(), auto_remove_expired=True)
        await cache.fetch("k", Counter("v"))
        assert await cache.remove_expired() == 0
        assert await cache.get_all_keys_and_states() == {}


class TestIntrospection:
    async def test_snapshot_reports_staleness(
        self, cache: QueryCache, clock: FakeClock
    ) -> None:
        await cache.fetch("fresh", Counter(1), stale_time="1m")
        await cache.fetch("stale", Counter(2), stale_time="1s")
        clock.advance(5_000)

        snapshot = await cache.get_all_keys_and_states()

        assert snapshot == {
            "fresh": QueryResult(data=1, is_stale=False),
            "stale": QueryResult(data=2, is_stale=True),
        }


class TestDispose:
    async def test_closes_channels_keeps_store(self, cache: QueryCache) -> None:
        await cache.fetch("k", Counter("v"))
        channel = cache.watch("k")
        cache.dispose()

        assert channel.is_closed
        assert cache.watch("k") is not channel
        assert (await cache.adapter.read("k")) is not None
