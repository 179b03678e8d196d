"""Tests for the finite-TTL memo cache and its sweeper."""

import asyncio

import pytest

from drupal_lsp.core.memo import CacheSweeper, MemoCache, matches_pattern


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return MemoCache(default_ttl=10.0, clock=clock)


class TestMatchesPattern:
    def test_exact(self):
        assert matches_pattern("class:Foo", "class:Foo")
        assert not matches_pattern("class:Foo", "class:Fo")

    def test_prefix(self):
        assert matches_pattern("class:Drupal\\foo\\Bar", "class:*")
        assert not matches_pattern("method:x", "class:*")

    def test_substring(self):
        assert matches_pattern("phpcs:file:///a/b.php@3", "*/a/b.php*")
        assert not matches_pattern("phpcs:file:///a/c.php@3", "*/a/b.php*")


class TestMemoCache:
    def test_get_missing_returns_default(self, cache):
        assert cache.get("nope") is None
        assert cache.get("nope", 42) == 42

    def test_set_and_get(self, cache):
        cache.set("k", "v")
        assert cache.get("k") == "v"
        assert "k" in cache

    def test_entry_expires(self, cache, clock):
        cache.set("k", "v")
        clock.now += 10.0
        assert cache.get("k") is None
        assert "k" not in cache

    def test_custom_ttl(self, cache, clock):
        cache.set("short", 1, ttl=1.0)
        cache.set("long", 2)
        clock.now += 5.0
        assert cache.get("short") is None
        assert cache.get("long") == 2

    def test_sweep_removes_only_expired(self, cache, clock):
        cache.set("a", 1, ttl=1.0)
        cache.set("b", 2, ttl=1.0)
        cache.set("c", 3, ttl=100.0)
        clock.now += 2.0
        assert cache.sweep() == 2
        assert len(cache) == 1

    def test_clear_matching(self, cache):
        cache.set("class:A", 1)
        cache.set("class:B", 2)
        cache.set("method:A#x", 3)
        assert cache.clear_matching("class:*") == 2
        assert len(cache) == 1

    def test_delete(self, cache):
        cache.set("k", 1)
        assert cache.delete("k") is True
        assert cache.delete("k") is False

    def test_get_or_compute_caches_none(self, cache):
        calls = []

        def compute():
            calls.append(1)
            return None

        assert cache.get_or_compute("k", compute) is None
        assert cache.get_or_compute("k", compute) is None
        assert len(calls) == 1

    def test_get_or_compute_recomputes_after_expiry(self, cache, clock):
        values = iter([1, 2])
        assert cache.get_or_compute("k", lambda: next(values)) == 1
        clock.now += 11.0
        assert cache.get_or_compute("k", lambda: next(values)) == 2


class TestCacheSweeper:
    @pytest.mark.asyncio
    async def test_sweeps_periodically(self, clock):
        cache = MemoCache(default_ttl=1.0, clock=clock)
        cache.set("old", 1)
        clock.now += 5.0
        sweeper = CacheSweeper(cache, interval=0.01)
        sweeper.start()
        assert sweeper.running
        await asyncio.sleep(0.05)
        await sweeper.stop()
        assert not sweeper.running
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_stop_without_start(self, cache):
        sweeper = CacheSweeper(cache)
        await sweeper.stop()
        assert not sweeper.running

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_task(self, cache):
        sweeper = CacheSweeper(cache, interval=10.0)
        sweeper.start()
        task = sweeper._task
        sweeper.start()
        assert sweeper._task is task
        await sweeper.stop()
