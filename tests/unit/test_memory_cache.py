"""Tests for MemoryCache (TTL, size bound, eviction, invalidation, sweep)."""

import asyncio
from datetime import timedelta

import pytest

from datalayer.core.config import Settings
from datalayer.infrastructure.cache.memory_cache import MemoryCache, read_through


def _cache(clock, **kwargs) -> MemoryCache:
    kwargs.setdefault("max_size", 10)
    kwargs.setdefault("default_ttl", 300.0)
    return MemoryCache(clock=clock, **kwargs)


def test_get_returns_value_before_ttl_and_none_at_expiry(clock) -> None:
    """Entry is live until now >= stored_at + ttl, then absent and not counted valid."""
    cache = _cache(clock)
    cache.put("k", "v", ttl=10)
    clock.advance(9.5)
    assert cache.get("k") == "v"
    assert cache.stats().valid_entries == 1
    clock.advance(0.5)
    assert cache.stats().valid_entries == 0
    assert cache.get("k") is None
    assert cache.size == 0


def test_default_ttl_applies_when_omitted(clock) -> None:
    cache = _cache(clock, default_ttl=60)
    cache.put("k", 1)
    clock.advance(59)
    assert cache.contains("k")
    clock.advance(1)
    assert not cache.contains("k")


def test_ttl_none_never_expires(clock) -> None:
    """No-TTL entries survive far beyond the default TTL."""
    cache = _cache(clock, default_ttl=1)
    cache.put("forever", "v", ttl=None)
    clock.advance(10_000_000)
    assert cache.get("forever") == "v"


def test_zero_ttl_is_expired_on_next_read(clock) -> None:
    cache = _cache(clock)
    cache.put("k", "v", ttl=0)
    assert cache.get("k") is None


def test_timedelta_ttl(clock) -> None:
    cache = _cache(clock)
    cache.put("k", "v", ttl=timedelta(minutes=5))
    clock.advance(299)
    assert cache.get("k") == "v"
    clock.advance(1)
    assert cache.get("k") is None


def test_empty_string_key_is_valid(clock) -> None:
    cache = _cache(clock)
    cache.put("", "empty")
    assert cache.get("") == "empty"
    assert "" in cache


def test_size_never_exceeds_max_size(clock) -> None:
    """Inserting max_size + 1 keys evicts at least one earlier entry."""
    cache = _cache(clock, max_size=10)
    for i in range(25):
        cache.put(f"k{i}", i)
        clock.advance(1)
        assert cache.size <= 10
    assert cache.get("k0") is None


def test_eviction_removes_oldest_first(clock) -> None:
    """The most recently stored entries stay retrievable."""
    cache = _cache(clock, max_size=5, eviction_batch_size=2)
    for i in range(5):
        cache.put(f"k{i}", i)
        clock.advance(1)
    cache.put("k5", 5)
    assert cache.size == 4
    assert cache.get("k0") is None
    assert cache.get("k1") is None
    assert [cache.get(f"k{i}") for i in range(2, 6)] == [2, 3, 4, 5]


def test_rewrite_refreshes_recency(clock) -> None:
    cache = _cache(clock, max_size=3, eviction_batch_size=1)
    cache.put("a", 1)
    clock.advance(1)
    cache.put("b", 2)
    clock.advance(1)
    cache.put("c", 3)
    clock.advance(1)
    cache.put("a", 10)
    clock.advance(1)
    cache.put("d", 4)
    assert cache.get("b") is None
    assert cache.get("a") == 10


def test_rewrite_existing_key_at_capacity_does_not_evict(clock) -> None:
    cache = _cache(clock, max_size=2)
    cache.put("a", 1)
    cache.put("b", 2)
    cache.put("a", 3)
    assert cache.size == 2
    assert cache.get("b") == 2


def test_default_eviction_batch_is_ten_percent_of_capacity(clock) -> None:
    assert _cache(clock, max_size=1000).eviction_batch_size == 100
    assert _cache(clock, max_size=25).eviction_batch_size == 3
    assert _cache(clock, max_size=5).eviction_batch_size == 1


def test_pattern_invalidation_is_precise(clock) -> None:
    cache = _cache(clock)
    cache.put("user:123:profile", 1)
    cache.put("user:123:settings", 2)
    cache.put("user:456:profile", 3)
    removed = cache.invalidate_by_pattern("user:123:.*")
    assert removed == 2
    assert cache.get("user:456:profile") == 3
    assert cache.size == 1


def test_pattern_matching_nothing_is_noop(clock) -> None:
    cache = _cache(clock)
    cache.put("a", 1)
    assert cache.invalidate_by_pattern("zzz.*") == 0
    assert cache.size == 1


def test_malformed_pattern_raises(clock) -> None:
    import re

    cache = _cache(clock)
    with pytest.raises(re.error):
        cache.invalidate_by_pattern("(")


def test_invalidate_for_entity_matches_last_segment_literally(clock) -> None:
    cache = _cache(clock)
    cache.put("get_by_id:1", "one")
    cache.put("get_by_id:10", "ten")
    cache.put("get_by_id:a.b", "dot")
    cache.put("get_by_id:axb", "x")
    assert cache.invalidate_for_entity("1") == 1
    assert cache.invalidate_for_entity("a.b") == 1
    assert cache.get("get_by_id:10") == "ten"
    assert cache.get("get_by_id:axb") == "x"


def test_end_to_end_put_get_and_list_invalidation(clock) -> None:
    cache = _cache(clock)
    user = {"id": "42", "email": "a@b.c"}
    cache.put("getById:42", user, ttl=timedelta(minutes=5))
    assert cache.get("getById:42") == user
    cache.put("getAll:query:limit=10", [user])
    cache.invalidate_by_pattern("getAll:.*")
    assert cache.get("getAll:query:limit=10") is None
    assert cache.get("getById:42") == user


def test_remove_and_clear(clock) -> None:
    cache = _cache(clock)
    cache.put("a", 1)
    cache.put("b", 2)
    cache.remove("a")
    cache.remove("missing")
    assert cache.get("a") is None
    cache.clear()
    assert len(cache) == 0


def test_pre_warm_stores_all_entries(clock) -> None:
    cache = _cache(clock)
    cache.pre_warm({"a": 1, "b": 2}, ttl=5)
    assert cache.get("a") == 1
    clock.advance(5)
    assert cache.get("b") is None


def test_stats_and_sweep(clock) -> None:
    cache = _cache(clock)
    cache.put("short", 1, ttl=1)
    cache.put("long", 2, ttl=100)
    cache.put("none", 3, ttl=None)
    assert cache.stats().last_cleanup is None
    clock.advance(2)
    stats = cache.stats()
    assert (stats.total_entries, stats.expired_entries, stats.valid_entries) == (3, 1, 2)
    assert stats.max_size == 10
    assert cache.sweep_expired() == 1
    after = cache.stats()
    assert after.total_entries == 2
    assert after.last_cleanup is not None
    assert after.to_dict()["last_cleanup"] == after.last_cleanup.isoformat()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_size": 0},
        {"cleanup_interval": 0},
        {"eviction_batch_size": 0},
    ],
)
def test_constructor_rejects_invalid_limits(clock, kwargs) -> None:
    with pytest.raises(ValueError):
        _cache(clock, **kwargs)


def test_from_settings_uses_cache_fields() -> None:
    settings = Settings(cache_max_size=50, cache_default_ttl_seconds=12, cache_eviction_fraction=0.5)
    cache = MemoryCache.from_settings(settings, name="s")
    assert cache.max_size == 50
    assert cache.default_ttl == 12
    assert cache.eviction_batch_size == 25


def test_put_without_running_loop_does_not_arm_sweep(clock) -> None:
    cache = _cache(clock)
    cache.put("a", 1)
    assert not cache.is_cleanup_running
    cache.dispose()
    cache.dispose()


@pytest.mark.asyncio
async def test_put_arms_sweep_and_clear_stops_it(clock) -> None:
    cache = _cache(clock)
    assert not cache.is_cleanup_running
    cache.put("a", 1)
    assert cache.is_cleanup_running
    cache.clear()
    assert not cache.is_cleanup_running
    await cache.aclose()
    await cache.aclose()


@pytest.mark.asyncio
async def test_background_sweep_removes_expired_and_stops_when_empty(clock) -> None:
    cache = _cache(clock, cleanup_interval=0.01)
    cache.put("a", 1, ttl=1)
    clock.advance(2)
    for _ in range(50):
        await asyncio.sleep(0.01)
        if not cache.is_cleanup_running:
            break
    assert cache.size == 0
    assert not cache.is_cleanup_running
    assert cache.stats().last_cleanup is not None
    await cache.aclose()


@pytest.mark.asyncio
async def test_read_through_loads_on_miss_and_caches(cache) -> None:
    calls = []

    async def load():
        calls.append(1)
        return "value"

    assert await read_through(cache, "k", load) == "value"
    assert await read_through(cache, "k", load) == "value"
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_read_through_does_not_cache_none(cache) -> None:
    calls = []

    async def load():
        calls.append(1)
        return None

    assert await read_through(cache, "k", load) is None
    assert await read_through(cache, "k", load) is None
    assert len(calls) == 2


def test_dispose_after_loop_stops_cancels_sweep_on_next_run(clock) -> None:
    cache = _cache(clock)
    loop = asyncio.new_event_loop()
    try:

        async def arm() -> asyncio.Task:
            cache.put("a", 1)
            return cache._cleanup_task

        task = loop.run_until_complete(arm())
        assert cache.is_cleanup_running
        assert not loop.is_running() and not loop.is_closed()

        cache.dispose()
        assert not cache.is_cleanup_running
        assert not task.done()

        loop.run_until_complete(asyncio.sleep(0))
        assert task.cancelled()
    finally:
        loop.close()
