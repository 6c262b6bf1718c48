"""
Tests for the namespaced cache store.
"""

from __future__ import annotations

import asyncio

import pytest

from eventconnect_core.cache.store import CacheItem, CacheStats, CacheStore
from eventconnect_core.cache.strategy import CacheStrategy, EvictionPolicy


def make_store(clock, settings, **strategies):
    return CacheStore(strategies or None, clock=clock, settings=settings)


class TestCacheItem:
    def test_expiry_is_strictly_after_ttl(self):
        item = CacheItem(value=1, created_at=100.0, ttl=10.0, last_accessed=100.0)

        assert item.expires_at == 110.0
        assert item.is_expired(110.0) is False
        assert item.is_expired(110.01) is True


class TestGetSet:
    def test_hit_before_ttl_miss_after(self, clock, settings):
        """A value with a 0.1s TTL is served at 0.05s and gone at 0.15s."""
        store = make_store(clock, settings)
        store.set("users", "u1", {"name": "Ana"}, ttl=0.1)

        clock.advance(0.05)
        assert store.get("users", "u1") == {"name": "Ana"}

        clock.advance(0.10)
        assert store.get("users", "u1") is None

    def test_default_returned_on_miss(self, clock, settings):
        store = make_store(clock, settings)
        sentinel = object()

        assert store.get("users", "missing", sentinel) is sentinel

    def test_uses_namespace_default_ttl(self, clock, settings):
        store = make_store(clock, settings, users=CacheStrategy(60, 10))
        store.set("users", "u1", "v")

        clock.advance(59)
        assert store.get("users", "u1") == "v"
        clock.advance(2)
        assert store.get("users", "u1") is None

    @pytest.mark.parametrize("ttl", [0, -5])
    def test_non_positive_ttl_rejected(self, clock, settings, ttl):
        store = make_store(clock, settings)

        with pytest.raises(ValueError):
            store.set("users", "u1", "v", ttl=ttl)

    def test_unknown_namespace_uses_fallback_strategy(self, clock, settings):
        store = make_store(clock, settings)
        store.set("widgets", "w1", 42)

        strategy = store.strategy("widgets")
        assert strategy.default_ttl == 3600
        assert strategy.eviction_policy is EvictionPolicy.LFU
        assert store.get("widgets", "w1") == 42

    def test_contains_does_not_count_lookup(self, clock, settings):
        store = make_store(clock, settings)
        store.set("users", "u1", "v")

        assert store.contains("users", "u1") is True
        assert store.contains("users", "u2") is False
        assert store.stats("users").lookups == 0

    def test_delete(self, clock, settings):
        store = make_store(clock, settings)
        store.set("users", "u1", "v")

        assert store.delete("users", "u1") is True
        assert store.delete("users", "u1") is False
        assert store.get("users", "u1") is None

    def test_clear_one_namespace(self, clock, settings):
        store = make_store(clock, settings)
        store.set("users", "u1", "v")
        store.set("events", "all", [])

        store.clear("users")

        assert store.get("users", "u1") is None
        assert store.get("events", "all") == []

    def test_clear_everything(self, clock, settings):
        store = make_store(clock, settings)
        store.set("users", "u1", "v")
        store.set("events", "all", [])

        store.clear()

        assert store.namespaces == []

    def test_compression_codec_applied(self, clock, settings):
        class UpperCodec:
            def compress(self, value):
                return value.upper()

            def decompress(self, value):
                return value.lower()

        store = CacheStore(
            {"events": CacheStrategy(60, 10, compression_enabled=True), "users": CacheStrategy(60, 10)},
            clock=clock,
            codec=UpperCodec(),
            settings=settings,
        )
        store.set("events", "k", "abc")
        store.set("users", "k", "abc")

        assert store._namespaces["events"].items["k"].value == "ABC"
        assert store.get("events", "k") == "abc"
        assert store._namespaces["users"].items["k"].value == "abc"


class TestEviction:
    def test_lru_evicts_least_recently_read(self, clock, settings):
        store = make_store(clock, settings, users=CacheStrategy(60, 2, EvictionPolicy.LRU))
        store.set("users", "a", 1)
        store.set("users", "b", 2)
        store.get("users", "a")

        store.set("users", "c", 3)

        assert store.get("users", "a") == 1
        assert store.get("users", "b") is None
        assert store.get("users", "c") == 3
        assert store.stats("users").evictions == 1

    def test_lru_tie_broken_by_access_order(self, clock, settings):
        """Reads at the same clock instant still order by recency."""
        store = make_store(clock, settings, users=CacheStrategy(60, 2, EvictionPolicy.LRU))
        store.set("users", "a", 1)
        store.set("users", "b", 2)
        store.get("users", "b")
        store.get("users", "a")

        store.set("users", "c", 3)

        assert store.contains("users", "a")
        assert not store.contains("users", "b")

    def test_lfu_evicts_least_frequently_read(self, clock, settings):
        store = make_store(clock, settings, users=CacheStrategy(60, 2, EvictionPolicy.LFU))
        store.set("users", "a", 1)
        store.set("users", "b", 2)
        for _ in range(3):
            store.get("users", "a")
        store.get("users", "b")

        store.set("users", "c", 3)

        assert store.contains("users", "a")
        assert not store.contains("users", "b")

    def test_ttl_policy_evicts_oldest_created(self, clock, settings):
        store = make_store(clock, settings, search=CacheStrategy(60, 2, EvictionPolicy.TTL))
        store.set("search", "a", 1)
        clock.advance(1)
        store.set("search", "b", 2)
        store.get("search", "a")

        store.set("search", "c", 3)

        assert not store.contains("search", "a")
        assert store.contains("search", "b")

    def test_overwrite_does_not_evict(self, clock, settings):
        store = make_store(clock, settings, users=CacheStrategy(60, 2))
        store.set("users", "a", 1)
        store.set("users", "b", 2)

        store.set("users", "a", 10)

        assert store.get("users", "a") == 10
        assert store.get("users", "b") == 2
        assert store.stats("users").evictions == 0

    def test_size_never_exceeds_max(self, clock, settings):
        store = make_store(clock, settings, users=CacheStrategy(60, 3))
        for i in range(20):
            store.set("users", f"k{i}", i)

        assert store.stats("users").size == 3


class TestTagInvalidation:
    def test_removes_entries_sharing_a_tag(self, clock, settings):
        store = make_store(clock, settings)
        store.set("recommendations", "u1:a", [1], tags=["u1", "event:1"])
        store.set("recommendations", "u1:b", [2], tags=["u1"])
        store.set("recommendations", "u2:a", [3], tags=["u2", "event:1"])

        removed = store.invalidate_by_tags("recommendations", ["u1"])

        assert removed == 2
        assert store.contains("recommendations", "u2:a")

    def test_empty_tag_set_is_noop(self, clock, settings):
        store = make_store(clock, settings)
        store.set("users", "u1", 1, tags=["x"])

        assert store.invalidate_by_tags("users", []) == 0
        assert store.contains("users", "u1")

    def test_scoped_to_namespace(self, clock, settings):
        store = make_store(clock, settings)
        store.set("users", "u1", 1, tags=["x"])
        store.set("events", "e1", 1, tags=["x"])

        store.invalidate_by_tags("users", ["x"])

        assert store.contains("events", "e1")


class TestExpirySweep:
    def test_removes_only_due_entries(self, clock, settings):
        store = make_store(clock, settings)
        store.set("users", "short", 1, ttl=10)
        store.set("users", "long", 2, ttl=100)

        clock.advance(11)
        removed = store.cleanup_expired()

        assert removed == 1
        assert store.stats("users").size == 1
        assert store.stats("users").expirations == 1
        assert store.contains("users", "long")

    def test_rewritten_entry_not_swept_by_stale_deadline(self, clock, settings):
        store = make_store(clock, settings)
        store.set("users", "k", 1, ttl=10)
        clock.advance(5)
        store.set("users", "k", 2, ttl=10)

        clock.advance(6)  # first deadline passed, second not
        assert store.cleanup_expired() == 0
        assert store.get("users", "k") == 2

    def test_deleted_entry_ignored(self, clock, settings):
        store = make_store(clock, settings)
        store.set("users", "k", 1, ttl=10)
        store.delete("users", "k")

        clock.advance(11)
        assert store.cleanup_expired() == 0


class TestStats:
    def test_hit_rate(self):
        stats = CacheStats(namespace="users", hits=3, misses=1)

        assert stats.lookups == 4
        assert stats.hit_rate == 0.75
        assert stats.to_dict()["hit_rate"] == 0.75

    def test_hit_rate_without_lookups(self):
        assert CacheStats(namespace="users").hit_rate == 0.0

    def test_counts_hits_and_misses(self, clock, settings):
        store = make_store(clock, settings)
        store.set("users", "u1", 1)
        store.get("users", "u1")
        store.get("users", "u2")

        stats = store.stats("users")
        assert (stats.hits, stats.misses, stats.size) == (1, 1, 1)

    def test_all_stats_lists_touched_namespaces(self, clock, settings):
        store = make_store(clock, settings)
        store.set("users", "u1", 1)
        store.get("events", "all")

        assert set(store.all_stats()) == {"events", "users"}


class TestOptimize:
    def test_low_hit_rate_raises_ttl(self, clock, settings):
        store = make_store(clock, settings, users=CacheStrategy(100, 50))
        for i in range(11):
            store.get("users", f"missing-{i}")

        actions = store.optimize()

        assert store.strategy("users").default_ttl == 150
        assert actions == ["users: ttl -> 150s"]

    def test_ttl_growth_capped(self, clock, settings):
        store = make_store(clock, settings, users=CacheStrategy(1500, 50))
        for i in range(11):
            store.get("users", f"missing-{i}")

        store.optimize()
        store.optimize()

        assert store.strategy("users").default_ttl == settings.cache_max_tuned_ttl_seconds

    def test_too_few_lookups_not_tuned(self, clock, settings):
        store = make_store(clock, settings, users=CacheStrategy(100, 50))
        for i in range(10):
            store.get("users", f"missing-{i}")

        assert store.optimize() == []
        assert store.strategy("users").default_ttl == 100

    def test_high_occupancy_triggers_sweep(self, clock, settings):
        store = make_store(clock, settings, users=CacheStrategy(10, 10))
        for i in range(10):
            store.set("users", f"k{i}", i, ttl=5 if i < 4 else 50)

        clock.advance(6)
        actions = store.optimize()

        assert "users: swept 4" in actions
        assert store.stats("users").size == 6

    def test_does_not_mutate_shared_defaults(self, clock, settings):
        from eventconnect_core.cache.strategy import DEFAULT_STRATEGIES

        original = DEFAULT_STRATEGIES["users"].default_ttl
        store = CacheStore(clock=clock, settings=settings)
        for i in range(11):
            store.get("users", f"missing-{i}")

        store.optimize()

        assert store.strategy("users").default_ttl > original
        assert DEFAULT_STRATEGIES["users"].default_ttl == original


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, settings):
        store = CacheStore(settings=settings)

        await store.start()
        assert store.is_running is True

        await store.stop()
        assert store.is_running is False

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, settings):
        store = CacheStore(settings=settings)
        await store.start()
        task = store._task

        await store.start()

        assert store._task is task
        await store.stop()

    @pytest.mark.asyncio
    async def test_maintenance_loop_sweeps(self, clock):
        from eventconnect_core.core.config import EventConnectSettings

        fast = EventConnectSettings(cache_sweep_interval_seconds=0.01)
        store = CacheStore(clock=clock, settings=fast)
        store.set("users", "k", 1, ttl=1)
        clock.advance(2)

        await store.start()
        await asyncio.sleep(0.05)
        await store.stop()

        assert store.stats("users").size == 0
