"""
Namespaced Cache Store.

In-process TTL cache with per-namespace eviction policies and tag-based
invalidation.

Expiry is enforced twice:
- Lazily: get() never returns an entry older than its TTL
- Eagerly: one min-heap of deadlines is swept by cleanup_expired(), which
  the maintenance task runs on a fixed interval

Usage:
    store = CacheStore()
    store.set("recommendations", "user-1:default", ranking, tags=["user-1"])
    ranking = store.get("recommendations", "user-1:default")

    await store.start()   # background sweep + optimize
    ...
    await store.stop()
"""

from __future__ import annotations

import asyncio
import contextlib
import heapq
import itertools
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from ..core.config import EventConnectSettings, get_settings
from ..core.logging import get_logger
from .strategy import (
    DEFAULT_STRATEGIES,
    FALLBACK_NAMESPACE,
    CacheStrategy,
    Codec,
    EvictionPolicy,
    PassThroughCodec,
)

logger = get_logger(__name__)

# optimize() thresholds
MIN_LOOKUPS_FOR_TUNING = 10
LOW_HIT_RATE = 0.5
TTL_GROWTH_FACTOR = 1.5
HIGH_OCCUPANCY = 0.9


@dataclass
class CacheItem:
    """A cached value with its bookkeeping."""

    value: Any
    created_at: float
    ttl: float
    last_accessed: float
    access_count: int = 0
    tags: frozenset[str] = frozenset()
    seq: int = 0  # Identity in the expiry heap
    touch: int = 0  # Monotonic access order, breaks last_accessed ties

    @property
    def expires_at(self) -> float:
        return self.created_at + self.ttl

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl


@dataclass
class CacheStats:
    """Point-in-time statistics for one namespace."""

    namespace: str
    hits: int = 0
    misses: int = 0
    size: int = 0
    max_size: int = 0
    evictions: int = 0
    expirations: int = 0
    default_ttl: float = 0.0

    @property
    def lookups(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Fraction of lookups that hit (0.0 when there were none)."""
        return self.hits / self.lookups if self.lookups else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "namespace": self.namespace,
            "hits": self.hits,
            "misses": self.misses,
            "size": self.size,
            "max_size": self.max_size,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "default_ttl": self.default_ttl,
            "hit_rate": round(self.hit_rate, 4),
        }


@dataclass
class _Namespace:
    strategy: CacheStrategy
    items: dict[str, CacheItem] = field(default_factory=dict)
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0


class CacheStore:
    """
    Owned, explicitly constructed cache with one dict per namespace.

    All operations are synchronous; evict-then-insert runs without
    suspension so it is atomic on the event loop.
    """

    def __init__(
        self,
        strategies: dict[str, CacheStrategy] | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        codec: Codec | None = None,
        settings: EventConnectSettings | None = None,
    ) -> None:
        source = strategies if strategies is not None else DEFAULT_STRATEGIES
        # Copies, so optimize() never mutates shared defaults
        self._strategies = {name: s.copy() for name, s in source.items()}
        self._clock = clock
        self._codec = codec or PassThroughCodec()
        self._settings = settings or get_settings()

        self._namespaces: dict[str, _Namespace] = {}
        self._expiry_heap: list[tuple[float, int, str, str]] = []
        self._seq = itertools.count(1)
        self._touch = itertools.count(1)

        self._task: asyncio.Task | None = None
        self._last_optimize: float | None = None

    # -------------------------------------------------------------------------
    # Namespace management
    # -------------------------------------------------------------------------

    def _namespace(self, name: str) -> _Namespace:
        ns = self._namespaces.get(name)
        if ns is None:
            strategy = self._strategies.get(name)
            if strategy is None:
                fallback = self._strategies.get(FALLBACK_NAMESPACE) or DEFAULT_STRATEGIES[FALLBACK_NAMESPACE]
                strategy = fallback.copy()
                self._strategies[name] = strategy
            ns = _Namespace(strategy=strategy)
            self._namespaces[name] = ns
        return ns

    def strategy(self, namespace: str) -> CacheStrategy:
        """The live strategy governing a namespace."""
        return self._namespace(namespace).strategy

    @property
    def namespaces(self) -> list[str]:
        return sorted(self._namespaces)

    # -------------------------------------------------------------------------
    # Core operations
    # -------------------------------------------------------------------------

    def set(
        self,
        namespace: str,
        key: str,
        value: Any,
        ttl: float | None = None,
        tags: Iterable[str] = (),
    ) -> None:
        """
        Store a value.

        Args:
            namespace: Cache namespace ("events", "recommendations", ...)
            key: Key within the namespace
            value: Value to cache
            ttl: Lifetime in seconds (defaults to the namespace strategy)
            tags: Tags for invalidate_by_tags()

        Raises:
            ValueError: If ttl is not positive
        """
        ns = self._namespace(namespace)
        strategy = ns.strategy
        effective_ttl = strategy.default_ttl if ttl is None else float(ttl)
        if effective_ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")

        if key not in ns.items and len(ns.items) >= strategy.max_size:
            self._evict(namespace, ns)

        now = self._clock()
        stored = self._codec.compress(value) if strategy.compression_enabled else value
        item = CacheItem(
            value=stored,
            created_at=now,
            ttl=effective_ttl,
            last_accessed=now,
            tags=frozenset(tags),
            seq=next(self._seq),
            touch=next(self._touch),
        )
        ns.items[key] = item
        heapq.heappush(self._expiry_heap, (item.expires_at, item.seq, namespace, key))

    def get(self, namespace: str, key: str, default: Any = None) -> Any:
        """
        Look up a value.

        Returns:
            The cached value, or default on a miss (absent or expired)
        """
        ns = self._namespace(namespace)
        item = ns.items.get(key)

        if item is None:
            ns.misses += 1
            return default

        now = self._clock()
        if item.is_expired(now):
            del ns.items[key]
            ns.expirations += 1
            ns.misses += 1
            return default

        item.access_count += 1
        item.last_accessed = now
        item.touch = next(self._touch)
        ns.hits += 1

        if ns.strategy.compression_enabled:
            return self._codec.decompress(item.value)
        return item.value

    def contains(self, namespace: str, key: str) -> bool:
        """Check for a live entry without touching statistics."""
        ns = self._namespace(namespace)
        item = ns.items.get(key)
        return item is not None and not item.is_expired(self._clock())

    def delete(self, namespace: str, key: str) -> bool:
        """
        Remove an entry.

        Returns:
            True if an entry was removed
        """
        ns = self._namespace(namespace)
        return ns.items.pop(key, None) is not None

    def invalidate_by_tags(self, namespace: str, tags: Iterable[str]) -> int:
        """
        Remove every entry whose tags intersect the given set.

        Returns:
            Number of entries removed
        """
        wanted = frozenset(tags)
        if not wanted:
            return 0

        ns = self._namespace(namespace)
        doomed = [key for key, item in ns.items.items() if item.tags & wanted]
        for key in doomed:
            del ns.items[key]

        if doomed:
            logger.debug(
                "Invalidated %d entries in '%s' for tags %s",
                len(doomed),
                namespace,
                sorted(wanted),
            )
        return len(doomed)

    def cleanup_expired(self) -> int:
        """
        Remove every entry whose TTL has elapsed.

        Pops only due deadlines from the expiry heap; heap entries for
        replaced or deleted items are discarded as they come due.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        removed = 0

        while self._expiry_heap and self._expiry_heap[0][0] < now:
            _, seq, namespace, key = heapq.heappop(self._expiry_heap)
            ns = self._namespaces.get(namespace)
            if ns is None:
                continue
            item = ns.items.get(key)
            if item is None or item.seq != seq:
                continue  # Stale deadline
            if item.is_expired(now):
                del ns.items[key]
                ns.expirations += 1
                removed += 1

        if removed:
            logger.debug("Expiry sweep removed %d entries", removed)
        return removed

    def clear(self, namespace: str | None = None) -> None:
        """Drop all entries of one namespace, or of every namespace."""
        if namespace is None:
            self._namespaces.clear()
            self._expiry_heap.clear()
            return
        self._namespace(namespace).items.clear()

    # -------------------------------------------------------------------------
    # Eviction
    # -------------------------------------------------------------------------

    def _evict(self, namespace: str, ns: _Namespace) -> None:
        if not ns.items:
            return

        policy = ns.strategy.eviction_policy
        if policy is EvictionPolicy.LRU:
            victim = min(ns.items, key=lambda k: (ns.items[k].last_accessed, ns.items[k].touch))
        elif policy is EvictionPolicy.LFU:
            victim = min(ns.items, key=lambda k: (ns.items[k].access_count, ns.items[k].touch))
        else:
            victim = min(ns.items, key=lambda k: (ns.items[k].created_at, ns.items[k].seq))

        del ns.items[victim]
        ns.evictions += 1
        logger.debug("Evicted '%s' from '%s' (%s)", victim, namespace, policy.value)

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def stats(self, namespace: str) -> CacheStats:
        """Statistics for one namespace."""
        ns = self._namespace(namespace)
        return CacheStats(
            namespace=namespace,
            hits=ns.hits,
            misses=ns.misses,
            size=len(ns.items),
            max_size=ns.strategy.max_size,
            evictions=ns.evictions,
            expirations=ns.expirations,
            default_ttl=ns.strategy.default_ttl,
        )

    def all_stats(self) -> dict[str, CacheStats]:
        """Statistics for every namespace touched so far."""
        return {name: self.stats(name) for name in self.namespaces}

    # -------------------------------------------------------------------------
    # Tuning
    # -------------------------------------------------------------------------

    def optimize(self) -> list[str]:
        """
        Tune namespaces from their statistics.

        - Hit rate below 50% over more than 10 lookups: default TTL x1.5,
          capped at cache_max_tuned_ttl_seconds
        - Occupancy above 90%: run an eager expiry sweep

        Returns:
            Human-readable descriptions of the actions taken
        """
        actions: list[str] = []
        max_ttl = self._settings.cache_max_tuned_ttl_seconds

        for name, stats in self.all_stats().items():
            strategy = self._namespaces[name].strategy

            if stats.lookups > MIN_LOOKUPS_FOR_TUNING and stats.hit_rate < LOW_HIT_RATE:
                new_ttl = min(strategy.default_ttl * TTL_GROWTH_FACTOR, max_ttl)
                if new_ttl > strategy.default_ttl:
                    logger.info(
                        "Raising TTL for '%s': %.0fs -> %.0fs (hit rate %.0f%%)",
                        name,
                        strategy.default_ttl,
                        new_ttl,
                        stats.hit_rate * 100,
                    )
                    strategy.default_ttl = new_ttl
                    actions.append(f"{name}: ttl -> {new_ttl:.0f}s")

            if stats.size > stats.max_size * HIGH_OCCUPANCY:
                removed = self.cleanup_expired()
                logger.info("'%s' near capacity (%d/%d), swept %d", name, stats.size, stats.max_size, removed)
                actions.append(f"{name}: swept {removed}")

        self._last_optimize = self._clock()
        return actions

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background sweep/optimize task."""
        if self.is_running:
            return
        self._last_optimize = self._clock()
        self._task = asyncio.create_task(self._maintenance_loop())
        logger.debug(
            "Cache maintenance started (sweep every %.0fs)",
            self._settings.cache_sweep_interval_seconds,
        )

    async def stop(self) -> None:
        """Stop the background task."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.debug("Cache maintenance stopped")

    async def _maintenance_loop(self) -> None:
        sweep_interval = self._settings.cache_sweep_interval_seconds
        optimize_interval = self._settings.cache_optimize_interval_seconds

        while True:
            await asyncio.sleep(sweep_interval)
            try:
                self.cleanup_expired()
                last = self._last_optimize
                if last is None or self._clock() - last >= optimize_interval:
                    self.optimize()
            except Exception as e:
                logger.error("Cache maintenance pass failed: %s", e)
