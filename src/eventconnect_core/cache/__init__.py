"""
Namespaced cache store.

Components:
- CacheStore: TTL cache with LRU/LFU/TTL eviction and tag invalidation
- CacheStrategy: per-namespace sizing and lifetime
- CatalogCache: event listing and search helpers
"""

from .catalog import CatalogCache
from .keys import event_tag, hash_object, recommendation_key, search_key
from .store import CacheItem, CacheStats, CacheStore
from .strategy import DEFAULT_STRATEGIES, CacheStrategy, EvictionPolicy

__all__ = [
    "CacheItem",
    "CacheStats",
    "CacheStore",
    "CacheStrategy",
    "CatalogCache",
    "DEFAULT_STRATEGIES",
    "EvictionPolicy",
    "event_tag",
    "hash_object",
    "recommendation_key",
    "search_key",
]
