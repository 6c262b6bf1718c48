"""
Cache Strategies.

Per-namespace sizing, lifetime and eviction configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Protocol

from ..core.errors import ConfigurationError


class EvictionPolicy(Enum):
    """Which entry to discard when a namespace is full."""

    LRU = "lru"  # Oldest last access
    LFU = "lfu"  # Lowest access count
    TTL = "ttl"  # Oldest creation time


@dataclass
class CacheStrategy:
    """
    Governs one cache namespace.

    default_ttl is in seconds and may be raised at runtime by
    CacheStore.optimize().
    """

    default_ttl: float
    max_size: int
    eviction_policy: EvictionPolicy = EvictionPolicy.LRU
    compression_enabled: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheStrategy:
        """
        Create from a configuration dict.

        Raises:
            ConfigurationError: If the policy is unknown or sizes are invalid
        """
        try:
            policy = EvictionPolicy(data.get("eviction_policy", "lru"))
        except ValueError as e:
            raise ConfigurationError(f"Unknown eviction policy: {data.get('eviction_policy')}") from e

        strategy = cls(
            default_ttl=float(data.get("default_ttl", 300)),
            max_size=int(data.get("max_size", 100)),
            eviction_policy=policy,
            compression_enabled=bool(data.get("compression_enabled", False)),
        )
        errors = strategy.validate()
        if errors:
            raise ConfigurationError("; ".join(errors))
        return strategy

    def validate(self) -> list[str]:
        """
        Validate strategy values.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []
        if self.default_ttl <= 0:
            errors.append("default_ttl must be positive")
        if self.max_size < 1:
            errors.append("max_size must be at least 1")
        return errors

    def copy(self) -> CacheStrategy:
        return replace(self)


FALLBACK_NAMESPACE = "static"

DEFAULT_STRATEGIES: dict[str, CacheStrategy] = {
    "events": CacheStrategy(120, 1000, EvictionPolicy.LRU, compression_enabled=True),
    "users": CacheStrategy(300, 500, EvictionPolicy.LFU),
    "search": CacheStrategy(30, 200, EvictionPolicy.TTL, compression_enabled=True),
    "trending": CacheStrategy(300, 100, EvictionPolicy.TTL),
    "recommendations": CacheStrategy(600, 300, EvictionPolicy.LRU, compression_enabled=True),
    FALLBACK_NAMESPACE: CacheStrategy(3600, 100, EvictionPolicy.LFU, compression_enabled=True),
}


class Codec(Protocol):
    """Compression hook applied to values of namespaces with compression enabled."""

    def compress(self, value: Any) -> Any: ...

    def decompress(self, value: Any) -> Any: ...


class PassThroughCodec:
    """Codec that stores values unchanged."""

    def compress(self, value: Any) -> Any:
        return value

    def decompress(self, value: Any) -> Any:
        return value
