"""
Exception hierarchy for the personalization core.

Only configuration problems propagate to callers. Store and validation
failures are caught where they happen and turned into misses or refusals.
"""

from __future__ import annotations


class EventConnectError(Exception):
    """Base class for personalization core errors."""


class ConfigurationError(EventConnectError):
    """Raised when a rule table, level table or settings file is invalid."""


class StoreError(EventConnectError):
    """Raised by durable store implementations on I/O failure."""

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class CorruptPayloadError(StoreError):
    """Raised when a stored document exists but cannot be decoded."""
