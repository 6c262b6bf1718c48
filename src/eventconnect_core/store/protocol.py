"""
Durable Keyed Store Protocol.

Abstract interface for the per-user, per-namespace key-value store backing
recommendation snapshots, notification history and achievement progress.
Payloads are opaque bytes; read_json/write_json cover the JSON case.
"""

from __future__ import annotations

import json
from abc import abstractmethod
from typing import Any, Protocol, runtime_checkable

from ..core.errors import CorruptPayloadError


@runtime_checkable
class KeyValueStore(Protocol):
    """
    Abstract interface for durable key-value storage.

    Implementations raise StoreError on I/O failure. Callers in the core
    catch it, log, and treat the operation as a miss or no-op.
    """

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the store. Must be called before any other operations."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the store and release resources."""
        ...

    # -------------------------------------------------------------------------
    # Key Operations
    # -------------------------------------------------------------------------

    @abstractmethod
    async def read(self, key: str) -> bytes | None:
        """Return the stored bytes, or None if the key is absent."""
        ...

    @abstractmethod
    async def write(self, key: str, data: bytes) -> None:
        """Store bytes under key, replacing any previous value."""
        ...

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete key. Removing an absent key is not an error."""
        ...


def make_key(namespace: str, *parts: str) -> str:
    """Build a store key such as "history:user-1"."""
    return ":".join((namespace, *parts))


async def read_json(store: KeyValueStore, key: str) -> Any | None:
    """
    Read and decode a JSON document.

    Raises:
        StoreError: If the store fails
        CorruptPayloadError: If the payload is not valid JSON
    """
    raw = await store.read(key)
    if raw is None:
        return None
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CorruptPayloadError(f"Corrupt JSON payload: {e}", key=key) from e


async def write_json(store: KeyValueStore, key: str, value: Any) -> None:
    """Encode value as compact JSON and write it."""
    payload = json.dumps(value, separators=(",", ":"), sort_keys=True)
    await store.write(key, payload.encode("utf-8"))
