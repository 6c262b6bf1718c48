"""
In-memory implementation of the durable keyed store.

Suitable for tests and single-process deployments that do not need data
to survive a restart.
"""

from __future__ import annotations

from ..core.errors import StoreError


class MemoryKeyValueStore:
    """Dict-backed KeyValueStore."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}
        self._open = False

    async def initialize(self) -> None:
        self._open = True

    async def close(self) -> None:
        self._open = False

    def _check_open(self, key: str) -> None:
        if not self._open:
            raise StoreError("Store not initialized. Call initialize() first.", key=key)

    async def read(self, key: str) -> bytes | None:
        self._check_open(key)
        return self._data.get(key)

    async def write(self, key: str, data: bytes) -> None:
        self._check_open(key)
        self._data[key] = bytes(data)

    async def remove(self, key: str) -> None:
        self._check_open(key)
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        """All stored keys, sorted."""
        return sorted(self._data)

    def __len__(self) -> int:
        return len(self._data)
