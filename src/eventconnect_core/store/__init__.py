"""
Durable keyed store.

Components:
- KeyValueStore: async protocol (read/write/remove bytes)
- MemoryKeyValueStore: dict-backed implementation
- SQLiteKeyValueStore: aiosqlite-backed implementation
"""

from .memory import MemoryKeyValueStore
from .protocol import KeyValueStore, make_key, read_json, write_json
from .sqlite import SQLiteKeyValueStore

__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SQLiteKeyValueStore",
    "make_key",
    "read_json",
    "write_json",
]
