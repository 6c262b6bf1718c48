"""
SQLite Implementation of the Durable Keyed Store.

Uses WAL mode so a reader process can inspect the store while the
service writes to it.
"""

from __future__ import annotations

import sqlite3
import time
from pathlib import Path

import aiosqlite

from ..core.errors import StoreError
from ..core.logging import get_logger

logger = get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value BLOB NOT NULL,
    updated_at INTEGER NOT NULL
)
"""


class SQLiteKeyValueStore:
    """
    SQLite implementation of KeyValueStore.

    Connection configuration:
        PRAGMA journal_mode=WAL
        PRAGMA busy_timeout=5000
        PRAGMA synchronous=NORMAL
    """

    def __init__(self, db_path: Path | str | None = None):
        """
        Initialize the store.

        Args:
            db_path: Path to database file. Defaults to {instance_root}/cache/personalization.db.
        """
        if db_path is None:
            from ..core.config import get_settings

            db_path = get_settings().store_path

        self.db_path = Path(db_path)
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open the database and create the table if needed."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self._db = await aiosqlite.connect(self.db_path)
            await self._db.execute("PRAGMA journal_mode=WAL")
            await self._db.execute("PRAGMA busy_timeout=5000")
            await self._db.execute("PRAGMA synchronous=NORMAL")
            await self._db.execute(_SCHEMA)
            await self._db.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to open store {self.db_path}: {e}") from e

        logger.info("Durable store initialized: %s", self.db_path)

    async def close(self) -> None:
        """Close the store and release resources."""
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Durable store closed")

    @property
    def db(self) -> aiosqlite.Connection:
        """Get the database connection, raising if not initialized."""
        if self._db is None:
            raise StoreError("Store not initialized. Call initialize() first.")
        return self._db

    async def read(self, key: str) -> bytes | None:
        try:
            async with self.db.execute("SELECT value FROM kv_store WHERE key = ?", (key,)) as cursor:
                row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Read failed: {e}", key=key) from e
        return bytes(row[0]) if row else None

    async def write(self, key: str, data: bytes) -> None:
        try:
            await self.db.execute(
                """
                INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, data, int(time.time())),
            )
            await self.db.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Write failed: {e}", key=key) from e

    async def remove(self, key: str) -> None:
        try:
            await self.db.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            await self.db.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Remove failed: {e}", key=key) from e

    async def count(self) -> int:
        """Number of stored keys."""
        async with self.db.execute("SELECT COUNT(*) FROM kv_store") as cursor:
            row = await cursor.fetchone()
        return int(row[0]) if row else 0
