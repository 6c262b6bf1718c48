"""
Send History.

Capped per-user log of accepted notifications. Rate limits and fatigue are
recomputed from this log on every check instead of being kept as separate
counters.

The log is compacted on every append: it never holds more than
history_cap entries nor entries older than history_retention_days.
"""

from __future__ import annotations

import asyncio
from collections import Counter, deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from ..core.config import EventConnectSettings, get_settings
from ..core.errors import CorruptPayloadError, StoreError
from ..core.logging import get_logger
from ..models import parse_datetime
from ..store.protocol import KeyValueStore, make_key, read_json, write_json
from .types import Notification, NotificationCategory

logger = get_logger(__name__)

NAMESPACE = "history"


@dataclass(frozen=True)
class SendRecord:
    """One accepted send."""

    category: NotificationCategory
    sent_at: datetime
    notification_id: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SendRecord:
        sent_at = parse_datetime(data.get("sent_at"))
        if sent_at is None:
            raise ValueError(f"Missing sent_at in history record: {data!r}")
        return cls(
            category=NotificationCategory(data["category"]),
            sent_at=sent_at,
            notification_id=data.get("notification_id", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "sent_at": self.sent_at.isoformat(),
            "notification_id": self.notification_id,
        }


class SendHistory:
    """
    Per-user send logs, optionally persisted to a KeyValueStore.

    Logs are loaded lazily on first async access. Store failures are
    logged and the in-memory log keeps working; it is written back only
    once the stored log has been read.
    """

    def __init__(
        self,
        store: KeyValueStore | None = None,
        settings: EventConnectSettings | None = None,
    ):
        settings = settings or get_settings()
        self.store = store
        self.cap = settings.history_cap
        self.retention = timedelta(days=settings.history_retention_days)
        self._logs: dict[str, deque[SendRecord]] = {}
        self._loaded: set[str] = set()
        self._load_locks: dict[str, asyncio.Lock] = {}

    def _log(self, user_id: str) -> deque[SendRecord]:
        log = self._logs.get(user_id)
        if log is None:
            log = deque(maxlen=self.cap)
            self._logs[user_id] = log
        return log

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    async def load(self, user_id: str) -> None:
        """
        Load a user's log from the store once.

        Concurrent callers wait for the same read. A failed read leaves the
        user unloaded so the next call tries again.
        """
        if user_id in self._loaded:
            return
        lock = self._load_locks.setdefault(user_id, asyncio.Lock())
        async with lock:
            if user_id in self._loaded:
                return
            if self.store is None:
                self._loaded.add(user_id)
                return

            try:
                data = await read_json(self.store, make_key(NAMESPACE, user_id))
            except CorruptPayloadError as e:
                logger.warning("Discarding corrupt send history for %s: %s", user_id, e)
                data = None
            except StoreError as e:
                logger.warning("Could not load send history for %s: %s", user_id, e)
                return

            records = []
            for item in data if isinstance(data, list) else ():
                try:
                    records.append(SendRecord.from_dict(item))
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning("Skipping malformed history record for %s: %s", user_id, e)

            # Stored records precede anything recorded in memory before loading
            log = self._log(user_id)
            merged = sorted([*records, *log], key=lambda r: r.sent_at)
            log.clear()
            log.extend(merged)
            self._loaded.add(user_id)
            self._load_locks.pop(user_id, None)

    async def _persist(self, user_id: str) -> None:
        if self.store is None:
            return
        if user_id not in self._loaded:
            logger.debug("Not persisting send history for %s until the stored log is read", user_id)
            return
        payload = [r.to_dict() for r in self._log(user_id)]
        try:
            await write_json(self.store, make_key(NAMESPACE, user_id), payload)
        except StoreError as e:
            logger.warning("Could not persist send history for %s: %s", user_id, e)

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------

    def compact(self, user_id: str, now: datetime) -> int:
        """
        Drop entries older than the retention window.

        Returns:
            Number of entries removed
        """
        log = self._log(user_id)
        cutoff = now - self.retention
        removed = 0
        while log and log[0].sent_at < cutoff:
            log.popleft()
            removed += 1
        return removed

    async def record(self, user_id: str, notification: Notification, now: datetime | None = None) -> SendRecord:
        """Append an accepted send, compact, and persist."""
        await self.load(user_id)
        now = now or datetime.now(timezone.utc)
        record = SendRecord(notification.category, now, notification.notification_id)
        self._log(user_id).append(record)
        self.compact(user_id, now)
        await self._persist(user_id)
        return record

    async def cleanup(self, now: datetime | None = None) -> int:
        """Compact every loaded log; persist the ones that changed."""
        now = now or datetime.now(timezone.utc)
        total = 0
        for user_id in list(self._logs):
            removed = self.compact(user_id, now)
            if removed:
                total += removed
                await self._persist(user_id)
        return total

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def entries(self, user_id: str) -> list[SendRecord]:
        """In-memory log, oldest first."""
        return list(self._logs.get(user_id, ()))

    def count_since(
        self,
        user_id: str,
        since: datetime,
        category: NotificationCategory | None = None,
    ) -> int:
        """Sends after since, optionally limited to one category."""
        return sum(
            1
            for r in self._logs.get(user_id, ())
            if r.sent_at > since and (category is None or r.category is category)
        )

    def last_sent(self, user_id: str, category: NotificationCategory) -> datetime | None:
        for r in reversed(self._logs.get(user_id, ())):
            if r.category is category:
                return r.sent_at
        return None

    def stats(self, user_id: str, now: datetime | None = None) -> dict[str, Any]:
        """
        Summary of a user's log.

        Returns:
            Dict with total, last_24_hours, by_category and last_sent_at
        """
        now = now or datetime.now(timezone.utc)
        log = self._logs.get(user_id, deque())
        by_category = Counter(r.category.value for r in log)
        return {
            "total": len(log),
            "last_24_hours": self.count_since(user_id, now - timedelta(hours=24)),
            "by_category": dict(by_category),
            "last_sent_at": log[-1].sent_at.isoformat() if log else None,
        }
