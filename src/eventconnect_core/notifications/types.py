"""
Notification Types.

Categories, priorities, candidate notifications and gate outcomes.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from ..models import Event, User, parse_datetime


class NotificationCategory(Enum):
    """Closed set of notification categories, each governed by one rule."""

    EVENT_REMINDER = "event_reminder"
    FRIEND_JOINED = "friend_joined"
    TRENDING = "trending"
    ACHIEVEMENT = "achievement"
    COMMUNITY_INVITE = "community_invite"
    EVENT_UPDATE = "event_update"
    LEVEL_UP = "level_up"

    @classmethod
    def parse(cls, value: NotificationCategory | str) -> NotificationCategory | None:
        """Resolve a category from its value; None when unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class Priority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class GateStage(Enum):
    """Stage that produced a gate decision."""

    VALIDATION = "validation"
    PREFERENCE = "preference"
    TEMPORAL = "temporal"
    FREQUENCY = "frequency"
    RELEVANCE = "relevance"
    FATIGUE = "fatigue"
    BYPASS = "bypass"
    PASSED = "passed"


def _new_id() -> str:
    return f"notif_{uuid.uuid4().hex[:16]}"


@dataclass
class Notification:
    """A candidate or delivered notification."""

    category: NotificationCategory
    title: str
    message: str
    priority: Priority = Priority.MEDIUM
    data: dict[str, Any] = field(default_factory=dict)
    read: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    notification_id: str = field(default_factory=_new_id)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Notification:
        return cls(
            category=NotificationCategory(data["category"]),
            title=data.get("title", ""),
            message=data.get("message", ""),
            priority=Priority(data.get("priority", "medium")),
            data=dict(data.get("data") or {}),
            read=bool(data.get("read", False)),
            created_at=parse_datetime(data.get("created_at")) or datetime.now(timezone.utc),
            notification_id=data.get("notification_id") or _new_id(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "notification_id": self.notification_id,
            "category": self.category.value,
            "title": self.title,
            "message": self.message,
            "priority": self.priority.value,
            "data": dict(self.data),
            "read": self.read,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class NotificationContext:
    """
    What the gate knows about the moment of sending.

    now defaults to the current UTC time; the gate converts it to the
    user's local time for quiet hours.
    """

    user: User
    event: Event | None = None
    now: datetime | None = None

    def resolved_now(self) -> datetime:
        if self.now is None:
            return datetime.now(timezone.utc)
        if self.now.tzinfo is None:
            return self.now.replace(tzinfo=timezone.utc)
        return self.now


@dataclass
class SendOptions:
    """
    Per-call gate options.

    priority overrides the notification's own priority when set.
    """

    priority: Priority | None = None
    bypass_rules: bool = False
    custom_cooldown_minutes: int | None = None


@dataclass
class GateDecision:
    """Outcome of NotificationGate.evaluate()."""

    allowed: bool
    reason: str
    stage: GateStage

    def __bool__(self) -> bool:
        return self.allowed


@dataclass
class SendResult:
    """Outcome of NotificationGate.send()."""

    sent: bool
    reason: str
    stage: GateStage
    notification: Notification | None = None
    delivered: bool = False
