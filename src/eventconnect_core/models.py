"""
Domain Models.

Plain data structures passed into the personalization core. Events are
immutable from the core's point of view; users are updated by returning
modified copies.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

_DISTANCE_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*(km)?\s*$", re.IGNORECASE)


def parse_distance(value: Any) -> float | None:
    """
    Parse a distance in kilometres.

    Accepts numbers and legacy strings such as "2.5km" or "2.5 km".

    Returns:
        Distance in km, or None when missing or unparseable
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _DISTANCE_RE.match(value)
        if match:
            return float(match.group(1))
    return None


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO-8601 string (or pass through a datetime); naive values are UTC."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


# =============================================================================
# User
# =============================================================================


@dataclass(frozen=True)
class GeoPoint:
    """A geographic point in decimal degrees."""

    latitude: float
    longitude: float


@dataclass(frozen=True)
class DeviceHints:
    """
    Device state reported by resource-constrained clients.

    Every field is optional; missing hints simply earn no bonus.
    """

    battery_level: int | None = None  # 0-100
    network_type: str | None = None  # "wifi", "cellular", "none"
    location_accuracy: float | None = None  # metres

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> DeviceHints | None:
        if not data:
            return None
        return cls(
            battery_level=data.get("battery_level"),
            network_type=data.get("network_type"),
            location_accuracy=data.get("location_accuracy"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "battery_level": self.battery_level,
            "network_type": self.network_type,
            "location_accuracy": self.location_accuracy,
        }


@dataclass(frozen=True)
class UnlockedAchievement:
    """An achievement the user has unlocked, with the unlock time."""

    achievement_id: str
    unlocked_at: datetime


@dataclass
class User:
    """
    A platform member as seen by the personalization core.

    The Progression Engine owns total_points and achievements; interests,
    location and preferences are maintained elsewhere.
    """

    user_id: str
    first_name: str = ""
    interests: list[str] = field(default_factory=list)
    location: GeoPoint | None = None
    friend_ids: set[str] = field(default_factory=set)
    total_points: int = 0
    achievements: list[UnlockedAchievement] = field(default_factory=list)
    notification_opt_outs: set[str] = field(default_factory=set)
    device: DeviceHints | None = None
    timezone: str | None = None

    @property
    def unlocked_ids(self) -> set[str]:
        """IDs of every unlocked achievement."""
        return {a.achievement_id for a in self.achievements}

    @property
    def display_name(self) -> str:
        return self.first_name or "there"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> User:
        """Create from a JSON-compatible dict."""
        location = data.get("location")
        return cls(
            user_id=str(data["user_id"]),
            first_name=data.get("first_name", ""),
            interests=list(data.get("interests") or []),
            location=GeoPoint(location["latitude"], location["longitude"]) if location else None,
            friend_ids=set(data.get("friend_ids") or []),
            total_points=int(data.get("total_points") or 0),
            achievements=[
                UnlockedAchievement(
                    achievement_id=a["achievement_id"],
                    unlocked_at=parse_datetime(a.get("unlocked_at")) or datetime.now(timezone.utc),
                )
                for a in data.get("achievements") or []
            ],
            notification_opt_outs=set(data.get("notification_opt_outs") or []),
            device=DeviceHints.from_dict(data.get("device")),
            timezone=data.get("timezone"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dict."""
        return {
            "user_id": self.user_id,
            "first_name": self.first_name,
            "interests": list(self.interests),
            "location": (
                {"latitude": self.location.latitude, "longitude": self.location.longitude}
                if self.location
                else None
            ),
            "friend_ids": sorted(self.friend_ids),
            "total_points": self.total_points,
            "achievements": [
                {"achievement_id": a.achievement_id, "unlocked_at": _iso(a.unlocked_at)}
                for a in self.achievements
            ],
            "notification_opt_outs": sorted(self.notification_opt_outs),
            "device": self.device.to_dict() if self.device else None,
            "timezone": self.timezone,
        }


# =============================================================================
# Event
# =============================================================================


@dataclass(frozen=True)
class Event:
    """
    A catalog event, supplied fresh on every call.

    distance_km is precomputed by the caller relative to the user.
    """

    event_id: str
    title: str
    category: str
    tags: tuple[str, ...] = ()
    description: str | None = None
    distance_km: float | None = None
    attendees: int = 0
    friends_attending: int = 0
    host_member_ids: frozenset[str] = frozenset()
    is_popular: bool = False
    is_trending: bool = False
    price: float | None = None
    starts_at: datetime | None = None
    organizer_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Event:
        """Create from a JSON-compatible dict; unknown or malformed fields degrade to defaults."""
        price = data.get("price")
        return cls(
            event_id=str(data["event_id"]),
            title=data.get("title") or "",
            category=data.get("category") or "",
            tags=tuple(data.get("tags") or ()),
            description=data.get("description"),
            distance_km=parse_distance(data.get("distance_km", data.get("distance"))),
            attendees=int(data.get("attendees") or 0),
            friends_attending=int(data.get("friends_attending") or 0),
            host_member_ids=frozenset(data.get("host_member_ids") or ()),
            is_popular=bool(data.get("is_popular", False)),
            is_trending=bool(data.get("is_trending", False)),
            price=float(price) if isinstance(price, (int, float)) else None,
            starts_at=parse_datetime(data.get("starts_at")),
            organizer_id=data.get("organizer_id"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dict."""
        return {
            "event_id": self.event_id,
            "title": self.title,
            "category": self.category,
            "tags": list(self.tags),
            "description": self.description,
            "distance_km": self.distance_km,
            "attendees": self.attendees,
            "friends_attending": self.friends_attending,
            "host_member_ids": sorted(self.host_member_ids),
            "is_popular": self.is_popular,
            "is_trending": self.is_trending,
            "price": self.price,
            "starts_at": _iso(self.starts_at),
            "organizer_id": self.organizer_id,
        }


@dataclass
class ScoredEvent:
    """An event decorated with its 0-100 score and justification strings."""

    event: Event
    score: int
    reasons: list[str] = field(default_factory=list)
    breakdown: dict[str, float] = field(default_factory=dict)

    @property
    def event_id(self) -> str:
        return self.event.event_id

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScoredEvent:
        return cls(
            event=Event.from_dict(data["event"]),
            score=int(data["score"]),
            reasons=list(data.get("reasons") or []),
            breakdown=dict(data.get("breakdown") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": self.event.to_dict(),
            "score": self.score,
            "reasons": list(self.reasons),
            "breakdown": dict(self.breakdown),
        }

    def __repr__(self) -> str:
        return f"ScoredEvent({self.event.event_id}={self.score}, {self.reasons!r})"
