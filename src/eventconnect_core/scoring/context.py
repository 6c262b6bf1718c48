"""
Recommendation Context.

Snapshot of when (and, on constrained devices, how) recommendations are
requested. Part of the memoization key, so it must stay small and
JSON-compatible.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from ..models import DeviceHints

BATTERY_SWING_THRESHOLD = 20


class TimeOfDay(Enum):
    MORNING = "morning"  # 06-12
    AFTERNOON = "afternoon"  # 12-18
    EVENING = "evening"  # 18-22
    NIGHT = "night"  # 22-06

    @classmethod
    def for_hour(cls, hour: int) -> TimeOfDay:
        if 6 <= hour < 12:
            return cls.MORNING
        if 12 <= hour < 18:
            return cls.AFTERNOON
        if 18 <= hour < 22:
            return cls.EVENING
        return cls.NIGHT

    def contains_hour(self, hour: int) -> bool:
        """Whether an event starting at this hour suits the time of day."""
        if self is TimeOfDay.MORNING:
            return 8 <= hour <= 12
        if self is TimeOfDay.AFTERNOON:
            return 12 <= hour <= 18
        if self is TimeOfDay.EVENING:
            return 18 <= hour <= 23
        return hour >= 20 or hour <= 2


@dataclass(frozen=True)
class RecommendationContext:
    """
    Time and device context of a recommendation request.

    day_of_week follows datetime.weekday(): Monday is 0.
    """

    time_of_day: TimeOfDay
    day_of_week: int
    battery_level: int | None = None
    network_type: str | None = None
    location_accuracy: float | None = None

    @classmethod
    def current(cls, now: datetime | None = None) -> RecommendationContext:
        now = now or datetime.now(timezone.utc)
        return cls(time_of_day=TimeOfDay.for_hour(now.hour), day_of_week=now.weekday())

    @classmethod
    def for_device(cls, hints: DeviceHints | None, now: datetime | None = None) -> RecommendationContext:
        """Current context merged with device hints (which may be absent)."""
        base = cls.current(now)
        if hints is None:
            return base
        return replace(
            base,
            battery_level=hints.battery_level,
            network_type=hints.network_type,
            location_accuracy=hints.location_accuracy,
        )

    def differs_significantly(self, other: RecommendationContext) -> bool:
        """
        Whether a ranking computed under self is stale under other.

        True on a time-of-day change, a network class change, or a battery
        swing above 20 points (only when both readings are known).
        """
        if self.time_of_day is not other.time_of_day:
            return True
        if self.network_type != other.network_type:
            return True
        if self.battery_level is not None and other.battery_level is not None:
            if abs(self.battery_level - other.battery_level) > BATTERY_SWING_THRESHOLD:
                return True
        return False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RecommendationContext:
        return cls(
            time_of_day=TimeOfDay(data["time_of_day"]),
            day_of_week=int(data["day_of_week"]),
            battery_level=data.get("battery_level"),
            network_type=data.get("network_type"),
            location_accuracy=data.get("location_accuracy"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "time_of_day": self.time_of_day.value,
            "day_of_week": self.day_of_week,
            "battery_level": self.battery_level,
            "network_type": self.network_type,
            "location_accuracy": self.location_accuracy,
        }
