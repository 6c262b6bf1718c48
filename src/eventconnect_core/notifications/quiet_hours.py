"""
Quiet Hours.

Whole-hour quiet windows evaluated in the user's local timezone using
zoneinfo for DST handling.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class QuietHours:
    """
    Quiet window [start, end) in local hours.

    start > end spans midnight (22-07 is quiet at 23 and 02).
    start == end means no quiet hours.
    """

    start: int
    end: int

    def validate(self) -> list[str]:
        errors = []
        for name, value in (("start", self.start), ("end", self.end)):
            if not 0 <= value <= 24:
                errors.append(f"quiet_hours.{name} must be between 0 and 24, got {value}")
        return errors

    @property
    def is_active(self) -> bool:
        return self.start % 24 != self.end % 24

    def contains(self, hour: int) -> bool:
        """Check if a local hour (0-23) falls inside the window."""
        if not self.is_active:
            return False
        start, end = self.start % 24, self.end % 24
        if start < end:
            return start <= hour < end
        return hour >= start or hour < end


def resolve_timezone(name: str | None, default: str = "UTC") -> ZoneInfo:
    """ZoneInfo for name, falling back to default (and then UTC) when unknown."""
    for candidate in (name, default):
        if not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone '%s', falling back", candidate)
    return ZoneInfo("UTC")


def local_hour(now: datetime, tz: ZoneInfo) -> int:
    """Hour of an aware datetime in tz."""
    return now.astimezone(tz).hour
