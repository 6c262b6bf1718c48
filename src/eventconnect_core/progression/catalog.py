"""
Achievement and Level Catalog.

Static definitions: the achievements a user can unlock and the level
threshold table. Levels are a pure function of cumulative points.
"""

from __future__ import annotations

import bisect
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from ..core.errors import ConfigurationError


class AchievementCategory(Enum):
    EVENTS = "events"
    CREATION = "creation"
    SOCIAL = "social"
    ENGAGEMENT = "engagement"


class Rarity(Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


@dataclass(frozen=True)
class Achievement:
    """A named milestone unlocked when its progress reaches target."""

    achievement_id: str
    title: str
    description: str
    category: AchievementCategory
    rarity: Rarity
    points: int
    target: int = 1


@dataclass(frozen=True)
class UserLevel:
    level: int
    title: str
    points_required: int
    benefits: tuple[str, ...] = ()


_E, _CR, _S, _EN = (
    AchievementCategory.EVENTS,
    AchievementCategory.CREATION,
    AchievementCategory.SOCIAL,
    AchievementCategory.ENGAGEMENT,
)

ACHIEVEMENTS: dict[str, Achievement] = {
    a.achievement_id: a
    for a in (
        Achievement("first_event", "First Step", "Attend your first event", _E, Rarity.COMMON, 10, 1),
        Achievement("event_enthusiast", "Event Enthusiast", "Attend 5 events", _E, Rarity.COMMON, 50, 5),
        Achievement(
            "social_butterfly", "Social Butterfly", "Attend 5 events in one month", _S, Rarity.RARE, 75, 5
        ),
        Achievement("event_marathon", "Event Marathon", "Attend 25 events", _E, Rarity.EPIC, 200, 25),
        Achievement("event_creator", "Experience Creator", "Host your first event", _CR, Rarity.COMMON, 25, 1),
        Achievement(
            "community_builder",
            "Community Builder",
            "Create a community with 50 or more members",
            _CR,
            Rarity.RARE,
            100,
            50,
        ),
        Achievement("super_host", "Super Host", "Host 10 events", _CR, Rarity.EPIC, 300, 10),
        Achievement("tribe_joiner", "Community Explorer", "Join your first community", _S, Rarity.COMMON, 15, 1),
        Achievement("networking_pro", "Networking Pro", "Connect with 50 new people", _S, Rarity.RARE, 150, 50),
        Achievement("early_bird", "Early Bird", "Be the first to join 5 events", _EN, Rarity.RARE, 60, 5),
        Achievement(
            "trend_setter", "Trend Setter", "Have your events trend 3 times", _EN, Rarity.EPIC, 250, 3
        ),
        Achievement("legend", "EventConnect Legend", "Reach level 20", _EN, Rarity.LEGENDARY, 1000, 20),
    )
}


def validate_levels(levels: Sequence[UserLevel]) -> list[UserLevel]:
    """
    Check a level table.

    Raises:
        ConfigurationError: If empty, not starting at 0 points, or thresholds
            and level numbers are not strictly increasing
    """
    if not levels:
        raise ConfigurationError("Level table is empty")
    if levels[0].points_required != 0:
        raise ConfigurationError("First level must require 0 points")
    for prev, cur in zip(levels, levels[1:]):
        if cur.points_required <= prev.points_required or cur.level <= prev.level:
            raise ConfigurationError(f"Level table not strictly increasing at level {cur.level}")
    return list(levels)


LEVELS: list[UserLevel] = validate_levels(
    [
        UserLevel(1, "Explorer", 0, ("Basic access",)),
        UserLevel(2, "Participant", 50, ("Create events", "Join communities")),
        UserLevel(3, "Enthusiast", 150, ("Featured events", "Exclusive invitations")),
        UserLevel(5, "Influencer", 400, ("Verification", "Advanced analytics")),
        UserLevel(10, "Ambassador", 1000, ("Beta program", "Priority support")),
        UserLevel(20, "Legend", 2500, ("VIP access", "Exclusive events")),
    ]
)

_THRESHOLDS = [lvl.points_required for lvl in LEVELS]


def level_for_points(points: int) -> UserLevel:
    """Highest level whose threshold is at most points (monotone in points)."""
    index = bisect.bisect_right(_THRESHOLDS, max(points, 0)) - 1
    return LEVELS[index]


def next_level(level: UserLevel) -> UserLevel | None:
    index = LEVELS.index(level)
    return LEVELS[index + 1] if index + 1 < len(LEVELS) else None


def points_to_next_level(points: int) -> int:
    """Points still needed for the next level; 0 at the top level."""
    upcoming = next_level(level_for_points(points))
    return upcoming.points_required - points if upcoming else 0


def achievements_by_category(category: AchievementCategory) -> list[Achievement]:
    return [a for a in ACHIEVEMENTS.values() if a.category is category]


def achievements_by_rarity(rarity: Rarity) -> list[Achievement]:
    return [a for a in ACHIEVEMENTS.values() if a.rarity is rarity]
