"""
Scoring signals.

Each function computes one raw sub-score from plain inputs. None of them
raise on sparse data: missing optional fields map to neutral values.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..models import Event, User
from .context import RecommendationContext, TimeOfDay

NEUTRAL_INTEREST = 20
CATEGORY_MATCH = 40
TAG_MATCH_BASE = 30
TAG_MATCH_BONUS = 5
TAG_MATCH_CAP = 45
PARTIAL_MATCH = 25
NO_MATCH = 10

NEUTRAL_PROXIMITY = 15

# (upper bound km inclusive, score); first matching bucket wins
GENERAL_BUCKETS: tuple[tuple[float, int], ...] = ((1, 25), (5, 20), (10, 15), (20, 10))
GENERAL_FAR = 5
CONSTRAINED_BUCKETS: tuple[tuple[float, int], ...] = ((0.5, 30), (2, 25), (5, 20), (10, 15), (20, 8))
CONSTRAINED_FAR = 3

FRIEND_POINTS = 5
FRIEND_CAP = 15
HOST_FRIEND_POINTS = 2
HOST_FRIEND_CAP = 5

POPULARITY_CAP = 10


def _lowered(values: Sequence[str]) -> list[str]:
    return [v.lower() for v in values if v]


def matching_tags(interests: Sequence[str], tags: Sequence[str]) -> list[str]:
    """Tags that overlap an interest (substring either way, case-insensitive)."""
    wanted = _lowered(interests)
    return [tag for tag in _lowered(tags) if any(i in tag or tag in i for i in wanted)]


def interest_score(user: User, event: Event) -> int:
    """
    Interest affinity.

    20 for users without interests, 40 for an exact category match,
    30 + 5 per matching tag (max 45), 25 for a partial text match,
    else 10.
    """
    interests = _lowered(user.interests)
    if not interests:
        return NEUTRAL_INTEREST

    category = event.category.lower()
    if category in interests:
        return CATEGORY_MATCH

    tags = matching_tags(interests, event.tags)
    if tags:
        return min(TAG_MATCH_BASE + TAG_MATCH_BONUS * len(tags), TAG_MATCH_CAP)

    title = event.title.lower()
    description = (event.description or "").lower()
    if any(i in category or i in title or i in description for i in interests):
        return PARTIAL_MATCH
    return NO_MATCH


def proximity_score(
    distance_km: float | None,
    buckets: Sequence[tuple[float, int]] = GENERAL_BUCKETS,
    far: int = GENERAL_FAR,
) -> int:
    if distance_km is None:
        return NEUTRAL_PROXIMITY
    for bound, score in buckets:
        if distance_km <= bound:
            return score
    return far


def friends_in_host_community(user: User, event: Event) -> int:
    if not event.host_member_ids or not user.friend_ids:
        return 0
    return len(event.host_member_ids & user.friend_ids)


def social_score(user: User, event: Event) -> int:
    attending = max(event.friends_attending, 0)
    return min(attending * FRIEND_POINTS, FRIEND_CAP) + min(
        friends_in_host_community(user, event) * HOST_FRIEND_POINTS, HOST_FRIEND_CAP
    )


def popularity_score(event: Event) -> int:
    score = 0
    if event.is_popular:
        score += 5
    if event.is_trending:
        score += 5

    if event.attendees > 100:
        score += 3
    elif event.attendees > 50:
        score += 2
    elif event.attendees > 20:
        score += 1

    return min(score, POPULARITY_CAP)


def _circular_day_distance(a: int, b: int) -> int:
    d = abs(a - b) % 7
    return min(d, 7 - d)


def time_context_score(event: Event, context: RecommendationContext | None) -> int:
    """General variant: +3 for a time-of-day fit, +2 for a weekday within one day."""
    if context is None or event.starts_at is None:
        return 0

    score = 0
    if context.time_of_day.contains_hour(event.starts_at.hour):
        score += 3
    if _circular_day_distance(event.starts_at.weekday(), context.day_of_week) <= 1:
        score += 2
    return score


def device_context_score(event: Event, context: RecommendationContext | None) -> int:
    """
    Constrained variant: independent device bonuses.

    Each hint contributes only when present.
    """
    if context is None:
        return 0

    score = 0
    battery = context.battery_level
    if battery is not None:
        if battery > 50:
            score += 2
        elif battery < 20:
            score -= 3
    if context.network_type == "wifi":
        score += 3
    if context.location_accuracy is not None and context.location_accuracy < 100:
        score += 2

    if event.starts_at is not None:
        hour = event.starts_at.hour
        if context.time_of_day is TimeOfDay.EVENING and hour >= 18:
            score += 2
        if context.time_of_day is TimeOfDay.MORNING and 8 <= hour <= 12:
            score += 2
    return score
