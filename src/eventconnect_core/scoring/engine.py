"""
Scoring Engine.

Deterministic weighted-sum ranking of an event catalog for one user.

Score = interest*w_i + proximity*w_p + social*w_s + popularity*w_pop + context

Two profiles share the formula:
- GENERAL: unit weights, coarse distance buckets, time-of-day/weekday
  context, top 20 with up to 3 reasons
- CONSTRAINED: interest and proximity boosted, social damped, finer
  distance buckets, device-state context, 15-point admission floor,
  top 15 with up to 2 reasons
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from ..core.logging import get_logger
from ..models import Event, ScoredEvent, User
from . import signals
from .context import RecommendationContext

logger = get_logger(__name__)

MIN_SCORE = 0
MAX_SCORE = 100


class Reason(Enum):
    INTEREST = "interest"
    POPULARITY = "popularity"
    PROXIMITY = "proximity"
    SOCIAL = "social"


@dataclass(frozen=True)
class ScoringProfile:
    """Weights, buckets and output limits of one engine variant."""

    name: str
    interest_weight: float = 1.0
    proximity_weight: float = 1.0
    social_weight: float = 1.0
    popularity_weight: float = 1.0
    buckets: tuple[tuple[float, int], ...] = signals.GENERAL_BUCKETS
    far_score: int = signals.GENERAL_FAR
    admission_floor: int = 0
    top_n: int = 20
    max_reasons: int = 3
    interest_reason_above: int = signals.NEUTRAL_INTEREST
    proximity_reason_above: int = signals.NEUTRAL_PROXIMITY
    reason_order: tuple[Reason, ...] = (
        Reason.INTEREST,
        Reason.POPULARITY,
        Reason.PROXIMITY,
        Reason.SOCIAL,
    )
    device_context: bool = False


GENERAL = ScoringProfile(name="general")

CONSTRAINED = ScoringProfile(
    name="constrained",
    interest_weight=1.125,
    proximity_weight=1.2,
    social_weight=0.75,
    buckets=signals.CONSTRAINED_BUCKETS,
    far_score=signals.CONSTRAINED_FAR,
    admission_floor=15,
    top_n=15,
    max_reasons=2,
    interest_reason_above=30,
    proximity_reason_above=20,
    reason_order=(Reason.INTEREST, Reason.PROXIMITY, Reason.SOCIAL, Reason.POPULARITY),
    device_context=True,
)

PROFILES = {GENERAL.name: GENERAL, CONSTRAINED.name: CONSTRAINED}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_score(value: float) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, round_half_up(value)))


def _format_distance(distance_km: float) -> str:
    return f"{distance_km:g} km"


class ScoringEngine:
    """
    Scores and ranks events for a user.

    Stateless apart from its profile; safe to share.
    """

    def __init__(self, profile: ScoringProfile = GENERAL):
        self.profile = profile

    def score(
        self,
        user: User,
        event: Event,
        context: RecommendationContext | None = None,
    ) -> ScoredEvent:
        """Score one event; never raises on sparse input."""
        p = self.profile

        interest = signals.interest_score(user, event)
        proximity = signals.proximity_score(event.distance_km, p.buckets, p.far_score)
        social = signals.social_score(user, event)
        popularity = signals.popularity_score(event)
        if p.device_context:
            context_bonus = signals.device_context_score(event, context)
        else:
            context_bonus = signals.time_context_score(event, context)

        breakdown = {
            "interest": interest * p.interest_weight,
            "proximity": proximity * p.proximity_weight,
            "social": social * p.social_weight,
            "popularity": popularity * p.popularity_weight,
            "context": float(context_bonus),
        }
        total = clamp_score(sum(breakdown.values()))

        reasons = self._reasons(event, interest, proximity)
        return ScoredEvent(event=event, score=total, reasons=reasons, breakdown=breakdown)

    def _reasons(self, event: Event, interest: int, proximity: int) -> list[str]:
        p = self.profile
        by_kind: dict[Reason, list[str]] = {kind: [] for kind in Reason}

        if interest > p.interest_reason_above:
            by_kind[Reason.INTEREST].append(f"Matches your interest in {event.category}")
        if event.is_popular:
            by_kind[Reason.POPULARITY].append("Very popular")
        if event.is_trending:
            by_kind[Reason.POPULARITY].append("Trending now")
        if proximity > p.proximity_reason_above and event.distance_km is not None:
            by_kind[Reason.PROXIMITY].append(f"Near you ({_format_distance(event.distance_km)})")
        if event.friends_attending > 0:
            noun = "friend is" if event.friends_attending == 1 else "friends are"
            by_kind[Reason.SOCIAL].append(f"{event.friends_attending} {noun} going")

        ordered = [reason for kind in p.reason_order for reason in by_kind[kind]]
        return ordered[: p.max_reasons]

    def score_all(
        self,
        user: User,
        events: Iterable[Event],
        context: RecommendationContext | None = None,
    ) -> list[ScoredEvent]:
        return [self.score(user, event, context) for event in events]

    def rank(
        self,
        user: User,
        events: Sequence[Event],
        context: RecommendationContext | None = None,
    ) -> list[ScoredEvent]:
        """
        Rank a catalog.

        Returns:
            Events scoring above the admission floor, best first (ties keep
            catalog order), at most top_n of them
        """
        if not events:
            return []

        scored = [s for s in self.score_all(user, events, context) if s.score > self.profile.admission_floor]
        scored.sort(key=lambda s: s.score, reverse=True)
        ranked = scored[: self.profile.top_n]

        logger.debug(
            "Ranked %d/%d events for %s (%s)",
            len(ranked),
            len(events),
            user.user_id,
            self.profile.name,
        )
        return ranked
