"""
Event similarity for "more like this" lists.
"""

from __future__ import annotations

from collections.abc import Iterable

from ..models import Event

SAME_CATEGORY = 40
SHARED_TAG = 10
SAME_ORGANIZER = 20
NEARBY = 15
NEARBY_KM = 5.0
SIMILAR_PRICE = 10
PRICE_WINDOW = 10.0


def similarity(a: Event, b: Event) -> int:
    """
    Additive similarity between two events.

    Distances score only when both are known; a missing price counts as
    free.
    """
    score = 0
    if a.category and a.category == b.category:
        score += SAME_CATEGORY

    score += SHARED_TAG * len(set(a.tags) & set(b.tags))

    if a.organizer_id and a.organizer_id == b.organizer_id:
        score += SAME_ORGANIZER

    if a.distance_km is not None and b.distance_km is not None:
        if abs(a.distance_km - b.distance_km) < NEARBY_KM:
            score += NEARBY

    if abs((a.price or 0.0) - (b.price or 0.0)) < PRICE_WINDOW:
        score += SIMILAR_PRICE

    return score


def similar_events(target: Event, events: Iterable[Event], limit: int = 5) -> list[tuple[Event, int]]:
    """
    Most similar events to target, best first.

    The target itself (matched by event_id) is never included.
    """
    candidates = [(event, similarity(target, event)) for event in events if event.event_id != target.event_id]
    candidates.sort(key=lambda pair: pair[1], reverse=True)
    return candidates[: max(limit, 0)]
