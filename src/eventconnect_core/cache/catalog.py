"""
Catalog Cache.

Domain helpers over a CacheStore for event listings and search results.

Every cached list is tagged with "event:<id>" for each event it holds, so
a single changed event drops exactly the lists that contain it.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from ..core.logging import get_logger
from ..models import Event
from .keys import event_tag, normalize_query, search_key
from .store import CacheStore

logger = get_logger(__name__)

EVENTS = "events"
SEARCH = "search"
USERS = "users"
TRENDING = "trending"
RECOMMENDATIONS = "recommendations"

CATEGORY_TTL = 300.0
LOCAL_TTL = 180.0
LOCAL_RADIUS_KM = 25.0


def _event_tags(events: Iterable[Event], *extra: str) -> list[str]:
    return [*extra, *(event_tag(e.event_id) for e in events)]


class CatalogCache:
    """Event listing and search-result helpers on a shared CacheStore."""

    def __init__(self, store: CacheStore, local_radius_km: float = LOCAL_RADIUS_KM):
        self.store = store
        self.local_radius_km = local_radius_km

    # -------------------------------------------------------------------------
    # Event listings
    # -------------------------------------------------------------------------

    def cache_events(self, events: Sequence[Event], city: str | None = None) -> None:
        """
        Cache a catalog snapshot.

        Stores the full list, one list per category, and, when a city is
        given, the events within local_radius_km under that city.
        """
        self.store.set(EVENTS, "all", list(events), tags=_event_tags(events, "events", "all"))

        by_category: dict[str, list[Event]] = {}
        for event in events:
            by_category.setdefault(event.category, []).append(event)

        for category, category_events in by_category.items():
            self.store.set(
                EVENTS,
                f"category:{category}",
                category_events,
                ttl=CATEGORY_TTL,
                tags=_event_tags(category_events, "events", "category", category),
            )

        if city:
            local = [
                e for e in events if e.distance_km is not None and e.distance_km <= self.local_radius_km
            ]
            self.store.set(
                EVENTS,
                f"location:{city.lower()}",
                local,
                ttl=LOCAL_TTL,
                tags=_event_tags(local, "events", "location", city.lower()),
            )

        logger.debug("Cached %d events in %d categories", len(events), len(by_category))

    def all_events(self) -> list[Event] | None:
        return self.store.get(EVENTS, "all")

    def events_by_category(self, category: str) -> list[Event] | None:
        return self.store.get(EVENTS, f"category:{category}")

    def local_events(self, city: str) -> list[Event] | None:
        return self.store.get(EVENTS, f"location:{city.lower()}")

    def cache_trending(self, events: Sequence[Event]) -> None:
        self.store.set(TRENDING, "events", list(events), tags=_event_tags(events, "trending"))

    def trending_events(self) -> list[Event] | None:
        return self.store.get(TRENDING, "events")

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    def cache_search_results(
        self,
        query: str,
        filters: dict[str, Any] | None,
        results: Sequence[Event],
    ) -> None:
        self.store.set(
            SEARCH,
            search_key(query, filters),
            list(results),
            tags=_event_tags(results, "search", normalize_query(query)),
        )

    def search_results(self, query: str, filters: dict[str, Any] | None = None) -> list[Event] | None:
        return self.store.get(SEARCH, search_key(query, filters))

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    def invalidate_event(self, event_id: str) -> int:
        """
        Drop every cached list that contains the event.

        Returns:
            Number of entries removed across namespaces
        """
        tag = event_tag(event_id)
        removed = sum(
            self.store.invalidate_by_tags(namespace, [tag])
            for namespace in (EVENTS, SEARCH, TRENDING, RECOMMENDATIONS)
        )
        logger.debug("Event %s changed: %d cache entries dropped", event_id, removed)
        return removed

    def invalidate_user(self, user_id: str) -> int:
        """Drop cached profile data and rankings for a user."""
        return self.store.invalidate_by_tags(USERS, [user_id]) + self.store.invalidate_by_tags(
            RECOMMENDATIONS, [user_id]
        )
