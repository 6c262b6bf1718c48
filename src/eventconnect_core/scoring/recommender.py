"""
Recommender.

Memoizes rankings from a ScoringEngine in two layers:
- the "recommendations" namespace of a CacheStore, keyed by
  user_id:filters_hash:context_hash
- optionally, the last ranking per user in a durable KeyValueStore, kept
  until it expires or the context changes significantly; a later change
  marker on one of its events discards it as well

Store failures never block a ranking: they are logged and treated as a
miss.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

from ..cache.keys import event_tag, hash_object, recommendation_key
from ..cache.store import CacheStore
from ..core.config import EventConnectSettings, get_settings
from ..core.errors import StoreError
from ..core.logging import get_logger
from ..models import Event, ScoredEvent, User, parse_datetime
from ..store.protocol import KeyValueStore, make_key, read_json, write_json
from .context import RecommendationContext
from .engine import ScoringEngine

logger = get_logger(__name__)

NAMESPACE = "recommendations"
CHANGES_NAMESPACE = "event-changes"


def apply_filters(events: Sequence[Event], filters: dict[str, Any] | None) -> list[Event]:
    """
    Narrow a catalog before scoring.

    Supported filters:
        category: str or list of categories
        max_distance_km: drop events known to be farther
        max_price: drop events known to cost more
        trending_only: keep trending events only
    """
    if not filters:
        return list(events)

    categories = filters.get("category")
    if isinstance(categories, str):
        categories = [categories]
    wanted = {c.lower() for c in categories} if categories else None
    max_distance = filters.get("max_distance_km")
    max_price = filters.get("max_price")
    trending_only = bool(filters.get("trending_only"))

    result = []
    for event in events:
        if wanted is not None and event.category.lower() not in wanted:
            continue
        if max_distance is not None and event.distance_km is not None and event.distance_km > max_distance:
            continue
        if max_price is not None and event.price is not None and event.price > max_price:
            continue
        if trending_only and not event.is_trending:
            continue
        result.append(event)
    return result


class Recommender:
    """Cached front end to a ScoringEngine."""

    def __init__(
        self,
        engine: ScoringEngine,
        cache: CacheStore,
        store: KeyValueStore | None = None,
        settings: EventConnectSettings | None = None,
    ):
        self.engine = engine
        self.cache = cache
        self.store = store
        self.settings = settings or get_settings()

    def context_for(self, user: User, now: datetime | None = None) -> RecommendationContext:
        if self.engine.profile.device_context:
            return RecommendationContext.for_device(user.device, now)
        return RecommendationContext.current(now)

    async def recommend(
        self,
        user: User,
        events: Sequence[Event],
        context: RecommendationContext | None = None,
        filters: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> list[ScoredEvent]:
        """
        Ranked recommendations for a user.

        Args:
            user: User to rank for
            events: Full catalog (filters are applied here)
            context: Request context (derived from now and device hints if omitted)
            filters: Optional catalog filters, part of the cache key
            now: Wall-clock time (defaults to now, UTC)

        Returns:
            A new list each call; from cache if present, else freshly computed
        """
        now = now or datetime.now(timezone.utc)
        context = context or self.context_for(user, now)
        key = recommendation_key(user.user_id, filters, context.to_dict())

        cached = self.cache.get(NAMESPACE, key)
        if cached is not None:
            return list(cached)

        if self.store is not None:
            snapshot = await self._load_snapshot(self.store, user.user_id, filters, context, now)
            if snapshot is not None:
                self._memoize(user.user_id, key, snapshot)
                return list(snapshot)

        ranking = self.engine.rank(user, apply_filters(events, filters), context)
        self._memoize(user.user_id, key, ranking)
        if self.store is not None:
            await self._save_snapshot(self.store, user.user_id, filters, context, ranking, now)
        return list(ranking)

    def _memoize(self, user_id: str, key: str, ranking: list[ScoredEvent]) -> None:
        tags = [NAMESPACE, user_id, *(event_tag(s.event_id) for s in ranking)]
        self.cache.set(NAMESPACE, key, ranking, tags=tags)

    # -------------------------------------------------------------------------
    # Durable snapshot
    # -------------------------------------------------------------------------

    async def _load_snapshot(
        self,
        store: KeyValueStore,
        user_id: str,
        filters: dict[str, Any] | None,
        context: RecommendationContext,
        now: datetime,
    ) -> list[ScoredEvent] | None:
        key = make_key(NAMESPACE, user_id)
        try:
            data = await read_json(store, key)
        except StoreError as e:
            logger.warning("Could not read recommendation snapshot for %s: %s", user_id, e)
            return None

        if not data:
            return None

        try:
            expires_at = parse_datetime(data.get("expires_at"))
            if expires_at is None or now > expires_at:
                await self._drop_snapshot(store, user_id)
                return None
            if data.get("filters") != hash_object(filters):
                return None
            if RecommendationContext.from_dict(data["context"]).differs_significantly(context):
                logger.debug("Context changed for %s, ignoring snapshot", user_id)
                return None
            ranking = [ScoredEvent.from_dict(item) for item in data.get("ranking", [])]
            created_at = parse_datetime(data.get("created_at"))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Discarding malformed recommendation snapshot for %s: %s", user_id, e)
            return None

        if await self._changed_since(store, [s.event_id for s in ranking], created_at, now):
            logger.debug("Snapshot for %s holds a changed event, dropping it", user_id)
            await self._drop_snapshot(store, user_id)
            return None
        return ranking

    async def _save_snapshot(
        self,
        store: KeyValueStore,
        user_id: str,
        filters: dict[str, Any] | None,
        context: RecommendationContext,
        ranking: list[ScoredEvent],
        now: datetime,
    ) -> None:
        expires_at = now + timedelta(seconds=self.settings.recommendation_ttl_seconds)
        payload = {
            "user_id": user_id,
            "filters": hash_object(filters),
            "context": context.to_dict(),
            "ranking": [s.to_dict() for s in ranking],
            "created_at": now.isoformat(),
            "expires_at": expires_at.isoformat(),
        }
        try:
            await write_json(store, make_key(NAMESPACE, user_id), payload)
        except StoreError as e:
            logger.warning("Could not persist recommendations for %s: %s", user_id, e)

    async def _drop_snapshot(self, store: KeyValueStore, user_id: str) -> None:
        try:
            await store.remove(make_key(NAMESPACE, user_id))
        except StoreError as e:
            logger.warning("Could not remove recommendation snapshot for %s: %s", user_id, e)

    async def _changed_since(
        self,
        store: KeyValueStore,
        event_ids: list[str],
        created_at: datetime | None,
        now: datetime,
    ) -> bool:
        """
        Whether any event was marked changed at or after created_at.

        Markers older than the snapshot TTL can no longer affect a live
        snapshot and are removed on sight. An unreadable marker counts as
        a change.
        """
        if not event_ids:
            return False
        if created_at is None:
            return True

        horizon = now - timedelta(seconds=self.settings.recommendation_ttl_seconds)
        for event_id in event_ids:
            key = make_key(CHANGES_NAMESPACE, event_id)
            try:
                data = await read_json(store, key)
            except StoreError as e:
                logger.warning("Could not read change marker for event %s: %s", event_id, e)
                return True
            if not isinstance(data, dict):
                continue
            changed_at = parse_datetime(data.get("changed_at"))
            if changed_at is None:
                continue
            if changed_at >= created_at:
                return True
            if changed_at < horizon:
                try:
                    await store.remove(key)
                except StoreError as e:
                    logger.warning("Could not remove change marker for event %s: %s", event_id, e)
        return False

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    async def invalidate_user(self, user_id: str) -> int:
        """Drop every cached ranking of a user, including the durable snapshot."""
        removed = self.cache.invalidate_by_tags(NAMESPACE, [user_id])
        if self.store is not None:
            await self._drop_snapshot(self.store, user_id)
        return removed

    async def invalidate_event(self, event_id: str, now: datetime | None = None) -> int:
        """
        Drop every cached ranking that contains the event.

        Durable snapshots are per user, so the change is recorded as a
        marker instead; any snapshot created before it holding the event
        is discarded on its next load.

        Returns:
            Number of in-memory rankings removed
        """
        removed = self.cache.invalidate_by_tags(NAMESPACE, [event_tag(event_id)])
        if self.store is not None:
            now = now or datetime.now(timezone.utc)
            try:
                await write_json(self.store, make_key(CHANGES_NAMESPACE, event_id), {"changed_at": now.isoformat()})
            except StoreError as e:
                logger.warning("Could not record change of event %s: %s", event_id, e)
        return removed
