"""
Personalization Service.

Owns one instance of every component and the durable store, with an
explicit lifecycle:

    async with PersonalizationService(store=MemoryKeyValueStore()) as svc:
        ranking = await svc.recommend(user, events)
        result, sends = await svc.record_action(user, "attended_event")

Nothing here is process-global; tests and tenants get isolated instances.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from .cache.catalog import CatalogCache
from .cache.store import CacheStore
from .cache.strategy import CacheStrategy
from .core.config import EventConnectSettings, get_settings
from .core.logging import get_logger
from .models import Event, ScoredEvent, User
from .notifications.delivery import DeliveryChannel
from .notifications.gate import NotificationGate
from .notifications.history import SendHistory
from .notifications.types import Notification, NotificationContext, SendOptions, SendResult
from .progression.actions import Action
from .progression.engine import ActionResult, ProgressionEngine
from .progression.progress import ProgressStore
from .scoring.context import RecommendationContext
from .scoring.engine import GENERAL, ScoringEngine, ScoringProfile
from .scoring.recommender import Recommender
from .scoring.similarity import similar_events
from .store.protocol import KeyValueStore
from .store.sqlite import SQLiteKeyValueStore

logger = get_logger(__name__)


class PersonalizationService:
    """Facade wiring the cache, scoring, notification and progression components."""

    def __init__(
        self,
        settings: EventConnectSettings | None = None,
        store: KeyValueStore | None = None,
        delivery: DeliveryChannel | None = None,
        profile: ScoringProfile = GENERAL,
        cache_strategies: dict[str, CacheStrategy] | None = None,
    ):
        self.settings = settings or get_settings()
        self.store = store if store is not None else SQLiteKeyValueStore(self.settings.store_path)

        self.cache = CacheStore(cache_strategies, settings=self.settings)
        self.catalog = CatalogCache(self.cache)
        self.recommender = Recommender(ScoringEngine(profile), self.cache, self.store, self.settings)
        self.history = SendHistory(self.store, self.settings)
        self.gate = NotificationGate(self.history, delivery, settings=self.settings)
        self.progression = ProgressionEngine(ProgressStore(self.store))

        self._started = False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Open the durable store and start cache maintenance."""
        if self._started:
            return
        await self.store.initialize()
        await self.cache.start()
        self._started = True
        logger.info("Personalization service started")

    async def close(self) -> None:
        """Stop cache maintenance and close the durable store."""
        if not self._started:
            return
        await self.cache.stop()
        await self.store.close()
        self._started = False
        logger.info("Personalization service stopped")

    async def __aenter__(self) -> PersonalizationService:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def is_started(self) -> bool:
        return self._started

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def recommend(
        self,
        user: User,
        events: Sequence[Event],
        context: RecommendationContext | None = None,
        filters: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> list[ScoredEvent]:
        return await self.recommender.recommend(user, events, context, filters, now)

    def similar_events(self, target: Event, events: Sequence[Event], limit: int = 5) -> list[tuple[Event, int]]:
        return similar_events(target, events, limit)

    async def notify(
        self,
        context: NotificationContext,
        notification: Notification,
        options: SendOptions | None = None,
    ) -> SendResult:
        return await self.gate.send(context, notification, options)

    async def record_action(
        self,
        user: User,
        action: Action | str,
        payload: Mapping[str, Any] | None = None,
        now: datetime | None = None,
        notify: bool = True,
    ) -> tuple[ActionResult, list[SendResult]]:
        """
        Apply an action and offer the resulting notifications to the gate.

        Returns:
            (action result, send results of achievement/level-up notifications)
        """
        result = await self.progression.apply_action(user, action, payload, now)
        sends: list[SendResult] = []
        if notify and result.rejected is None:
            context = NotificationContext(user=result.user, now=now)
            for notification in self.progression.notifications_for(result):
                sends.append(await self.gate.send(context, notification))
        return result, sends

    async def user_changed(self, user_id: str) -> int:
        """Drop cached data derived from a user's profile."""
        return self.catalog.invalidate_user(user_id) + await self.recommender.invalidate_user(user_id)

    async def event_changed(self, event_id: str, now: datetime | None = None) -> int:
        """Drop cached listings and rankings containing an event, durable snapshots included."""
        return self.catalog.invalidate_event(event_id) + await self.recommender.invalidate_event(event_id, now)
