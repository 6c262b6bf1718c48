"""
Notification Gate.

Decides which candidate notifications reach a user. Stages run in order
and the first failing stage refuses the send:

0. validation  - unknown categories are refused, never raised
1. preference  - per-category opt-outs (skipped for urgent)
2. temporal    - quiet hours in the user's timezone (skipped for urgent)
3. frequency   - hourly/daily limits and cooldown, from the send log
4. relevance   - interest overlap and distance, for interest-gated rules
5. fatigue     - global daily and burst limits across all categories

SendOptions.bypass_rules skips stages 1-5.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime, timedelta

from ..core.config import EventConnectSettings, get_settings
from ..core.logging import get_logger
from ..models import Event, User
from ..scoring.signals import matching_tags
from .delivery import DeliveryChannel, LoggingDelivery
from .history import SendHistory
from .quiet_hours import local_hour, resolve_timezone
from .rules import NotificationRule, load_rules
from .templates import personalize
from .types import (
    GateDecision,
    GateStage,
    Notification,
    NotificationCategory,
    NotificationContext,
    Priority,
    SendOptions,
    SendResult,
)

logger = get_logger(__name__)

HOUR = timedelta(hours=1)
DAY = timedelta(hours=24)


def _refuse(stage: GateStage, reason: str) -> GateDecision:
    return GateDecision(allowed=False, reason=reason, stage=stage)


def has_interest_match(user: User, event: Event) -> bool:
    """Interest overlap with the event category or tags (substring either way)."""
    interests = [i.lower() for i in user.interests if i]
    category = event.category.lower()
    if any(i in category for i in interests):
        return True
    return bool(matching_tags(interests, event.tags))


class NotificationGate:
    """
    Rule-driven pass/refuse policy in front of a delivery channel.

    Owns no global state: the send history and channel are injected.
    """

    def __init__(
        self,
        history: SendHistory | None = None,
        delivery: DeliveryChannel | None = None,
        rules: dict[NotificationCategory, NotificationRule] | None = None,
        settings: EventConnectSettings | None = None,
    ):
        self.settings = settings or get_settings()
        self.history = history or SendHistory(settings=self.settings)
        self.delivery = delivery or LoggingDelivery()
        self.rules = rules if rules is not None else load_rules(self.settings.rules_file)

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def evaluate(
        self,
        context: NotificationContext,
        category: NotificationCategory | str,
        options: SendOptions | None = None,
    ) -> GateDecision:
        """
        Run the gate stages against the in-memory send log.

        Args:
            context: Recipient, optional event and evaluation time
            category: Notification category (enum or value string)
            options: Priority override, bypass and custom cooldown

        Returns:
            GateDecision with the refusing stage, or PASSED/BYPASS
        """
        options = options or SendOptions()
        return self._evaluate(context, category, options, options.priority or Priority.MEDIUM)

    def _evaluate(
        self,
        context: NotificationContext,
        category: NotificationCategory | str,
        options: SendOptions,
        priority: Priority,
    ) -> GateDecision:
        resolved = NotificationCategory.parse(category)
        if resolved is None:
            logger.warning("Refusing notification with unknown category: %r", category)
            return _refuse(GateStage.VALIDATION, f"unknown category: {category}")

        rule = self.rules.get(resolved)
        if rule is None:
            logger.warning("No rule configured for category %s", resolved.value)
            return _refuse(GateStage.VALIDATION, f"no rule for category: {resolved.value}")

        if options.bypass_rules:
            return GateDecision(allowed=True, reason="rules bypassed", stage=GateStage.BYPASS)

        user = context.user
        now = context.resolved_now()
        urgent = priority is Priority.URGENT

        # 1. Preference
        if not urgent and resolved.value in user.notification_opt_outs:
            return _refuse(GateStage.PREFERENCE, f"user opted out of {resolved.value}")

        # 2. Temporal
        if not urgent and rule.quiet_hours is not None:
            tz = resolve_timezone(user.timezone, self.settings.default_timezone)
            hour = local_hour(now, tz)
            if rule.quiet_hours.contains(hour):
                return _refuse(
                    GateStage.TEMPORAL,
                    f"quiet hours {rule.quiet_hours.start:02d}-{rule.quiet_hours.end:02d} (local hour {hour})",
                )

        # 3. Frequency
        decision = self._check_frequency(user.user_id, rule, options, now)
        if decision is not None:
            return decision

        # 4. Relevance
        if rule.requires_user_interest and context.event is not None:
            decision = self._check_relevance(user, context.event, rule)
            if decision is not None:
                return decision

        # 5. Fatigue
        decision = self._check_fatigue(user.user_id, now)
        if decision is not None:
            return decision

        return GateDecision(allowed=True, reason="all checks passed", stage=GateStage.PASSED)

    def _check_frequency(
        self,
        user_id: str,
        rule: NotificationRule,
        options: SendOptions,
        now: datetime,
    ) -> GateDecision | None:
        category = rule.category

        if self.history.count_since(user_id, now - HOUR, category) >= rule.max_per_hour:
            return _refuse(GateStage.FREQUENCY, f"hourly limit reached ({rule.max_per_hour}/hour)")

        if self.history.count_since(user_id, now - DAY, category) >= rule.max_per_day:
            return _refuse(GateStage.FREQUENCY, f"daily limit reached ({rule.max_per_day}/day)")

        cooldown_minutes = (
            options.custom_cooldown_minutes
            if options.custom_cooldown_minutes is not None
            else rule.cooldown_minutes
        )
        if cooldown_minutes > 0:
            last = self.history.last_sent(user_id, category)
            if last is not None:
                elapsed = now - last
                cooldown = timedelta(minutes=cooldown_minutes)
                if elapsed < cooldown:
                    remaining = -(-int((cooldown - elapsed).total_seconds()) // 60)
                    return _refuse(GateStage.FREQUENCY, f"cooldown active ({max(remaining, 1)} min left)")
        return None

    def _check_relevance(self, user: User, event: Event, rule: NotificationRule) -> GateDecision | None:
        if not has_interest_match(user, event):
            return _refuse(GateStage.RELEVANCE, "event does not match user interests")

        if rule.max_distance_km is not None:
            if event.distance_km is None:
                return _refuse(GateStage.RELEVANCE, "event distance unknown")
            if event.distance_km > rule.max_distance_km:
                return _refuse(
                    GateStage.RELEVANCE,
                    f"event too far ({event.distance_km:g} km > {rule.max_distance_km:g} km)",
                )
        return None

    def _check_fatigue(self, user_id: str, now: datetime) -> GateDecision | None:
        s = self.settings
        if self.history.count_since(user_id, now - DAY) >= s.fatigue_daily_limit:
            return _refuse(GateStage.FATIGUE, f"too many notifications today ({s.fatigue_daily_limit}/24h)")

        window = timedelta(minutes=s.fatigue_burst_window_minutes)
        if self.history.count_since(user_id, now - window) >= s.fatigue_burst_limit:
            return _refuse(
                GateStage.FATIGUE,
                f"too many notifications in a short time ({s.fatigue_burst_limit}/{s.fatigue_burst_window_minutes}min)",
            )
        return None

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    async def send(
        self,
        context: NotificationContext,
        notification: Notification,
        options: SendOptions | None = None,
    ) -> SendResult:
        """
        Gate, personalize, record and deliver a notification.

        A delivery failure is logged and reported as delivered=False; the
        send stays recorded.
        """
        options = options or SendOptions()
        user = context.user
        await self.history.load(user.user_id)

        priority = options.priority or notification.priority
        decision = self._evaluate(context, notification.category, options, priority)
        if not decision.allowed:
            logger.debug(
                "Refused %s for %s at %s: %s",
                getattr(notification.category, "value", notification.category),
                user.user_id,
                decision.stage.value,
                decision.reason,
            )
            return SendResult(sent=False, reason=decision.reason, stage=decision.stage)

        now = context.resolved_now()
        personalized = personalize(replace(notification, created_at=now), context)
        await self.history.record(user.user_id, personalized, now)

        delivered = True
        try:
            await self.delivery.deliver(user, personalized)
        except Exception as e:
            delivered = False
            logger.warning(
                "Delivery of %s to %s failed: %s",
                personalized.notification_id,
                user.user_id,
                e,
            )

        return SendResult(
            sent=True,
            reason=decision.reason,
            stage=decision.stage,
            notification=personalized,
            delivered=delivered,
        )

    async def broadcast_trending(
        self,
        events: Iterable[Event],
        users: Iterable[User],
        now: datetime | None = None,
    ) -> list[SendResult]:
        """Offer a trending notification for every trending event to every user."""
        users = list(users)
        results = []
        for event in events:
            if not event.is_trending:
                continue
            for user in users:
                notification = Notification(
                    category=NotificationCategory.TRENDING,
                    title=f"{event.title} is trending",
                    message="This event is gaining popularity in your area",
                    data={"event_id": event.event_id},
                )
                context = NotificationContext(user=user, event=event, now=now)
                results.append(await self.send(context, notification))

        sent = sum(1 for r in results if r.sent)
        logger.info("Trending broadcast: %d/%d notifications sent", sent, len(results))
        return results
