"""
Tests for the notification gate.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

import pytest

from eventconnect_core.core.config import EventConnectSettings
from eventconnect_core.notifications.delivery import DeliveryError, LoggingDelivery
from eventconnect_core.notifications.gate import NotificationGate, has_interest_match
from eventconnect_core.notifications.history import SendHistory
from eventconnect_core.notifications.quiet_hours import QuietHours
from eventconnect_core.notifications.rules import DEFAULT_RULES, NotificationRule
from eventconnect_core.notifications.types import (
    GateStage,
    Notification,
    NotificationCategory,
    NotificationContext,
    Priority,
    SendOptions,
)

C = NotificationCategory


def make_gate(settings, rules=None, store=None, delivery=None) -> NotificationGate:
    return NotificationGate(SendHistory(store, settings), delivery or LoggingDelivery(), rules, settings)


def note(category=C.ACHIEVEMENT, priority=Priority.MEDIUM) -> Notification:
    return Notification(category=category, title="title", message="message", priority=priority)


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, 14, hour, minute, tzinfo=timezone.utc)


class FlakyDelivery:
    def __init__(self, error: Exception):
        self.error = error

    async def deliver(self, user, notification):
        raise self.error


class TestValidation:
    def test_unknown_category_refused(self, settings, user_factory, now, caplog):
        gate = make_gate(settings)

        with caplog.at_level(logging.WARNING, logger="eventconnect_core"):
            decision = gate.evaluate(NotificationContext(user_factory(), now=now), "carrier_pigeon")

        assert not decision
        assert decision.stage is GateStage.VALIDATION
        assert "unknown category" in caplog.text

    def test_category_string_accepted(self, settings, user_factory, now):
        gate = make_gate(settings)

        assert gate.evaluate(NotificationContext(user_factory(), now=now), "achievement").allowed


class TestPreference:
    def test_opt_out(self, settings, user_factory, now):
        gate = make_gate(settings)
        user = user_factory(opt_outs={"achievement"})

        decision = gate.evaluate(NotificationContext(user, now=now), C.ACHIEVEMENT)

        assert decision.stage is GateStage.PREFERENCE

    def test_urgent_ignores_opt_out(self, settings, user_factory, now):
        gate = make_gate(settings)
        user = user_factory(opt_outs={"achievement"})

        decision = gate.evaluate(NotificationContext(user, now=now), C.ACHIEVEMENT, SendOptions(Priority.URGENT))

        assert decision.allowed


class TestTemporal:
    @pytest.fixture
    def gate(self, settings):
        rules = dict(DEFAULT_RULES)
        rules[C.ACHIEVEMENT] = NotificationRule(C.ACHIEVEMENT, 10, 10, 0, QuietHours(22, 7))
        return make_gate(settings, rules)

    @pytest.mark.parametrize("hour,allowed", [(23, False), (2, False), (10, True)])
    def test_wraparound_window(self, gate, user_factory, hour, allowed):
        decision = gate.evaluate(NotificationContext(user_factory(), now=at(hour)), C.ACHIEVEMENT)

        assert decision.allowed is allowed
        if not allowed:
            assert decision.stage is GateStage.TEMPORAL

    def test_user_timezone(self, gate, user_factory):
        # 10:00 UTC is 23:00 in Auckland (NZDT, UTC+13)
        user = user_factory(timezone_name="Pacific/Auckland")

        decision = gate.evaluate(NotificationContext(user, now=at(10)), C.ACHIEVEMENT)

        assert decision.stage is GateStage.TEMPORAL
        assert "local hour 23" in decision.reason

    def test_urgent_ignores_quiet_hours(self, gate, user_factory):
        decision = gate.evaluate(
            NotificationContext(user_factory(), now=at(23)), C.ACHIEVEMENT, SendOptions(Priority.URGENT)
        )

        assert decision.allowed


class TestFrequency:
    @pytest.fixture
    def gate(self, settings):
        rules = dict(DEFAULT_RULES)
        rules[C.ACHIEVEMENT] = NotificationRule(C.ACHIEVEMENT, 1, 5, 0, None)
        rules[C.FRIEND_JOINED] = NotificationRule(C.FRIEND_JOINED, 5, 5, 30, None)
        return make_gate(settings, rules)

    @pytest.mark.asyncio
    async def test_hourly_limit_rolls_over(self, gate, user_factory):
        user = user_factory()

        first = await gate.send(NotificationContext(user, now=at(12)), note())
        second = await gate.send(NotificationContext(user, now=at(12, 30)), note())
        third = await gate.send(NotificationContext(user, now=at(13, 1)), note())

        assert first.sent
        assert not second.sent
        assert second.stage is GateStage.FREQUENCY
        assert "hourly limit" in second.reason
        assert third.sent

    @pytest.mark.asyncio
    async def test_daily_limit(self, settings, user_factory):
        rules = dict(DEFAULT_RULES)
        rules[C.ACHIEVEMENT] = NotificationRule(C.ACHIEVEMENT, 10, 2, 0, None)
        gate = make_gate(settings, rules)
        user = user_factory()

        results = [await gate.send(NotificationContext(user, now=at(h)), note()) for h in (8, 10, 12)]

        assert [r.sent for r in results] == [True, True, False]
        assert "daily limit" in results[2].reason

    @pytest.mark.asyncio
    async def test_cooldown(self, gate, user_factory):
        user = user_factory()
        await gate.send(NotificationContext(user, now=at(12)), note(C.FRIEND_JOINED))

        decision = gate.evaluate(NotificationContext(user, now=at(12, 10)), C.FRIEND_JOINED)
        later = gate.evaluate(NotificationContext(user, now=at(12, 31)), C.FRIEND_JOINED)

        assert decision.stage is GateStage.FREQUENCY
        assert decision.reason == "cooldown active (20 min left)"
        assert later.allowed

    @pytest.mark.asyncio
    async def test_custom_cooldown(self, gate, user_factory):
        user = user_factory()
        await gate.send(NotificationContext(user, now=at(12)), note(C.FRIEND_JOINED))

        decision = gate.evaluate(
            NotificationContext(user, now=at(12, 10)), C.FRIEND_JOINED, SendOptions(custom_cooldown_minutes=5)
        )

        assert decision.allowed

    @pytest.mark.asyncio
    async def test_limits_are_per_category(self, gate, user_factory):
        user = user_factory()
        await gate.send(NotificationContext(user, now=at(12)), note())

        assert gate.evaluate(NotificationContext(user, now=at(12, 5)), C.FRIEND_JOINED).allowed


class TestRelevance:
    def test_interest_match(self, user_factory, event_factory):
        assert has_interest_match(user_factory(interests=["music"]), event_factory(category="Live Music"))
        assert has_interest_match(user_factory(interests=["jazz"]), event_factory(category="x", tags=("jazz",)))
        assert not has_interest_match(user_factory(interests=["chess"]), event_factory(category="music"))

    @pytest.mark.parametrize(
        "category,distance,stage",
        [
            ("music", 3.0, GateStage.PASSED),
            ("sports", 3.0, GateStage.RELEVANCE),
            ("music", 30.0, GateStage.RELEVANCE),
            ("music", None, GateStage.RELEVANCE),
        ],
    )
    def test_trending(self, settings, user_factory, event_factory, category, distance, stage):
        gate = make_gate(settings)
        event = event_factory(category=category, distance_km=distance)

        decision = gate.evaluate(NotificationContext(user_factory(), event=event, now=at(12)), C.TRENDING)

        assert decision.stage is stage


class TestFatigue:
    @pytest.mark.asyncio
    async def test_burst_limit(self, settings, user_factory):
        gate = make_gate(settings)
        user = user_factory()
        for minute in (0, 2, 4):
            assert (await gate.send(NotificationContext(user, now=at(12, minute)), note())).sent

        decision = gate.evaluate(NotificationContext(user, now=at(12, 6)), C.LEVEL_UP)

        assert decision.stage is GateStage.FATIGUE
        assert "short time" in decision.reason

    @pytest.mark.asyncio
    async def test_daily_fatigue(self, tmp_path, user_factory):
        settings = EventConnectSettings(instance_root=tmp_path, fatigue_daily_limit=4, fatigue_burst_limit=100)
        rules = {c: NotificationRule(c, 100, 100, 0, None) for c in C}
        gate = make_gate(settings, rules)
        user = user_factory()
        for hour in range(4):
            assert (await gate.send(NotificationContext(user, now=at(8 + hour)), note())).sent

        decision = gate.evaluate(NotificationContext(user, now=at(13)), C.EVENT_UPDATE)

        assert decision.stage is GateStage.FATIGUE
        assert "today" in decision.reason


class TestBypass:
    @pytest.mark.asyncio
    async def test_bypass_skips_all_stages(self, settings, user_factory):
        gate = make_gate(settings)
        user = user_factory(opt_outs={"achievement"})

        result = await gate.send(
            NotificationContext(user, now=at(12)), note(), SendOptions(bypass_rules=True)
        )

        assert result.sent
        assert result.stage is GateStage.BYPASS

    def test_bypass_does_not_skip_validation(self, settings, user_factory, now):
        gate = make_gate(settings)

        decision = gate.evaluate(NotificationContext(user_factory(), now=now), "nope", SendOptions(bypass_rules=True))

        assert decision.stage is GateStage.VALIDATION


class TestSend:
    @pytest.mark.asyncio
    async def test_accepted_send_is_personalized_recorded_delivered(self, settings, user_factory, now):
        delivery = LoggingDelivery()
        gate = make_gate(settings, delivery=delivery)
        user = user_factory(first_name="Ana")
        candidate = Notification(C.ACHIEVEMENT, "x", "y", data={"achievement_title": "First Steps", "points": 10})

        result = await gate.send(NotificationContext(user, now=now), candidate)

        assert result.sent and result.delivered
        assert result.notification.title == "New achievement unlocked!"
        assert result.notification.created_at == now
        assert delivery.delivered == [("user-1", result.notification)]
        assert gate.history.count_since("user-1", now - timedelta(minutes=1)) == 1

    @pytest.mark.asyncio
    async def test_refused_send_not_recorded(self, settings, user_factory, now):
        delivery = LoggingDelivery()
        gate = make_gate(settings, delivery=delivery)
        user = user_factory(opt_outs={"achievement"})

        result = await gate.send(NotificationContext(user, now=now), note())

        assert not result.sent
        assert result.notification is None
        assert delivery.delivered == []
        assert gate.history.entries("user-1") == []

    @pytest.mark.asyncio
    async def test_notification_priority_used(self, settings, user_factory, now):
        gate = make_gate(settings)
        user = user_factory(opt_outs={"achievement"})

        result = await gate.send(NotificationContext(user, now=now), note(priority=Priority.URGENT))

        assert result.sent

    @pytest.mark.asyncio
    async def test_delivery_failure_reported(self, settings, user_factory, now, caplog):
        gate = make_gate(settings, delivery=FlakyDelivery(DeliveryError("push service down")))

        with caplog.at_level(logging.WARNING, logger="eventconnect_core"):
            result = await gate.send(NotificationContext(user_factory(), now=now), note())

        assert result.sent is True
        assert result.delivered is False
        assert "push service down" in caplog.text
        assert len(gate.history.entries("user-1")) == 1

    @pytest.mark.asyncio
    async def test_history_loaded_before_gating(self, settings, user_factory, memory_store):
        rules = dict(DEFAULT_RULES)
        rules[C.ACHIEVEMENT] = NotificationRule(C.ACHIEVEMENT, 1, 5, 0, None)
        first = make_gate(settings, rules, memory_store)
        await first.send(NotificationContext(user_factory(), now=at(12)), note())

        second = make_gate(settings, rules, memory_store)
        result = await second.send(NotificationContext(user_factory(), now=at(12, 20)), note())

        assert result.stage is GateStage.FREQUENCY

    @pytest.mark.asyncio
    async def test_concurrent_sends_wait_for_stored_history(self, settings, user_factory, memory_store, flaky_store):
        first = make_gate(settings, store=memory_store)
        await first.send(NotificationContext(user_factory(), now=at(11, 55)), note(C.EVENT_REMINDER))

        restarted = make_gate(settings, store=flaky_store)
        context = NotificationContext(user_factory(), now=at(12))
        results = await asyncio.gather(
            restarted.send(context, note(C.EVENT_REMINDER)),
            restarted.send(context, note(C.EVENT_REMINDER)),
        )

        assert not any(r.sent for r in results)
        assert {r.stage for r in results} == {GateStage.FREQUENCY}

    @pytest.mark.asyncio
    async def test_concurrent_sends_respect_hourly_limit(self, settings, user_factory, flaky_store):
        gate = make_gate(settings, store=flaky_store)
        context = NotificationContext(user_factory(), now=at(12))

        results = await asyncio.gather(*(gate.send(context, note(C.EVENT_REMINDER)) for _ in range(3)))

        assert sum(r.sent for r in results) == 1


class TestBroadcastTrending:
    @pytest.mark.asyncio
    async def test_only_trending_relevant_events(self, settings, user_factory, event_factory):
        gate = make_gate(settings)
        events = [
            event_factory("e1", category="music", is_trending=True, distance_km=2.0),
            event_factory("e2", category="music", is_trending=False),
        ]
        users = [user_factory("u1", interests=["music"]), user_factory("u2", interests=["chess"])]

        results = await gate.broadcast_trending(events, users, now=at(12))

        assert [r.sent for r in results] == [True, False]
        assert results[0].notification.title == "Jazz Night is trending"
        assert results[1].stage is GateStage.RELEVANCE
