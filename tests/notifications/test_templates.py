"""
Tests for notification personalization.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from eventconnect_core.notifications.templates import format_countdown, personalize
from eventconnect_core.notifications.types import Notification, NotificationCategory, NotificationContext

C = NotificationCategory


class TestCountdown:
    @pytest.mark.parametrize(
        "delta,expected",
        [
            (timedelta(seconds=-5), "now"),
            (timedelta(seconds=30), "in 1 minute"),
            (timedelta(minutes=45), "in 45 minutes"),
            (timedelta(hours=1), "in 1 hour"),
            (timedelta(hours=2, minutes=10), "in 2 hours"),
            (timedelta(hours=30), "tomorrow"),
            (timedelta(days=5), "in 5 days"),
        ],
    )
    def test_format(self, delta, expected):
        assert format_countdown(delta) == expected


class TestPersonalize:
    def test_reminder_countdown(self, user_factory, event_factory, now):
        event = event_factory(title="Jazz Night", starts_at=now + timedelta(hours=2))
        context = NotificationContext(user=user_factory(first_name="Ana"), event=event, now=now)

        result = personalize(Notification(C.EVENT_REMINDER, "Reminder", "soon"), context)

        assert result.title == "Jazz Night starts in 2 hours"
        assert result.message.startswith("Hi Ana, don't forget that Jazz Night starts in 2 hours")

    def test_friend_joined(self, user_factory, event_factory, now):
        context = NotificationContext(user=user_factory(), event=event_factory(title="Jazz Night"), now=now)
        candidate = Notification(C.FRIEND_JOINED, "x", "y", data={"friend_name": "Rui"})

        result = personalize(candidate, context)

        assert result.title == "Rui is going to the same event"
        assert "Jazz Night" in result.message

    def test_friend_joined_without_name_unchanged(self, user_factory, event_factory, now):
        context = NotificationContext(user=user_factory(), event=event_factory(), now=now)

        result = personalize(Notification(C.FRIEND_JOINED, "x", "y"), context)

        assert (result.title, result.message) == ("x", "y")

    def test_trending_reasons(self, user_factory, event_factory, now):
        event = event_factory(title="Jazz Night", category="music", friends_attending=2, distance_km=1.0)
        context = NotificationContext(user=user_factory(interests=["music"]), event=event, now=now)

        result = personalize(Notification(C.TRENDING, "x", "y"), context)

        assert result.title == "Jazz Night is trending"
        assert "because 2 of your friends are going" in result.message
        assert "in one of your favourite categories" in result.message
        assert "close to you" in result.message

    def test_achievement(self, user_factory, now):
        context = NotificationContext(user=user_factory(first_name=""), now=now)
        candidate = Notification(C.ACHIEVEMENT, "x", "y", data={"achievement_title": "First Steps", "points": 10})

        result = personalize(candidate, context)

        assert result.title == "New achievement unlocked!"
        assert result.message == 'Congratulations there! You unlocked "First Steps" and earned 10 points.'

    def test_level_up(self, user_factory, now):
        context = NotificationContext(user=user_factory(first_name="Ana"), now=now)
        candidate = Notification(C.LEVEL_UP, "x", "y", data={"level": 2, "level_title": "Participant"})

        result = personalize(candidate, context)

        assert result.title == "Level 2 reached!"
        assert result.message == "Well done Ana, you are now level 2: Participant."

    def test_community_invite(self, user_factory, now):
        context = NotificationContext(user=user_factory(first_name="Ana"), now=now)
        candidate = Notification(C.COMMUNITY_INVITE, "x", "y", data={"community_name": "Jazz Lovers"})

        assert personalize(candidate, context).title == "You're invited to Jazz Lovers"

    def test_original_is_not_mutated(self, user_factory, event_factory, now):
        candidate = Notification(C.EVENT_UPDATE, "x", "")
        context = NotificationContext(user=user_factory(), event=event_factory(title="Jazz Night"), now=now)

        result = personalize(candidate, context)

        assert result.title == "Update: Jazz Night"
        assert candidate.title == "x"
        assert result.notification_id == candidate.notification_id
