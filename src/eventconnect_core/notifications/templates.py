"""
Notification templating.

Rewrites the title and message of an accepted notification for its
recipient. Categories without a template, or candidates missing the data
a template needs, keep their original text.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

from ..models import Event, User
from ..scoring.signals import matching_tags
from .types import Notification, NotificationCategory, NotificationContext

NEARBY_KM = 5.0


def format_countdown(delta: timedelta) -> str:
    """Human countdown such as "in 2 hours" or "tomorrow"."""
    seconds = int(delta.total_seconds())
    if seconds <= 0:
        return "now"
    minutes = max(seconds // 60, 1)
    if minutes < 60:
        return f"in {minutes} minute{'s' if minutes != 1 else ''}"
    hours = minutes // 60
    if hours < 24:
        return f"in {hours} hour{'s' if hours != 1 else ''}"
    if hours < 48:
        return "tomorrow"
    return f"in {hours // 24} days"


def trending_reasons(user: User, event: Event) -> str:
    reasons = []
    if event.friends_attending > 0:
        reasons.append(f"because {event.friends_attending} of your friends are going")
    interests = [i.lower() for i in user.interests]
    if any(i in event.category.lower() for i in interests) or matching_tags(interests, event.tags):
        reasons.append("in one of your favourite categories")
    if event.distance_km is not None and event.distance_km <= NEARBY_KM:
        reasons.append("close to you")
    return " and ".join(reasons) if reasons else "in your area"


def personalize(notification: Notification, context: NotificationContext) -> Notification:
    """Return a copy of notification with recipient-specific text."""
    user = context.user
    event = context.event
    data = notification.data
    name = user.display_name
    category = notification.category

    title, message = notification.title, notification.message

    if category is NotificationCategory.EVENT_REMINDER and event is not None:
        when = "soon"
        if event.starts_at is not None:
            when = format_countdown(event.starts_at - context.resolved_now())
        title = f"{event.title} starts {when}"
        message = f"Hi {name}, don't forget that {event.title} starts {when}. See you there!"

    elif category is NotificationCategory.FRIEND_JOINED and event is not None and data.get("friend_name"):
        friend = data["friend_name"]
        title = f"{friend} is going to the same event"
        message = f"Great news! {friend} is also going to {event.title}. A perfect chance to connect."

    elif category is NotificationCategory.TRENDING and event is not None:
        title = f"{event.title} is trending"
        message = f"{event.title} is gaining popularity {trending_reasons(user, event)}. Don't miss it!"

    elif category is NotificationCategory.ACHIEVEMENT and data.get("achievement_title"):
        title = "New achievement unlocked!"
        message = (
            f"Congratulations {name}! You unlocked \"{data['achievement_title']}\" "
            f"and earned {data.get('points', 0)} points."
        )

    elif category is NotificationCategory.LEVEL_UP and data.get("level") is not None:
        level = data["level"]
        title = f"Level {level} reached!"
        message = f"Well done {name}, you are now level {level}"
        if data.get("level_title"):
            message += f": {data['level_title']}"
        message += "."

    elif category is NotificationCategory.COMMUNITY_INVITE and data.get("community_name"):
        title = f"You're invited to {data['community_name']}"
        message = f"Hi {name}, {data['community_name']} would love to have you as a member."

    elif category is NotificationCategory.EVENT_UPDATE and event is not None:
        title = f"Update: {event.title}"
        message = notification.message or f"{event.title} has changed. Check the latest details."

    return replace(notification, title=title, message=message)

