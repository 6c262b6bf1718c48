"""
Notification gate.

Components:
- NotificationGate: staged pass/refuse policy plus personalization
- NotificationRule / DEFAULT_RULES / load_rules: per-category limits
- SendHistory: capped per-user send log
- DeliveryChannel / LoggingDelivery / RetryingDelivery: hand-off
- plan_event_reminders / send_due_reminders: attendee reminders
"""

from .delivery import DeliveryChannel, DeliveryError, LoggingDelivery, RetryingDelivery
from .gate import NotificationGate, has_interest_match
from .history import SendHistory, SendRecord
from .quiet_hours import QuietHours
from .reminders import ScheduledReminder, plan_event_reminders, send_due_reminders
from .rules import DEFAULT_RULES, NotificationRule, apply_overrides, load_rules
from .templates import format_countdown, personalize
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

__all__ = [
    "DEFAULT_RULES",
    "DeliveryChannel",
    "DeliveryError",
    "GateDecision",
    "GateStage",
    "LoggingDelivery",
    "Notification",
    "NotificationCategory",
    "NotificationContext",
    "NotificationGate",
    "NotificationRule",
    "Priority",
    "QuietHours",
    "RetryingDelivery",
    "ScheduledReminder",
    "SendHistory",
    "SendOptions",
    "SendRecord",
    "SendResult",
    "apply_overrides",
    "format_countdown",
    "has_interest_match",
    "load_rules",
    "personalize",
    "plan_event_reminders",
    "send_due_reminders",
]
