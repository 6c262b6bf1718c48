"""
Event reminders.

Plans 24-hour and 2-hour reminders for event attendees and feeds the due
ones through the gate. Planning is pure; the caller decides when to call
send_due_reminders() (typically from a periodic job).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from ..core.logging import get_logger
from ..models import Event, User
from .gate import NotificationGate
from .types import Notification, NotificationCategory, NotificationContext, Priority, SendResult

logger = get_logger(__name__)

# (label, lead time, priority)
REMINDER_OFFSETS: tuple[tuple[str, timedelta, Priority], ...] = (
    ("24h", timedelta(hours=24), Priority.MEDIUM),
    ("2h", timedelta(hours=2), Priority.HIGH),
)


@dataclass(frozen=True)
class ScheduledReminder:
    """A reminder to offer the gate at due_at."""

    due_at: datetime
    user: User
    event: Event
    kind: str
    priority: Priority

    def to_notification(self) -> Notification:
        return Notification(
            category=NotificationCategory.EVENT_REMINDER,
            title=f"Reminder: {self.event.title}",
            message="Your event is coming up",
            priority=self.priority,
            data={"event_id": self.event.event_id, "reminder_type": self.kind},
        )


def plan_event_reminders(
    events: Sequence[Event],
    attendees: Mapping[str, Sequence[User]],
    now: datetime | None = None,
) -> list[ScheduledReminder]:
    """
    Reminders for every attendee of every event with a start time.

    Args:
        events: Events to plan for
        attendees: event_id -> users attending
        now: Planning time; reminders already due before it are skipped

    Returns:
        Reminders sorted by due time
    """
    now = now or datetime.now(timezone.utc)
    planned = []
    for event in events:
        if event.starts_at is None:
            continue
        for kind, lead, priority in REMINDER_OFFSETS:
            due_at = event.starts_at - lead
            if due_at <= now:
                continue
            for user in attendees.get(event.event_id, ()):
                planned.append(ScheduledReminder(due_at, user, event, kind, priority))

    planned.sort(key=lambda r: r.due_at)
    return planned


async def send_due_reminders(
    gate: NotificationGate,
    reminders: Sequence[ScheduledReminder],
    now: datetime | None = None,
) -> tuple[list[SendResult], list[ScheduledReminder]]:
    """
    Send every reminder due at or before now.

    Returns:
        (results of the due reminders, reminders still pending)
    """
    now = now or datetime.now(timezone.utc)
    results = []
    pending = []
    for reminder in reminders:
        if reminder.due_at > now:
            pending.append(reminder)
            continue
        context = NotificationContext(user=reminder.user, event=reminder.event, now=now)
        results.append(await gate.send(context, reminder.to_notification()))

    if results:
        logger.debug("Sent %d due reminders, %d pending", sum(r.sent for r in results), len(pending))
    return results, pending
