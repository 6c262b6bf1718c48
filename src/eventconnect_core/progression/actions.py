"""
Action Effects.

Closed set of progression actions and the explicit mapping from each
action to its points, counter updates and achievement triggers.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class Action(Enum):
    ATTENDED_EVENT = "attended_event"
    CREATED_EVENT = "created_event"
    JOINED_COMMUNITY = "joined_community"
    CREATED_COMMUNITY = "created_community"
    EARLY_JOIN = "early_join"
    MADE_CONNECTION = "made_connection"
    EVENT_TRENDED = "event_trended"

    @classmethod
    def parse(cls, value: Action | str) -> Action | None:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


def month_key(name: str, when: datetime) -> str:
    """Counter name scoped to a calendar month, e.g. "events_attended:2026-10"."""
    return f"{name}:{when:%Y-%m}"


@dataclass(frozen=True)
class CounterUpdate:
    """
    How an action moves one progress counter.

    By default the counter is incremented. With payload_key set it becomes
    a high-water mark of that payload value. condition gates the update on
    the payload.
    """

    name: str
    monthly: bool = False
    payload_key: str | None = None
    condition: Callable[[Mapping[str, Any]], bool] | None = None

    def key(self, when: datetime) -> str:
        return month_key(self.name, when) if self.monthly else self.name

    def apply(self, counters: dict[str, int], payload: Mapping[str, Any], when: datetime) -> None:
        if self.condition is not None and not self.condition(payload):
            return
        key = self.key(when)
        if self.payload_key is None:
            counters[key] = counters.get(key, 0) + 1
            return
        value = payload.get(self.payload_key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            counters[key] = max(counters.get(key, 0), int(value))


@dataclass(frozen=True)
class CounterTrigger:
    """Unlocks achievement_id once the counter reaches the achievement target."""

    achievement_id: str
    counter: str
    monthly: bool = False

    def current(self, counters: Mapping[str, int], when: datetime) -> int:
        key = month_key(self.counter, when) if self.monthly else self.counter
        return counters.get(key, 0)


@dataclass(frozen=True)
class ActionEffect:
    points: int
    counters: tuple[CounterUpdate, ...] = ()
    triggers: tuple[CounterTrigger, ...] = ()


def _first_to_join(payload: Mapping[str, Any]) -> bool:
    return payload.get("join_position") == 1


ACTION_EFFECTS: dict[Action, ActionEffect] = {
    Action.ATTENDED_EVENT: ActionEffect(
        points=10,
        counters=(CounterUpdate("events_attended"), CounterUpdate("events_attended", monthly=True)),
        triggers=(
            CounterTrigger("first_event", "events_attended"),
            CounterTrigger("event_enthusiast", "events_attended"),
            CounterTrigger("social_butterfly", "events_attended", monthly=True),
            CounterTrigger("event_marathon", "events_attended"),
        ),
    ),
    Action.CREATED_EVENT: ActionEffect(
        points=25,
        counters=(CounterUpdate("events_created"),),
        triggers=(
            CounterTrigger("event_creator", "events_created"),
            CounterTrigger("super_host", "events_created"),
        ),
    ),
    Action.JOINED_COMMUNITY: ActionEffect(
        points=15,
        counters=(CounterUpdate("communities_joined"),),
        triggers=(CounterTrigger("tribe_joiner", "communities_joined"),),
    ),
    Action.CREATED_COMMUNITY: ActionEffect(
        points=0,
        counters=(
            CounterUpdate("communities_created"),
            CounterUpdate("largest_community", payload_key="member_count"),
        ),
        triggers=(CounterTrigger("community_builder", "largest_community"),),
    ),
    Action.EARLY_JOIN: ActionEffect(
        points=5,
        counters=(CounterUpdate("first_joins", condition=_first_to_join),),
        triggers=(CounterTrigger("early_bird", "first_joins"),),
    ),
    Action.MADE_CONNECTION: ActionEffect(
        points=2,
        counters=(CounterUpdate("connections"),),
        triggers=(CounterTrigger("networking_pro", "connections"),),
    ),
    Action.EVENT_TRENDED: ActionEffect(
        points=0,
        counters=(CounterUpdate("events_trended"),),
        triggers=(CounterTrigger("trend_setter", "events_trended"),),
    ),
}

# achievement_id -> level that unlocks it; evaluated on level-up
LEVEL_TRIGGERS: dict[str, int] = {"legend": 20}

# achievement_id -> trigger, for progress queries
TRIGGERS_BY_ACHIEVEMENT: dict[str, CounterTrigger] = {
    trigger.achievement_id: trigger for effect in ACTION_EFFECTS.values() for trigger in effect.triggers
}
