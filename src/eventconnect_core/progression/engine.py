"""
Progression Engine.

Applies semantic user actions: awards points, moves progress counters,
unlocks achievements and reports level changes.

Level is never stored: it is always level_for_points(total_points), so a
level-up is detected by comparing the level before and after the call.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

from ..core.logging import get_logger
from ..models import UnlockedAchievement, User
from ..notifications.types import Notification, NotificationCategory, Priority
from .actions import (
    ACTION_EFFECTS,
    LEVEL_TRIGGERS,
    TRIGGERS_BY_ACHIEVEMENT,
    Action,
)
from .catalog import (
    ACHIEVEMENTS,
    LEVELS,
    Achievement,
    Rarity,
    UserLevel,
    level_for_points,
    next_level,
    points_to_next_level,
)
from .progress import ProgressStore

logger = get_logger(__name__)

DEFAULT_LEADERBOARD_SIZE = 50


@dataclass(frozen=True)
class LevelChange:
    old: UserLevel
    new: UserLevel

    @property
    def leveled_up(self) -> bool:
        return self.new.level > self.old.level


@dataclass
class ActionResult:
    """
    Outcome of apply_action().

    rejected is set (and user unchanged) when the action was refused.
    """

    user: User
    achievements: list[Achievement] = field(default_factory=list)
    points_earned: int = 0
    level_change: LevelChange | None = None
    rejected: str | None = None


@dataclass(frozen=True)
class AchievementProgress:
    current: int
    target: int

    @property
    def ratio(self) -> float:
        return min(self.current / self.target, 1.0) if self.target > 0 else 0.0


def _prune_months(counters: dict[str, int], now: datetime) -> dict[str, int]:
    """Drop month-scoped counters of past months."""
    current = f"{now:%Y-%m}"
    return {k: v for k, v in counters.items() if ":" not in k or k.rsplit(":", 1)[1] == current}


class ProgressionEngine:
    """Action-driven points, levels and achievements."""

    def __init__(self, progress: ProgressStore | None = None):
        self.progress = progress or ProgressStore()

    async def apply_action(
        self,
        user: User,
        action: Action | str,
        payload: Mapping[str, Any] | None = None,
        now: datetime | None = None,
    ) -> ActionResult:
        """
        Apply one action.

        Args:
            user: User before the action
            action: Action enum member or its value string
            payload: Action details (join_position, member_count, ...)
            now: Action time (defaults to now, UTC); scopes monthly counters

        Returns:
            ActionResult with the updated user copy, newly unlocked
            achievements, total points earned and any level change
        """
        resolved = Action.parse(action)
        if resolved is None:
            logger.warning("Rejected unknown action %r for %s", action, user.user_id)
            return ActionResult(user=user, rejected=f"unknown action: {action}")

        effect = ACTION_EFFECTS[resolved]
        payload = payload or {}
        now = now or datetime.now(timezone.utc)

        counters = await self.progress.load(user.user_id)
        for update in effect.counters:
            update.apply(counters, payload, now)

        unlocked_ids = set(user.unlocked_ids)
        new_achievements: list[Achievement] = []
        for trigger in effect.triggers:
            achievement = ACHIEVEMENTS[trigger.achievement_id]
            if achievement.achievement_id in unlocked_ids:
                continue
            if trigger.current(counters, now) >= achievement.target:
                new_achievements.append(achievement)
                unlocked_ids.add(achievement.achievement_id)

        points = effect.points + sum(a.points for a in new_achievements)
        level_before = level_for_points(user.total_points)

        # Level-gated awards may cross another threshold; repeat until stable
        level_after = level_for_points(user.total_points + points)
        while True:
            gained = [
                ACHIEVEMENTS[aid]
                for aid, level in LEVEL_TRIGGERS.items()
                if aid not in unlocked_ids and level_after.level >= level
            ]
            if not gained:
                break
            new_achievements.extend(gained)
            unlocked_ids.update(a.achievement_id for a in gained)
            points += sum(a.points for a in gained)
            level_after = level_for_points(user.total_points + points)

        await self.progress.save(user.user_id, _prune_months(counters, now))

        updated = replace(
            user,
            total_points=user.total_points + points,
            achievements=[
                *user.achievements,
                *(UnlockedAchievement(a.achievement_id, now) for a in new_achievements),
            ],
        )
        level_change = LevelChange(level_before, level_after) if level_after != level_before else None

        if new_achievements:
            logger.info(
                "%s unlocked %s via %s",
                user.user_id,
                [a.achievement_id for a in new_achievements],
                resolved.value,
            )
        if level_change:
            logger.info("%s reached level %d (%s)", user.user_id, level_after.level, level_after.title)

        return ActionResult(
            user=updated,
            achievements=new_achievements,
            points_earned=points,
            level_change=level_change,
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def achievement_progress(
        self,
        user: User,
        achievement_id: str,
        now: datetime | None = None,
    ) -> AchievementProgress | None:
        """Current/target for an achievement; None if the id is unknown."""
        achievement = ACHIEVEMENTS.get(achievement_id)
        if achievement is None:
            return None
        if achievement_id in user.unlocked_ids:
            return AchievementProgress(achievement.target, achievement.target)

        if achievement_id in LEVEL_TRIGGERS:
            current = level_for_points(user.total_points).level
        else:
            trigger = TRIGGERS_BY_ACHIEVEMENT[achievement_id]
            counters = await self.progress.load(user.user_id)
            current = trigger.current(counters, now or datetime.now(timezone.utc))
        return AchievementProgress(min(current, achievement.target), achievement.target)

    async def available_achievements(
        self,
        user: User,
        now: datetime | None = None,
    ) -> list[tuple[Achievement, AchievementProgress]]:
        """Locked achievements, closest to completion first."""
        result = []
        for achievement_id, achievement in ACHIEVEMENTS.items():
            if achievement_id in user.unlocked_ids:
                continue
            progress = await self.achievement_progress(user, achievement_id, now)
            if progress is not None:
                result.append((achievement, progress))
        result.sort(key=lambda pair: pair[1].ratio, reverse=True)
        return result

    def user_stats(self, user: User) -> dict[str, Any]:
        """
        Level and completion summary.

        progress_percent is the position within the current level band
        (100 at the top level).
        """
        points = user.total_points
        level = level_for_points(points)
        upcoming = next_level(level)
        if upcoming is None:
            progress_percent = 100
        else:
            band = upcoming.points_required - level.points_required
            progress_percent = round((points - level.points_required) / band * 100)

        unlocked = len(user.unlocked_ids & set(ACHIEVEMENTS))
        return {
            "level": level,
            "total_points": points,
            "points_to_next_level": points_to_next_level(points),
            "progress_percent": progress_percent,
            "achievements_unlocked": unlocked,
            "total_achievements": len(ACHIEVEMENTS),
            "completion_rate": round(unlocked / len(ACHIEVEMENTS) * 100),
            "max_level": LEVELS[-1].level,
        }

    @staticmethod
    def leaderboard(users: Iterable[User], limit: int = DEFAULT_LEADERBOARD_SIZE) -> list[User]:
        """Users with points, highest first."""
        ranked = sorted((u for u in users if u.total_points > 0), key=lambda u: u.total_points, reverse=True)
        return ranked[:limit]

    @staticmethod
    def notifications_for(result: ActionResult) -> list[Notification]:
        """Candidate notifications for the gate describing an action result."""
        notifications = [
            Notification(
                category=NotificationCategory.ACHIEVEMENT,
                title="New achievement unlocked!",
                message=f"You unlocked {a.title}",
                priority=Priority.HIGH if a.rarity in (Rarity.EPIC, Rarity.LEGENDARY) else Priority.MEDIUM,
                data={
                    "achievement_id": a.achievement_id,
                    "achievement_title": a.title,
                    "points": a.points,
                    "rarity": a.rarity.value,
                },
            )
            for a in result.achievements
        ]
        change = result.level_change
        if change is not None and change.leveled_up:
            notifications.append(
                Notification(
                    category=NotificationCategory.LEVEL_UP,
                    title=f"Level {change.new.level} reached!",
                    message=f"You are now {change.new.title}",
                    priority=Priority.HIGH,
                    data={
                        "level": change.new.level,
                        "level_title": change.new.title,
                        "previous_level": change.old.level,
                        "benefits": list(change.new.benefits),
                    },
                )
            )
        return notifications
