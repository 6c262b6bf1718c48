"""
Progression: points, levels and achievements.

Components:
- ProgressionEngine: apply_action() plus stats, progress and leaderboard queries
- ACHIEVEMENTS / LEVELS: static catalog
- ACTION_EFFECTS: action -> points, counters, triggers
- ProgressStore: durable progress counters
"""

from .actions import ACTION_EFFECTS, Action, ActionEffect, CounterTrigger, CounterUpdate
from .catalog import (
    ACHIEVEMENTS,
    LEVELS,
    Achievement,
    AchievementCategory,
    Rarity,
    UserLevel,
    achievements_by_category,
    achievements_by_rarity,
    level_for_points,
    points_to_next_level,
    validate_levels,
)
from .engine import AchievementProgress, ActionResult, LevelChange, ProgressionEngine
from .progress import ProgressStore

__all__ = [
    "ACHIEVEMENTS",
    "ACTION_EFFECTS",
    "LEVELS",
    "Achievement",
    "AchievementCategory",
    "AchievementProgress",
    "Action",
    "ActionEffect",
    "ActionResult",
    "CounterTrigger",
    "CounterUpdate",
    "LevelChange",
    "ProgressStore",
    "ProgressionEngine",
    "Rarity",
    "UserLevel",
    "achievements_by_category",
    "achievements_by_rarity",
    "level_for_points",
    "points_to_next_level",
    "validate_levels",
]
