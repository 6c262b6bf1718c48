"""
Notification Rules.

Per-category rate limits, quiet hours and relevance requirements, with
optional YAML overrides.

YAML format (every field optional, unknown categories rejected):

    trending:
      max_per_day: 1
      quiet_hours: {start: 21, end: 9}
    achievement:
      quiet_hours: null
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import yaml

from ..core.errors import ConfigurationError
from ..core.logging import get_logger
from .quiet_hours import QuietHours
from .types import NotificationCategory

logger = get_logger(__name__)

_RULE_FIELDS = {
    "max_per_hour",
    "max_per_day",
    "cooldown_minutes",
    "quiet_hours",
    "requires_user_interest",
    "max_distance_km",
}


@dataclass(frozen=True)
class NotificationRule:
    """Limits governing one notification category."""

    category: NotificationCategory
    max_per_hour: int
    max_per_day: int
    cooldown_minutes: int = 0
    quiet_hours: QuietHours | None = None
    requires_user_interest: bool = False
    max_distance_km: float | None = None

    def validate(self) -> list[str]:
        """
        Validate rule values.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []
        prefix = self.category.value
        if self.max_per_hour < 0:
            errors.append(f"{prefix}: max_per_hour must be non-negative")
        if self.max_per_day < 0:
            errors.append(f"{prefix}: max_per_day must be non-negative")
        if self.cooldown_minutes < 0:
            errors.append(f"{prefix}: cooldown_minutes must be non-negative")
        if self.max_distance_km is not None and self.max_distance_km <= 0:
            errors.append(f"{prefix}: max_distance_km must be positive")
        if self.quiet_hours is not None:
            errors.extend(f"{prefix}: {e}" for e in self.quiet_hours.validate())
        return errors

    def with_overrides(self, data: dict[str, Any]) -> NotificationRule:
        """
        Return a copy with fields replaced from a config mapping.

        Raises:
            ConfigurationError: On unknown fields or malformed values
        """
        unknown = set(data) - _RULE_FIELDS
        if unknown:
            raise ConfigurationError(f"{self.category.value}: unknown rule fields {sorted(unknown)}")

        changes: dict[str, Any] = {}
        try:
            for name in ("max_per_hour", "max_per_day", "cooldown_minutes"):
                if name in data:
                    changes[name] = int(data[name])
            if "requires_user_interest" in data:
                changes["requires_user_interest"] = bool(data["requires_user_interest"])
            if "max_distance_km" in data:
                value = data["max_distance_km"]
                changes["max_distance_km"] = None if value is None else float(value)
            if "quiet_hours" in data:
                quiet = data["quiet_hours"]
                changes["quiet_hours"] = (
                    None if quiet is None else QuietHours(int(quiet["start"]), int(quiet["end"]))
                )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"{self.category.value}: invalid rule value: {e}") from e

        rule = replace(self, **changes)
        errors = rule.validate()
        if errors:
            raise ConfigurationError("; ".join(errors))
        return rule


_C = NotificationCategory

DEFAULT_RULES: dict[NotificationCategory, NotificationRule] = {
    _C.EVENT_REMINDER: NotificationRule(_C.EVENT_REMINDER, 1, 3, 60, QuietHours(22, 8)),
    _C.FRIEND_JOINED: NotificationRule(_C.FRIEND_JOINED, 2, 5, 30, QuietHours(23, 7)),
    _C.TRENDING: NotificationRule(
        _C.TRENDING, 1, 2, 180, QuietHours(22, 9), requires_user_interest=True, max_distance_km=25.0
    ),
    _C.ACHIEVEMENT: NotificationRule(_C.ACHIEVEMENT, 3, 10, 0, None),
    _C.COMMUNITY_INVITE: NotificationRule(
        _C.COMMUNITY_INVITE, 1, 3, 120, QuietHours(22, 8), requires_user_interest=True
    ),
    _C.EVENT_UPDATE: NotificationRule(_C.EVENT_UPDATE, 2, 5, 15, QuietHours(23, 7)),
    _C.LEVEL_UP: NotificationRule(_C.LEVEL_UP, 3, 10, 0, None),
}


def apply_overrides(
    overrides: dict[str, Any],
    base: dict[NotificationCategory, NotificationRule] | None = None,
) -> dict[NotificationCategory, NotificationRule]:
    """
    Merge per-category overrides into a rule table.

    Raises:
        ConfigurationError: On unknown categories or invalid values
    """
    rules = dict(base or DEFAULT_RULES)
    for name, fields in overrides.items():
        category = NotificationCategory.parse(name)
        if category is None:
            raise ConfigurationError(f"Unknown notification category in rules: {name}")
        if not isinstance(fields, dict):
            raise ConfigurationError(f"Rule for {name} must be a mapping")
        rules[category] = rules[category].with_overrides(fields)
    return rules


def load_rules(path: Path | str | None) -> dict[NotificationCategory, NotificationRule]:
    """
    Load the rule table, applying YAML overrides if a file is given.

    Raises:
        ConfigurationError: If the file is missing, unparseable or invalid
    """
    if path is None:
        return dict(DEFAULT_RULES)

    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Rules file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in rules file {path}: {e}") from e

    if data is None:
        return dict(DEFAULT_RULES)
    if not isinstance(data, dict):
        raise ConfigurationError(f"Rules file {path} must be a YAML mapping")

    rules = apply_overrides(data)
    logger.info("Loaded notification rule overrides for %s from %s", sorted(data), path)
    return rules
