"""
EventConnect Centralized Configuration

Provides validated, type-safe access to all environment variables using Pydantic Settings.

Usage:
    from eventconnect_core.core.config import get_settings

    settings = get_settings()
    if settings.log_level == "DEBUG":
        ...

Environment Variables:
    EVC_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    EVC_DEBUG: Legacy debug flag (enables DEBUG level if set)
    EVC_LOG_JSON: Output logs as JSON
    EVC_INSTANCE_ROOT: Directory holding the durable store
    EVC_RULES_FILE: YAML file overriding notification rules
    EVC_DEFAULT_TIMEZONE: Timezone used when a user has none
    EVC_HISTORY_CAP: Send-history entries kept per user
    EVC_FATIGUE_DAILY_LIMIT / EVC_FATIGUE_BURST_LIMIT: Global fatigue limits
    EVC_CACHE_SWEEP_INTERVAL_SECONDS: Eager expiry sweep period
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_project_root() -> Path | None:
    """
    Find the project root by searching upward for pyproject.toml.

    Returns:
        Directory containing pyproject.toml, or None if not found
    """
    current = Path(__file__).resolve().parent

    for _ in range(10):  # Limit search depth
        if (current / "pyproject.toml").exists():
            return current
        parent = current.parent
        if parent == current:
            break  # Reached filesystem root
        current = parent

    return None


def _find_env_file() -> Path | None:
    """Return the project .env file if one exists."""
    root = _find_project_root()
    if root is None:
        return None
    env_file = root / ".env"
    return env_file if env_file.exists() else None


_ENV_FILE = _find_env_file()
_INSTANCE_ROOT = _find_project_root() or Path.cwd()


class EventConnectSettings(BaseSettings):
    """
    Personalization core settings with validation.

    Environment variables are automatically loaded with the EVC_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="EVC_",
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # =========================================================================
    # Logging Configuration
    # =========================================================================

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Log level for personalization components",
    )

    debug: bool = Field(
        default=False,
        description="Legacy debug flag (enables DEBUG level if set)",
    )

    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format for machine parsing",
    )

    # =========================================================================
    # Data Paths
    # =========================================================================

    instance_root: Path = Field(
        default=_INSTANCE_ROOT,
        description="Instance root directory (holds cache/personalization.db)",
    )

    rules_file: Optional[Path] = Field(
        default=None,
        description="YAML file with per-category notification rule overrides",
    )

    # =========================================================================
    # Notification Gate
    # =========================================================================

    default_timezone: str = Field(
        default="UTC",
        description="Timezone for quiet hours when the user has none",
    )

    history_cap: int = Field(
        default=100,
        ge=1,
        description="Send-history entries kept per user",
    )

    history_retention_days: int = Field(
        default=30,
        ge=1,
        description="Send-history entries older than this are compacted away",
    )

    fatigue_daily_limit: int = Field(
        default=15,
        ge=1,
        description="Sends per 24 hours after which every category is refused",
    )

    fatigue_burst_limit: int = Field(
        default=3,
        ge=1,
        description="Sends per burst window after which every category is refused",
    )

    fatigue_burst_window_minutes: int = Field(
        default=10,
        ge=1,
        description="Length of the burst window",
    )

    delivery_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts made by RetryingDelivery before giving up",
    )

    # =========================================================================
    # Cache Store
    # =========================================================================

    cache_sweep_interval_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Period of the eager expiry sweep",
    )

    cache_optimize_interval_seconds: float = Field(
        default=900.0,
        gt=0,
        description="Period of the optimize() tuning pass",
    )

    cache_max_tuned_ttl_seconds: float = Field(
        default=1800.0,
        gt=0,
        description="Upper bound for TTLs raised by optimize()",
    )

    recommendation_ttl_seconds: float = Field(
        default=600.0,
        gt=0,
        description="Lifetime of rankings persisted in the durable store",
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level", mode="before")
    @classmethod
    def uppercase_log_level(cls, v: str) -> str:
        """Normalize log level to uppercase."""
        if isinstance(v, str):
            return v.upper()
        return v

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def effective_log_level(self) -> str:
        """
        Get effective log level, respecting legacy EVC_DEBUG.

        Priority:
        1. Explicit EVC_LOG_LEVEL
        2. EVC_DEBUG=1 → DEBUG
        3. Default: WARNING
        """
        if self.debug and self.log_level == "WARNING":
            return "DEBUG"
        return self.log_level

    @property
    def log_level_int(self) -> int:
        """Get effective log level as logging constant."""
        return getattr(logging, self.effective_log_level)

    @property
    def store_path(self) -> Path:
        """Path to the SQLite durable store."""
        return self.instance_root / "cache" / "personalization.db"


# =============================================================================
# Singleton Accessor
# =============================================================================


@lru_cache(maxsize=1)
def get_settings() -> EventConnectSettings:
    """
    Get the singleton settings instance.

    Settings are immutable once loaded; runtime state (caches, histories)
    is owned by explicitly constructed objects instead.
    """
    return EventConnectSettings()


def reset_settings() -> None:
    """
    Reset the settings cache (for testing).

    After calling this, the next get_settings() call will
    reload settings from environment variables.
    """
    get_settings.cache_clear()


def is_debug_enabled() -> bool:
    """Check if debug logging is enabled."""
    return get_settings().effective_log_level == "DEBUG"
