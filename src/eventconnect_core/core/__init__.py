"""Shared infrastructure: settings, logging, errors."""

from .config import EventConnectSettings, get_settings, reset_settings
from .errors import ConfigurationError, EventConnectError, StoreError
from .logging import get_logger

__all__ = [
    "EventConnectSettings",
    "get_settings",
    "reset_settings",
    "get_logger",
    "EventConnectError",
    "ConfigurationError",
    "StoreError",
]
