"""
EventConnect personalization core.

Decides which events to surface to a user, how long to cache those
decisions, when a notification may interrupt the user, and how points,
levels and achievements progress.
"""

from .models import DeviceHints, Event, GeoPoint, ScoredEvent, UnlockedAchievement, User
from .service import PersonalizationService

__version__ = "0.4.0"

__all__ = [
    "DeviceHints",
    "Event",
    "GeoPoint",
    "PersonalizationService",
    "ScoredEvent",
    "UnlockedAchievement",
    "User",
    "__version__",
]
