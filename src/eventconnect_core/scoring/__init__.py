"""
Event scoring and recommendation.

Components:
- ScoringEngine: weighted-sum scorer with GENERAL and CONSTRAINED profiles
- RecommendationContext: time-of-day and device snapshot
- similarity / similar_events: "more like this"
- Recommender: cached rankings
"""

from .context import RecommendationContext, TimeOfDay
from .engine import CONSTRAINED, GENERAL, PROFILES, ScoringEngine, ScoringProfile
from .recommender import Recommender, apply_filters
from .similarity import similar_events, similarity

__all__ = [
    "CONSTRAINED",
    "GENERAL",
    "PROFILES",
    "RecommendationContext",
    "Recommender",
    "ScoringEngine",
    "ScoringProfile",
    "TimeOfDay",
    "apply_filters",
    "similar_events",
    "similarity",
]
