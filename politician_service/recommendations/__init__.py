"""
Recommendation engine package for personalized politician and content ordering.

Provides a pluggable engine that can be reused by the web layer or any future
batch jobs without creating Flask dependencies.
"""

from .engine import DEFAULT_FEEDBACK_DELTAS, EngineSettings, RecommendationEngine
from .strategies import (
    AffinitySignal,
    PopularitySignal,
    ProximitySignal,
    RecencySignal,
    ScoringContext,
    ScoringSignal,
    SignalScore,
    TopicalSignal,
    build_default_signals,
)

__all__ = [
    "AffinitySignal",
    "DEFAULT_FEEDBACK_DELTAS",
    "EngineSettings",
    "PopularitySignal",
    "ProximitySignal",
    "RecencySignal",
    "RecommendationEngine",
    "ScoringContext",
    "ScoringSignal",
    "SignalScore",
    "TopicalSignal",
    "build_default_signals",
]
