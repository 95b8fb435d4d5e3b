"""
Scoring signals for the recommendation engine.

Each signal scores the candidate pool independently and returns a value per
entity. Values are normalised (``[0, 1]``, or ``[-1, 1]`` for affinity) and
multiplied by the signal weight by the engine. A signal that has nothing to say
about an entity simply leaves it out, so a missing signal never penalises.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from ..models import Entity, GeoLocation, RecommendationRequest
from ..search.similarity import SHARED_ATTRIBUTE_WEIGHTS, fuzzy_ratio

EARTH_RADIUS_KM = 6371.0


@dataclass(slots=True)
class ScoringContext:
    """Everything the signals need, resolved once per ranking attempt."""

    request: RecommendationRequest
    candidates: Sequence[Entity]
    anchor: Optional[Entity] = None
    affinity: Dict[str, float] = field(default_factory=dict)
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(slots=True)
class SignalScore:
    """Per-signal score for a single entity."""

    value: float
    reasons: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


class ScoringSignal(Protocol):
    """Interface for plug-and-play scoring signals."""

    name: str
    weight: float

    def score(self, context: ScoringContext) -> Dict[str, SignalScore]:
        """Return per-entity signal scores."""


class AffinitySignal:
    """Feedback-derived per-user weight, normalised by the weight bound."""

    name = "affinity"

    def __init__(self, weight: float = 0.4, weight_bound: float = 3.0):
        self.weight = weight
        self.weight_bound = max(weight_bound, 1e-9)

    def score(self, context: ScoringContext) -> Dict[str, SignalScore]:
        scores: Dict[str, SignalScore] = {}
        for entity in context.candidates:
            raw = context.affinity.get(entity.id)
            if raw is None or raw == 0:
                continue
            value = max(-1.0, min(1.0, raw / self.weight_bound))
            reason = "liked_before" if value > 0 else "disliked_before"
            scores[entity.id] = SignalScore(value=value, reasons=[reason], metadata={"weight": raw})
        return scores


class TopicalSignal:
    """Relevance to the entity being viewed and to the search query."""

    name = "topical"

    def __init__(self, weight: float = 0.3, query_threshold: float = 0.6):
        self.weight = weight
        self.query_threshold = query_threshold

    def score(self, context: ScoringContext) -> Dict[str, SignalScore]:
        anchor = context.anchor
        query = context.request.context.search_query
        if anchor is None and query is None:
            return {}

        scores: Dict[str, SignalScore] = {}
        for entity in context.candidates:
            value = 0.0
            reasons: List[str] = []

            if anchor is not None:
                for attr, attr_weight, reason in SHARED_ATTRIBUTE_WEIGHTS:
                    anchor_value = getattr(anchor, attr)
                    if anchor_value is not None and getattr(entity, attr) == anchor_value:
                        value += attr_weight
                        reasons.append(reason)

            if query is not None:
                similarity = max(
                    fuzzy_ratio(query, text)
                    for text in (entity.title, entity.party, entity.constituency, entity.position)
                )
                if similarity >= self.query_threshold:
                    value += similarity
                    reasons.append("matches_query")

            if value > 0:
                scores[entity.id] = SignalScore(value=min(value, 1.0), reasons=reasons)
        return scores


class RecencySignal:
    """Exponential half-life decay of the entity's last update."""

    name = "recency"

    def __init__(self, weight: float = 0.2, half_life_days: int = 30):
        self.weight = weight
        self.half_life_days = max(1, half_life_days)

    def score(self, context: ScoringContext) -> Dict[str, SignalScore]:
        scores: Dict[str, SignalScore] = {}
        for entity in context.candidates:
            if entity.updated_at is None:
                continue
            value = self._recency_weight(entity.updated_at, context.now)
            scores[entity.id] = SignalScore(value=value, reasons=["recently_updated"] if value >= 0.5 else [])
        return scores

    def _recency_weight(self, updated_at: datetime, now: datetime) -> float:
        if updated_at.tzinfo is None:
            updated_at = updated_at.replace(tzinfo=timezone.utc)
        delta_days = max((now - updated_at).total_seconds() / 86400.0, 0.0)
        return math.exp(-math.log(2) * (delta_days / self.half_life_days))


class ProximitySignal:
    """Closeness of the entity to the requester's location."""

    name = "proximity"

    def __init__(self, weight: float = 0.1, scale_km: float = 50.0):
        self.weight = weight
        self.scale_km = max(scale_km, 1e-9)

    def score(self, context: ScoringContext) -> Dict[str, SignalScore]:
        origin = context.request.context.location
        if origin is None:
            return {}

        scores: Dict[str, SignalScore] = {}
        for entity in context.candidates:
            if not entity.has_coordinates:
                continue
            distance = haversine_km(origin, entity.latitude, entity.longitude)
            value = math.exp(-distance / self.scale_km)
            scores[entity.id] = SignalScore(
                value=value,
                reasons=["nearby"] if distance <= self.scale_km else [],
                metadata={"distance_km": round(distance, 2)},
            )
        return scores


class PopularitySignal:
    """Base relevance carried by the entity record."""

    name = "popularity"

    def __init__(self, weight: float = 0.1):
        self.weight = weight

    def score(self, context: ScoringContext) -> Dict[str, SignalScore]:
        return {
            entity.id: SignalScore(value=entity.popularity, reasons=["popular"])
            for entity in context.candidates
            if entity.popularity is not None
        }


def haversine_km(origin: GeoLocation, latitude: float, longitude: float) -> float:
    lat1, lng1 = math.radians(origin.latitude), math.radians(origin.longitude)
    lat2, lng2 = math.radians(latitude), math.radians(longitude)
    a = (
        math.sin((lat2 - lat1) / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin((lng2 - lng1) / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def build_default_signals(
    weights: Optional[Mapping[str, float]] = None,
    weight_bound: float = 3.0,
    recency_half_life_days: int = 30,
    proximity_scale_km: float = 50.0,
    query_threshold: float = 0.6,
) -> List[ScoringSignal]:
    """Default signal set; ``weights`` overrides individual signal weights by name."""
    weights = dict(weights or {})
    return [
        AffinitySignal(weight=weights.get("affinity", 0.4), weight_bound=weight_bound),
        TopicalSignal(weight=weights.get("topical", 0.3), query_threshold=query_threshold),
        RecencySignal(weight=weights.get("recency", 0.2), half_life_days=recency_half_life_days),
        ProximitySignal(weight=weights.get("proximity", 0.1), scale_km=proximity_scale_km),
        PopularitySignal(weight=weights.get("popularity", 0.1)),
    ]
