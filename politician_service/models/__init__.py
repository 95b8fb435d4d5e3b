from .entities import Entity, EntityKind, RelatedPolitician, SearchTerm, SearchTermType
from .feedback import FeedbackEvent, FeedbackKind, FeedbackWrite
from .requests import (
    DeviceType,
    GeoLocation,
    RecommendationContext,
    RecommendationItem,
    RecommendationRequest,
    RecommendationResult,
    RecommendationType,
    TimeOfDay,
)

__all__ = [
    "DeviceType",
    "Entity",
    "EntityKind",
    "FeedbackEvent",
    "FeedbackKind",
    "FeedbackWrite",
    "GeoLocation",
    "RecommendationContext",
    "RecommendationItem",
    "RecommendationRequest",
    "RecommendationResult",
    "RecommendationType",
    "RelatedPolitician",
    "SearchTerm",
    "SearchTermType",
]
