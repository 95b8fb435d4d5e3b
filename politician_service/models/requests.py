"""
Typed recommendation request, context and result models.

Every optional context field is an explicit ``Optional`` value: ``None`` means
the signal is not available, which is different from a zero value (for
example a latitude of ``0.0``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Type, TypeVar

from ..errors import validation_error

E = TypeVar("E", bound=Enum)


class RecommendationType(str, Enum):
    POLITICIAN = "politician"
    CONTENT = "content"
    SEARCH = "search"


class TimeOfDay(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"


class DeviceType(str, Enum):
    MOBILE = "mobile"
    DESKTOP = "desktop"
    TABLET = "tablet"


def _parse_enum(enum_cls: Type[E], value: Any, field_name: str) -> Optional[E]:
    if value is None or value == "":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        allowed = sorted(e.value for e in enum_cls)
        raise validation_error(
            f"Invalid {field_name}: {value!r}",
            field=field_name,
            allowed=allowed,
            user_message=f"{field_name} must be one of: {', '.join(allowed)}",
        ) from None


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_float(value: Any, field_name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise validation_error(f"{field_name} must be a number", field=field_name) from None


@dataclass(frozen=True, slots=True)
class GeoLocation:
    latitude: float
    longitude: float

    def __post_init__(self):
        if not -90.0 <= self.latitude <= 90.0:
            raise validation_error("latitude must be between -90 and 90", field="latitude")
        if not -180.0 <= self.longitude <= 180.0:
            raise validation_error("longitude must be between -180 and 180", field="longitude")

    @classmethod
    def from_coordinates(cls, latitude: Any, longitude: Any) -> Optional["GeoLocation"]:
        """Build a location from raw coordinates; both or neither must be given."""
        has_lat = latitude is not None and latitude != ""
        has_lng = longitude is not None and longitude != ""
        if not has_lat and not has_lng:
            return None
        if has_lat != has_lng:
            raise validation_error(
                "latitude and longitude must be provided together", field="location"
            )
        return cls(
            latitude=_parse_float(latitude, "latitude"),
            longitude=_parse_float(longitude, "longitude"),
        )

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True, slots=True)
class RecommendationContext:
    """Contextual signals attached to a recommendation request."""

    current_entity_id: Optional[str] = None
    search_query: Optional[str] = None
    location: Optional[GeoLocation] = None
    time_of_day: Optional[TimeOfDay] = None
    device_type: Optional[DeviceType] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "RecommendationContext":
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise validation_error("context must be an object", field="context")

        location_data = data.get("location")
        if location_data is not None:
            if not isinstance(location_data, Mapping):
                raise validation_error("location must be an object", field="location")
            location = GeoLocation.from_coordinates(
                location_data.get("latitude"), location_data.get("longitude")
            )
        else:
            location = None

        current = data.get("currentEntityId")
        if current is None:
            current = data.get("currentPoliticianId")

        return cls(
            current_entity_id=_optional_str(current),
            search_query=_optional_str(data.get("searchQuery")),
            location=location,
            time_of_day=_parse_enum(TimeOfDay, data.get("timeOfDay"), "timeOfDay"),
            device_type=_parse_enum(DeviceType, data.get("deviceType"), "deviceType"),
        )

    def cache_key(self) -> tuple:
        return (
            self.current_entity_id,
            self.search_query,
            (self.location.latitude, self.location.longitude) if self.location else None,
            self.time_of_day.value if self.time_of_day else None,
            self.device_type.value if self.device_type else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentEntityId": self.current_entity_id,
            "searchQuery": self.search_query,
            "location": self.location.to_dict() if self.location else None,
            "timeOfDay": self.time_of_day.value if self.time_of_day else None,
            "deviceType": self.device_type.value if self.device_type else None,
        }


@dataclass(frozen=True, slots=True)
class RecommendationRequest:
    """A typed, validated-at-parse recommendation request.

    ``user_id`` emptiness is checked by the engine at its entry point and
    ``limit`` is clamped there, so neither is enforced here.
    """

    user_id: str
    type: RecommendationType = RecommendationType.POLITICIAN
    limit: int = 10
    exclude_ids: FrozenSet[str] = field(default_factory=frozenset)
    context: RecommendationContext = field(default_factory=RecommendationContext)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], default_limit: int = 10) -> "RecommendationRequest":
        """Parse a JSON body (``excludeIds``, nested ``context``)."""
        if not isinstance(data, Mapping):
            raise validation_error("Request body must be a JSON object", field="body")

        raw_limit = data.get("limit")
        if raw_limit is None or raw_limit == "":
            limit = default_limit
        else:
            if isinstance(raw_limit, bool) or (isinstance(raw_limit, float) and not raw_limit.is_integer()):
                raise validation_error("limit must be an integer", field="limit")
            try:
                limit = int(raw_limit)
            except (TypeError, ValueError):
                raise validation_error("limit must be an integer", field="limit") from None

        exclude = data.get("excludeIds") or []
        if isinstance(exclude, str) or not isinstance(exclude, Iterable):
            raise validation_error("excludeIds must be a list of ids", field="excludeIds")

        return cls(
            user_id=str(data.get("userId") or "").strip(),
            type=_parse_enum(RecommendationType, data.get("type"), "type")
            or RecommendationType.POLITICIAN,
            limit=limit,
            exclude_ids=frozenset(str(item) for item in exclude if str(item).strip()),
            context=RecommendationContext.from_dict(data.get("context")),
        )

    def cache_key(self) -> tuple:
        return (
            self.user_id,
            self.type.value,
            self.limit,
            tuple(sorted(self.exclude_ids)),
            self.context.cache_key(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "type": self.type.value,
            "limit": self.limit,
            "excludeIds": sorted(self.exclude_ids),
            "context": self.context.to_dict(),
        }


@dataclass(slots=True)
class RecommendationItem:
    """A single ranked recommendation."""

    entity_id: str
    score: float
    reasons: List[str] = field(default_factory=list)
    title: Optional[str] = None
    breakdown: Dict[str, float] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entityId": self.entity_id,
            "score": self.score,
            "reasons": list(self.reasons),
            "title": self.title,
            "breakdown": dict(self.breakdown),
            "metadata": dict(self.metadata),
        }


@dataclass(slots=True)
class RecommendationResult:
    """Ranked engine output, ordered by descending score then entity id."""

    items: List[RecommendationItem]
    user_id: str
    signals: List[str] = field(default_factory=list)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_score(self) -> float:
        return sum(item.score for item in self.items)

    @property
    def entity_ids(self) -> List[str]:
        return [item.entity_id for item in self.items]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recommendations": [item.to_dict() for item in self.items],
            "totalScore": self.total_score,
            "signals": list(self.signals),
            "generatedAt": self.generated_at.isoformat(timespec="seconds"),
            "userId": self.user_id,
        }
