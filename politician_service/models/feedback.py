"""
Feedback event model for the per-user affinity weighting.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List


class FeedbackKind(str, Enum):
    """Enumeration of feedback a user can give on a recommendation."""

    LIKE = "like"
    DISLIKE = "dislike"
    NOT_INTERESTED = "not_interested"
    CLICKED = "clicked"

    @classmethod
    def is_valid(cls, value: Any) -> bool:
        """Check if a feedback value is valid."""
        try:
            cls(value)
            return True
        except ValueError:
            return False

    @classmethod
    def get_allowed_kinds(cls) -> List[str]:
        """Get list of all allowed feedback kinds."""
        return [kind.value for kind in cls]


@dataclass
class FeedbackEvent:
    """A single piece of user feedback on a recommended entity."""

    user_id: str
    recommendation_id: str
    feedback: FeedbackKind
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        self.feedback = FeedbackKind(self.feedback)

    @property
    def key(self) -> tuple:
        return (self.user_id, self.recommendation_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "recommendationId": self.recommendation_id,
            "feedback": self.feedback.value,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeedbackEvent":
        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
        else:
            parsed = datetime.now(timezone.utc)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return cls(
            user_id=data["userId"],
            recommendation_id=data["recommendationId"],
            feedback=FeedbackKind(data["feedback"]),
            timestamp=parsed,
        )


@dataclass(frozen=True)
class FeedbackWrite:
    """Outcome of persisting a feedback event."""

    changed: bool
    weight: float
