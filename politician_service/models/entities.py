"""
Pydantic records for directory entities and search terms.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class EntityKind(str, Enum):
    POLITICIAN = "politician"
    CONTENT = "content"


class Entity(BaseModel):
    """A recommendable directory record (a politician or a content item)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(min_length=1)
    kind: EntityKind = EntityKind.POLITICIAN
    title: str
    party: Optional[str] = None
    constituency: Optional[str] = None
    position: Optional[str] = None
    photo_url: Optional[str] = Field(default=None, alias="photoUrl")
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    popularity: Optional[float] = Field(default=None, ge=0, le=1)
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.title,
            "party": self.party,
            "constituency": self.constituency,
            "position": self.position,
            "photoUrl": self.photo_url,
        }


class SearchTermType(str, Enum):
    NAME = "name"
    PARTY = "party"
    CONSTITUENCY = "constituency"
    POSITION = "position"


class SearchTerm(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    type: SearchTermType
    frequency: int = Field(default=1, ge=0)


class RelatedPolitician(BaseModel):
    """A related or fuzzy-matched politician with its similarity."""

    model_config = ConfigDict(frozen=True)

    entity: Entity
    similarity: float
    match_type: str

    def to_dict(self) -> Dict[str, Any]:
        data = self.entity.summary()
        data["similarity"] = round(self.similarity, 4)
        data["matchType"] = self.match_type
        return data
