"""
Data Source collaborator.

The recommendation engine and the search service only talk to storage through
the ``DataSource`` protocol. ``JsonDataSource`` is the file-backed
implementation: directory entities live in ``entities.json`` and every user
gets a ``feedback/<uid>.json`` file holding the feedback history, the latest
feedback per recommendation and the affinity weights.
"""

import asyncio
import hashlib
import json
import logging
import os
import re
import threading
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple

from pydantic import ValidationError

from .errors import transient_error
from .models import Entity, EntityKind, FeedbackEvent, FeedbackWrite, SearchTerm, SearchTermType

logger = logging.getLogger(__name__)

_SAFE_UID = re.compile(r"[^A-Za-z0-9_.-]")

# Users are mapped onto a fixed pool of write locks.
USER_LOCK_STRIPES = 64


class DataSource(Protocol):
    """Storage operations used by the engine and the search service."""

    async def fetch_candidates(self, kind: EntityKind, limit: Optional[int] = None) -> List[Entity]: ...

    async def get_entity(self, entity_id: str) -> Optional[Entity]: ...

    async def find_entities(self, query: str, limit: int) -> List[Entity]: ...

    async def find_related(self, entity: Entity, limit: Optional[int] = None) -> List[Entity]: ...

    async def list_search_terms(self) -> List[SearchTerm]: ...

    async def load_affinity(self, user_id: str) -> Dict[str, float]: ...

    async def record_feedback(
        self, event: FeedbackEvent, delta: float, bounds: Tuple[float, float]
    ) -> FeedbackWrite: ...

    async def list_feedback(self, user_id: str) -> List[FeedbackEvent]: ...


def _popularity_order(entity: Entity) -> tuple:
    return (-(entity.popularity or 0.0), entity.id)


def _shares_attribute(source: Entity, other: Entity) -> bool:
    for attr in ("party", "constituency", "position"):
        value = getattr(source, attr)
        if value and getattr(other, attr) == value:
            return True
    return False


class JsonDataSource:
    """File-backed data source.

    Entity reads are cached and refreshed when ``entities.json`` changes on
    disk. Per-user writes are serialised with a lock from a fixed striped pool
    (one user always maps to the same lock) and replace the user file atomically.
    """

    def __init__(self, data_dir: Path):
        """Initialize the data source.

        Args:
            data_dir: Directory holding ``entities.json`` and the ``feedback`` folder
        """
        self.data_dir = Path(data_dir)
        self.entities_file = self.data_dir / "entities.json"
        self.feedback_dir = self.data_dir / "feedback"
        self.feedback_dir.mkdir(parents=True, exist_ok=True)

        self._entities_cache: Optional[Tuple[tuple, List[Entity]]] = None
        self._cache_lock = threading.Lock()
        self._user_locks: Tuple[threading.Lock, ...] = tuple(
            threading.Lock() for _ in range(USER_LOCK_STRIPES)
        )

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    def _load_entities(self) -> List[Entity]:
        try:
            stat = self.entities_file.stat()
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise transient_error(f"Cannot stat {self.entities_file.name}: {exc}") from exc
        version = (stat.st_mtime_ns, stat.st_size)

        with self._cache_lock:
            if self._entities_cache and self._entities_cache[0] == version:
                return self._entities_cache[1]

            try:
                raw = json.loads(self.entities_file.read_text(encoding="utf-8"))
            except FileNotFoundError:
                return []
            except (OSError, json.JSONDecodeError) as exc:
                raise transient_error(
                    f"Cannot read {self.entities_file.name}: {exc}", file=str(self.entities_file)
                ) from exc

            records = raw.get("entities", []) if isinstance(raw, dict) else raw
            entities = []
            for record in records or []:
                try:
                    entities.append(Entity.model_validate(record))
                except ValidationError as exc:
                    logger.warning(f"Skipping invalid entity record {record!r}: {exc}")

            self._entities_cache = (version, entities)
            logger.debug(f"Loaded {len(entities)} entities from {self.entities_file}")
            return entities

    async def _entities(self) -> List[Entity]:
        return await asyncio.to_thread(self._load_entities)

    async def fetch_candidates(self, kind: EntityKind, limit: Optional[int] = None) -> List[Entity]:
        kind = EntityKind(kind)
        entities = [e for e in await self._entities() if e.kind is kind]
        entities.sort(key=_popularity_order)
        return entities if limit is None else entities[:limit]

    async def get_entity(self, entity_id: str) -> Optional[Entity]:
        for entity in await self._entities():
            if entity.id == entity_id:
                return entity
        return None

    async def find_entities(self, query: str, limit: int) -> List[Entity]:
        needle = query.strip().lower()
        if not needle:
            return []
        matches = []
        for entity in await self._entities():
            fields = (entity.title, entity.party, entity.constituency, entity.position)
            if any(value and needle in value.lower() for value in fields):
                matches.append(entity)
        matches.sort(key=_popularity_order)
        return matches[:limit]

    async def find_related(self, entity: Entity, limit: Optional[int] = None) -> List[Entity]:
        related = [
            other
            for other in await self._entities()
            if other.id != entity.id and other.kind is EntityKind.POLITICIAN and _shares_attribute(entity, other)
        ]
        related.sort(key=lambda e: e.id)
        return related if limit is None else related[:limit]

    async def list_search_terms(self) -> List[SearchTerm]:
        counts: Counter = Counter()
        for entity in await self._entities():
            if entity.kind is not EntityKind.POLITICIAN:
                continue
            counts[(SearchTermType.NAME, entity.title)] += 1
            for term_type, value in (
                (SearchTermType.PARTY, entity.party),
                (SearchTermType.CONSTITUENCY, entity.constituency),
                (SearchTermType.POSITION, entity.position),
            ):
                if value:
                    counts[(term_type, value)] += 1

        terms = [
            SearchTerm(text=text, type=term_type, frequency=frequency)
            for (term_type, text), frequency in counts.items()
        ]
        terms.sort(key=lambda t: (-t.frequency, t.text.lower()))
        return terms

    # ------------------------------------------------------------------
    # Per-user feedback and affinity
    # ------------------------------------------------------------------

    def _user_file(self, uid: str) -> Path:
        """Get user data file path."""
        safe = _SAFE_UID.sub("_", uid)
        if safe != uid:
            safe = f"{safe}-{hashlib.sha1(uid.encode('utf-8')).hexdigest()[:8]}"
        return self.feedback_dir / f"{safe}.json"

    def _user_lock(self, uid: str) -> threading.Lock:
        digest = hashlib.sha1(uid.encode("utf-8")).digest()
        return self._user_locks[int.from_bytes(digest[:4], "big") % len(self._user_locks)]

    def _load_user_data(self, uid: str) -> Dict[str, Any]:
        path = self._user_file(uid)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            data = {}
        except (OSError, json.JSONDecodeError) as exc:
            raise transient_error(f"Cannot read feedback for user {uid}: {exc}", user_id=uid) from exc

        data.setdefault("events", [])
        data.setdefault("latest", {})
        data.setdefault("affinity", {})
        return data

    def _save_user_data(self, uid: str, data: Dict[str, Any]) -> None:
        path = self._user_file(uid)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            tmp_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as exc:
            raise transient_error(f"Cannot write feedback for user {uid}: {exc}", user_id=uid) from exc

    def _record_feedback(
        self, event: FeedbackEvent, delta: float, bounds: Tuple[float, float]
    ) -> FeedbackWrite:
        uid = event.user_id
        key = event.recommendation_id
        low, high = bounds

        with self._user_lock(uid):
            data = self._load_user_data(uid)
            latest = data["latest"].get(key)
            current = float(data["affinity"].get(key, 0.0))

            if latest and latest.get("feedback") == event.feedback.value:
                latest["timestamp"] = event.timestamp.isoformat()
                self._save_user_data(uid, data)
                return FeedbackWrite(changed=False, weight=current)

            weight = max(low, min(high, current + delta))
            data["events"].append(event.to_dict())
            data["latest"][key] = {
                "feedback": event.feedback.value,
                "timestamp": event.timestamp.isoformat(),
            }
            data["affinity"][key] = weight
            self._save_user_data(uid, data)
            return FeedbackWrite(changed=True, weight=weight)

    async def record_feedback(
        self, event: FeedbackEvent, delta: float, bounds: Tuple[float, float]
    ) -> FeedbackWrite:
        return await asyncio.to_thread(self._record_feedback, event, delta, bounds)

    async def load_affinity(self, user_id: str) -> Dict[str, float]:
        data = await asyncio.to_thread(self._load_user_data, user_id)
        return {key: float(value) for key, value in data["affinity"].items()}

    async def list_feedback(self, user_id: str) -> List[FeedbackEvent]:
        data = await asyncio.to_thread(self._load_user_data, user_id)
        return [FeedbackEvent.from_dict(e) for e in data["events"]]
