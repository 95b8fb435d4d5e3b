"""
Shared fixtures: an in-memory data source with call counters and a sleep
stub that records requested delays instead of waiting.
"""

from collections import Counter, defaultdict
from typing import Dict, List, Optional

import pytest

from politician_service.models import (
    Entity,
    EntityKind,
    FeedbackEvent,
    FeedbackWrite,
    SearchTerm,
    SearchTermType,
)


def make_entity(entity_id: str, **fields) -> Entity:
    fields.setdefault("title", entity_id.upper())
    return Entity(id=entity_id, **fields)


class FakeDataSource:
    """In-memory data source; ``fail()`` queues exceptions per method."""

    def __init__(self, entities=None, terms: Optional[List[SearchTerm]] = None):
        self.entities: Dict[str, Entity] = {e.id: e for e in entities or []}
        self.terms = terms
        self.calls: Counter = Counter()
        self.failures: Dict[str, list] = defaultdict(list)
        self.affinity: Dict[str, Dict[str, float]] = defaultdict(dict)
        self.latest: Dict[tuple, FeedbackEvent] = {}
        self.events: List[FeedbackEvent] = []

    def fail(self, method: str, *errors: BaseException) -> None:
        self.failures[method].extend(errors)

    def _enter(self, method: str) -> None:
        self.calls[method] += 1
        if self.failures[method]:
            raise self.failures[method].pop(0)

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    async def fetch_candidates(self, kind, limit=None):
        self._enter("fetch_candidates")
        entities = [e for e in self.entities.values() if e.kind is EntityKind(kind)]
        entities.sort(key=lambda e: (-(e.popularity or 0.0), e.id))
        return entities if limit is None else entities[:limit]

    async def get_entity(self, entity_id):
        self._enter("get_entity")
        return self.entities.get(entity_id)

    async def find_entities(self, query, limit):
        self._enter("find_entities")
        needle = query.lower()
        matches = [
            e for e in self.entities.values()
            if any(v and needle in v.lower() for v in (e.title, e.party, e.constituency, e.position))
        ]
        matches.sort(key=lambda e: (-(e.popularity or 0.0), e.id))
        return matches[:limit]

    async def find_related(self, entity, limit=None):
        self._enter("find_related")
        related = [
            other for other in self.entities.values()
            if other.id != entity.id
            and any(
                getattr(entity, attr) and getattr(other, attr) == getattr(entity, attr)
                for attr in ("party", "constituency", "position")
            )
        ]
        related.sort(key=lambda e: e.id)
        return related if limit is None else related[:limit]

    async def list_search_terms(self):
        self._enter("list_search_terms")
        if self.terms is not None:
            return list(self.terms)
        return [SearchTerm(text=e.title, type=SearchTermType.NAME) for e in self.entities.values()]

    async def load_affinity(self, user_id):
        self._enter("load_affinity")
        return dict(self.affinity[user_id])

    async def record_feedback(self, event, delta, bounds):
        self._enter("record_feedback")
        current = self.affinity[event.user_id].get(event.recommendation_id, 0.0)
        previous = self.latest.get(event.key)
        if previous is not None and previous.feedback is event.feedback:
            previous.timestamp = event.timestamp
            return FeedbackWrite(changed=False, weight=current)
        weight = max(bounds[0], min(bounds[1], current + delta))
        self.affinity[event.user_id][event.recommendation_id] = weight
        self.latest[event.key] = event
        self.events.append(event)
        return FeedbackWrite(changed=True, weight=weight)

    async def list_feedback(self, user_id):
        self._enter("list_feedback")
        return [e for e in self.events if e.user_id == user_id]


class RecordingSleep:
    """Async sleep replacement that records delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def politicians():
    return [
        make_entity("p1", party="Green", constituency="North", position="MP", popularity=0.5),
        make_entity("p2", party="Green", constituency="South", position="MP", popularity=0.4),
        make_entity("p3", party="Labour", constituency="North", position="Senator", popularity=0.3),
        make_entity("p4", party="Liberal", constituency="East", position="Mayor", popularity=0.2),
    ]


@pytest.fixture
def fake_source(politicians):
    return FakeDataSource(politicians)
