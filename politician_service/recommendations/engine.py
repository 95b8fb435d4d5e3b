"""
Recommendation engine.

Builds a ranked recommendation list for a typed request: resolve a candidate
pool from the data source, drop excluded ids, score every candidate with the
weighted signals, sort and truncate. Pool resolution and scoring run inside
the RetryExecutor so a transient data source failure is absorbed. Feedback is
validated up front and persisted through the same executor.

This module has no Flask dependency so it can be reused by batch jobs or a
CLI as well as the web app.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..circuit_breaker import CircuitBreaker
from ..data_source import DataSource
from ..errors import validation_error
from ..models import (
    EntityKind,
    FeedbackEvent,
    FeedbackKind,
    RecommendationItem,
    RecommendationRequest,
    RecommendationResult,
    RecommendationType,
)
from ..retry import STANDARD_POLICY, RetryExecutor, RetryPolicy
from .strategies import ScoringContext, ScoringSignal, build_default_signals

logger = logging.getLogger(__name__)

DEFAULT_FEEDBACK_DELTAS: Dict[FeedbackKind, float] = {
    FeedbackKind.LIKE: 1.0,
    FeedbackKind.CLICKED: 0.5,
    FeedbackKind.DISLIKE: -1.0,
    FeedbackKind.NOT_INTERESTED: -0.5,
}


@dataclass(slots=True)
class EngineSettings:
    """Tunables for the engine, normally filled from configuration."""

    max_limit: int = 50
    candidate_multiplier: int = 3
    cache_ttl_seconds: float = 900.0
    cache_max_entries: int = 1024
    feedback_deltas: Dict[FeedbackKind, float] = field(
        default_factory=lambda: dict(DEFAULT_FEEDBACK_DELTAS)
    )
    weight_bounds: Tuple[float, float] = (-3.0, 3.0)


class _ResultCache:
    """Per-request TTL cache that can be invalidated per user.

    Expired entries are purged on every write and the cache holds at most
    ``max_entries`` results, evicting the least recently used.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max(1, max_entries)
        self._clock = clock
        self._entries: "OrderedDict[tuple, Tuple[float, RecommendationResult]]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, stored_at: float, now: float) -> bool:
        return now - stored_at > self.ttl_seconds

    def get(self, key: tuple) -> Optional[RecommendationResult]:
        if not self.enabled:
            return None
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, result = entry
            if self._expired(stored_at, self._clock()):
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return result

    def put(self, key: tuple, result: RecommendationResult) -> None:
        if not self.enabled:
            return
        with self._lock:
            now = self._clock()
            for stale_key in [k for k, (stored_at, _) in self._entries.items() if self._expired(stored_at, now)]:
                del self._entries[stale_key]
            self._entries[key] = (now, result)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def invalidate_user(self, user_id: str) -> None:
        with self._lock:
            for key in [k for k in self._entries if k[0] == user_id]:
                del self._entries[key]


class RecommendationEngine:
    """Aggregates weighted signals over a candidate pool."""

    def __init__(
        self,
        data_source: DataSource,
        signals: Optional[Sequence[ScoringSignal]] = None,
        retry_executor: Optional[RetryExecutor] = None,
        policy: RetryPolicy = STANDARD_POLICY,
        settings: Optional[EngineSettings] = None,
        now: Optional[Callable[[], datetime]] = None,
        cache_clock: Callable[[], float] = time.monotonic,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.data_source = data_source
        self.settings = settings or EngineSettings()
        self.signals = list(signals) if signals is not None else build_default_signals(
            weight_bound=max(abs(b) for b in self.settings.weight_bounds)
        )
        if not self.signals:
            raise ValueError("At least one scoring signal is required.")
        self.retry_executor = retry_executor or RetryExecutor()
        self.policy = policy
        self._now = now or (lambda: datetime.now(timezone.utc))
        self.circuit_breaker = circuit_breaker
        self._cache = _ResultCache(
            self.settings.cache_ttl_seconds,
            max_entries=self.settings.cache_max_entries,
            clock=cache_clock,
        )

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    def clamp_limit(self, limit: int) -> int:
        return max(1, min(int(limit), self.settings.max_limit))

    async def generate_recommendations(self, request: RecommendationRequest) -> RecommendationResult:
        """Produce a ranked recommendation list for ``request``.

        Raises:
            ClassifiedError: VALIDATION_ERROR for a blank user id (never
                retried), or the last data source error once retries are exhausted
        """
        if not request.user_id or not request.user_id.strip():
            raise validation_error("userId is required", field="userId")

        request = replace(request, user_id=request.user_id.strip(), limit=self.clamp_limit(request.limit))
        cache_key = request.cache_key()
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Recommendation cache hit for user {request.user_id}")
            return cached

        result = await self.retry_executor.execute(
            lambda: self._rank(request),
            policy=self.policy,
            operation_name="generate_recommendations",
            circuit_breaker=self.circuit_breaker,
        )
        self._cache.put(cache_key, result)
        return result

    async def _rank(self, request: RecommendationRequest) -> RecommendationResult:
        context = await self._resolve_context(request)

        aggregated: Dict[str, RecommendationItem] = {
            entity.id: RecommendationItem(
                entity_id=entity.id,
                score=0.0,
                title=entity.title,
                metadata={"kind": entity.kind.value},
            )
            for entity in context.candidates
        }
        contributions: Dict[str, List[Tuple[float, str]]] = {entity_id: [] for entity_id in aggregated}
        used_signals: List[str] = []

        for signal in self.signals:
            partial_scores = signal.score(context)
            for entity_id, signal_score in partial_scores.items():
                item = aggregated.get(entity_id)
                if item is None:
                    continue
                contribution = signal.weight * signal_score.value
                if contribution == 0:
                    continue
                item.score += contribution
                item.breakdown[signal.name] = item.breakdown.get(signal.name, 0.0) + contribution
                if contribution > 0:
                    contributions[entity_id].extend((contribution, reason) for reason in signal_score.reasons)
                if signal_score.metadata:
                    item.metadata[signal.name] = signal_score.metadata
                if signal.name not in used_signals:
                    used_signals.append(signal.name)

        for entity_id, item in aggregated.items():
            item.reasons = _ranked_reasons(contributions[entity_id])

        ranked = sorted(aggregated.values(), key=lambda item: (-item.score, item.entity_id))
        return RecommendationResult(
            items=ranked[: request.limit],
            user_id=request.user_id,
            signals=used_signals,
            generated_at=context.now,
        )

    async def _resolve_context(self, request: RecommendationRequest) -> ScoringContext:
        pool_size = request.limit * self.settings.candidate_multiplier + len(request.exclude_ids)
        query = request.context.search_query

        if request.type is RecommendationType.SEARCH and query is not None:
            candidates = await self.data_source.find_entities(query, pool_size)
        elif request.type is RecommendationType.CONTENT:
            candidates = await self.data_source.fetch_candidates(EntityKind.CONTENT, pool_size)
        else:
            candidates = await self.data_source.fetch_candidates(EntityKind.POLITICIAN, pool_size)

        current_id = request.context.current_entity_id
        excluded = set(request.exclude_ids)
        if current_id is not None:
            excluded.add(current_id)
        candidates = [entity for entity in candidates if entity.id not in excluded]

        anchor = await self.data_source.get_entity(current_id) if current_id is not None else None
        affinity = await self.data_source.load_affinity(request.user_id)

        return ScoringContext(
            request=request,
            candidates=candidates,
            anchor=anchor,
            affinity=affinity,
            now=self._now(),
        )

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    async def update_recommendation_models(
        self, user_id: Any, recommendation_id: Any, feedback: Any
    ) -> FeedbackEvent:
        """Record feedback and nudge the user's affinity for the entity.

        Validation happens before any retry; only the persistence write goes
        through the RetryExecutor. Repeating the latest feedback for the same
        recommendation only refreshes its timestamp.
        """
        user_id = str(user_id or "").strip()
        recommendation_id = str(recommendation_id or "").strip()
        if not user_id:
            raise validation_error("userId is required", field="userId")
        if not recommendation_id:
            raise validation_error("recommendationId is required", field="recommendationId")
        if not feedback:
            raise validation_error("feedback is required", field="feedback")
        if not FeedbackKind.is_valid(feedback):
            allowed = FeedbackKind.get_allowed_kinds()
            raise validation_error(
                f"Invalid feedback: {feedback!r}",
                field="feedback",
                allowed=allowed,
                user_message=f"feedback must be one of: {', '.join(allowed)}",
            )

        event = FeedbackEvent(
            user_id=user_id,
            recommendation_id=recommendation_id,
            feedback=FeedbackKind(feedback),
            timestamp=self._now(),
        )
        delta = self.settings.feedback_deltas.get(event.feedback, 0.0)

        write = await self.retry_executor.execute(
            lambda: self.data_source.record_feedback(event, delta, self.settings.weight_bounds),
            policy=self.policy,
            operation_name="record_feedback",
            circuit_breaker=self.circuit_breaker,
        )
        self._cache.invalidate_user(user_id)
        logger.info(
            f"Recorded {event.feedback.value} from {user_id} on {recommendation_id} "
            f"(changed={write.changed}, weight={write.weight:.2f})"
        )
        return event

    async def get_feedback_history(self, user_id: Any) -> List[FeedbackEvent]:
        """Feedback recorded by ``user_id``, oldest first."""
        user_id = str(user_id or "").strip()
        if not user_id:
            raise validation_error("userId is required", field="userId")
        return await self.retry_executor.execute(
            lambda: self.data_source.list_feedback(user_id),
            policy=self.policy,
            operation_name="list_feedback",
            circuit_breaker=self.circuit_breaker,
        )


def _ranked_reasons(contributions: List[Tuple[float, str]], limit: int = 8) -> List[str]:
    ordered: List[str] = []
    for _, reason in sorted(contributions, key=lambda item: -item[0]):
        if reason not in ordered:
            ordered.append(reason)
        if len(ordered) >= limit:
            break
    return ordered
