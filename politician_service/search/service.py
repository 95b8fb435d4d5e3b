"""
Search service: suggestions, related politicians and fuzzy search.

Every data source lookup is wrapped in the RetryExecutor. Suggestions use the
fast best-effort policy because they sit on the typing path; the related and
fuzzy lookups use the standard policy.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..circuit_breaker import CircuitBreaker
from ..data_source import DataSource
from ..errors import not_found_error, validation_error
from ..models import Entity, EntityKind, RelatedPolitician, SearchTerm
from ..retry import FAST_BEST_EFFORT_POLICY, STANDARD_POLICY, RetryExecutor, RetryPolicy
from .similarity import (
    SHARED_ATTRIBUTE_WEIGHTS,
    fuzzy_ratio,
    is_prefix,
    is_word_prefix,
    levenshtein_similarity,
)

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2


@dataclass
class SearchSettings:
    max_suggestions: int = 20
    suggestion_threshold: float = 0.6
    max_related: int = 50
    max_fuzzy_results: int = 50


class SearchService:
    """Service for suggestion and similarity lookups over the directory."""

    def __init__(
        self,
        data_source: DataSource,
        retry_executor: Optional[RetryExecutor] = None,
        settings: Optional[SearchSettings] = None,
        suggestion_policy: RetryPolicy = FAST_BEST_EFFORT_POLICY,
        lookup_policy: RetryPolicy = STANDARD_POLICY,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.data_source = data_source
        self.retry_executor = retry_executor or RetryExecutor()
        self.settings = settings or SearchSettings()
        self.suggestion_policy = suggestion_policy
        self.lookup_policy = lookup_policy
        self.circuit_breaker = circuit_breaker

    async def get_suggestions(self, query: Optional[str], limit: int = 10) -> List[str]:
        """Prefix/fuzzy suggestions for a partial query.

        Queries shorter than two characters return an empty list without
        touching the data source.
        """
        query = (query or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            return []
        limit = max(1, min(int(limit), self.settings.max_suggestions))

        terms = await self.retry_executor.execute(
            self.data_source.list_search_terms,
            policy=self.suggestion_policy,
            operation_name="get_suggestions",
            circuit_breaker=self.circuit_breaker,
        )

        ranked: List[Tuple[tuple, str]] = []
        for term in terms:
            rank = self._suggestion_rank(query, term)
            if rank is not None:
                ranked.append((rank, term.text))
        ranked.sort(key=lambda item: item[0])

        suggestions: List[str] = []
        seen = set()
        for _, text in ranked:
            folded = text.casefold()
            if folded in seen:
                continue
            seen.add(folded)
            suggestions.append(text)
            if len(suggestions) >= limit:
                break
        return suggestions

    def _suggestion_rank(self, query: str, term: SearchTerm) -> Optional[tuple]:
        if is_prefix(query, term.text):
            tier, similarity = 0, 1.0
        elif is_word_prefix(query, term.text):
            tier, similarity = 1, 1.0
        else:
            similarity = fuzzy_ratio(query, term.text)
            if similarity < self.settings.suggestion_threshold:
                return None
            tier = 2
        return (tier, -similarity, -term.frequency, term.text.casefold())

    async def get_related_politicians(self, entity_id: Optional[str], limit: int = 5) -> List[RelatedPolitician]:
        """Politicians sharing party, constituency or position with ``entity_id``.

        Raises:
            ClassifiedError: VALIDATION_ERROR for a blank id, NOT_FOUND when the
                source politician does not exist
        """
        entity_id = (entity_id or "").strip()
        if not entity_id:
            raise validation_error("Politician ID is required", field="id")
        limit = max(1, min(int(limit), self.settings.max_related))

        async def lookup() -> Tuple[Entity, List[Entity]]:
            source = await self.data_source.get_entity(entity_id)
            if source is None:
                raise not_found_error(f"Politician {entity_id} not found", entity_id=entity_id)
            return source, await self.data_source.find_related(source)

        source, candidates = await self.retry_executor.execute(
            lookup,
            policy=self.lookup_policy,
            operation_name="get_related_politicians",
            circuit_breaker=self.circuit_breaker,
        )

        related: List[RelatedPolitician] = []
        for candidate in candidates:
            if candidate.id == source.id:
                continue
            similarity = 0.0
            match_type = None
            for attr, weight, label in SHARED_ATTRIBUTE_WEIGHTS:
                value = getattr(source, attr)
                if value is not None and getattr(candidate, attr) == value:
                    similarity += weight
                    match_type = match_type or label
            if match_type is not None:
                related.append(
                    RelatedPolitician(entity=candidate, similarity=similarity, match_type=match_type)
                )

        related.sort(key=lambda r: (-r.similarity, r.entity.id))
        return related[:limit]

    async def fuzzy_search(
        self, query: Optional[str], threshold: float = 0.3, limit: int = 20
    ) -> List[RelatedPolitician]:
        """Typo-tolerant search over names, parties and constituencies."""
        query = (query or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            raise validation_error(
                "Search query must be at least 2 characters", field="q"
            )
        if not 0.0 <= threshold <= 1.0:
            raise validation_error("Threshold must be between 0 and 1", field="threshold")
        limit = max(1, min(int(limit), self.settings.max_fuzzy_results))

        politicians = await self.retry_executor.execute(
            lambda: self.data_source.fetch_candidates(EntityKind.POLITICIAN),
            policy=self.lookup_policy,
            operation_name="fuzzy_search",
            circuit_breaker=self.circuit_breaker,
        )

        matches: List[RelatedPolitician] = []
        for politician in politicians:
            best_field, best_similarity = None, 0.0
            for field_name, value in (
                ("name", politician.title),
                ("party", politician.party),
                ("constituency", politician.constituency),
            ):
                similarity = levenshtein_similarity(query, value)
                if similarity > best_similarity:
                    best_field, best_similarity = field_name, similarity
            if best_field is not None and best_similarity >= threshold:
                matches.append(
                    RelatedPolitician(
                        entity=politician,
                        similarity=best_similarity,
                        match_type=f"{best_field}_fuzzy",
                    )
                )

        matches.sort(key=lambda r: (-r.similarity, r.entity.id))
        logger.debug(f"Fuzzy search '{query}' matched {len(matches)} politicians")
        return matches[:limit]
