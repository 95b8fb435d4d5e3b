"""
String similarity helpers shared by search and recommendation scoring.

All scores are normalised to ``[0, 1]``.
"""

from typing import Optional

from rapidfuzz import fuzz, utils
from rapidfuzz.distance import Levenshtein


def fuzzy_ratio(query: str, candidate: Optional[str]) -> float:
    """Weighted ratio tolerant to word order and partial matches."""
    if not query or not candidate:
        return 0.0
    return fuzz.WRatio(query, candidate, processor=utils.default_process) / 100.0


def levenshtein_similarity(query: str, candidate: Optional[str]) -> float:
    """``1 - edit_distance / max_len`` over case-folded, trimmed strings."""
    if not query or not candidate:
        return 0.0
    return Levenshtein.normalized_similarity(query, candidate, processor=utils.default_process)


def is_prefix(query: str, candidate: str) -> bool:
    return candidate.casefold().startswith(query.casefold())


def is_word_prefix(query: str, candidate: str) -> bool:
    needle = query.casefold()
    return any(word.startswith(needle) for word in candidate.casefold().split())


# Shared-attribute weights used for "related" similarity and topical relevance,
# strongest first.
SHARED_ATTRIBUTE_WEIGHTS = (
    ("party", 0.5, "same_party"),
    ("constituency", 0.3, "same_constituency"),
    ("position", 0.2, "similar_position"),
)
