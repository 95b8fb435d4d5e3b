from .service import MIN_QUERY_LENGTH, SearchService, SearchSettings
from .similarity import fuzzy_ratio, levenshtein_similarity

__all__ = [
    "MIN_QUERY_LENGTH",
    "SearchService",
    "SearchSettings",
    "fuzzy_ratio",
    "levenshtein_similarity",
]
