# Recommendation and search core for the politician directory

from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerManager,
    CircuitBreakerSettings,
    CircuitOpenError,
    CircuitState,
)
from .data_source import DataSource, JsonDataSource
from .errors import (
    ClassifiedError,
    ErrorKind,
    ErrorSeverity,
    classify_error,
    from_exception,
    internal_error,
    not_found_error,
    transient_error,
    validation_error,
)
from .recommendations import EngineSettings, RecommendationEngine
from .retry import (
    FAST_BEST_EFFORT_POLICY,
    POLICY_PRESETS,
    STANDARD_POLICY,
    BackoffStrategy,
    RetryExecutor,
    RetryPolicy,
    RetryResult,
)
from .search import SearchService, SearchSettings

__all__ = [
    "BackoffStrategy",
    "CircuitBreaker",
    "CircuitBreakerManager",
    "CircuitBreakerSettings",
    "CircuitOpenError",
    "CircuitState",
    "ClassifiedError",
    "DataSource",
    "EngineSettings",
    "ErrorKind",
    "ErrorSeverity",
    "FAST_BEST_EFFORT_POLICY",
    "JsonDataSource",
    "POLICY_PRESETS",
    "RecommendationEngine",
    "RetryExecutor",
    "RetryPolicy",
    "RetryResult",
    "STANDARD_POLICY",
    "SearchService",
    "SearchSettings",
    "classify_error",
    "from_exception",
    "internal_error",
    "not_found_error",
    "transient_error",
    "validation_error",
]
