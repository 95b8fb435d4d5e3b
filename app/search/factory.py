"""
Search subsystem factory for creating search modules.
"""
from typing import Dict, Optional

from politician_service.circuit_breaker import CircuitBreaker
from politician_service.data_source import DataSource
from politician_service.retry import FAST_BEST_EFFORT_POLICY, STANDARD_POLICY, RetryExecutor, RetryPolicy
from politician_service.search import SearchService, SearchSettings

from .routes import create_search_routes


def create_search_module(
    data_source: DataSource,
    search_config=None,
    retry_policies: Optional[Dict[str, RetryPolicy]] = None,
    retry_executor: Optional[RetryExecutor] = None,
    request_timeout_seconds: Optional[float] = None,
    circuit_breaker: Optional[CircuitBreaker] = None,
) -> dict:
    """Create search module with service and routes."""
    policies = retry_policies or {}
    settings = SearchSettings()
    if search_config is not None:
        settings = SearchSettings(
            max_suggestions=search_config.max_suggestions,
            suggestion_threshold=search_config.suggestion_threshold,
            max_related=search_config.max_related,
            max_fuzzy_results=search_config.max_fuzzy_results,
        )

    search_service = SearchService(
        data_source,
        retry_executor=retry_executor,
        settings=settings,
        suggestion_policy=policies.get("fast_best_effort", FAST_BEST_EFFORT_POLICY),
        lookup_policy=policies.get("standard", STANDARD_POLICY),
        circuit_breaker=circuit_breaker,
    )
    search_routes = create_search_routes(
        search_service,
        search_config=search_config,
        request_timeout_seconds=request_timeout_seconds,
    )

    return {
        "service": search_service,
        "blueprint": search_routes
    }
