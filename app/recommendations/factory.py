"""
Factory for creating the recommendation module.
"""
from typing import Dict, Optional

from politician_service.circuit_breaker import CircuitBreaker
from politician_service.data_source import DataSource
from politician_service.models import FeedbackKind
from politician_service.recommendations import EngineSettings, RecommendationEngine, build_default_signals
from politician_service.retry import STANDARD_POLICY, RetryExecutor, RetryPolicy

from .routes import create_recommendation_blueprint


def create_recommendation_module(
    data_source: DataSource,
    recommendation_config=None,
    retry_policies: Optional[Dict[str, RetryPolicy]] = None,
    retry_executor: Optional[RetryExecutor] = None,
    request_timeout_seconds: Optional[float] = None,
    circuit_breaker: Optional[CircuitBreaker] = None,
) -> dict:
    """Create recommendation module with service and routes.

    Args:
        data_source: Storage collaborator for candidates and feedback
        recommendation_config: ``RecommendationConfig`` from the config manager;
            engine defaults are used when omitted
        retry_policies: Named retry presets; the engine uses ``standard``
        retry_executor: Shared executor (a fresh one is created when omitted)
        request_timeout_seconds: Deadline applied to each request
        circuit_breaker: Breaker guarding the engine's data source calls

    Returns:
        Dictionary containing the service and blueprint
    """
    policies = retry_policies or {}
    default_limit = 10

    if recommendation_config is not None:
        settings = EngineSettings(
            max_limit=recommendation_config.max_limit,
            candidate_multiplier=recommendation_config.candidate_multiplier,
            cache_ttl_seconds=recommendation_config.cache_ttl_seconds,
            cache_max_entries=recommendation_config.cache_max_entries,
            feedback_deltas={
                FeedbackKind(kind): delta
                for kind, delta in recommendation_config.feedback_deltas.items()
            },
            weight_bounds=recommendation_config.weight_bounds,
        )
        signals = build_default_signals(
            weights=recommendation_config.signal_weights,
            weight_bound=max(abs(b) for b in recommendation_config.weight_bounds),
            recency_half_life_days=recommendation_config.recency_half_life_days,
            proximity_scale_km=recommendation_config.proximity_scale_km,
            query_threshold=recommendation_config.query_threshold,
        )
        default_limit = recommendation_config.default_limit
    else:
        settings = EngineSettings()
        signals = None

    engine = RecommendationEngine(
        data_source=data_source,
        signals=signals,
        retry_executor=retry_executor,
        policy=policies.get("standard", STANDARD_POLICY),
        settings=settings,
        circuit_breaker=circuit_breaker,
    )

    blueprint = create_recommendation_blueprint(
        engine,
        default_limit=default_limit,
        request_timeout_seconds=request_timeout_seconds,
    )

    return {
        "service": engine,
        "blueprint": blueprint
    }
