"""
Configuration management for the politician directory recommendation service.
Handles loading, validating, and providing access to application settings.
"""

import copy
import os
import json
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, field


@dataclass
class AppConfig:
    """Application configuration settings."""
    host: str
    port: int
    debug: bool
    request_timeout_seconds: float


@dataclass
class RetryPolicyConfig:
    """One named retry preset."""
    max_attempts: int
    backoff_strategy: str
    base_delay: float
    max_delay: float
    jitter: bool = False


@dataclass
class RecommendationConfig:
    """Recommendation engine settings."""
    default_limit: int
    max_limit: int
    candidate_multiplier: int
    cache_ttl_seconds: float
    cache_max_entries: int
    signal_weights: Dict[str, float]
    feedback_deltas: Dict[str, float]
    weight_bounds: tuple[float, float]
    recency_half_life_days: int
    proximity_scale_km: float
    query_threshold: float


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker thresholds shared by the per-service breakers."""
    enabled: bool
    failure_threshold: int
    recovery_timeout: float
    monitoring_period: float
    half_open_max_calls: int
    expected_error_rate: float
    minimum_throughput: int


@dataclass
class SearchConfig:
    """Search service settings."""
    default_suggestions: int
    max_suggestions: int
    suggestion_threshold: float
    related_default_limit: int
    max_related: int
    fuzzy_default_threshold: float
    fuzzy_default_limit: int
    max_fuzzy_results: int


@dataclass
class PathsConfig:
    """Path configuration settings."""
    data_dir: str
    log_file: Optional[str] = field(default=None)


def _deep_merge(target: Dict[str, Any], source: Dict[str, Any]) -> None:
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = value


class ConfigManager:
    """Manages application configuration loading and access."""

    def __init__(self, config_file: str = "politifind_config.json"):
        self.config_file = Path(config_file)
        self._config: Optional[Dict[str, Any]] = None
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file and environment variables."""
        # Start with default config
        self._config = self._get_default_config()

        # Load base config from file
        if self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    file_config = json.load(f)
                    self._merge_config(file_config)
            except (json.JSONDecodeError, FileNotFoundError):
                # Keep default config if file is invalid or not found
                pass

        # Override with environment variables
        self._override_with_env()

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration."""
        return {
            "app": {
                "host": "0.0.0.0",
                "port": 22581,
                "debug": False,
                "request_timeout_seconds": 10.0
            },
            "retry": {
                "standard": {
                    "max_attempts": 3,
                    "backoff_strategy": "exponential",
                    "base_delay": 0.1,
                    "max_delay": 1.0,
                    "jitter": False
                },
                "fast_best_effort": {
                    "max_attempts": 2,
                    "backoff_strategy": "linear",
                    "base_delay": 0.05,
                    "max_delay": 0.2,
                    "jitter": False
                }
            },
            "recommendations": {
                "default_limit": 10,
                "max_limit": 50,
                "candidate_multiplier": 3,
                "cache_ttl_seconds": 900,
                "cache_max_entries": 1024,
                "signal_weights": {
                    "affinity": 0.4,
                    "topical": 0.3,
                    "recency": 0.2,
                    "proximity": 0.1,
                    "popularity": 0.1
                },
                "feedback_deltas": {
                    "like": 1.0,
                    "clicked": 0.5,
                    "dislike": -1.0,
                    "not_interested": -0.5
                },
                "weight_bounds": [-3.0, 3.0],
                "recency_half_life_days": 30,
                "proximity_scale_km": 50.0,
                "query_threshold": 0.6
            },
            "circuit_breaker": {
                "enabled": True,
                "failure_threshold": 5,
                "recovery_timeout": 60.0,
                "monitoring_period": 300.0,
                "half_open_max_calls": 3,
                "expected_error_rate": 0.1,
                "minimum_throughput": 10
            },
            "search": {
                "default_suggestions": 10,
                "max_suggestions": 20,
                "suggestion_threshold": 0.6,
                "related_default_limit": 5,
                "max_related": 50,
                "fuzzy_default_threshold": 0.3,
                "fuzzy_default_limit": 20,
                "max_fuzzy_results": 50
            },
            "paths": {
                "data_dir": "data",
                "log_file": None
            }
        }

    def _merge_config(self, file_config: Dict[str, Any]) -> None:
        """Merge file configuration with current config."""
        _deep_merge(self._config, file_config)

    def _override_with_env(self) -> None:
        """Override configuration with environment variables."""
        # App settings
        if os.getenv("APP_HOST"):
            self._config["app"]["host"] = os.getenv("APP_HOST")

        if os.getenv("APP_PORT"):
            self._config["app"]["port"] = int(os.getenv("APP_PORT"))

        if os.getenv("APP_DEBUG"):
            self._config["app"]["debug"] = os.getenv("APP_DEBUG").lower() == "true"

        if os.getenv("REQUEST_TIMEOUT_SECONDS"):
            self._config["app"]["request_timeout_seconds"] = float(os.getenv("REQUEST_TIMEOUT_SECONDS"))

        # Paths
        if os.getenv("DATA_DIR"):
            self._config["paths"]["data_dir"] = os.getenv("DATA_DIR")

        if os.getenv("LOG_FILE"):
            self._config["paths"]["log_file"] = os.getenv("LOG_FILE")

        # Recommendation settings
        if os.getenv("RECOMMENDATION_CANDIDATE_MULTIPLIER"):
            self._config["recommendations"]["candidate_multiplier"] = int(
                os.getenv("RECOMMENDATION_CANDIDATE_MULTIPLIER")
            )

        if os.getenv("RECOMMENDATION_CACHE_TTL_SECONDS"):
            self._config["recommendations"]["cache_ttl_seconds"] = float(
                os.getenv("RECOMMENDATION_CACHE_TTL_SECONDS")
            )

        # Retry presets
        if os.getenv("RETRY_STANDARD_MAX_ATTEMPTS"):
            self._config["retry"]["standard"]["max_attempts"] = int(os.getenv("RETRY_STANDARD_MAX_ATTEMPTS"))

        if os.getenv("RETRY_FAST_MAX_ATTEMPTS"):
            self._config["retry"]["fast_best_effort"]["max_attempts"] = int(os.getenv("RETRY_FAST_MAX_ATTEMPTS"))

        # Circuit breaker
        if os.getenv("CIRCUIT_BREAKER_ENABLED"):
            self._config["circuit_breaker"]["enabled"] = os.getenv("CIRCUIT_BREAKER_ENABLED").lower() == "true"

        if os.getenv("CIRCUIT_FAILURE_THRESHOLD"):
            self._config["circuit_breaker"]["failure_threshold"] = int(os.getenv("CIRCUIT_FAILURE_THRESHOLD"))

        if os.getenv("CIRCUIT_RECOVERY_TIMEOUT"):
            self._config["circuit_breaker"]["recovery_timeout"] = float(os.getenv("CIRCUIT_RECOVERY_TIMEOUT"))

    def get_app_config(self) -> AppConfig:
        """Get application configuration."""
        app_config = self._config["app"]
        return AppConfig(
            host=app_config["host"],
            port=int(app_config["port"]),
            debug=bool(app_config["debug"]),
            request_timeout_seconds=float(app_config["request_timeout_seconds"])
        )

    def get_retry_policy_config(self, name: str) -> RetryPolicyConfig:
        """Get a named retry preset ("standard" or "fast_best_effort")."""
        preset = self._config["retry"][name]
        return RetryPolicyConfig(
            max_attempts=int(preset["max_attempts"]),
            backoff_strategy=str(preset["backoff_strategy"]),
            base_delay=float(preset["base_delay"]),
            max_delay=float(preset["max_delay"]),
            jitter=bool(preset.get("jitter", False))
        )

    def get_retry_configs(self) -> Dict[str, RetryPolicyConfig]:
        """Get every configured retry preset by name."""
        return {name: self.get_retry_policy_config(name) for name in self._config["retry"]}

    def get_recommendation_config(self) -> RecommendationConfig:
        """Get recommendation engine configuration."""
        rec_config = self._config["recommendations"]
        low, high = rec_config["weight_bounds"]
        return RecommendationConfig(
            default_limit=int(rec_config["default_limit"]),
            max_limit=int(rec_config["max_limit"]),
            candidate_multiplier=int(rec_config["candidate_multiplier"]),
            cache_ttl_seconds=float(rec_config["cache_ttl_seconds"]),
            cache_max_entries=int(rec_config["cache_max_entries"]),
            signal_weights={k: float(v) for k, v in rec_config["signal_weights"].items()},
            feedback_deltas={k: float(v) for k, v in rec_config["feedback_deltas"].items()},
            weight_bounds=(float(low), float(high)),
            recency_half_life_days=int(rec_config["recency_half_life_days"]),
            proximity_scale_km=float(rec_config["proximity_scale_km"]),
            query_threshold=float(rec_config["query_threshold"])
        )

    def get_circuit_breaker_config(self) -> CircuitBreakerConfig:
        """Get circuit breaker configuration."""
        cb_config = self._config["circuit_breaker"]
        return CircuitBreakerConfig(
            enabled=bool(cb_config["enabled"]),
            failure_threshold=int(cb_config["failure_threshold"]),
            recovery_timeout=float(cb_config["recovery_timeout"]),
            monitoring_period=float(cb_config["monitoring_period"]),
            half_open_max_calls=int(cb_config["half_open_max_calls"]),
            expected_error_rate=float(cb_config["expected_error_rate"]),
            minimum_throughput=int(cb_config["minimum_throughput"])
        )

    def get_search_config(self) -> SearchConfig:
        """Get search configuration."""
        search_config = self._config["search"]
        return SearchConfig(
            default_suggestions=int(search_config["default_suggestions"]),
            max_suggestions=int(search_config["max_suggestions"]),
            suggestion_threshold=float(search_config["suggestion_threshold"]),
            related_default_limit=int(search_config["related_default_limit"]),
            max_related=int(search_config["max_related"]),
            fuzzy_default_threshold=float(search_config["fuzzy_default_threshold"]),
            fuzzy_default_limit=int(search_config["fuzzy_default_limit"]),
            max_fuzzy_results=int(search_config["max_fuzzy_results"])
        )

    def get_paths_config(self) -> PathsConfig:
        """Get paths configuration."""
        paths_config = self._config["paths"]
        return PathsConfig(
            data_dir=paths_config["data_dir"],
            log_file=paths_config.get("log_file") or None
        )

    def get_config(self) -> Dict[str, Any]:
        """Get raw configuration dictionary."""
        return copy.deepcopy(self._config)

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    def save_config(self) -> None:
        """Save current configuration to file."""
        with open(self.config_file, 'w', encoding='utf-8') as f:
            json.dump(self._config, f, indent=2, ensure_ascii=False)


# Global configuration instance
config_manager = ConfigManager()


def get_app_config() -> AppConfig:
    """Get application configuration."""
    return config_manager.get_app_config()


def get_retry_configs() -> Dict[str, RetryPolicyConfig]:
    """Get retry presets."""
    return config_manager.get_retry_configs()


def get_recommendation_config() -> RecommendationConfig:
    """Get recommendation engine configuration."""
    return config_manager.get_recommendation_config()


def get_circuit_breaker_config() -> CircuitBreakerConfig:
    """Get circuit breaker configuration."""
    return config_manager.get_circuit_breaker_config()


def get_search_config() -> SearchConfig:
    """Get search configuration."""
    return config_manager.get_search_config()


def get_paths_config() -> PathsConfig:
    """Get paths configuration."""
    return config_manager.get_paths_config()


def reload_config() -> None:
    """Reload configuration."""
    config_manager.reload()


def save_config() -> None:
    """Save configuration to file."""
    config_manager.save_config()
