import argparse
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Optional

# Import configuration management
import sys
sys.path.append(str(Path(__file__).parent.parent))
from config_manager import ConfigManager

from flask import Flask, jsonify
from werkzeug.middleware.proxy_fix import ProxyFix

from politician_service.circuit_breaker import CircuitBreakerManager, CircuitBreakerSettings
from politician_service.data_source import DataSource, JsonDataSource
from politician_service.retry import RetryExecutor, RetryPolicy

from app.recommendations.factory import create_recommendation_module
from app.search.factory import create_search_module

PROJECT_ROOT = Path(__file__).parent.parent

logger = logging.getLogger(__name__)


def resolve_data_dir(data_dir: str) -> Path:
    """Relative data directories are resolved against the project root."""
    path = Path(data_dir)
    return path if path.is_absolute() else PROJECT_ROOT / path


def create_app(
    config_manager: Optional[ConfigManager] = None,
    data_source: Optional[DataSource] = None,
    retry_executor: Optional[RetryExecutor] = None,
    circuit_breakers: Optional[CircuitBreakerManager] = None,
) -> Flask:
    """Build the Flask application.

    Args:
        config_manager: Configuration source; a default ``ConfigManager`` is
            loaded when omitted
        data_source: Storage collaborator; defaults to ``JsonDataSource`` over
            the configured data directory
        retry_executor: Executor shared by the engine and the search service
        circuit_breakers: Registry of per-service breakers; built from the
            ``circuit_breaker`` config section when omitted

    Returns:
        The configured Flask app
    """
    config_manager = config_manager or ConfigManager()
    app_config = config_manager.get_app_config()
    paths_config = config_manager.get_paths_config()

    # -------------------------------------------------------------------------
    # Collaborators
    # -------------------------------------------------------------------------

    if data_source is None:
        data_source = JsonDataSource(resolve_data_dir(paths_config.data_dir))
    retry_executor = retry_executor or RetryExecutor()
    retry_policies = {
        name: RetryPolicy.from_dict(asdict(preset))
        for name, preset in config_manager.get_retry_configs().items()
    }

    breaker_config = asdict(config_manager.get_circuit_breaker_config())
    breakers_enabled = breaker_config.pop("enabled")
    if circuit_breakers is None and breakers_enabled:
        circuit_breakers = CircuitBreakerManager(CircuitBreakerSettings.from_dict(breaker_config))

    app = Flask(__name__)
    app.wsgi_app = ProxyFix(
        app.wsgi_app,
        x_proto=1,     # trust 1 hop for X-Forwarded-Proto
        x_host=1,      # trust 1 hop for X-Forwarded-Host
        x_prefix=1)    # trust 1 hop for X-Forwarded-Prefix
    app.json.sort_keys = False

    # -------------------------------------------------------------------------
    # Subsystems
    # -------------------------------------------------------------------------

    recommendation_module = create_recommendation_module(
        data_source=data_source,
        recommendation_config=config_manager.get_recommendation_config(),
        retry_policies=retry_policies,
        retry_executor=retry_executor,
        request_timeout_seconds=app_config.request_timeout_seconds,
        circuit_breaker=circuit_breakers.get("recommendations") if circuit_breakers is not None else None,
    )
    search_module = create_search_module(
        data_source=data_source,
        search_config=config_manager.get_search_config(),
        retry_policies=retry_policies,
        retry_executor=retry_executor,
        request_timeout_seconds=app_config.request_timeout_seconds,
        circuit_breaker=circuit_breakers.get("search") if circuit_breakers is not None else None,
    )

    app.register_blueprint(recommendation_module["blueprint"])
    app.register_blueprint(search_module["blueprint"])

    app.extensions["recommendation_engine"] = recommendation_module["service"]
    app.extensions["search_service"] = search_module["service"]
    app.extensions["data_source"] = data_source
    app.extensions["circuit_breakers"] = circuit_breakers

    @app.get("/health")
    def health():
        """Health check endpoint for monitoring tools and cloud platforms."""
        body = {"status": "ok"}
        if circuit_breakers is not None:
            body["circuits"] = circuit_breakers.all_stats()
        return jsonify(body), 200

    logger.info(
        f"Application created (retry presets: {', '.join(sorted(retry_policies))}, "
        f"timeout: {app_config.request_timeout_seconds}s)"
    )
    return app


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------

if __name__ == "__main__":
    from politician_service.logging_config import setup_logging

    parser = argparse.ArgumentParser(description="Politician directory recommendation service")
    parser.add_argument("--port", type=int, help="Port to run the server on")
    parser.add_argument("--host", type=str, help="Host to bind the server to")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    args = parser.parse_args()

    config_manager = ConfigManager()
    app_config = config_manager.get_app_config()

    # Override configuration with command line arguments
    if args.port:
        app_config.port = args.port
    if args.host:
        app_config.host = args.host
    if args.debug:
        app_config.debug = args.debug

    setup_logging(debug=app_config.debug)
    app = create_app(config_manager)
    print(f"✅ Serving data from {resolve_data_dir(config_manager.get_paths_config().data_dir).resolve()}")
    print(f"   - Server: {app_config.host}:{app_config.port}")
    app.run(
        host=app_config.host,
        port=app_config.port,
        debug=app_config.debug
    )
