#!/usr/bin/env python3
"""
Simple runner script for the Flask application.
This script ensures the correct Python path is set, configures logging and
runs the app.
"""

import sys
from pathlib import Path

# Add the current directory to Python path
current_dir = Path(__file__).parent
sys.path.insert(0, str(current_dir))

from app.main import create_app
from config_manager import ConfigManager
from politician_service.logging_config import setup_logging, stop_logging


def main() -> None:
    config_manager = ConfigManager()
    app_config = config_manager.get_app_config()
    paths_config = config_manager.get_paths_config()

    setup_logging(debug=app_config.debug, log_file=paths_config.log_file)
    print("🚀 Starting Flask application...")
    print(f"📁 Working directory: {current_dir}")

    app = create_app(config_manager)
    try:
        app.run(
            host=app_config.host,
            port=app_config.port,
            debug=app_config.debug
        )
    finally:
        stop_logging()


if __name__ == "__main__":
    main()
