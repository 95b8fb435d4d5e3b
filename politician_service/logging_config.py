"""
Logging Configuration Module

Thread-safe logging for the recommendation service. Request handlers, the
retry executor and the data source all log through module loggers; records go
through a queue and are written by a single listener thread so lines from
concurrent requests never interleave.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from queue import Queue
from typing import List, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"

NOISY_LOGGERS = ("werkzeug", "urllib3", "asyncio")


class _AccessLogFilter(logging.Filter):
    """Drops werkzeug per-request access lines for successful health checks."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not (record.name or "").startswith("werkzeug"):
            return True
        msg = record.getMessage()
        return not (isinstance(msg, str) and "GET /health" in msg and '" 200 ' in msg)


class ThreadSafeLoggingConfig:
    """Queue-based logging configuration."""

    def __init__(self):
        self._log_listener: Optional[logging.handlers.QueueListener] = None
        self._log_queue: Optional[Queue] = None

    def setup_logging(self, debug: bool = False, log_file: Optional[Path] = None) -> None:
        """
        Configure queue-based logging and silence chatty libraries.

        Calling this again replaces the previous configuration.

        Args:
            debug: Whether to enable debug logging
            log_file: Optional file that receives a rotating copy of the log
        """
        self.stop()
        self._log_queue = Queue()
        queue_handler = logging.handlers.QueueHandler(self._log_queue)

        formatter = logging.Formatter(LOG_FORMAT)
        handlers: List[logging.Handler] = []

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

        if log_file is not None:
            log_file = Path(log_file)
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
            )
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)

        self._log_listener = logging.handlers.QueueListener(
            self._log_queue, *handlers, respect_handler_level=True
        )
        self._log_listener.start()

        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        root_logger.addHandler(queue_handler)
        root_logger.setLevel(logging.DEBUG if debug else logging.INFO)

        if not debug:
            self._silence_noisy_libraries()

    def _silence_noisy_libraries(self) -> None:
        for handler in logging.getLogger().handlers:
            handler.addFilter(_AccessLogFilter())

        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    def stop(self) -> None:
        """Stop the logging listener and cleanup."""
        if self._log_listener:
            self._log_listener.stop()
            self._log_listener = None
        self._log_queue = None


# Global logging configuration instance
logging_config = ThreadSafeLoggingConfig()


def setup_logging(debug: bool = False, log_file: Optional[Path] = None) -> None:
    logging_config.setup_logging(debug, log_file)


def stop_logging() -> None:
    logging_config.stop()
