# linework/logging_config.py
"""
Stderr-only logging configuration.

Two formats: JSON lines for unattended runs and a compact human-readable
format for interactive CLI use. Stdout is left to command output.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

HUMAN_FORMAT = "%(asctime)s  %(levelname)-7s  %(message)s"
HUMAN_DATEFMT = "%H:%M:%S"

_LEVELS = {
    "quiet": logging.WARNING,
    "normal": logging.INFO,
    "verbose": logging.DEBUG,
}

# Chatty third-party loggers kept at WARNING unless verbose
_NOISY_LOGGERS = ("httpx", "httpcore", "google_genai", "aiosqlite")


class JsonFormatter(logging.Formatter):
    """Formats log records as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON line."""
        log_data: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        # Include exception info if present
        if record.exc_info:
            log_data["exc"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def configure_logging(verbosity: str = "normal", json_output: bool = False) -> None:
    """
    Configure root logging to stderr.

    Clears existing handlers so repeated CLI invocations in one process
    (tests) do not stack handlers.

    Args:
        verbosity: quiet, normal or verbose
        json_output: Emit JSON lines instead of the human-readable format
    """
    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(HUMAN_FORMAT, datefmt=HUMAN_DATEFMT))

    level = _LEVELS.get(verbosity, logging.INFO)
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(
            logging.DEBUG if verbosity == "verbose" else logging.WARNING
        )
