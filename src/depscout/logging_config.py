"""Structured logging configuration for depscout.

Configurable via environment variables:
- LOG_LEVEL: Set log level (DEBUG, INFO, WARNING, ERROR). Default: INFO
- LOG_FORMAT: Set format ('text' or 'json'). Default: text

Usage:
    from depscout.logging_config import configure_logging
    configure_logging()  # Call once at process startup
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime
from typing import Any, ClassVar

ROOT_LOGGER = "depscout"

# Attributes every LogRecord carries; anything else was passed via `extra=`.
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime", "taskName"}


class JSONFormatter(logging.Formatter):
    """JSON lines formatter for machine-readable logs."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a single JSON line.

        Args:
            record: Log record to format.

        Returns:
            JSON string with timestamp, level, logger, message and any extras.
        """
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL):
            log_data["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter: TIMESTAMP LEVEL [LOGGER] MESSAGE."""

    LEVEL_COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;31m",
    }
    RESET: ClassVar[str] = "\033[0m"

    def __init__(self, use_colors: bool = True) -> None:
        """Initialize formatter.

        Args:
            use_colors: Whether to use ANSI colors (only applied on a TTY).
        """
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        level = record.levelname

        if self.use_colors:
            level_str = f"{self.LEVEL_COLORS.get(level, '')}{level:8s}{self.RESET}"
        else:
            level_str = f"{level:8s}"

        logger_name = record.name
        if logger_name.startswith(f"{ROOT_LOGGER}."):
            logger_name = logger_name[len(ROOT_LOGGER) + 1 :]

        parts = [f"{timestamp} {level_str} [{logger_name}] {record.getMessage()}"]

        if record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL):
            parts.append(f" ({record.filename}:{record.lineno})")

        if record.exc_info:
            parts.append(f"\n{self.formatException(record.exc_info)}")

        return "".join(parts)


def get_log_level() -> int:
    """Read the LOG_LEVEL environment variable.

    Returns:
        Logging level constant, INFO when unset or unrecognized.
    """
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    if level_name == "WARN":
        level_name = "WARNING"
    level = logging.getLevelName(level_name)
    return level if isinstance(level, int) else logging.INFO


def get_log_format() -> str:
    """Read the LOG_FORMAT environment variable ('text' or 'json')."""
    format_name = os.environ.get("LOG_FORMAT", "text").lower()
    return format_name if format_name in ("text", "json") else "text"


def configure_logging(
    level: int | None = None,
    format_type: str | None = None,
    use_colors: bool = True,
) -> None:
    """Configure the depscout logger hierarchy.

    Should be called once at startup, before the first discovery run.

    Args:
        level: Log level. If None, reads LOG_LEVEL.
        format_type: 'text' or 'json'. If None, reads LOG_FORMAT.
        use_colors: Whether to colorize text output on a TTY.
    """
    if level is None:
        level = get_log_level()
    if format_type is None:
        format_type = get_log_format()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        JSONFormatter() if format_type == "json" else TextFormatter(use_colors=use_colors)
    )

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False

    # Route API access logs through the same handler when served by uvicorn
    uvicorn_access = logging.getLogger("uvicorn.access")
    uvicorn_access.handlers.clear()
    uvicorn_access.addHandler(handler)
    uvicorn_access.setLevel(level)
    uvicorn_access.propagate = False

    root_logger.debug(
        "Logging configured: level=%s, format=%s",
        logging.getLevelName(level),
        format_type,
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the depscout namespace.

    Args:
        name: Module name (typically __name__).

    Returns:
        Logger instance.
    """
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
