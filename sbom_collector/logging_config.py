"""Logging configuration for sbom-collector."""

import logging
import sys
from typing import Any, Dict

LOGGER_NAME = "sbom_collector"

HUMAN_FORMAT = "[%(asctime)s] %(levelname)s - %(name)s - %(message)s"
HUMAN_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO", structured: bool = False) -> logging.Logger:
    """
    Set up logging configuration.

    Logs go to stderr so that a BOM printed to stdout can be piped as-is.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        structured: Whether to use structured JSON logging

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(LOGGER_NAME)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, level.upper()))

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(getattr(logging, level.upper()))
    handler.setFormatter(_make_formatter(structured))
    logger.addHandler(handler)

    return logger


def set_log_level(level: str, structured: bool = False) -> None:
    """
    Reconfigure the package logger at runtime (used by the CLI).

    Args:
        level: Logging level name
        structured: Switch the handlers to JSON output

    Raises:
        ValueError: If the level name is unknown
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(numeric_level)
    for handler in logger.handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(_make_formatter(structured))


def _make_formatter(structured: bool) -> logging.Formatter:
    if structured:
        return StructuredFormatter()
    return logging.Formatter(HUMAN_FORMAT, datefmt=HUMAN_DATEFMT)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        import json
        from datetime import datetime

        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


# Global logger instance
logger = setup_logging()
