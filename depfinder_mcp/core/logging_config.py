"""
Logging configuration for depfinder_mcp.

This module provides structured logging with JSON output option and log rotation.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Any, Dict

from depfinder_mcp.core import json_utils as json
from depfinder_mcp.core.config import get_config

HUMAN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_EXTRA_FIELDS = ("tool_name", "file_name", "execution_time_ms", "error_code", "pass_number")


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in _EXTRA_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(console_level: int = logging.INFO) -> None:
    """
    Configure logging for depfinder_mcp.

    Logging configuration:
    - Log level from settings (default: INFO)
    - Log format from settings (default: human-readable)
    - Log file from settings (default: /tmp/depfinder/app.log)
    - Log rotation: 100MB max size, keep 10 backup files
    """
    settings = get_config()
    log_level = settings.log_level.upper()
    log_format = settings.log_format.lower()
    log_file = settings.log_file

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
    except (PermissionError, OSError):
        # Console-only logging in restricted environments
        pass

    logger = logging.getLogger("depfinder_mcp")
    logger.setLevel(getattr(logging, log_level, logging.INFO))
    logger.handlers.clear()

    # Console goes to stderr; stdout carries command output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(HUMAN_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console_handler)

    try:
        file_handler = RotatingFileHandler(
            str(log_file),
            maxBytes=100 * 1024 * 1024,  # 100MB
            backupCount=10,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)

        if log_format == "json":
            file_formatter: logging.Formatter = JSONFormatter()
        else:
            file_formatter = logging.Formatter(HUMAN_FORMAT, datefmt=DATE_FORMAT)

        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)
    except (PermissionError, OSError) as e:
        logger.warning(
            f"Could not create log file handler for {log_file}: {e}. "
            "Logging to console only."
        )

    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    if name.startswith("depfinder_mcp"):
        return logging.getLogger(name)
    return logging.getLogger(f"depfinder_mcp.{name}")
