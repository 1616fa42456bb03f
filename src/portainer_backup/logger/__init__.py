"""
portainer-backup Logger Module

Provides the logging interface used across the package, with run tracking,
structured key=value output and optional JSON formatting.

Usage:
    from portainer_backup.logger import get_logger, create_logger

    logger = get_logger()
    logger.info("Backup started", operation="backup")

Environment Variables:
    PORTAINER_BACKUP_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    PORTAINER_BACKUP_LOG_FILE: Optional file path for log output
    PORTAINER_BACKUP_LOG_JSON: Set to "true" for JSON output format
"""

import logging
import os
from typing import Optional, TextIO

from .interface import Logger
from .structured_logger import JsonFormatter, StructuredLogger, TextFormatter

DEFAULT_LOGGER_NAME = "portainer-backup"


def _get_env_prefix(name: str) -> str:
    """Convert logger name to environment variable prefix.

    Examples:
        "portainer-backup" -> "PORTAINER_BACKUP"
    """
    return name.upper().replace("-", "_")


def create_logger(
    name: str = DEFAULT_LOGGER_NAME,
    level: Optional[int] = None,
    log_file: Optional[str] = None,
    json_format: Optional[bool] = None,
    stream: Optional[TextIO] = None,
) -> Logger:
    """Create a new logger instance with the specified configuration.

    Parameters left as None are read from {PREFIX}_LOG_LEVEL, {PREFIX}_LOG_FILE
    and {PREFIX}_LOG_JSON where PREFIX is derived from the name.

    Args:
        name: Logger name
        level: Logging level (defaults to INFO or env var)
        log_file: Optional file path for log output
        json_format: If True, output logs as JSON
        stream: Console stream (defaults to stderr)

    Returns:
        A configured Logger instance
    """
    env_prefix = _get_env_prefix(name)

    if level is None:
        level_str = os.environ.get(f"{env_prefix}_LOG_LEVEL", "INFO").upper()
        level = getattr(logging, level_str, logging.INFO)

    if log_file is None:
        log_file = os.environ.get(f"{env_prefix}_LOG_FILE")

    if json_format is None:
        json_format = os.environ.get(f"{env_prefix}_LOG_JSON", "false").lower() == "true"

    return StructuredLogger(
        name=name,
        level=level,
        log_file=log_file,
        json_format=json_format,
        stream=stream,
    )


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> Logger:
    """Get a logger configured from environment variables."""
    return create_logger(name=name)


__all__ = [
    "Logger",
    "StructuredLogger",
    "JsonFormatter",
    "TextFormatter",
    "create_logger",
    "get_logger",
    "DEFAULT_LOGGER_NAME",
]
