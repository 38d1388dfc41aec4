"""Logging utilities for calendar-client.

Modules log through child loggers of ``calendar_client``; this module
owns the handler and level of the package root logger.
"""

from __future__ import annotations

import logging
import sys

from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from .config import LogSettings


class _LoggerHolder:
    """Holder for the global logger instance."""

    instance: logging.Logger | None = None


def get_logger() -> logging.Logger:
    """Get the calendar_client logger instance.

    Returns
    -------
    logging.Logger
        The calendar_client logger configured with a stream handler.
    """
    if _LoggerHolder.instance is None:
        logger = logging.getLogger("calendar_client")
        logger.setLevel(logging.WARNING)

        # Only add handler if none exists
        if not logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setLevel(logging.DEBUG)
            formatter = logging.Formatter("%(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)

        _LoggerHolder.instance = logger

    return _LoggerHolder.instance


def set_level(level: int | str) -> None:
    """Set the logging level.

    Parameters
    ----------
    level : int or str
        The logging level (e.g., logging.DEBUG, "DEBUG").
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())
    get_logger().setLevel(level)


def enable_debug() -> None:
    """Enable debug logging for request dispatch and session transitions."""
    set_level(logging.DEBUG)


def configure(settings: LogSettings) -> logging.Logger:
    """Apply log settings to the package logger.

    Parameters
    ----------
    settings : LogSettings
        Level and format to apply.

    Returns
    -------
    logging.Logger
        The configured package logger.
    """
    logger = get_logger()
    logger.setLevel(getattr(logging, settings.level))
    for handler in logger.handlers:
        handler.setFormatter(logging.Formatter(settings.format))
    return logger


# Keys that should be redacted in log output for security
_SENSITIVE_KEYS = frozenset(
    {
        "password",
        "secret",
        "token",
        "authorization",
        "credential",
        "api_key",
        "apikey",
    }
)


def redact_sensitive_data(
    data: dict[str, Any] | list[Any] | str | None, max_depth: int = 5
) -> dict[str, Any] | list[Any] | str | None:
    """Redact sensitive values from data for safe logging.

    Recursively traverses dicts/lists and replaces values for keys
    that match sensitive patterns with "[REDACTED]".

    Parameters
    ----------
    data : dict or list or str or None
        The data to redact.
    max_depth : int, optional
        Maximum recursion depth to prevent infinite loops (default: 5).

    Returns
    -------
    dict or list or str or None
        A copy of the data with sensitive values redacted.
    """
    if max_depth <= 0:
        return "[MAX_DEPTH]"

    if data is None:
        return None

    if isinstance(data, dict):
        result: dict[str, Any] = {}
        for k, v in data.items():
            key_lower = k.lower() if isinstance(k, str) else str(k).lower()
            if any(sensitive in key_lower for sensitive in _SENSITIVE_KEYS):
                result[k] = "[REDACTED]"
            else:
                result[k] = redact_sensitive_data(v, max_depth - 1)
        return result

    if isinstance(data, list):
        return [redact_sensitive_data(item, max_depth - 1) for item in data]

    return data
