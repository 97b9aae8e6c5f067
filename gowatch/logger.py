"""Logging utility for gowatch.

Human-readable by default: the tool writes a terminal log stream next to the
output of the build tool and the supervised program, so records carry only
the message. Set LOG_FORMAT=json for structured output.
"""
import json
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict

_log_level_str = os.environ.get("LOG_LEVEL", "INFO").upper()
_log_level = getattr(logging, _log_level_str, logging.INFO)
_json_default = os.environ.get("LOG_FORMAT", "").strip().lower() == "json"

# Cache loggers to avoid repeated lookups
_logger_cache: Dict[str, logging.Logger] = {}


class JSONFormatter(logging.Formatter):
    """Format log records as JSON for structured logging."""

    __slots__ = ()

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info and record.exc_info[0] is not None:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info),
            }

        extra = getattr(record, "extra_fields", None)
        if extra:
            log_data.update(extra)

        return json.dumps(log_data, default=str)


def get_logger(name: str, json_format: bool = _json_default) -> logging.Logger:
    """Get a logger instance writing to stderr.

    Args:
        name: Logger name (typically __name__)
        json_format: If True, use JSON formatter; otherwise bare messages

    Returns:
        Configured logger instance
    """
    cache_key = f"{name}:{json_format}"
    if cache_key in _logger_cache:
        return _logger_cache[cache_key]

    logger = logging.getLogger(name)
    logger.setLevel(_log_level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JSONFormatter() if json_format else logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.propagate = False

    _logger_cache[cache_key] = logger
    return logger


def set_verbose(logger: logging.Logger, verbose: bool) -> None:
    """Let DEBUG records (watch/resolve/build/restart details) through."""
    if verbose:
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(_log_level)


class GoWatchError(Exception):
    """Base exception for all gowatch errors."""
    pass


class ResolveError(GoWatchError):
    """A package in the dependency graph could not be found or inspected."""
    pass


class WatchSetupError(GoWatchError):
    """Subscribing the initial watch set failed."""
    pass


class ConfigurationError(GoWatchError):
    """Error in command-line flags or environment setup."""
    pass
