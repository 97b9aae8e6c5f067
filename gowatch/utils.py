"""Misc utilities shared across gowatch modules."""

from __future__ import annotations

import os
from typing import Any, Type

from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from .config import LOGGER


def safe_print(*args: Any, **kwargs: Any) -> None:
    """Best-effort print that swallows IO errors."""
    try:
        print(*args, **kwargs)
    except (OSError, ValueError):
        pass


def get_boolean_env(name: str, default: bool = False) -> bool:
    """Parse a boolean environment variable."""
    val = os.environ.get(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def create_observer(use_polling: bool, observer_cls: Type[BaseObserver] = Observer) -> BaseObserver:
    """Create a watchdog observer based on configuration."""
    if use_polling:
        from watchdog.observers.polling import PollingObserver

        LOGGER.debug("Using polling observer for filesystem events")
        return PollingObserver()
    return observer_cls()


__all__ = [
    "safe_print",
    "get_boolean_env",
    "create_observer",
]
