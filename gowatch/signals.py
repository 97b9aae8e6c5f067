"""OS termination signals wired to supervisor shutdown."""

from __future__ import annotations

import signal
import threading
from typing import Callable, Dict, Iterable

from .config import LOGGER

TERMINATION_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGTERM", "SIGINT", "SIGHUP") if hasattr(signal, name)
)


def install_signal_handlers(
    on_signal: Callable[[], None],
    signums: Iterable[int] = TERMINATION_SIGNALS,
) -> Dict[int, object]:
    """Call ``on_signal`` once, on the first termination signal received.

    Must run on the main thread. Returns the previous handlers.
    """
    fired = threading.Event()

    def _handler(signum, _frame):
        if fired.is_set():
            return
        fired.set()
        LOGGER.debug("received %s", signal.Signals(signum).name)
        on_signal()

    previous: Dict[int, object] = {}
    for signum in signums:
        previous[signum] = signal.signal(signum, _handler)
    return previous


def restore_signal_handlers(previous: Dict[int, object]) -> None:
    for signum, handler in previous.items():
        if handler is not None:
            signal.signal(signum, handler)


__all__ = ["TERMINATION_SIGNALS", "install_signal_handlers", "restore_signal_handlers"]
