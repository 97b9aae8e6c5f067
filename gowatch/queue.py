"""Debounced build trigger used by the watcher."""

from __future__ import annotations

import queue
import threading
import time
from typing import Callable, Optional

from .config import DELAY_SECS, LOGGER

_SIGNAL = object()
_STOP = object()


class TriggerQueue:
    """Coalesces change signals into one call of ``on_fire`` per quiet period.

    A single loop thread owns the pending counter and the deadline. Each
    signal pushes the deadline out to ``quiet_period`` from now; once it
    passes with nothing new, the counter is reset and ``on_fire`` runs on
    the loop thread. Signals that arrive while it runs arm the next cycle.
    """

    def __init__(
        self,
        on_fire: Callable[[], None],
        quiet_period: float = DELAY_SECS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.on_fire = on_fire
        self.quiet_period = quiet_period
        self._clock = clock
        self._signals: "queue.Queue[object]" = queue.Queue()
        self._pending = 0
        self._deadline: Optional[float] = None
        self._thread = threading.Thread(target=self._run, name="gowatch-debounce", daemon=True)

    @property
    def pending(self) -> int:
        return self._pending

    def start(self) -> None:
        self._thread.start()

    def signal(self) -> None:
        self._signals.put(_SIGNAL)

    def stop(self, timeout: float = 2.0) -> None:
        self._signals.put(_STOP)
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def _run(self) -> None:
        while True:
            timeout = None
            if self._deadline is not None:
                timeout = max(0.0, self._deadline - self._clock())
            try:
                item = self._signals.get(timeout=timeout)
            except queue.Empty:
                self._fire()
                continue
            if item is _STOP:
                return
            self._pending += 1
            self._deadline = self._clock() + self.quiet_period

    def _fire(self) -> None:
        self._pending = 0
        self._deadline = None
        try:
            self.on_fire()
        except Exception:
            LOGGER.exception("build trigger failed")


__all__ = ["TriggerQueue"]
