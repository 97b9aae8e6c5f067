"""Lifecycle of the program being developed: start, restart, shutdown."""

from __future__ import annotations

import enum
import queue
import signal
import subprocess
import threading
from typing import List, Optional, Sequence

from .config import LOGGER


class State(enum.Enum):
    NO_PROCESS = "no-process"
    RUNNING = "running"
    STOPPING = "stopping"
    TERMINATED = "terminated"


class Request(enum.Enum):
    RESTART = "restart"
    SHUTDOWN = "shutdown"


class Supervisor:
    """Actor owning the child process handle.

    Other threads only send requests; the single-slot request queue makes
    a second restart wait until the previous teardown and spawn are done.
    """

    def __init__(
        self,
        command: Sequence[str],
        popen=subprocess.Popen,
        interrupt: int = signal.SIGINT,
        stop_timeout: Optional[float] = None,
    ):
        self.command: List[str] = list(command)
        self.interrupt = interrupt
        # None waits for the child indefinitely after the interrupt
        self.stop_timeout = stop_timeout
        self._popen = popen
        self._requests: "queue.Queue[Request]" = queue.Queue(maxsize=1)
        self._process: Optional[subprocess.Popen] = None
        self._state = State.NO_PROCESS
        self._done = threading.Event()
        self._thread = threading.Thread(target=self._run, name="gowatch-supervisor", daemon=True)

    @property
    def state(self) -> State:
        return self._state

    @property
    def process(self) -> Optional[subprocess.Popen]:
        return self._process

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def start(self) -> None:
        self._thread.start()

    def restart(self) -> None:
        if self._done.is_set():
            return
        self._requests.put(Request.RESTART)

    def shutdown(self) -> None:
        if self._done.is_set():
            return
        self._requests.put(Request.SHUTDOWN)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until a shutdown request has been fully processed."""
        return self._done.wait(timeout)

    def _run(self) -> None:
        while True:
            request = self._requests.get()
            self._stop()
            if request is Request.SHUTDOWN:
                self._state = State.TERMINATED
                self._done.set()
                return
            self._spawn()

    def _stop(self) -> None:
        proc = self._process
        if proc is None:
            return
        self._state = State.STOPPING
        try:
            proc.send_signal(self.interrupt)
        except OSError as exc:
            LOGGER.warning("%s", exc)
            self._kill(proc)
        try:
            proc.wait(timeout=self.stop_timeout)
        except subprocess.TimeoutExpired:
            LOGGER.warning("process %s ignored interrupt; killing", proc.pid)
            self._kill(proc)
            proc.wait()
        self._process = None
        self._state = State.NO_PROCESS

    @staticmethod
    def _kill(proc) -> None:
        try:
            proc.kill()
        except OSError as exc:
            LOGGER.debug("kill %s: %s", proc.pid, exc)

    def _spawn(self) -> None:
        LOGGER.debug("%s", self.command)
        try:
            self._process = self._popen(self.command)
        except OSError as exc:
            LOGGER.error("%s", exc)
            self._state = State.NO_PROCESS
            return
        self._state = State.RUNNING


__all__ = ["State", "Request", "Supervisor"]
