import itertools
import logging
import os
import sys
import threading
import time
from pathlib import Path

import pytest

# Ensure repository root is on sys.path so `import gowatch...` works locally
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(scope="session", autouse=True)
def _disable_colors():
    """Keep ANSI escapes out of captured output."""
    prev = os.environ.get("GOWATCH_NO_COLOR")
    os.environ["GOWATCH_NO_COLOR"] = "1"
    try:
        yield
    finally:
        if prev is None:
            os.environ.pop("GOWATCH_NO_COLOR", None)
        else:
            os.environ["GOWATCH_NO_COLOR"] = prev


@pytest.fixture
def gowatch_log(caplog):
    """caplog wired to the gowatch logger, which does not propagate."""
    from gowatch.config import LOGGER

    prev = LOGGER.level
    LOGGER.addHandler(caplog.handler)
    LOGGER.setLevel(logging.DEBUG)
    try:
        yield caplog
    finally:
        LOGGER.removeHandler(caplog.handler)
        LOGGER.setLevel(prev)


def wait_for(predicate, timeout=5.0, interval=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def waiter():
    return wait_for


class FakeWatch:
    def __init__(self, path):
        self.path = path

    def __repr__(self):
        return f"FakeWatch({self.path!r})"


class FakeObserver:
    """Stands in for a watchdog observer; paths must exist to be scheduled."""

    def __init__(self):
        self.handler = None
        self.scheduled = {}
        self.unscheduled = []
        self.fail = set()
        self.alive = False
        self.stopped = False

    def schedule(self, handler, path, recursive=False):
        assert recursive is False
        if path in self.fail or not os.path.exists(path):
            raise FileNotFoundError(2, "No such file or directory", path)
        self.handler = handler
        watch = FakeWatch(path)
        self.scheduled[path] = watch
        return watch

    def unschedule(self, watch):
        if self.scheduled.get(watch.path) is not watch:
            raise KeyError(watch)
        del self.scheduled[watch.path]
        self.unscheduled.append(watch.path)

    def start(self):
        self.alive = True

    def stop(self):
        self.alive = False
        self.stopped = True

    def join(self, timeout=None):
        pass

    def is_alive(self):
        return self.alive


@pytest.fixture
def fake_observer():
    return FakeObserver()


class FakeProcess:
    """Child process double that exits as soon as it is signalled."""

    _pids = itertools.count(1000)

    def __init__(self, args, log):
        self.args = list(args)
        self.pid = next(self._pids)
        self.log = log
        self.signals = []
        self.killed = False
        self.returncode = None
        self.refuse_signals = False

    def send_signal(self, sig):
        if self.refuse_signals:
            raise PermissionError(1, "Operation not permitted")
        self.signals.append(sig)
        self.log.append(("signal", self.pid, sig))
        self.returncode = -int(sig)

    def kill(self):
        self.killed = True
        self.log.append(("kill", self.pid))
        self.returncode = -9

    def wait(self, timeout=None):
        self.log.append(("exited", self.pid))
        return self.returncode

    def poll(self):
        return self.returncode


class FakePopen:
    def __init__(self):
        self.log = []
        self.processes = []
        self.fail = False
        self._lock = threading.Lock()

    def __call__(self, args):
        if self.fail:
            raise FileNotFoundError(2, "No such file or directory", args[0])
        with self._lock:
            proc = FakeProcess(args, self.log)
            self.log.append(("spawn", proc.pid))
            self.processes.append(proc)
        return proc


@pytest.fixture
def fake_popen():
    return FakePopen()
