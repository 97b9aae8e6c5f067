"""Watchdog event handler feeding the watch set and the build trigger."""

from __future__ import annotations

import os
import queue
import threading
from typing import Callable, Dict, Optional, Tuple

from watchdog.events import FileSystemEventHandler

from .config import LOGGER
from .watchset import FsEvent, Op, WatchSet


class EventHandler(FileSystemEventHandler):
    """Translate watchdog callbacks into FsEvents and apply them in order.

    Callbacks only enqueue; a single worker thread does the stat/walk/
    subscribe work so bursts never fan out into concurrent tree walks.
    """

    def __init__(self, process: Optional[Callable[[FsEvent], None]] = None):
        super().__init__()
        self.process = process
        self._events: "queue.Queue[Optional[FsEvent]]" = queue.Queue()
        self._stamps: Dict[str, Tuple[int, int]] = {}
        self._worker = threading.Thread(target=self._run, name="gowatch-events", daemon=True)

    def start(self) -> None:
        self._worker.start()

    def close(self, timeout: float = 2.0) -> None:
        self._events.put(None)
        if self._worker.is_alive():
            self._worker.join(timeout)

    def emit(self, event: FsEvent) -> None:
        self._events.put(event)

    def remember(self, path: str) -> None:
        """Record the current content stamp of ``path``.

        A later "modified" event with the same stamp is a metadata-only
        change; a file never remembered always counts as written.
        """
        try:
            st = os.stat(path)
        except OSError:
            return
        self._stamps[os.path.abspath(path)] = (st.st_mtime_ns, st.st_size)

    def on_created(self, event):
        self.emit(FsEvent(Op.CREATE, os.fsdecode(event.src_path)))

    def on_modified(self, event):
        # Directory "modified" only mirrors membership changes, which arrive
        # as their own create/delete/move events.
        if event.is_directory:
            return
        path = os.fsdecode(event.src_path)
        self.emit(FsEvent(self._classify_modified(path), path))

    def on_moved(self, event):
        self.emit(FsEvent(Op.REMOVE, os.fsdecode(event.src_path)))
        self.emit(FsEvent(Op.RENAME, os.fsdecode(event.dest_path)))

    def on_deleted(self, event):
        path = os.fsdecode(event.src_path)
        self._stamps.pop(os.path.abspath(path), None)
        self.emit(FsEvent(Op.REMOVE, path))

    def _classify_modified(self, path: str) -> Op:
        """WRITE when content changed, CHMOD for metadata-only changes."""
        try:
            st = os.stat(path)
        except OSError:
            return Op.WRITE
        stamp = (st.st_mtime_ns, st.st_size)
        key = os.path.abspath(path)
        prev = self._stamps.get(key)
        self._stamps[key] = stamp
        return Op.CHMOD if prev == stamp else Op.WRITE

    def _run(self) -> None:
        while True:
            event = self._events.get()
            if event is None:
                return
            if self.process is None:
                continue
            try:
                self.process(event)
            except Exception:
                LOGGER.exception("failed to handle %s", event)


def make_processor(watch_set: WatchSet, trigger: Callable[[], None]) -> Callable[[FsEvent], None]:
    """Apply an event to ``watch_set`` and call ``trigger`` if it counts as a change."""

    def _process(event: FsEvent) -> None:
        _added, _removed, accepted = watch_set.on_fs_event(event)
        if not accepted:
            return
        LOGGER.debug("%s", event)
        trigger()

    return _process


__all__ = ["EventHandler", "make_processor"]
