"""The set of filesystem paths subscribed to change notifications."""

from __future__ import annotations

import enum
import glob
import os
import stat
import threading
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from .config import LOGGER, SOURCE_EXT
from .logger import WatchSetupError
from .resolver import Unit, watch_dirs


class Op(enum.Enum):
    CREATE = "create"
    WRITE = "write"
    RENAME = "rename"
    REMOVE = "remove"
    CHMOD = "chmod"


@dataclass(frozen=True)
class FsEvent:
    op: Op
    path: str

    def __str__(self) -> str:
        return f'{self.op.name}: "{self.path}"'


class WatchSet:
    """Non-recursive watchdog subscriptions keyed by absolute path.

    Directories are subscribed for membership changes; files only when they
    carry the source extension or were named by an extra-watch pattern.
    Directories of GOROOT packages never enter the set.
    """

    def __init__(
        self,
        observer,
        handler,
        extra_paths: Iterable[str] = (),
        extension: str = SOURCE_EXT,
        foundation_dirs: Iterable[str] = (),
        on_seen: Optional[Callable[[str], None]] = None,
    ):
        self.observer = observer
        # called with every source file the set knows about
        self.on_seen = on_seen
        self.handler = handler
        self.extension = extension
        self.extra_paths: FrozenSet[str] = frozenset(os.path.abspath(p) for p in extra_paths)
        self.foundation_dirs: FrozenSet[str] = frozenset(
            os.path.abspath(d) for d in foundation_dirs
        )
        self._lock = threading.Lock()
        self._watches: Dict[str, object] = {}

    def __contains__(self, path: str) -> bool:
        with self._lock:
            return os.path.abspath(path) in self._watches

    def __len__(self) -> int:
        with self._lock:
            return len(self._watches)

    def paths(self) -> Set[str]:
        with self._lock:
            return set(self._watches)

    def matches(self, path: str) -> bool:
        name = os.path.basename(path)
        if os.path.splitext(name)[1] == self.extension and not name.startswith("."):
            return True
        return os.path.abspath(path) in self.extra_paths

    def in_foundation(self, path: str) -> bool:
        path = os.path.abspath(path)
        return any(path == d or path.startswith(d + os.sep) for d in self.foundation_dirs)

    def add(self, path: str, strict: bool = False) -> bool:
        """Subscribe ``path``. Returns True when it was not watched before."""
        path = os.path.abspath(path)
        with self._lock:
            if path in self._watches:
                return False
            try:
                watch = self.observer.schedule(self.handler, path, recursive=False)
            except OSError as exc:
                if strict:
                    raise WatchSetupError(f"watch {path}: {exc}") from exc
                LOGGER.debug("watch %s: %s", path, exc)
                return False
            self._watches[path] = watch
        LOGGER.debug("Watch %s", path)
        if os.path.isfile(path):
            self._note(path)
        return True

    def _note(self, path: str) -> None:
        if self.on_seen is not None:
            self.on_seen(path)

    def remove(self, path: str) -> bool:
        """Unsubscribe exactly ``path``; failures are logged, never raised."""
        path = os.path.abspath(path)
        with self._lock:
            watch = self._watches.pop(path, None)
        if watch is None:
            LOGGER.debug("can't remove non-existent watch: %s", path)
            return False
        try:
            self.observer.unschedule(watch)
        except (KeyError, OSError) as exc:
            LOGGER.debug("unwatch %s: %s", path, exc)
        return True

    def initialize(self, units: Sequence[Unit], extra_patterns: Sequence[str] = ()) -> "WatchSet":
        """Subscribe every package directory and every extra-pattern match.

        Runs at startup; any failure raises WatchSetupError.
        """
        for directory in watch_dirs(units):
            self.add(directory, strict=True)
            for name in sorted(os.listdir(directory)):
                path = os.path.join(directory, name)
                if self.matches(path) and os.path.isfile(path):
                    self._note(path)

        extras: Set[str] = set(self.extra_paths)
        for pattern in extra_patterns:
            for match in sorted(glob.glob(pattern)):
                path = os.path.abspath(match)
                LOGGER.debug("Watch (extra) %s", path)
                self.add(path, strict=True)
                extras.add(path)
        self.extra_paths = frozenset(extras)
        return self

    def on_fs_event(self, event: FsEvent) -> Tuple[List[str], List[str], bool]:
        """Apply one event to the set.

        Returns the newly watched paths, the unwatched paths and whether the
        event counts as a change that should trigger a build.
        """
        if event.op is Op.CHMOD or self.in_foundation(event.path):
            return [], [], False

        if event.op is Op.REMOVE:
            if self.remove(event.path):
                return [], [os.path.abspath(event.path)], True
            # never watched: only a source file going away is a change
            return [], [], self.matches(event.path)

        try:
            st = os.stat(event.path)
        except OSError as exc:
            LOGGER.debug("%s", exc)
            return [], [], False

        if stat.S_ISDIR(st.st_mode):
            candidates = [event.path] + self._walk(event.path)
        elif self.matches(event.path):
            candidates = [event.path]
        else:
            return [], [], False

        added = [os.path.abspath(p) for p in candidates if self.add(p)]
        return added, [], True

    def _walk(self, top: str) -> List[str]:
        """Every nested directory plus every matching file below ``top``."""
        found: List[str] = []

        def _onerror(exc: OSError) -> None:
            LOGGER.debug("%s", exc)

        for dirpath, dirnames, filenames in os.walk(top, onerror=_onerror):
            if dirpath != top:
                found.append(dirpath)
            for name in sorted(filenames):
                path = os.path.join(dirpath, name)
                if self.matches(path):
                    found.append(path)
            dirnames.sort()
        return found


def initialize(
    observer,
    handler,
    units: Sequence[Unit],
    extra_patterns: Sequence[str] = (),
    extension: str = SOURCE_EXT,
    on_seen: Optional[Callable[[str], None]] = None,
) -> WatchSet:
    """Build the startup watch set for ``units`` and ``extra_patterns``."""
    watch_set = WatchSet(
        observer,
        handler,
        extension=extension,
        foundation_dirs=[u.dir for u in units if u.goroot and u.dir],
        on_seen=on_seen,
    )
    return watch_set.initialize(units, extra_patterns)


__all__ = ["Op", "FsEvent", "WatchSet", "initialize"]
