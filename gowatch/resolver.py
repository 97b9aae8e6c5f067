"""Transitive discovery of the Go packages a program depends on."""

from __future__ import annotations

import json
import os
import subprocess
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Set, Tuple

from .config import BUILD_TOOL, FOREIGN_IMPORT, LOGGER
from .logger import ResolveError

# Upper bound on concurrent `go list` calls within one level of the graph
MAX_RESOLVE_WORKERS = int(os.environ.get("GOWATCH_RESOLVE_WORKERS", "16") or 16)


@dataclass(frozen=True)
class Unit:
    """A Go package as reported by `go list`."""

    import_path: str
    dir: str
    name: str = ""
    go_files: Tuple[str, ...] = ()
    imports: Tuple[str, ...] = ()
    goroot: bool = False
    target: str = ""

    @classmethod
    def from_go_list(cls, data: dict) -> "Unit":
        return cls(
            import_path=data.get("ImportPath", ""),
            dir=data.get("Dir", ""),
            name=data.get("Name", ""),
            go_files=tuple(data.get("GoFiles") or ()),
            imports=tuple(data.get("Imports") or ()),
            goroot=bool(data.get("Goroot")),
            target=data.get("Target", "") or "",
        )


Importer = Callable[[str], Unit]


class GoListImporter:
    """Resolve one import path by asking the go tool about it."""

    def __init__(self, workdir: str, runner=subprocess.run):
        self.workdir = workdir
        self._run = runner

    def __call__(self, import_path: str) -> Unit:
        cmd = [BUILD_TOOL, "list", "-json", import_path]
        try:
            proc = self._run(
                cmd,
                cwd=self.workdir or None,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=False,
            )
        except OSError as exc:
            raise ResolveError(f"{' '.join(cmd)}: {exc}") from exc

        stderr = _decode(proc.stderr).strip()
        if proc.returncode != 0:
            raise ResolveError(stderr or f"cannot find package {import_path!r}")
        try:
            data = json.loads(_decode(proc.stdout))
        except ValueError as exc:
            raise ResolveError(f"unreadable go list output for {import_path!r}: {exc}") from exc
        if data.get("Error"):
            raise ResolveError(data["Error"].get("Err") or f"cannot load package {import_path!r}")
        return Unit.from_go_list(data)


def _decode(raw) -> str:
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    return raw or ""


def _is_dead_end(import_path: str) -> bool:
    return import_path == FOREIGN_IMPORT or import_path.startswith(".")


class Resolver:
    """Breadth-first walk of the import graph, one level at a time.

    Every unseen import of a level is resolved concurrently; the next level
    only starts once the whole current level is in. Any failure aborts the
    walk, there is no such thing as a partial graph.
    """

    def __init__(self, importer: Importer, max_workers: int = MAX_RESOLVE_WORKERS):
        self.importer = importer
        self.max_workers = max(1, max_workers)
        self._lock = threading.Lock()
        self._seen: Set[str] = set()
        self._units: List[Unit] = []

    def resolve(self, root: str) -> List[Unit]:
        root_unit = self.importer(root)
        with self._lock:
            self._seen = {root, root_unit.import_path}
            self._units = [root_unit]
        LOGGER.debug("Watching package %s", root_unit.import_path)

        level = [root_unit]
        while level:
            todo = self._unseen_imports(level)
            if not todo:
                break
            with ThreadPoolExecutor(max_workers=min(len(todo), self.max_workers)) as pool:
                futures = [pool.submit(self._load, imp) for imp in todo]
                level = [fut.result() for fut in futures]

        with self._lock:
            return list(self._units)

    def _unseen_imports(self, level: Iterable[Unit]) -> List[str]:
        todo: List[str] = []
        batch: Set[str] = set()
        for unit in level:
            for imp in unit.imports:
                if _is_dead_end(imp) or imp in batch:
                    continue
                with self._lock:
                    if imp in self._seen:
                        continue
                batch.add(imp)
                todo.append(imp)
        return todo

    def _load(self, import_path: str) -> Unit:
        t0 = time.monotonic()
        unit = self.importer(import_path)
        LOGGER.debug("Import %s [%.1fms]", import_path, (time.monotonic() - t0) * 1000)
        with self._lock:
            self._seen.add(import_path)
            self._units.append(unit)
        return unit


def resolve(
    root: str,
    workdir: str,
    importer: Optional[Importer] = None,
) -> List[Unit]:
    """Return the root package and everything it transitively imports."""
    return Resolver(importer or GoListImporter(workdir)).resolve(root)


def watch_dirs(units: Iterable[Unit]) -> List[str]:
    """Source directories worth watching: everything outside GOROOT."""
    dirs: List[str] = []
    for unit in units:
        if unit.goroot or not unit.dir or unit.dir in dirs:
            continue
        dirs.append(unit.dir)
    return dirs


def install_target(unit: Unit, workdir: str = "", runner=subprocess.run) -> str:
    """Where `go install` puts the binary for ``unit``."""
    if unit.target:
        return unit.target
    base = unit.import_path.rstrip("/").rsplit("/", 1)[-1]
    gobin = os.environ.get("GOBIN")
    if gobin:
        return os.path.join(gobin, base)
    try:
        proc = runner(
            [BUILD_TOOL, "env", "GOPATH"],
            cwd=workdir or None,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=False,
        )
    except OSError as exc:
        raise ResolveError(f"cannot locate GOPATH: {exc}") from exc
    gopath = _decode(proc.stdout).strip().split(os.pathsep)[0]
    if proc.returncode != 0 or not gopath:
        raise ResolveError(f"cannot locate install directory for {unit.import_path!r}")
    return os.path.join(gopath, "bin", base)


__all__ = [
    "Unit",
    "Importer",
    "GoListImporter",
    "Resolver",
    "resolve",
    "watch_dirs",
    "install_target",
]
