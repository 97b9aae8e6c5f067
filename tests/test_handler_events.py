import os
import sys
import time

import pytest
from watchdog.events import (
    DirCreatedEvent,
    DirModifiedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from gowatch.handler import EventHandler, make_processor
from gowatch.resolver import Unit
from gowatch.watchset import FsEvent, Op, initialize


def _collect(dispatch):
    seen = []
    handler = EventHandler(seen.append)
    handler.start()
    dispatch(handler)
    handler.close()
    return seen


@pytest.mark.unit
def test_created_deleted_and_moved_are_translated(tmp_path):
    a = str(tmp_path / "a.go")
    b = str(tmp_path / "b.go")
    d = str(tmp_path / "pkg")

    def dispatch(h):
        h.dispatch(FileCreatedEvent(a))
        h.dispatch(DirCreatedEvent(d))
        h.dispatch(FileMovedEvent(a, b))
        h.dispatch(FileDeletedEvent(b))

    assert _collect(dispatch) == [
        FsEvent(Op.CREATE, a),
        FsEvent(Op.CREATE, d),
        FsEvent(Op.REMOVE, a),
        FsEvent(Op.RENAME, b),
        FsEvent(Op.REMOVE, b),
    ]


@pytest.mark.unit
def test_directory_modified_and_close_events_are_dropped(tmp_path):
    def dispatch(h):
        h.dispatch(DirModifiedEvent(str(tmp_path)))
        h.dispatch(FileClosedEvent(str(tmp_path / "a.go")))

    assert _collect(dispatch) == []


@pytest.mark.unit
def test_metadata_only_modification_is_chmod(tmp_path):
    path = tmp_path / "main.go"
    path.write_text("package main\n")
    p = str(path)

    def dispatch(h):
        h.on_modified(FileModifiedEvent(p))
        # same content, mode bits only
        os.chmod(p, 0o600)
        h.on_modified(FileModifiedEvent(p))
        path.write_text("package main\n\nfunc main() {}\n")
        h.on_modified(FileModifiedEvent(p))

    ops = [e.op for e in _collect(dispatch)]
    assert ops == [Op.WRITE, Op.CHMOD, Op.WRITE]


@pytest.mark.unit
def test_processor_errors_do_not_stop_the_worker(gowatch_log):
    seen = []

    def process(event):
        if event.path == "boom":
            raise RuntimeError("kaput")
        seen.append(event.path)

    handler = EventHandler(process)
    handler.start()
    handler.emit(FsEvent(Op.WRITE, "boom"))
    handler.emit(FsEvent(Op.WRITE, "fine"))
    handler.close()

    assert seen == ["fine"]
    assert "failed to handle" in gowatch_log.text


@pytest.mark.unit
def test_processor_triggers_only_accepted_events(tmp_path, fake_observer):
    (tmp_path / "main.go").write_text("package main\n")
    (tmp_path / "notes.txt").write_text("x\n")
    ws = initialize(fake_observer, object(), [Unit(import_path="app", dir=str(tmp_path))])
    triggers = []
    process = make_processor(ws, lambda: triggers.append(1))

    process(FsEvent(Op.WRITE, str(tmp_path / "notes.txt")))
    process(FsEvent(Op.CHMOD, str(tmp_path / "main.go")))
    assert triggers == []

    process(FsEvent(Op.WRITE, str(tmp_path / "main.go")))
    process(FsEvent(Op.REMOVE, str(tmp_path / "main.go")))
    assert len(triggers) == 2


@pytest.mark.unit
def test_remembered_file_with_unchanged_content_is_chmod(tmp_path):
    path = tmp_path / "main.go"
    path.write_text("package main\n")
    p = str(path)

    def dispatch(h):
        h.remember(p)
        os.chmod(p, 0o600)
        h.on_modified(FileModifiedEvent(p))

    assert [e.op for e in _collect(dispatch)] == [Op.CHMOD]


@pytest.mark.unit
def test_rewrite_with_older_mtime_is_still_a_write(tmp_path):
    path = tmp_path / "main.go"
    path.write_text("package main\n")
    p = str(path)
    old = os.stat(p).st_mtime - 3600

    def dispatch(h):
        h.remember(p)
        path.write_text("package main\n\nfunc main() {}\n")
        os.utime(p, (old, old))
        h.on_modified(FileModifiedEvent(p))

    assert [e.op for e in _collect(dispatch)] == [Op.WRITE]


@pytest.mark.unit
def test_initialize_seeds_stamps_of_watched_sources(tmp_path, fake_observer):
    main_go = tmp_path / "main.go"
    main_go.write_text("package main\n")
    (tmp_path / "notes.txt").write_text("x\n")
    seen = []
    initialize(
        fake_observer,
        object(),
        [Unit(import_path="app", dir=str(tmp_path))],
        on_seen=seen.append,
    )
    assert seen == [str(main_go)]


def _watch_real_tree(tmp_path):
    from watchdog.observers import Observer

    app = tmp_path / "app"
    app.mkdir()
    main_go = app / "main.go"
    main_go.write_text("package main\n")
    triggers = []
    handler = EventHandler()
    obs = Observer()
    ws = initialize(obs, handler, [Unit(import_path="app", dir=str(app))], on_seen=handler.remember)
    handler.process = make_processor(ws, lambda: triggers.append(1))
    handler.start()
    obs.start()
    return obs, handler, main_go, triggers


@pytest.mark.integration
@pytest.mark.skipif(not sys.platform.startswith("linux"), reason="inotify backend")
def test_real_observer_rewrite_with_backdated_mtime_triggers(tmp_path, waiter):
    obs, handler, main_go, triggers = _watch_real_tree(tmp_path)
    try:
        old = os.stat(main_go).st_mtime - 3600
        main_go.write_text("package main\n\nfunc main() {}\n")
        os.utime(main_go, (old, old))
        assert waiter(lambda: len(triggers) >= 1)
    finally:
        obs.stop()
        obs.join(5)
        handler.close()


@pytest.mark.integration
@pytest.mark.skipif(not sys.platform.startswith("linux"), reason="inotify backend")
def test_real_observer_chmod_only_does_not_trigger(tmp_path):
    obs, handler, main_go, triggers = _watch_real_tree(tmp_path)
    try:
        os.chmod(main_go, 0o600)
        time.sleep(0.5)
        assert triggers == []
    finally:
        obs.stop()
        obs.join(5)
        handler.close()
