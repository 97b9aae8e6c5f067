"""Wires resolver, watcher, trigger queue, builder and supervisor together."""

from __future__ import annotations

import os
import subprocess
from typing import Optional

from .builder import Builder
from .config import LOGGER, WatchConfig
from .handler import EventHandler, make_processor
from .logger import set_verbose
from .queue import TriggerQueue
from .resolver import Importer, install_target, resolve
from .signals import install_signal_handlers, restore_signal_handlers
from .supervisor import Supervisor
from .utils import create_observer
from . import watchset

# How often the main thread checks that the observer is still alive
POLL_SECS = 0.5


def run(
    config: WatchConfig,
    *,
    importer: Optional[Importer] = None,
    observer=None,
    popen=subprocess.Popen,
    build_runner=subprocess.run,
    install_signals: bool = True,
    on_started=None,
) -> int:
    """Run the watch loop until a termination signal; returns the exit status.

    Startup failures (unknown package, unresolvable dependency, watch setup)
    raise; everything after startup is logged and absorbed.
    """
    set_verbose(LOGGER, config.verbose)
    workdir = config.workdir or os.getcwd()

    units = resolve(config.package, workdir, importer)
    binary = install_target(units[0], workdir)

    obs = observer if observer is not None else create_observer(config.use_polling)
    handler = EventHandler()
    obs.start()
    try:
        watch_set = watchset.initialize(
            obs, handler, units, config.extra_watches, on_seen=handler.remember
        )
    except Exception:
        obs.stop()
        raise

    supervisor = Supervisor([binary, *config.args], popen=popen)
    builder = Builder(config, on_success=supervisor.restart, runner=build_runner)
    trigger = TriggerQueue(builder.build, quiet_period=config.quiet_period)
    handler.process = make_processor(watch_set, trigger.signal)

    handler.start()
    supervisor.start()
    trigger.start()
    trigger.signal()

    previous = install_signal_handlers(supervisor.shutdown) if install_signals else {}
    if on_started is not None:
        on_started(supervisor, trigger, watch_set)

    status = 0
    try:
        while not supervisor.wait(POLL_SECS):
            if not obs.is_alive():
                LOGGER.error("filesystem watcher stopped unexpectedly")
                supervisor.shutdown()
                supervisor.wait()
                status = 1
                break
    finally:
        restore_signal_handlers(previous)
        trigger.stop()
        handler.close()
        obs.stop()
        if obs.is_alive():
            obs.join(2.0)
    return status


__all__ = ["run", "POLL_SECS"]
