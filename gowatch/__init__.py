"""Core building blocks for the gowatch entrypoint.

Modules:
    config: WatchConfig and shared constants
    logger: logging setup and exception hierarchy
    resolver: transitive Go package discovery
    watchset: watched path bookkeeping and event classification
    handler: watchdog event handler and event worker
    queue: debounced build trigger
    builder: `go install` invocation
    supervisor: child process lifecycle
    signals: OS signal wiring
    runner: component wiring
"""

from . import config, logger, resolver, watchset, handler, queue, builder, supervisor, signals

__all__ = [
    "config",
    "logger",
    "resolver",
    "watchset",
    "handler",
    "queue",
    "builder",
    "supervisor",
    "signals",
]
