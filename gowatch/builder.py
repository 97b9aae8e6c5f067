"""`go install` invocation with status markers."""

from __future__ import annotations

import os
import subprocess
import sys
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, TextIO

from .config import BUILD_TOOL, LOGGER, WatchConfig
from .utils import get_boolean_env, safe_print

_BLUE, _GREEN, _RED = "44", "42", "41"


def use_color() -> bool:
    return not (get_boolean_env("GOWATCH_NO_COLOR") or "NO_COLOR" in os.environ)


def paint(text: str, background: str, color: Optional[bool] = None) -> str:
    """Bold white ``text`` on an ANSI ``background``."""
    if color is None:
        color = use_color()
    if not color:
        return text
    return f"\x1b[37;1m\x1b[{background}m{text}\x1b[0m"


@dataclass(frozen=True)
class BuildResult:
    success: bool
    duration: float


class Builder:
    """Runs the build tool for the watched package, one build at a time.

    Output of the build tool goes straight to our stdout/stderr. A failed
    build leaves the running program alone; ``on_success`` is only called
    after a clean install.
    """

    def __init__(
        self,
        config: WatchConfig,
        on_success: Optional[Callable[[], None]] = None,
        runner=subprocess.run,
        stream: Optional[TextIO] = None,
        color: Optional[bool] = None,
    ):
        self.config = config
        self.on_success = on_success
        self._run = runner
        self._stream = stream
        self._color = use_color() if color is None else color
        self.builds = 0

    def command(self) -> List[str]:
        cmd = [BUILD_TOOL, "install", f"-tags={self.config.tags}"]
        if self.config.race:
            cmd.append("-race")
        cmd.append(self.config.package)
        return cmd

    def build(self) -> BuildResult:
        marker = " .. "
        self._write(paint(marker, _BLUE, self._color))

        cmd = self.command()
        env = self.config.build_env()
        LOGGER.debug("%s", cmd)
        if env is not None:
            LOGGER.debug("# with env: %s", list(self.config.install_env))

        start = time.monotonic()
        try:
            proc = self._run(cmd, cwd=self.config.workdir or None, env=env, check=False)
            success = proc.returncode == 0
        except OSError as exc:
            LOGGER.error("%s: %s", cmd[0], exc)
            success = False
        duration = time.monotonic() - start

        if not success:
            LOGGER.info("%s compilation failed", paint("!!!!", _RED, self._color))
            return BuildResult(False, duration)

        word = "starting" if self.builds == 0 else "restarting"
        self.builds += 1
        self._write("\b" * len(marker))
        LOGGER.info("%s %s", paint(" ok ", _GREEN, self._color), word)
        if self.config.timings:
            LOGGER.info("compilation took %.3fs", duration)
        if self.on_success is not None:
            self.on_success()
        return BuildResult(True, duration)

    def _write(self, text: str) -> None:
        stream = self._stream or sys.stderr
        safe_print(text, end="", file=stream, flush=True)


__all__ = ["Builder", "BuildResult", "paint", "use_color"]
