"""Shared configuration and logging helpers for gowatch."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from gowatch.logger import ConfigurationError, get_logger


LOGGER = get_logger("gowatch")

# Quiet period between the last change and the build it triggers
DELAY_SECS = float(os.environ.get("GOWATCH_DEBOUNCE_SECS", "0.2"))

SOURCE_EXT = ".go"
# cgo pseudo-package; has no source directory of its own
FOREIGN_IMPORT = "C"
BUILD_TOOL = "go"


@dataclass(frozen=True)
class WatchConfig:
    """Everything a run needs, resolved once at startup."""

    package: str
    args: Tuple[str, ...] = ()
    tags: str = ""
    verbose: bool = False
    timings: bool = False
    race: bool = False
    install_env: Tuple[str, ...] = ()
    workdir: str = ""
    extra_watches: Tuple[str, ...] = ()
    quiet_period: float = DELAY_SECS
    use_polling: bool = False

    def build_env(self, base: Optional[Dict[str, str]] = None) -> Optional[Dict[str, str]]:
        """Environment for the build command, or None to inherit ours unchanged."""
        if not self.install_env:
            return None
        env = dict(os.environ if base is None else base)
        env.update(parse_env_pairs(self.install_env))
        return env


def parse_env_pairs(pairs) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ConfigurationError(f"invalid installenv entry {pair!r} (want KEY=VALUE)")
        out[key] = value
    return out


def split_csv(value: Optional[str]) -> List[str]:
    """Split a comma-separated flag value, dropping empty items."""
    if not value:
        return []
    return [item for item in (part.strip() for part in value.split(",")) if item]


__all__ = [
    "LOGGER",
    "DELAY_SECS",
    "SOURCE_EXT",
    "FOREIGN_IMPORT",
    "BUILD_TOOL",
    "WatchConfig",
    "parse_env_pairs",
    "split_csv",
]
