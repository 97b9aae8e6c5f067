"""CLI entry point: gowatch [flags] <import-path> [-- program args...]."""
from __future__ import annotations

import argparse
import os
import sys
import traceback
from typing import List, Optional, Sequence

from gowatch.config import WatchConfig, parse_env_pairs, split_csv
from gowatch.logger import ConfigurationError, GoWatchError
from gowatch.utils import get_boolean_env


# ---------------------------------------------------------------------------
# Parser builder
# ---------------------------------------------------------------------------
def build_parser() -> argparse.ArgumentParser:
    from cli._version import __version__

    parser = argparse.ArgumentParser(
        prog="gowatch",
        description="Rebuild a Go program with `go install` and restart it whenever "
        "a source file of the program or of any package it imports changes.",
        allow_abbrev=False,
    )
    parser.add_argument("-tags", "--tags", default="", help="build tags passed to `go install -tags`")
    parser.add_argument("-v", "--verbose", action="store_true", help="verbose output")
    parser.add_argument("-timings", "--timings", action="store_true", help="show build timings")
    parser.add_argument("-race", "--race", action="store_true", help="build with the Go race detector")
    parser.add_argument(
        "-installenv",
        "--installenv",
        default="",
        help="env vars to pass to `go install` (comma-separated: A=B,C=D)",
    )
    parser.add_argument(
        "-workdir",
        "--workdir",
        default="",
        help="working dir to locate the main package and run `go install`",
    )
    parser.add_argument(
        "-extra-watches",
        "--extra-watches",
        default="",
        help="comma-separated path match patterns to also watch "
        "(in addition to transitive deps of the Go package)",
    )
    parser.add_argument("--debug", action="store_true", help="show stack traces on error")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("package", help="import path of the main package")
    parser.add_argument("args", nargs=argparse.REMAINDER, help="arguments for the program")
    return parser


def split_argv(argv: Sequence[str]) -> tuple[List[str], List[str]]:
    """Separate our flags from the program's arguments at the first ``--``."""
    argv = list(argv)
    if "--" in argv:
        sep = argv.index("--")
        return argv[:sep], argv[sep + 1 :]
    return argv, []


def config_from_args(args: argparse.Namespace, program_args: Sequence[str] = ()) -> WatchConfig:
    workdir = args.workdir
    if workdir:
        if not os.path.isdir(workdir):
            raise ConfigurationError(f"workdir {workdir!r} is not a directory")
        workdir = os.path.abspath(workdir)
    else:
        try:
            workdir = os.getcwd()
        except OSError as exc:
            raise ConfigurationError(f"cannot determine working directory: {exc}") from exc

    install_env = split_csv(args.installenv)
    parse_env_pairs(install_env)

    return WatchConfig(
        package=args.package,
        args=tuple(list(args.args or ()) + list(program_args)),
        tags=args.tags,
        verbose=args.verbose,
        timings=args.timings,
        race=args.race,
        install_env=tuple(install_env),
        workdir=workdir,
        extra_watches=tuple(split_csv(args.extra_watches)),
        use_polling=get_boolean_env("GOWATCH_USE_POLLING"),
    )


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------
def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = build_parser()
    before, after = split_argv(sys.argv[1:] if argv is None else argv)
    args = parser.parse_args(before)

    from gowatch.runner import run

    try:
        config = config_from_args(args, after)
        status = run(config)
    except KeyboardInterrupt:
        sys.exit(130)
    except (GoWatchError, OSError) as exc:
        print(f"gowatch: {exc}", file=sys.stderr)
        if args.debug:
            traceback.print_exc(file=sys.stderr)
        sys.exit(1)
    sys.exit(status)


if __name__ == "__main__":
    main()
