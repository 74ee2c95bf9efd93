from __future__ import annotations

import argparse
import os
import sys

from bootforge import __version__

LOG_LEVELS = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _add_selection_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-t",
        "--tasks",
        action="extend",
        type=_split_csv,
        default=None,
        help="Tasks to run (repeatable, comma-separated). Default: all tasks",
    )
    parser.add_argument(
        "--exclude-tasks",
        action="extend",
        type=_split_csv,
        default=None,
        help="Tasks to skip (repeatable, comma-separated). Wins over --tasks",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bootforge",
        description="Keep a machine bootstrapped and up to date by running the tasks "
        "in its config directory.",
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help="Path to config file (default: $BOOTFORGE_CONFIG, then "
        "$XDG_CONFIG_HOME/bootforge/bootforge.yaml)",
    )
    parser.add_argument(
        "-l",
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=os.environ.get("BOOTFORGE_LOG", "INFO"),
        help="Terminal log level (default: $BOOTFORGE_LOG or INFO)",
    )
    parser.add_argument(
        "--temp-dir",
        default=None,
        help="Directory for logs, backups and downloads "
        "(default: $BOOTFORGE_TEMP_DIR or <tmp>/bootforge)",
    )

    subparsers = parser.add_subparsers(dest="command")

    # run
    run = subparsers.add_parser("run", help="Run tasks (default)")
    _add_selection_args(run)
    run.add_argument(
        "-b",
        "--bootstrap",
        action="store_true",
        help="Run the bootstrap task list in order first, then the rest in parallel",
    )
    run.add_argument(
        "-k",
        "--keep-going",
        action="store_true",
        help="Keep going even if a bootstrap task fails",
    )
    run.add_argument(
        "--console",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Connect task output to this terminal (default: only when one task runs)",
    )
    run.add_argument(
        "-j",
        "--jobs",
        type=_positive_int,
        default=None,
        help="Maximum number of tasks to run at once (default: number of CPUs)",
    )

    # list
    list_ = subparsers.add_parser("list", help="List the tasks that would run")
    _add_selection_args(list_)

    # graph
    graph = subparsers.add_parser("graph", help="Show dependency graph")
    _add_selection_args(graph)

    return parser


def parse_args(
    parser: argparse.ArgumentParser, argv: list[str] | None
) -> argparse.Namespace:
    if argv is None:
        argv = sys.argv[1:]

    args = parser.parse_args(argv)
    if args.command is None:
        # `bootforge` on its own is `bootforge run`.
        args = parser.parse_args([*argv, "run"])
    return args
