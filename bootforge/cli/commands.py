from __future__ import annotations

import argparse
import os
import subprocess
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from loguru import logger

from bootforge.config import ConfigError, ProjectConfig, find_config, load_config, load_tasks
from bootforge.executor import (
    RunContext,
    RunOutcome,
    RunRequest,
    Scheduler,
    TaskExecutor,
    TaskStatus,
    build_env,
)
from bootforge.graph import TaskGraph, select_tasks
from bootforge.libs import LIBRARIES
from bootforge.logs import configure_logging

from .args import build_parser, parse_args


@dataclass
class _Resolved:
    project: ProjectConfig
    env: Mapping[str, str]
    graph: TaskGraph


def run_cli(argv: list[str] | None = None) -> int:
    parser = build_parser()
    try:
        args = parse_args(parser, argv)
        temp_dir = _temp_dir(args.temp_dir)
        configure_logging(args.log_level, temp_dir / "logs")

        match args.command:
            case "run":
                return cmd_run(args, temp_dir)
            case "list":
                return cmd_list(args)
            case "graph":
                return cmd_graph(args)
            case _:
                return 2

    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        return 2

    except KeyboardInterrupt:
        return 130


def main() -> None:
    sys.exit(run_cli())


def cmd_run(args: argparse.Namespace, temp_dir: Path) -> int:
    resolved = _resolve(args)
    graph = resolved.graph

    if len(graph) == 0:
        logger.warning("No tasks selected, nothing to do")
        return 0

    request = RunRequest(
        tasks=tuple(args.tasks) if args.tasks else None,
        exclude_tasks=tuple(args.exclude_tasks) if args.exclude_tasks else None,
        bootstrap=args.bootstrap,
        keep_going=args.keep_going,
        console=args.console,
        env=resolved.env,
        jobs=args.jobs or os.cpu_count() or 1,
    )
    console = request.console if request.console is not None else len(graph) == 1
    context = RunContext(request.env, temp_dir, console)

    if any(graph.tasks[name].needs_sudo for name in graph):
        if not _ensure_sudo():
            print("Unable to get sudo permissions for tasks that need them", file=sys.stderr)
            return 1

    scheduler = Scheduler(
        graph,
        TaskExecutor(context, LIBRARIES),
        request,
        resolved.project.bootstrap_tasks,
    )
    outcome = scheduler.run()
    _print_result(outcome)
    return 0 if outcome.passed else 1


def cmd_list(args: argparse.Namespace) -> int:
    graph = _resolve(args).graph
    for name in graph:
        print(name)
    return 0


def cmd_graph(args: argparse.Namespace) -> int:
    graph = _resolve(args).graph
    for name in graph.topo_order():
        deps = " ".join(sorted(graph.dependencies(name)))
        print(f"{name}: {deps}".rstrip())
    return 0


def _resolve(args: argparse.Namespace) -> _Resolved:
    config_path, explicit = find_config(args.config, os.environ)
    project = load_config(config_path, must_exist=explicit)
    env = build_env(project.env, project.inherit_env, os.environ)

    all_tasks = load_tasks(project.tasks_dir)
    selected = select_tasks(
        all_tasks, include=args.tasks, exclude=args.exclude_tasks, env=env
    )
    graph = TaskGraph.build(selected, all_tasks)
    logger.debug("Selected tasks: {}", ", ".join(graph.names) or "(none)")
    return _Resolved(project, env, graph)


def _temp_dir(value: str | None) -> Path:
    if value:
        path = Path(value)
    elif os.environ.get("BOOTFORGE_TEMP_DIR"):
        path = Path(os.environ["BOOTFORGE_TEMP_DIR"])
    else:
        path = Path(tempfile.gettempdir()) / "bootforge"

    path = path.expanduser()
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigError(f"Unable to create temp dir {path}: {exc}") from exc
    return path


def _ensure_sudo() -> bool:
    logger.info("Some tasks need sudo, validating credentials")
    try:
        return subprocess.run(["sudo", "-v"]).returncode == 0
    except OSError as exc:
        logger.error("Failed to run sudo: {}", exc)
        return False


def _print_result(outcome: RunOutcome) -> None:
    for name, result in outcome.results.items():
        match result.status:
            case TaskStatus.PASSED:
                print(f"OK {name}, {result.duration:.3f}s")
            case TaskStatus.SKIPPED:
                print(f"SKIP {name}, {result.skip_reason or 'nothing to do'}")
            case TaskStatus.FAILED:
                print(f"FAIL {name}, {result.duration:.3f}s, {result.error}")

    failed = outcome.failed()
    skipped = outcome.skipped()
    summary = (
        f"{len(outcome.passed_tasks())} passed, "
        f"{len(skipped)} skipped, {len(failed)} failed"
    )
    if skipped:
        logger.info("Skipped tasks: {}", ", ".join(skipped))

    if outcome.passed:
        logger.info("Run passed: {}", summary)
    else:
        logger.error("Run failed: {}", summary)
        if outcome.aborted:
            logger.error("Run stopped early after a bootstrap task failed")
        for name in failed:
            logger.error("Task '{}' failed: {}", name, outcome.results[name].error)
