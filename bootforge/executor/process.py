from __future__ import annotations

import subprocess
import time
from pathlib import Path
from typing import Mapping, Sequence

from loguru import logger

from .types import CommandFailed, CommandNonZero, CommandTerminated, CommandType

# HTTP 204 "No Content": the command decided there was nothing to do.
SKIP_EXIT_CODE = 204


def spawn(
    argv: Sequence[str],
    env: Mapping[str, str],
    *,
    capture: bool = True,
    cwd: str | Path | None = None,
) -> subprocess.CompletedProcess[str]:
    logger.trace("Running command: {}", list(argv))
    return subprocess.run(
        list(argv),
        env=dict(env),
        cwd=cwd,
        stdin=subprocess.DEVNULL if capture else None,
        capture_output=capture,
        text=True,
        errors="replace",
    )


def run_command(
    task: str,
    command_type: CommandType,
    argv: Sequence[str],
    env: Mapping[str, str],
    *,
    console: bool = False,
) -> bool:
    """True on exit code 0, False on SKIP_EXIT_CODE, raises otherwise."""
    start = time.monotonic()
    try:
        proc = spawn(argv, env, capture=not console)
    except OSError as exc:
        raise CommandFailed(task, command_type, list(argv), exc) from exc
    elapsed = time.monotonic() - start

    code = proc.returncode
    if code < 0:
        error = CommandTerminated(task, command_type, list(argv), -code)
    elif code not in (0, SKIP_EXIT_CODE):
        error = CommandNonZero(task, command_type, list(argv), code)
    else:
        error = None

    log_command_output(task, command_type, proc, elapsed, success=error is None)

    if error is not None:
        raise error
    return code == 0


def log_command_output(
    task: str,
    command_type: CommandType,
    proc: subprocess.CompletedProcess[str],
    elapsed: float,
    *,
    success: bool,
) -> None:
    level = "DEBUG" if success else "ERROR"
    log = logger.bind(task=task)

    log.log(
        level,
        "Task '{}' {} ran in {:.3f}s with exit code {}",
        task,
        command_type,
        elapsed,
        proc.returncode,
    )
    if proc.stdout:
        log.log(level, "Task '{}' {} stdout:\n<<<\n{}>>>\n", task, command_type, proc.stdout)
    if proc.stderr:
        log.log(level, "Task '{}' {} stderr:\n<<<\n{}>>>\n", task, command_type, proc.stderr)
