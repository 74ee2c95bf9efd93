from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Sequence

from .process import spawn
from .types import LibraryError, RunContext


@dataclass(frozen=True)
class TaskContext:
    """What a task library gets to see of the current run."""

    run: RunContext
    task_name: str
    needs_sudo: bool = False

    @property
    def env(self) -> Mapping[str, str]:
        return self.run.env

    @property
    def temp_dir(self) -> Path:
        return self.run.temp_dir

    @property
    def logger(self) -> Any:
        return self.run.logger.bind(task=self.task_name)

    def run_command(
        self,
        argv: Sequence[str],
        *,
        sudo: bool = False,
        cwd: str | Path | None = None,
        check: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        argv = list(argv)
        if sudo:
            if not self.needs_sudo:
                raise LibraryError(
                    f"Task '{self.task_name}' tried to run {argv} with sudo "
                    "but does not set needs_sudo"
                )
            # Credentials were cached by `sudo -v` before the run started.
            argv = ["sudo", "--non-interactive", "--", *argv]

        try:
            proc = spawn(argv, self.env, cwd=cwd)
        except OSError as exc:
            raise LibraryError(f"Task '{self.task_name}': failed to run {argv}: {exc}") from exc

        if check and proc.returncode != 0:
            self.logger.error(
                "Command {} exited with {}\nstdout:\n<<<\n{}>>>\nstderr:\n<<<\n{}>>>",
                argv,
                proc.returncode,
                proc.stdout,
                proc.stderr,
            )
            raise LibraryError(
                f"Task '{self.task_name}': {argv} exited with {proc.returncode}"
            )

        return proc
