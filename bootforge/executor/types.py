from __future__ import annotations

import os
import signal
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from loguru import logger


class TaskStatus(Enum):
    INCOMPLETE = "incomplete"
    SKIPPED = "skipped"
    PASSED = "passed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self is not TaskStatus.INCOMPLETE


class CommandType(Enum):
    RUN_IF = "run_if"
    RUN = "run"

    def __str__(self) -> str:
        return f"{self.value} command"


class TaskExecutionError(Exception):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class CommandFailed(TaskExecutionError):
    def __init__(
        self, task: str, command_type: CommandType, argv: list[str], source: OSError
    ):
        hint = ""
        if isinstance(source, PermissionError):
            hint = f"\n Suggestion: Try making the file executable with `chmod +x {argv[0]}`"
        super().__init__(
            f"Task '{task}' {command_type} failed to start: {argv}: {source}{hint}"
        )
        self.task = task
        self.argv = argv


class CommandNonZero(TaskExecutionError):
    def __init__(
        self, task: str, command_type: CommandType, argv: list[str], code: int
    ):
        super().__init__(f"Task '{task}' {command_type} exited with {code}: {argv}")
        self.task = task
        self.argv = argv
        self.code = code


class CommandTerminated(TaskExecutionError):
    def __init__(
        self, task: str, command_type: CommandType, argv: list[str], signum: int
    ):
        try:
            sig = signal.Signals(signum).name
        except ValueError:
            sig = str(signum)
        super().__init__(f"Task '{task}' {command_type} terminated by {sig}: {argv}")
        self.task = task
        self.argv = argv
        self.signum = signum


class EnvVarError(TaskExecutionError):
    def __init__(self, variable: str, value: str):
        super().__init__(f"Environment variable '{variable}' not defined in '{value}'")
        self.variable = variable


class UnimplementedLibrary(TaskExecutionError):
    def __init__(self, task: str, library: str):
        super().__init__(
            f"Task '{task}': run_lib '{library}' is invalid or not yet implemented"
        )
        self.task = task
        self.library = library


class LibraryError(TaskExecutionError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class LibrarySchemaError(TaskExecutionError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


@dataclass(frozen=True)
class RunRequest:
    tasks: tuple[str, ...] | None = None
    exclude_tasks: tuple[str, ...] | None = None
    bootstrap: bool = False
    keep_going: bool = False
    console: bool | None = None
    env: Mapping[str, str] = field(default_factory=dict)
    jobs: int = field(default_factory=lambda: os.cpu_count() or 1)

    def __post_init__(self) -> None:
        if self.jobs < 1:
            raise ValueError(f"jobs must be at least 1, got {self.jobs}")
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))


@dataclass(frozen=True)
class RunContext:
    env: Mapping[str, str]
    temp_dir: Path
    console: bool = False
    logger: Any = logger

    def __post_init__(self) -> None:
        if not isinstance(self.env, MappingProxyType):
            object.__setattr__(self, "env", MappingProxyType(dict(self.env)))


@dataclass(frozen=True)
class ExecutionPlan:
    bootstrap: tuple[str, ...]
    parallel: tuple[str, ...]
    edges: Mapping[str, tuple[str, ...]]


@dataclass
class TaskResult:
    name: str
    status: TaskStatus = TaskStatus.INCOMPLETE
    error: TaskExecutionError | None = None
    skip_reason: str | None = None
    start_time: datetime = field(default_factory=datetime.now)
    duration: float = 0.0
    timings: dict[str, float] = field(default_factory=dict)
    _started: float = field(default_factory=time.monotonic, repr=False)

    def finish(
        self,
        status: TaskStatus,
        *,
        error: TaskExecutionError | None = None,
        reason: str | None = None,
    ) -> None:
        if self.status.terminal:
            raise RuntimeError(f"Task '{self.name}' already finished as {self.status.value}")
        if not status.terminal:
            raise ValueError("A task can only finish with a terminal status")
        if (status is TaskStatus.FAILED) != (error is not None):
            raise ValueError("An error is required for, and only for, a failed task")

        self.status = status
        self.error = error
        self.skip_reason = reason
        self.duration = time.monotonic() - self._started

    @classmethod
    def not_started(cls, name: str, reason: str) -> TaskResult:
        result = cls(name)
        result.finish(TaskStatus.SKIPPED, reason=reason)
        return result


@dataclass
class RunOutcome:
    results: dict[str, TaskResult] = field(default_factory=dict)
    aborted: bool = False

    def _with(self, status: TaskStatus) -> list[str]:
        return [name for name, r in self.results.items() if r.status is status]

    def failed(self) -> list[str]:
        return self._with(TaskStatus.FAILED)

    def skipped(self) -> list[str]:
        return self._with(TaskStatus.SKIPPED)

    def passed_tasks(self) -> list[str]:
        return self._with(TaskStatus.PASSED)

    @property
    def passed(self) -> bool:
        if self.aborted:
            return False
        return all(
            r.status in (TaskStatus.PASSED, TaskStatus.SKIPPED)
            for r in self.results.values()
        )
