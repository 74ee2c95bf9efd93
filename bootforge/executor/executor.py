from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator, Mapping

from loguru import logger

from bootforge.config.types import LibraryCall, ShellCommand, TaskDescriptor

from .context import TaskContext
from .env import expand, expand_data
from .process import run_command
from .types import (
    CommandType,
    LibraryError,
    RunContext,
    TaskExecutionError,
    TaskResult,
    TaskStatus,
    UnimplementedLibrary,
)

if TYPE_CHECKING:
    from bootforge.libs.base import TaskLibrary


class TaskExecutor:
    def __init__(self, context: RunContext, libraries: Mapping[str, TaskLibrary]):
        self.context = context
        self.libraries = libraries

    def execute(self, task: TaskDescriptor) -> TaskResult:
        result = TaskResult(task.name)
        log = logger.bind(task=task.name)
        log.info("Running task '{}'", task.name)

        try:
            status, reason = self._run(task, result)
        except TaskExecutionError as exc:
            result.finish(TaskStatus.FAILED, error=exc)
            log.error("Task '{}' failed after {:.3f}s: {}", task.name, result.duration, exc)
        else:
            result.finish(status, reason=reason)
            log.info(
                "Task '{}' {} in {:.3f}s", task.name, status.value, result.duration
            )

        return result

    def _run(
        self, task: TaskDescriptor, result: TaskResult
    ) -> tuple[TaskStatus, str | None]:
        env = self.context.env

        if task.run_if is not None:
            argv = [expand(arg, env) for arg in task.run_if]
            with _timed(result, "run_if"):
                proceed = run_command(
                    task.name, CommandType.RUN_IF, argv, env, console=self.context.console
                )
            if not proceed:
                logger.debug("Skipping task '{}' as run_if command returned 204", task.name)
                return TaskStatus.SKIPPED, "run_if command asked to skip"

        match task.action:
            case LibraryCall(library=library, data=data):
                with _timed(result, "lib"):
                    status = self._run_lib(task, library, data)
                return status, None
            case ShellCommand(argv=raw_argv):
                argv = [expand(arg, env) for arg in raw_argv]
                with _timed(result, "run"):
                    passed = run_command(
                        task.name, CommandType.RUN, argv, env, console=self.context.console
                    )
                if passed:
                    return TaskStatus.PASSED, None
                return TaskStatus.SKIPPED, "run command returned 204"
            case _:
                raise AssertionError("Unreachable")

    def _run_lib(self, task: TaskDescriptor, library: str, data: object) -> TaskStatus:
        lib = self.libraries.get(library)
        if lib is None:
            raise UnimplementedLibrary(task.name, library)

        options = lib.parse(expand_data(data, self.context.env), task.name)
        ctx = TaskContext(self.context, task.name, task.needs_sudo)

        try:
            status = lib.run(options, ctx)
        except TaskExecutionError:
            raise
        except Exception as exc:
            logger.opt(exception=exc).debug("Task '{}' run_lib '{}' raised", task.name, library)
            raise LibraryError(f"Task '{task.name}' run_lib '{library}' failed: {exc}") from exc

        if status not in (TaskStatus.PASSED, TaskStatus.SKIPPED):
            raise LibraryError(
                f"Task '{task.name}' run_lib '{library}' returned invalid status {status}"
            )
        return status


@contextmanager
def _timed(result: TaskResult, step: str) -> Iterator[None]:
    start = time.monotonic()
    try:
        yield
    finally:
        result.timings[step] = time.monotonic() - start
