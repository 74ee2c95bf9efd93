from __future__ import annotations

import sys
from pathlib import Path

from bootforge.config.types import LibraryCall, ShellCommand, TaskDescriptor


def py(code: str) -> tuple[str, ...]:
    """argv running ``code`` with the current interpreter."""
    return (sys.executable, "-c", code)


def shell_task(
    name: str,
    argv: tuple[str, ...],
    *,
    requires: tuple[str, ...] = (),
    run_if: tuple[str, ...] | None = None,
    **fields,
) -> TaskDescriptor:
    return TaskDescriptor(
        name=name,
        path=Path(f"{name}.yaml"),
        action=ShellCommand(argv),
        run_if=run_if,
        requires=requires,
        **fields,
    )


def lib_task(
    name: str,
    library: str = "fake",
    data: object = None,
    *,
    requires: tuple[str, ...] = (),
    **fields,
) -> TaskDescriptor:
    return TaskDescriptor(
        name=name,
        path=Path(f"{name}.yaml"),
        action=LibraryCall(library, data),
        requires=requires,
        **fields,
    )


def tasks_by_name(*tasks: TaskDescriptor) -> dict[str, TaskDescriptor]:
    return {task.name: task for task in tasks}
