from __future__ import annotations

from typing import Iterable, Mapping

from loguru import logger

from bootforge.config.types import TaskDescriptor


def select_tasks(
    tasks: Mapping[str, TaskDescriptor],
    *,
    include: Iterable[str] | None = None,
    exclude: Iterable[str] | None = None,
    env: Mapping[str, str] | None = None,
) -> dict[str, TaskDescriptor]:
    # Excluding wins over including.
    allow = set(include or ())
    deny = set(exclude or ())
    env = env or {}

    for unknown in sorted((allow | deny) - set(tasks)):
        logger.debug("Task filter '{}' does not match any task", unknown)

    selected: dict[str, TaskDescriptor] = {}
    for name, task in tasks.items():
        if name in deny:
            logger.debug("Task '{}' excluded", name)
            continue

        if allow and name not in allow:
            continue

        mismatched = [
            key for key, value in task.constraints.items() if env.get(key) != value
        ]
        if mismatched:
            logger.debug(
                "Task '{}' constraints not met: {}", name, ", ".join(sorted(mismatched))
            )
            continue

        if not task.auto_run and name not in allow:
            logger.debug("Task '{}' not auto_run and not requested", name)
            continue

        selected[name] = task

    return selected
