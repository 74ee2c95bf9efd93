from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping


@dataclass(frozen=True)
class ShellCommand:
    argv: tuple[str, ...]


@dataclass(frozen=True)
class LibraryCall:
    library: str
    data: Any = None


@dataclass(frozen=True)
class TaskDescriptor:
    name: str
    path: Path
    action: ShellCommand | LibraryCall
    run_if: tuple[str, ...] | None = None
    requires: tuple[str, ...] = ()
    constraints: Mapping[str, str] = field(default_factory=dict)
    auto_run: bool = True
    needs_sudo: bool = False
    description: str | None = None


@dataclass
class ProjectConfig:
    path: Path | None
    tasks_dir: Path
    env: dict[str, str] = field(default_factory=dict)
    inherit_env: list[str] = field(default_factory=list)
    bootstrap_tasks: list[str] = field(default_factory=list)


class ConfigError(Exception):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class UnsupportedConfigFormatError(ConfigError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class ParseError(ConfigError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class InvalidTask(ConfigError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class DuplicateTaskError(ConfigError):
    def __init__(self, name: str, first: Path, second: Path):
        super().__init__(f"Duplicate task name '{name}' in {first} and {second}")
        self.name = name
