import json
import tomllib
from pathlib import Path
from typing import Any, Mapping

import yaml
from loguru import logger

from .types import (
    ConfigError,
    DuplicateTaskError,
    InvalidTask,
    LibraryCall,
    ParseError,
    ProjectConfig,
    ShellCommand,
    TaskDescriptor,
    UnsupportedConfigFormatError,
)

TASK_FIELDS = {
    "name",
    "description",
    "constraints",
    "requires",
    "auto_run",
    "run_lib",
    "data",
    "run_if_cmd",
    "run_cmd",
    "needs_sudo",
}

CONFIG_FIELDS = {"tasks_path", "env", "inherit_env", "bootstrap_tasks"}

SUPPORTED_SUFFIXES = {".yaml", ".yml", ".toml", ".json"}


def find_config(
    explicit: str | None, environ: Mapping[str, str]
) -> tuple[Path, bool]:
    """Return the config path to use and whether the user asked for it.

    Order: ``--config``, ``$BOOTFORGE_CONFIG``, ``$XDG_CONFIG_HOME/bootforge``,
    ``~/.config/bootforge``.
    """
    if explicit:
        return Path(explicit), True

    if environ.get("BOOTFORGE_CONFIG"):
        return Path(environ["BOOTFORGE_CONFIG"]), True

    if environ.get("XDG_CONFIG_HOME"):
        config_home = Path(environ["XDG_CONFIG_HOME"])
    else:
        config_home = Path.home() / ".config"

    return config_home / "bootforge" / "bootforge.yaml", False


def load_config(path: str | Path, *, must_exist: bool = True) -> ProjectConfig:
    pure_path = Path(path).expanduser().resolve()

    if not pure_path.exists():
        if must_exist:
            raise ConfigError(f"Config file not found: {pure_path}")
        logger.debug("Config file {} not found, using defaults", pure_path)
        return ProjectConfig(path=None, tasks_dir=pure_path.parent / "tasks")

    if not pure_path.is_file():
        raise ConfigError(f"Config path is not a file: {pure_path}")

    raw = _parse_file(pure_path, _detect_format(pure_path))
    if raw is None:
        logger.debug("Config file {} is empty, using defaults", pure_path)
        raw = {}

    if not isinstance(raw, Mapping):
        raise ConfigError(
            f"{pure_path}: top-level value is not an object: {type(raw).__name__}"
        )

    return _build_project_config(pure_path, raw)


def load_tasks(tasks_dir: str | Path) -> dict[str, TaskDescriptor]:
    pure_path = Path(tasks_dir).expanduser().resolve()

    if not pure_path.exists():
        raise ConfigError(f"Tasks directory not found: {pure_path}")

    if not pure_path.is_dir():
        raise ConfigError(f"Tasks path is not a directory: {pure_path}")

    tasks: dict[str, TaskDescriptor] = {}
    for file in sorted(pure_path.iterdir()):
        if file.name.startswith(".") or not file.is_file():
            continue
        if file.suffix not in SUPPORTED_SUFFIXES:
            logger.debug("Ignoring non-task file {}", file)
            continue

        task = load_task(file)
        if task.name in tasks:
            raise DuplicateTaskError(task.name, tasks[task.name].path, file)
        tasks[task.name] = task

    logger.debug("Loaded {} task(s) from {}", len(tasks), pure_path)
    return tasks


def load_task(path: Path) -> TaskDescriptor:
    raw = _parse_file(path, _detect_format(path))

    if not isinstance(raw, Mapping):
        raise ParseError(
            f"{path}: top-level value is not an object: {type(raw).__name__}"
        )

    task = _build_task(path, raw)
    logger.trace("Task '{}': {}", task.name, task)
    return task


def _detect_format(path: Path) -> str:
    fmt = path.suffix
    match fmt:
        case ".yaml" | ".yml":
            return "yaml"
        case ".toml":
            return "toml"
        case ".json":
            return "json"
        case _:
            raise UnsupportedConfigFormatError(
                f"Non supported file extension: {fmt}\n Expected format: .yml/.yaml, .toml, .json"
            )


def _parse_file(path: Path, fmt: str) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ParseError(f"{path}: unable to read file") from exc

    match fmt:
        case "yaml":
            try:
                return yaml.safe_load(text)
            except yaml.YAMLError as exc:
                raise ParseError(f"{path}: invalid YAML") from exc
        case "toml":
            try:
                return tomllib.loads(text)
            except tomllib.TOMLDecodeError as exc:
                raise ParseError(f"{path}: invalid TOML") from exc
        case "json":
            try:
                return json.loads(text)
            except json.JSONDecodeError as exc:
                raise ParseError(f"{path}: invalid JSON") from exc
        case _:
            raise AssertionError("Unreachable")


def _build_project_config(path: Path, raw: Mapping[str, Any]) -> ProjectConfig:
    for key in raw.keys():
        if key not in CONFIG_FIELDS:
            raise ConfigError(f"{path}: Can't process: {key}")

    tasks_path = raw.get("tasks_path", "tasks")
    if not isinstance(tasks_path, str) or len(tasks_path.strip()) < 1:
        raise ConfigError(f"{path}: 'tasks_path' should be a non-empty string")

    env = _str_mapping(raw.get("env", {}), f"{path}: env", ConfigError)
    inherit_env = _str_list(
        raw.get("inherit_env", []), f"{path}: inherit_env", ConfigError
    )
    bootstrap_tasks = _str_list(
        raw.get("bootstrap_tasks", []), f"{path}: bootstrap_tasks", ConfigError
    )

    tasks_dir = (path.parent / Path(tasks_path.strip()).expanduser()).resolve()
    return ProjectConfig(path, tasks_dir, env, inherit_env, bootstrap_tasks)


def _build_task(path: Path, fields: Mapping[str, Any]) -> TaskDescriptor:
    where = str(path)

    for field in fields.keys():
        if field not in TASK_FIELDS:
            raise ParseError(f"{where}: Can't process: {field}")

    name = fields.get("name", path.stem)
    if not isinstance(name, str):
        raise ParseError(f"{where}: The name should be a string")
    name = name.strip()
    if len(name) < 1:
        raise InvalidTask(f"{where}: A task name can't be empty")

    has_lib = "run_lib" in fields
    has_cmd = "run_cmd" in fields

    if has_lib and has_cmd:
        raise InvalidTask(f"{name}: only one of 'run_lib' and 'run_cmd' may be set")
    if not has_lib and not has_cmd:
        raise InvalidTask(f"{name}: one of 'run_lib' or 'run_cmd' must be set")
    if "data" in fields and not has_lib:
        raise InvalidTask(f"{name}: 'data' is only valid with 'run_lib'")

    action: ShellCommand | LibraryCall
    if has_lib:
        lib = fields["run_lib"]
        if not isinstance(lib, str):
            raise ParseError(f"{name}: 'run_lib' should be a string")
        if len(lib.strip()) < 1:
            raise InvalidTask(f"{name}: 'run_lib' can't be empty")
        action = LibraryCall(lib.strip(), fields.get("data"))
    else:
        action = ShellCommand(_argv(fields["run_cmd"], f"{name}: run_cmd"))

    run_if = None
    if "run_if_cmd" in fields:
        run_if = _argv(fields["run_if_cmd"], f"{name}: run_if_cmd")

    requires = []
    seen = set()
    for dep in _str_list(fields.get("requires", []), f"{name}: requires", ParseError):
        dep = dep.strip()

        if len(dep) < 1:
            raise InvalidTask(f"{name}: A dependency is empty")

        if dep == name:
            raise InvalidTask(f"{name}: A task cannot be self dependent")

        # Allows to ignore duplicates dependency
        if dep in seen:
            continue

        requires.append(dep)
        seen.add(dep)

    constraints = _str_mapping(
        fields.get("constraints", {}), f"{name}: constraints", ParseError
    )

    auto_run = fields.get("auto_run", True)
    if not isinstance(auto_run, bool):
        raise ParseError(f"{name}: 'auto_run' should be a boolean")

    needs_sudo = fields.get("needs_sudo", False)
    if not isinstance(needs_sudo, bool):
        raise ParseError(f"{name}: 'needs_sudo' should be a boolean")

    description = fields.get("description")
    if description is not None and not isinstance(description, str):
        raise ParseError(f"{name}: 'description' should be a string")

    return TaskDescriptor(
        name=name,
        path=path,
        action=action,
        run_if=run_if,
        requires=tuple(requires),
        constraints=constraints,
        auto_run=auto_run,
        needs_sudo=needs_sudo,
        description=description,
    )


def _argv(value: Any, where: str) -> tuple[str, ...]:
    argv = _str_list(value, where, ParseError)
    if len(argv) < 1:
        raise InvalidTask(f"{where}: The command can't be empty")
    if len(argv[0].strip()) < 1:
        raise InvalidTask(f"{where}: The program name can't be empty")
    return tuple(argv)


def _str_list(value: Any, where: str, error: type[ConfigError]) -> list[str]:
    if not isinstance(value, list):
        raise error(f"{where} should be a list")

    for item in value:
        if not isinstance(item, str):
            raise error(f"{where}: {item!r} should be a string")

    return list(value)


def _str_mapping(value: Any, where: str, error: type[ConfigError]) -> dict[str, str]:
    if not isinstance(value, Mapping):
        raise error(f"{where} should be a mapping")

    out = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise error(f"{where}: {key!r} should be a string")

        if len(key.strip()) < 1:
            raise error(f"{where}: A key can't be empty")

        if not isinstance(item, str):
            raise error(f"{where}: {item!r} should be a string")

        out[key.strip()] = item

    return out
