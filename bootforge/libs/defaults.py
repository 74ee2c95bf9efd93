from __future__ import annotations

import os
import plistlib
import tempfile
from pathlib import Path
from typing import Any

from bootforge.executor.context import TaskContext
from bootforge.executor.types import LibraryError, LibrarySchemaError, TaskStatus

from .base import TaskLibrary

GLOBAL_DOMAIN = "NSGlobalDomain"

_PLIST_TYPES = (str, bool, int, float, list, dict, bytes)


class DefaultsLibrary(TaskLibrary[dict[str, dict[str, Any]]]):
    name = "defaults"
    options_type = dict

    def parse(self, data: Any, task_name: str) -> dict[str, dict[str, Any]]:
        where = f"{task_name}: data"
        if not isinstance(data, dict):
            raise LibrarySchemaError(f"{where} should be a mapping of domain to values")

        for domain, values in data.items():
            if not isinstance(domain, str) or not domain.strip():
                raise LibrarySchemaError(f"{where}: domain {domain!r} should be a string")
            if "/" in domain and not domain.endswith(".plist"):
                raise LibrarySchemaError(
                    f"{where}: domain path {domain!r} should end with .plist"
                )
            if not isinstance(values, dict):
                raise LibrarySchemaError(f"{where}.{domain} should be a mapping")
            for key, value in values.items():
                if not isinstance(key, str):
                    raise LibrarySchemaError(f"{where}.{domain}: key {key!r} should be a string")
                _validate_value(value, f"{where}.{domain}.{key}")

        return data

    def run(self, options: dict[str, dict[str, Any]], ctx: TaskContext) -> TaskStatus:
        changed = False
        for domain, values in options.items():
            if write_domain(plist_path(domain, ctx), values, ctx):
                changed = True
        return TaskStatus.PASSED if changed else TaskStatus.SKIPPED


def plist_path(domain: str, ctx: TaskContext) -> Path:
    if domain.endswith(".plist") or "/" in domain:
        return Path(domain)

    home = ctx.env.get("HOME") or str(Path.home())
    if domain == GLOBAL_DOMAIN:
        domain = ".GlobalPreferences"
    return Path(home) / "Library" / "Preferences" / f"{domain}.plist"


def write_domain(path: Path, values: dict[str, Any], ctx: TaskContext) -> bool:
    log = ctx.logger
    fmt = plistlib.FMT_XML
    current: dict[str, Any] = {}

    if path.exists():
        raw = path.read_bytes()
        if raw.startswith(b"bplist00"):
            fmt = plistlib.FMT_BINARY
        try:
            loaded = plistlib.loads(raw)
        except (plistlib.InvalidFileException, ValueError) as exc:
            raise LibraryError(f"Failed to parse plist {path}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise LibraryError(f"Plist {path} does not contain a dictionary")
        current = loaded

    updated = dict(current)
    changed = False
    for key, value in values.items():
        # 1 == True in Python, but a plist tells integers and booleans apart.
        if key in current and current[key] == value and type(current[key]) is type(value):
            log.trace("{}: {} already set to {!r}", path, key, value)
            continue
        log.info("Changing default {} {}: {!r} -> {!r}", path, key, current.get(key), value)
        updated[key] = value
        changed = True

    if not changed:
        log.debug("Defaults at {} already up to date", path)
        return False

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "wb") as handle:
            plistlib.dump(updated, handle, fmt=fmt)
        os.replace(tmp, path)
    except OSError as exc:
        Path(tmp).unlink(missing_ok=True)
        raise LibraryError(f"Failed to write plist {path}: {exc}") from exc

    return True


def _validate_value(value: Any, where: str) -> None:
    if value is None or not isinstance(value, _PLIST_TYPES):
        raise LibrarySchemaError(f"{where}: {value!r} can't be stored in a plist")
    if isinstance(value, list):
        for i, item in enumerate(value):
            _validate_value(item, f"{where}[{i}]")
    elif isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise LibrarySchemaError(f"{where}: key {key!r} should be a string")
            _validate_value(item, f"{where}.{key}")
