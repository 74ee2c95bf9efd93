from __future__ import annotations

import re
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from loguru import logger

from bootforge.config.types import ConfigError

from .types import EnvVarError

_VAR_RE = re.compile(r"\$(?:(?P<escaped>\$)|\{(?P<braced>[A-Za-z_]\w*)\}|(?P<named>[A-Za-z_]\w*))")


def expand(value: str, env: Mapping[str, str]) -> str:
    """Expand a leading ``~`` and ``$VAR``/``${VAR}``; ``$$`` is a literal ``$``."""
    if value == "~" or value.startswith("~/"):
        home = env.get("HOME") or str(Path.home())
        value = home + value[1:]

    def replace(match: re.Match[str]) -> str:
        if match.group("escaped"):
            return "$"
        var = match.group("braced") or match.group("named")
        if var not in env:
            raise EnvVarError(var, value)
        return env[var]

    return _VAR_RE.sub(replace, value)


def expand_data(data: Any, env: Mapping[str, str]) -> Any:
    match data:
        case str():
            return expand(data, env)
        case list():
            return [expand_data(item, env) for item in data]
        case dict():
            return {key: expand_data(item, env) for key, item in data.items()}
        case _:
            return data


def build_env(
    env: Mapping[str, str],
    inherit_env: list[str],
    environ: Mapping[str, str],
) -> Mapping[str, str]:
    snapshot: dict[str, str] = {}

    for name in inherit_env:
        if name in environ:
            snapshot[name] = environ[name]
        else:
            logger.debug("Inherited env var '{}' not set, skipping", name)

    # Later values may refer to earlier ones.
    for key, value in env.items():
        try:
            snapshot[key] = expand(value, snapshot)
        except EnvVarError as exc:
            raise ConfigError(f"Config env '{key}': {exc}") from exc

    logger.trace("Task environment: {}", snapshot)
    return MappingProxyType(snapshot)
