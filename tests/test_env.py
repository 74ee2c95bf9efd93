from __future__ import annotations

import pytest

from bootforge.config.types import ConfigError
from bootforge.executor.env import build_env, expand, expand_data
from bootforge.executor.types import EnvVarError

ENV = {"HOME": "/home/me", "NAME": "dots", "EMPTY": ""}


@pytest.mark.parametrize(
    "value, expected",
    [
        ("plain", "plain"),
        ("$NAME", "dots"),
        ("${NAME}file", "dotsfile"),
        ("$HOME/code/$NAME", "/home/me/code/dots"),
        ("~", "/home/me"),
        ("~/code", "/home/me/code"),
        ("a~b", "a~b"),
        ("~other", "~other"),
        ("cost: $$5", "cost: $5"),
        ("$$NAME", "$NAME"),
        ("x$EMPTY-y", "x-y"),
        ("trailing $", "trailing $"),
    ],
)
def test_expand(value: str, expected: str) -> None:
    assert expand(value, ENV) == expected


def test_expand_undefined_variable_raises() -> None:
    with pytest.raises(EnvVarError) as e:
        expand("$HOME/$MISSING", ENV)

    assert e.value.variable == "MISSING"


def test_expand_data_walks_nested_structures() -> None:
    data = {"dirs": ["~/a", "$NAME"], "count": 3, "flag": True, "none": None}

    assert expand_data(data, ENV) == {
        "dirs": ["/home/me/a", "dots"],
        "count": 3,
        "flag": True,
        "none": None,
    }


def test_build_env_inherits_only_listed_vars() -> None:
    environ = {"HOME": "/home/me", "PATH": "/bin", "SECRET": "x"}

    env = build_env({}, ["HOME", "PATH", "UNSET"], environ)

    assert dict(env) == {"HOME": "/home/me", "PATH": "/bin"}


def test_build_env_expands_in_order() -> None:
    env = build_env(
        {"DOTFILES": "~/dotfiles", "LINKS": "$DOTFILES/links"},
        ["HOME"],
        {"HOME": "/home/me"},
    )

    assert env["DOTFILES"] == "/home/me/dotfiles"
    assert env["LINKS"] == "/home/me/dotfiles/links"


def test_build_env_is_read_only() -> None:
    env = build_env({"A": "1"}, [], {})
    with pytest.raises(TypeError):
        env["A"] = "2"  # type: ignore[index]


def test_build_env_undefined_reference_is_config_error() -> None:
    with pytest.raises(ConfigError):
        build_env({"A": "$NOPE"}, [], {})
