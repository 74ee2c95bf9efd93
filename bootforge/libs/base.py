from __future__ import annotations

import dataclasses
import types
import typing
from typing import Any, ClassVar, Generic, Mapping, TypeVar

from bootforge.executor.context import TaskContext
from bootforge.executor.types import LibrarySchemaError, TaskStatus

T = TypeVar("T")
O = TypeVar("O")


class TaskLibrary(Generic[O]):
    """A built-in implementation that a task can name with ``run_lib``.

    Subclasses set ``name`` and ``options_type`` and implement ``run``, which
    returns PASSED when it changed something and SKIPPED when there was
    nothing to do. Failures are raised as LibraryError.
    """

    name: ClassVar[str]
    options_type: ClassVar[type]
    data_required: ClassVar[bool] = True

    def parse(self, data: Any, task_name: str) -> O:
        if data is None and not self.data_required:
            return self.options_type()
        return parse_options(self.options_type, data, f"{task_name}: data")

    def run(self, options: O, ctx: TaskContext) -> TaskStatus:
        raise NotImplementedError


def parse_options(cls: type[T], data: Any, where: str) -> T:
    """Build the dataclass ``cls`` from ``data``, rejecting unknown fields."""
    if data is None:
        raise LibrarySchemaError(f"{where}: this library requires a 'data' block")

    if not isinstance(data, Mapping):
        raise LibrarySchemaError(f"{where} should be a mapping, got {type(data).__name__}")

    hints = typing.get_type_hints(cls)
    known = {f.name: f for f in dataclasses.fields(cls)}

    for key in data:
        if key not in known:
            raise LibrarySchemaError(f"{where}: Can't process: {key}")

    kwargs = {}
    for name, field in known.items():
        if name not in data:
            if (
                field.default is dataclasses.MISSING
                and field.default_factory is dataclasses.MISSING
            ):
                raise LibrarySchemaError(f"{where}: missing '{name}'")
            continue
        kwargs[name] = _check(data[name], hints[name], f"{where}.{name}")

    return cls(**kwargs)


def parse_option_list(cls: type[T], data: Any, where: str) -> list[T]:
    if not isinstance(data, list):
        raise LibrarySchemaError(f"{where} should be a list, got {type(data).__name__}")

    return [parse_options(cls, item, f"{where}[{i}]") for i, item in enumerate(data)]


def _check(value: Any, hint: Any, where: str) -> Any:
    origin = typing.get_origin(hint)
    args = typing.get_args(hint)

    if hint is Any:
        return value

    if origin in (typing.Union, types.UnionType):
        for option in args:
            try:
                return _check(value, option, where)
            except LibrarySchemaError:
                continue
        raise LibrarySchemaError(f"{where}: unexpected value {value!r}")

    if hint is type(None):
        if value is not None:
            raise LibrarySchemaError(f"{where} should be null")
        return value

    if origin is list:
        if not isinstance(value, list):
            raise LibrarySchemaError(f"{where} should be a list")
        return [_check(item, args[0], f"{where}[{i}]") for i, item in enumerate(value)]

    if origin is dict:
        if not isinstance(value, Mapping):
            raise LibrarySchemaError(f"{where} should be a mapping")
        return {
            _check(key, args[0], where): _check(item, args[1], f"{where}.{key}")
            for key, item in value.items()
        }

    # bool is an int subclass, keep them apart.
    if hint is int and isinstance(value, bool):
        raise LibrarySchemaError(f"{where} should be an integer")

    if isinstance(hint, type) and not isinstance(value, hint):
        raise LibrarySchemaError(
            f"{where} should be of type {hint.__name__}, got {type(value).__name__}"
        )

    return value
