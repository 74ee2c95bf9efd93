from .loader import find_config, load_config, load_task, load_tasks
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

__all__ = [
    "find_config",
    "load_config",
    "load_task",
    "load_tasks",
    "ConfigError",
    "DuplicateTaskError",
    "InvalidTask",
    "LibraryCall",
    "ParseError",
    "ProjectConfig",
    "ShellCommand",
    "TaskDescriptor",
    "UnsupportedConfigFormatError",
]
