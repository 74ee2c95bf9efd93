from .context import TaskContext
from .env import build_env, expand, expand_data
from .executor import TaskExecutor
from .process import SKIP_EXIT_CODE
from .scheduler import Scheduler
from .types import (
    CommandFailed,
    CommandNonZero,
    CommandTerminated,
    EnvVarError,
    ExecutionPlan,
    LibraryError,
    LibrarySchemaError,
    RunContext,
    RunOutcome,
    RunRequest,
    TaskExecutionError,
    TaskResult,
    TaskStatus,
    UnimplementedLibrary,
)

__all__ = [
    "SKIP_EXIT_CODE",
    "Scheduler",
    "TaskContext",
    "TaskExecutor",
    "build_env",
    "expand",
    "expand_data",
    "CommandFailed",
    "CommandNonZero",
    "CommandTerminated",
    "EnvVarError",
    "ExecutionPlan",
    "LibraryError",
    "LibrarySchemaError",
    "RunContext",
    "RunOutcome",
    "RunRequest",
    "TaskExecutionError",
    "TaskResult",
    "TaskStatus",
    "UnimplementedLibrary",
]
