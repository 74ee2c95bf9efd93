from .dag import TaskGraph
from .select import select_tasks
from .types import CyclicDependency, DependencyExcluded, GraphError, UnknownDependency

__all__ = [
    "TaskGraph",
    "select_tasks",
    "CyclicDependency",
    "DependencyExcluded",
    "GraphError",
    "UnknownDependency",
]
