from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterable, Iterator, Mapping

from bootforge.config.types import TaskDescriptor

from .types import CyclicDependency, DependencyExcluded, UnknownDependency


class _Visit(Enum):
    UNVISITED = auto()
    VISITING = auto()
    VISITED = auto()


@dataclass(frozen=True)
class TaskGraph:
    tasks: Mapping[str, TaskDescriptor]
    names: tuple[str, ...]
    _index: dict[str, int]
    _deps: tuple[tuple[int, ...], ...]
    _rdeps: tuple[tuple[int, ...], ...]

    @classmethod
    def build(
        cls,
        eligible: Mapping[str, TaskDescriptor],
        all_tasks: Mapping[str, TaskDescriptor] | None = None,
    ) -> TaskGraph:
        if all_tasks is None:
            all_tasks = eligible

        names = tuple(eligible)
        index = {name: i for i, name in enumerate(names)}
        deps: list[tuple[int, ...]] = []

        for name in names:
            edges = []
            for dep in eligible[name].requires:
                if dep in index:
                    edges.append(index[dep])
                elif dep in all_tasks:
                    raise DependencyExcluded(name, dep)
                else:
                    raise UnknownDependency(name, dep)
            deps.append(tuple(edges))

        graph = cls._from_edges(dict(eligible), names, index, deps)
        graph.topo_order()
        return graph

    @classmethod
    def _from_edges(
        cls,
        tasks: dict[str, TaskDescriptor],
        names: tuple[str, ...],
        index: dict[str, int],
        deps: list[tuple[int, ...]],
    ) -> TaskGraph:
        rdeps: list[list[int]] = [[] for _ in names]
        for tid, edges in enumerate(deps):
            for dep in edges:
                rdeps[dep].append(tid)

        return cls(tasks, names, index, tuple(deps), tuple(tuple(r) for r in rdeps))

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __len__(self) -> int:
        return len(self.names)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def dependencies(self, name: str) -> tuple[str, ...]:
        return tuple(self.names[i] for i in self._deps[self._index[name]])

    def dependents(self, name: str) -> tuple[str, ...]:
        return tuple(self.names[i] for i in self._rdeps[self._index[name]])

    def restrict(self, names: Iterable[str]) -> TaskGraph:
        """Subgraph over ``names``; edges leaving the subset are dropped."""
        wanted = set(names)
        keep = [name for name in self.names if name in wanted]
        index = {name: i for i, name in enumerate(keep)}
        deps = [
            tuple(index[dep] for dep in self.dependencies(name) if dep in index)
            for name in keep
        ]
        return self._from_edges(
            {name: self.tasks[name] for name in keep}, tuple(keep), index, deps
        )

    def topo_order(self) -> list[str]:
        return [self.names[i] for i in self._toposort()]

    def _toposort(self) -> list[int]:
        state = [_Visit.UNVISITED] * len(self.names)
        out: list[int] = []
        stack: list[int] = []
        pos: dict[int, int] = {}

        def visit(tid: int) -> None:
            if state[tid] == _Visit.VISITING:
                start = pos[tid]
                cycle = stack[start:] + [tid]
                raise CyclicDependency([self.names[i] for i in cycle])
            if state[tid] == _Visit.VISITED:
                return

            state[tid] = _Visit.VISITING
            pos[tid] = len(stack)
            stack.append(tid)

            for dep in self._deps[tid]:
                visit(dep)

            stack.pop()
            pos.pop(tid)
            state[tid] = _Visit.VISITED
            out.append(tid)

        for tid in range(len(self.names)):
            visit(tid)

        return out
