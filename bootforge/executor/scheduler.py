from __future__ import annotations

import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Mapping, Sequence

from loguru import logger

from bootforge.graph import TaskGraph

from .executor import TaskExecutor
from .types import (
    ExecutionPlan,
    RunOutcome,
    RunRequest,
    TaskExecutionError,
    TaskResult,
    TaskStatus,
)


class Scheduler:
    """Drive a run: the serial bootstrap phase, then the parallel phase.

    A task in the parallel phase is dispatched once all of its dependencies
    passed or skipped. If a dependency failed, or was itself blocked, the task
    is recorded as skipped without being started.
    """

    def __init__(
        self,
        graph: TaskGraph,
        executor: TaskExecutor,
        request: RunRequest,
        bootstrap_tasks: Sequence[str] = (),
    ):
        self.graph = graph
        self.executor = executor
        self.request = request
        self.bootstrap_tasks = tuple(bootstrap_tasks)
        self._lock = threading.Lock()
        self._results: dict[str, TaskResult] = {}
        self._blocked: set[str] = set()

    def plan(self) -> ExecutionPlan:
        bootstrap: list[str] = []
        if self.request.bootstrap:
            for name in self.bootstrap_tasks:
                if name not in self.graph:
                    logger.debug("Bootstrap task '{}' not selected, skipping", name)
                    continue
                if name not in bootstrap:
                    bootstrap.append(name)

        parallel = [name for name in self.graph.names if name not in bootstrap]
        subgraph = self.graph.restrict(parallel)
        edges = {name: subgraph.dependencies(name) for name in parallel}
        return ExecutionPlan(tuple(bootstrap), tuple(parallel), edges)

    def run(self) -> RunOutcome:
        plan = self.plan()
        self._results = {}
        self._blocked = set()

        if plan.bootstrap and not self._run_bootstrap(plan.bootstrap):
            for name in self.graph.names:
                if name not in self._results:
                    self._record(TaskResult.not_started(name, "run aborted"))
            return self._outcome(aborted=True)

        if plan.parallel:
            self._run_parallel(plan)

        return self._outcome(aborted=False)

    def _run_bootstrap(self, order: Sequence[str]) -> bool:
        logger.info("Running {} bootstrap task(s) in order", len(order))
        for name in order:
            result = self._execute(name)
            self._record(result)
            if result.status is TaskStatus.FAILED and not self.request.keep_going:
                logger.error(
                    "Bootstrap task '{}' failed, not running any more tasks "
                    "(pass --keep-going to continue past failures)",
                    name,
                )
                return False
        return True

    def _run_parallel(self, plan: ExecutionPlan) -> None:
        logger.info(
            "Running {} task(s) with up to {} worker(s)",
            len(plan.parallel),
            self.request.jobs,
        )
        # Bootstrap results are final here, so their failures block up front.
        pending = [
            name
            for name in plan.parallel
            if not self._blocked_by_bootstrap(name, plan.bootstrap)
        ]
        inflight: dict[Future[TaskResult], str] = {}

        with ThreadPoolExecutor(
            max_workers=self.request.jobs, thread_name_prefix="bootforge-task"
        ) as pool:
            while pending or inflight:
                pending = self._dispatch(pool, pending, inflight, plan.edges)

                if not inflight:
                    if pending:
                        raise AssertionError(f"Tasks can never become runnable: {pending}")
                    break

                done, _ = wait(inflight, return_when=FIRST_COMPLETED)
                for future in done:
                    inflight.pop(future)
                    self._record(future.result())

    def _dispatch(
        self,
        pool: ThreadPoolExecutor,
        pending: list[str],
        inflight: dict[Future[TaskResult], str],
        edges: Mapping[str, tuple[str, ...]],
    ) -> list[str]:
        # Repeat until stable, since blocking one task can block its dependents.
        changed = True
        while changed:
            changed = False
            waiting = []
            for name in pending:
                deps = edges[name]
                blocker = next((dep for dep in deps if self._is_blocking(dep)), None)

                if blocker is not None:
                    self._block(name, blocker)
                    changed = True
                elif all(self._is_satisfied(dep) for dep in deps):
                    inflight[pool.submit(self._execute, name)] = name
                else:
                    waiting.append(name)
            pending = waiting

        return pending

    def _blocked_by_bootstrap(self, name: str, bootstrap: Sequence[str]) -> bool:
        for dep in self.graph.dependencies(name):
            if dep in bootstrap and self._is_blocking(dep):
                self._block(name, dep)
                return True
        return False

    def _block(self, name: str, blocker: str) -> None:
        logger.warning(
            "Skipping task '{}' as its dependency '{}' did not complete", name, blocker
        )
        self._blocked.add(name)
        self._record(TaskResult.not_started(name, f"blocked by dependency '{blocker}'"))

    def _execute(self, name: str) -> TaskResult:
        try:
            return self.executor.execute(self.graph.tasks[name])
        except Exception as exc:
            logger.exception("Unexpected error executing task '{}'", name)
            result = TaskResult(name)
            result.finish(
                TaskStatus.FAILED, error=TaskExecutionError(f"Unexpected error: {exc}")
            )
            return result

    def _record(self, result: TaskResult) -> None:
        with self._lock:
            if result.name in self._results:
                raise AssertionError(f"Task '{result.name}' finished twice")
            self._results[result.name] = result

    def _is_blocking(self, dep: str) -> bool:
        with self._lock:
            result = self._results.get(dep)
        if result is None:
            return False
        return result.status is TaskStatus.FAILED or dep in self._blocked

    def _is_satisfied(self, dep: str) -> bool:
        with self._lock:
            result = self._results.get(dep)
        if result is None or dep in self._blocked:
            return False
        return result.status in (TaskStatus.PASSED, TaskStatus.SKIPPED)

    def _outcome(self, *, aborted: bool) -> RunOutcome:
        with self._lock:
            results = {
                name: self._results[name]
                for name in self.graph.names
                if name in self._results
            }
        return RunOutcome(results, aborted=aborted)
