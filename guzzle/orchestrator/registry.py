"""
Guzzle — Task Registry
=======================
Owns every declared task, in declaration order, and resolves string
dependency references to ``Task`` objects.

Two phases:
    declare(...)    while the guzzlefile runs
    resolve_all()   once, before anything is handed to the scheduler

Usage:
    registry = TaskRegistry()
    registry.declare("a", body=build_a)
    registry.declare("b", "a", build_b)
    tasks = registry.resolve_all()
"""

from __future__ import annotations

from typing import Iterator, Sequence

from guzzle.core.exceptions import DependencyNotFoundError
from guzzle.core.logging import get_logger
from guzzle.orchestrator.guards import Guards
from guzzle.orchestrator.state_machine import TaskState
from guzzle.orchestrator.task import Task, TaskBody
from guzzle.streams.transforms import StreamToolkit

logger = get_logger(__name__)

DependencySpec = Task | str | Sequence[Task | str | None] | None


def normalize_dependencies(dependencies: DependencySpec) -> list[Task | str]:
    """
    Accept a single name/Task, a sequence, or ``None``.

    Empty and ``None`` entries are dropped.
    """
    if dependencies is None:
        return []
    if isinstance(dependencies, (str, Task)):
        dependencies = [dependencies]
    return [dep for dep in dependencies if dep]


class TaskRegistry:
    """
    Ordered collection of tasks.

    Single writer: tasks are declared, then resolved once.  After
    resolution the collection is read-only.
    """

    def __init__(self, toolkit: StreamToolkit | None = None) -> None:
        self.toolkit = toolkit or StreamToolkit()
        self._tasks: list[Task] = []
        self._resolved = False

    # ── Declaration ────────────────────────────────────────────────────

    def declare(
        self,
        name: str,
        dependencies: DependencySpec = None,
        body: TaskBody | None = None,
        *,
        run_once: bool = False,
    ) -> Task:
        """Create a task, record it and return it."""
        task = Task(
            name,
            normalize_dependencies(dependencies),
            body,
            run_once=run_once,
            toolkit=self.toolkit,
        )
        self._tasks.append(task)
        logger.debug(
            "registry.declared",
            task=task.name,
            dependencies=task.dependency_names,
            run_once=run_once,
            barrier=task.is_barrier,
        )
        return task

    # ── Resolution ─────────────────────────────────────────────────────

    @property
    def resolved(self) -> bool:
        return self._resolved

    def resolve_all(self) -> list[Task]:
        """
        Replace every string dependency with the task of that name.

        Raises ``DependencyNotFoundError`` for an unknown name,
        ``DuplicateTaskError`` for a repeated name and
        ``DependencyCycleError`` for a cyclic graph.  Nothing is mutated
        if a name cannot be found.
        """
        if self._resolved:
            return list(self._tasks)

        by_name: dict[str, Task] = {}
        for task in self._tasks:
            by_name.setdefault(task.name, task)

        resolved: list[list[Task]] = []
        for task in self._tasks:
            deps: list[Task] = []
            for dep in task.dependencies:
                if isinstance(dep, str):
                    found = by_name.get(dep)
                    if found is None:
                        raise DependencyNotFoundError(dep, task_name=task.name)
                    dep = found
                deps.append(dep)
            resolved.append(deps)

        for task, deps in zip(self._tasks, resolved):
            task.dependencies = list(deps)

        Guards.check_all(self._tasks)
        self._resolved = True
        logger.info("registry.resolved", tasks=len(self._tasks))
        return list(self._tasks)

    # ── Lookup ─────────────────────────────────────────────────────────

    def get(self, name: str) -> Task | None:
        return next((task for task in self._tasks if task.name == name), None)

    def names(self) -> list[str]:
        return [task.name for task in self._tasks]

    def is_running(self) -> bool:
        return any(task.state == TaskState.STARTED for task in self._tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter(self._tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, name: object) -> bool:
        return any(task.name == name for task in self._tasks)
