"""
Guzzle — Graph Guards
======================
Checks run against the resolved task graph before it reaches the scheduler.

- Every task name is unique
- The dependency graph is acyclic
"""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING, Iterable

from guzzle.core.exceptions import DependencyCycleError, DuplicateTaskError

if TYPE_CHECKING:
    from guzzle.orchestrator.task import Task


# ── Cycle Detector ──────────────────────────────────────────────────────

_WHITE, _GREY, _BLACK = 0, 1, 2


class CycleDetector:
    """
    Depth-first search over resolved dependencies.

    Visits tasks in declaration order and dependencies in declaration
    order, so the reported cycle is deterministic.
    """

    @staticmethod
    def find_cycle(tasks: Iterable[Task]) -> list[str] | None:
        """
        Return the first cycle found as a list of task names, closing on
        the starting name (``["a", "b", "a"]``), or ``None``.
        """
        colour: dict[int, int] = {}
        path: list[Task] = []

        def visit(task: Task) -> list[str] | None:
            colour[id(task)] = _GREY
            path.append(task)
            for dep in task.dependencies:
                if isinstance(dep, str):
                    continue
                state = colour.get(id(dep), _WHITE)
                if state == _GREY:
                    start = next(i for i, t in enumerate(path) if t is dep)
                    return [t.name for t in path[start:]] + [dep.name]
                if state == _WHITE:
                    found = visit(dep)
                    if found:
                        return found
            path.pop()
            colour[id(task)] = _BLACK
            return None

        for task in tasks:
            if colour.get(id(task), _WHITE) == _WHITE:
                found = visit(task)
                if found:
                    return found
        return None

    @classmethod
    def check(cls, tasks: Iterable[Task]) -> bool:
        """
        Return ``True`` if the graph is acyclic.

        Raises ``DependencyCycleError`` otherwise.
        """
        cycle = cls.find_cycle(tasks)
        if cycle:
            raise DependencyCycleError(cycle)
        return True


# ── Graph Guards ────────────────────────────────────────────────────────


class Guards:
    """Composite guard run by the registry after resolution."""

    @staticmethod
    def check_unique_names(tasks: Iterable[Task]) -> bool:
        """
        Enforce one task per name.

        Raises ``DuplicateTaskError`` naming the first duplicate in
        declaration order.
        """
        names = [task.name for task in tasks]
        counts = Counter(names)
        for name in names:
            if counts[name] > 1:
                raise DuplicateTaskError(name)
        return True

    @staticmethod
    def check_acyclic(tasks: Iterable[Task]) -> bool:
        """Raises ``DependencyCycleError`` if any dependency path loops."""
        return CycleDetector.check(tasks)

    @classmethod
    def check_all(cls, tasks: list[Task]) -> bool:
        """Run all guard checks.  Raises the first violation found."""
        cls.check_unique_names(tasks)
        cls.check_acyclic(tasks)
        return True
