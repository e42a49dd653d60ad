"""
Guzzle — Scheduler Bridge
==========================
Connects the task registry to a scheduler.

``start()``:
1. Resolve every dependency reference (fatal on unknown names / cycles)
2. Write the task graph, if a path is configured
3. Hand every task to the scheduler, then run it

Lifecycle events coming back from the scheduler drive ``TaskState``:

    task_start → STARTED   (stamp started_at)
    task_stop  → DONE      (stamp ended_at; ignored if already DONE)
    task_err   → ERROR     (stamp ended_at)

After stop/error events a debounced ``on_finish`` fires once nothing is
``STARTED`` any more.
"""

from __future__ import annotations

import asyncio
import inspect
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Protocol

from guzzle.core.debounce import Debouncer
from guzzle.core.exceptions import OrchestratorError
from guzzle.core.logging import get_logger
from guzzle.orchestrator.events import TASK_ERR, TASK_START, TASK_STOP, TaskEvent
from guzzle.orchestrator.graph import GraphBuilder
from guzzle.orchestrator.registry import TaskRegistry
from guzzle.orchestrator.scheduler import Job, Scheduler
from guzzle.orchestrator.state_machine import InvalidTransitionError, TaskState
from guzzle.orchestrator.task import Task

logger = get_logger(__name__)

DEFAULT_FINISH_DEBOUNCE_SECONDS = 0.1


class Reporter(Protocol):
    def render(self) -> None: ...


class SchedulerBridge:
    """Drives a ``TaskRegistry`` through a ``Scheduler``."""

    def __init__(
        self,
        registry: TaskRegistry,
        scheduler: Scheduler,
        *,
        graph_path: Path | str | None = None,
        graph_builder: GraphBuilder | None = None,
        on_finish: Callable[[], Any] | None = None,
        reporter: Reporter | None = None,
        finish_debounce: float = DEFAULT_FINISH_DEBOUNCE_SECONDS,
    ) -> None:
        self._registry = registry
        self._scheduler = scheduler
        self._graph_path = Path(graph_path) if graph_path is not None else None
        self._graph_builder = graph_builder or GraphBuilder()
        self._on_finish = on_finish
        self._reporter = reporter
        self._started = False
        self._pending: set[asyncio.Task[Any]] = set()
        self._finish = Debouncer(finish_debounce, self._notify_finish) if on_finish else None

        scheduler.on(TASK_START, self._handle_start)
        scheduler.on(TASK_STOP, self._handle_stop)
        scheduler.on(TASK_ERR, self._handle_error)

    # ── Execution ──────────────────────────────────────────────────────

    async def start(self, *names: str) -> None:
        """
        Resolve, emit the graph and run ``names`` (all tasks when empty).

        May be called once.  Re-activations go through ``rerun()``.
        """
        if self._started:
            raise OrchestratorError("Scheduler bridge has already been started.")
        self._started = True

        tasks = self._registry.resolve_all()

        if self._graph_path is not None:
            self._graph_builder.write(self._graph_path, tasks)

        for task in tasks:
            self._scheduler.add(task.name, task.dependency_names, self._job_for(task))

        logger.info("bridge.started", tasks=len(tasks), targets=list(names))
        try:
            await self._scheduler.run(*names)
        finally:
            await self.settle()

    async def rerun(self, *names: str) -> None:
        """Run ``names`` again without re-resolving (used by watches)."""
        if not self._started:
            raise OrchestratorError("Scheduler bridge has not been started.")
        logger.info("bridge.rerun", targets=list(names))
        try:
            await self._scheduler.run(*names)
        finally:
            await self.settle()

    async def settle(self) -> None:
        """Wait for a pending ``on_finish`` notification to go out."""
        if self._finish is not None:
            await self._finish.settle()
        if self._pending:
            await asyncio.gather(*self._pending)

    @staticmethod
    def _job_for(task: Task) -> Job | None:
        if task.is_barrier:
            return None

        async def job() -> None:
            await task.execute().wait()

        return job

    # ── Lifecycle events ───────────────────────────────────────────────

    def _task(self, event: TaskEvent) -> Task | None:
        task = self._registry.get(event.task)
        if task is None:
            logger.warning("bridge.unknown_task", task=event.task)
        return task

    def _apply(self, task: Task, state: TaskState) -> bool:
        try:
            task.transition(state)
        except InvalidTransitionError as exc:
            logger.warning(
                "bridge.invalid_transition",
                task=task.name,
                from_state=exc.from_state.value,
                to_state=exc.to_state.value,
            )
            return False
        return True

    def _handle_start(self, event: TaskEvent) -> None:
        task = self._task(event)
        if task is None or not self._apply(task, TaskState.STARTED):
            return
        task.started_at = datetime.now(timezone.utc)
        task.ended_at = None
        logger.info("task.started", task=task.name)
        self._report()

    def _handle_stop(self, event: TaskEvent) -> None:
        task = self._task(event)
        if task is None:
            return
        if task.state == TaskState.DONE:
            logger.debug("task.duplicate_stop", task=task.name)
            return
        if self._apply(task, TaskState.DONE):
            task.ended_at = datetime.now(timezone.utc)
            logger.info("task.done", task=task.name, duration=event.duration)
            self._report()
        self._arm_finish()

    def _handle_error(self, event: TaskEvent) -> None:
        task = self._task(event)
        if task is None:
            return
        if self._apply(task, TaskState.ERROR):
            task.ended_at = datetime.now(timezone.utc)
            logger.error(
                "task.failed",
                task=task.name,
                error=repr(event.error) if event.error else None,
            )
            self._report()
        self._arm_finish()

    # ── Notifications ──────────────────────────────────────────────────

    def _report(self) -> None:
        if self._reporter is not None:
            self._reporter.render()

    def _arm_finish(self) -> None:
        if self._finish is not None:
            self._finish()

    def _notify_finish(self) -> None:
        if self._registry.is_running() or self._on_finish is None:
            return
        logger.debug("bridge.finished")
        result = self._on_finish()
        if inspect.isawaitable(result):
            pending = asyncio.ensure_future(result)
            self._pending.add(pending)
            pending.add_done_callback(self._pending.discard)
