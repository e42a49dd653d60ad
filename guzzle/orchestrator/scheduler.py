"""
Guzzle — Dependency-Ordered Job Scheduler
==========================================
Runs a DAG of named async jobs concurrently, starting each job only after
all of its dependencies have completed, and fires lifecycle events.

``Scheduler`` is the seam the bridge talks to; ``AsyncScheduler`` is the
asyncio implementation used by default.

Usage:
    scheduler = AsyncScheduler()
    scheduler.add("css", [], build_css)
    scheduler.add("all", ["css"], None)
    scheduler.on(TASK_STOP, print)
    await scheduler.run("all")
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol, Sequence

from guzzle.core.context import new_run_id, run_id_ctx
from guzzle.core.exceptions import TaskExecutionError, TaskNotFoundError
from guzzle.core.logging import get_logger
from guzzle.orchestrator.events import (
    TASK_ERR,
    TASK_START,
    TASK_STOP,
    EventEmitter,
    EventHandler,
    TaskEvent,
)

logger = get_logger(__name__)

Job = Callable[[], Awaitable[None]]


class Scheduler(Protocol):
    """What the bridge needs from a scheduler."""

    def add(self, name: str, dependencies: Sequence[str], job: Job | None) -> None: ...

    def on(self, event: str, handler: EventHandler) -> None: ...

    async def run(self, *names: str) -> None: ...


@dataclass(frozen=True, slots=True)
class _Entry:
    name: str
    dependencies: tuple[str, ...]
    job: Job | None


class AsyncScheduler:
    """
    asyncio-based scheduler.

    Independent jobs run concurrently.  A job whose dependency failed is
    skipped and emits no events.  Runs are serialized: a second ``run()``
    waits for the first one to finish.
    """

    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}
        self._events = EventEmitter()
        self._lock: asyncio.Lock | None = None

    # ── Registration ───────────────────────────────────────────────────

    def add(self, name: str, dependencies: Sequence[str], job: Job | None) -> None:
        """Register or replace the job called ``name``."""
        self._entries[name] = _Entry(name, tuple(dependencies), job)

    def on(self, event: str, handler: EventHandler) -> None:
        self._events.on(event, handler)

    def closure(self, names: Sequence[str]) -> list[str]:
        """
        Return ``names`` plus all their transitive dependencies, in
        registration order.

        Raises ``TaskNotFoundError`` for an unknown name.
        """
        wanted: set[str] = set()
        stack = list(names)
        while stack:
            name = stack.pop()
            if name in wanted:
                continue
            entry = self._entries.get(name)
            if entry is None:
                raise TaskNotFoundError(name)
            wanted.add(name)
            stack.extend(entry.dependencies)
        return [name for name in self._entries if name in wanted]

    # ── Execution ──────────────────────────────────────────────────────

    async def run(self, *names: str) -> None:
        """
        Run ``names`` (or every job when empty) with their dependencies.

        Raises ``TaskExecutionError`` once all jobs settle if any failed.
        """
        order = self.closure(names or list(self._entries))
        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            token = run_id_ctx.set(new_run_id())
            try:
                logger.info("scheduler.run_started", targets=list(names), jobs=len(order))
                loop = asyncio.get_running_loop()
                outcomes: dict[str, asyncio.Future[bool]] = {
                    name: loop.create_future() for name in order
                }
                results = await asyncio.gather(
                    *(self._run_entry(self._entries[name], outcomes) for name in order)
                )
            finally:
                run_id_ctx.reset(token)

        failures = {name: exc for name, exc in zip(order, results) if exc is not None}
        logger.info(
            "scheduler.run_finished",
            jobs=len(order),
            failed=sorted(failures),
        )
        if failures:
            raise TaskExecutionError(failures)

    async def _run_entry(
        self,
        entry: _Entry,
        outcomes: dict[str, asyncio.Future[bool]],
    ) -> BaseException | None:
        outcome = outcomes[entry.name]
        for dep in entry.dependencies:
            if not await outcomes[dep]:
                logger.warning("scheduler.job_skipped", task=entry.name, failed_dependency=dep)
                outcome.set_result(False)
                return None

        started = time.perf_counter()
        self._events.emit(TASK_START, TaskEvent(task=entry.name))
        try:
            if entry.job is not None:
                await entry.job()
        except Exception as exc:
            logger.error("scheduler.job_failed", task=entry.name, error=str(exc))
            self._events.emit(
                TASK_ERR,
                TaskEvent(task=entry.name, duration=time.perf_counter() - started, error=exc),
            )
            outcome.set_result(False)
            return exc

        self._events.emit(
            TASK_STOP,
            TaskEvent(task=entry.name, duration=time.perf_counter() - started),
        )
        outcome.set_result(True)
        return None
