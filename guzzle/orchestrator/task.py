"""
Guzzle — Task Model
====================
A named unit of work with dependencies, an optional body and a mutable
stream handle.

Fluent stream operations (each replaces ``task.stream`` and returns the
task):

    task.read("src/*.css").pipe("concat", "site.css").write("dist")

``execute()`` is the completion wrapper handed to the scheduler.  It honours
``run_once``, runs the body, releases the stream handle when the stream
completes and returns a tagged ``TaskResult``.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any, Awaitable, Callable, Iterable

from guzzle.core.exceptions import StreamError, UnknownTransformError
from guzzle.core.logging import get_logger
from guzzle.orchestrator.state_machine import TaskState, TaskStateMachine
from guzzle.streams.stream import Stream, Transform
from guzzle.streams.transforms import StreamToolkit

logger = get_logger(__name__)

TaskBody = Callable[["Task"], Any]


# ── Completion result ───────────────────────────────────────────────────


class ResultKind(StrEnum):
    NONE = "none"
    STREAM = "stream"
    DEFERRED = "deferred"


@dataclass(frozen=True, slots=True)
class TaskResult:
    """What the scheduler must wait on before a task counts as done."""

    kind: ResultKind
    stream: Stream | None = None
    deferred: Awaitable[Any] | None = None
    backlog: tuple[Stream, ...] = ()

    @classmethod
    def empty(cls) -> TaskResult:
        return cls(ResultKind.NONE)

    @classmethod
    def of_stream(cls, stream: Stream, backlog: Iterable[Stream] = ()) -> TaskResult:
        return cls(ResultKind.STREAM, stream=stream, backlog=tuple(backlog))

    @classmethod
    def of_deferred(cls, deferred: Awaitable[Any]) -> TaskResult:
        return cls(ResultKind.DEFERRED, deferred=deferred)

    async def wait(self) -> None:
        """
        Wait until the task's work is complete.

        Earlier chains started by ``read()`` drain alongside the final one.
        Every chain runs to completion before the first failure is raised.
        """
        if self.kind == ResultKind.STREAM:
            outcomes = await asyncio.gather(
                *(s.wait() for s in self.backlog),
                self.stream.wait(),
                return_exceptions=True,
            )
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome
        elif self.kind == ResultKind.DEFERRED:
            await self.deferred


# ── Task ────────────────────────────────────────────────────────────────


class Task:
    """
    A declared task.

    Dependencies given as ``Task`` objects are treated as sub-tasks and
    renamed ``"<parent>.<name>"`` on declaration.  String dependencies stay
    strings until the registry resolves them.

    The body receives the task and signals completion in one of three ways:
    by leaving a stream in ``task.stream`` (or returning one), by returning
    an awaitable, or by returning anything else, which completes at once.
    There is no completion callback; wrap callback-style work in an
    ``asyncio.Future`` and return it.
    """

    def __init__(
        self,
        name: str,
        dependencies: Iterable[Task | str] = (),
        body: TaskBody | None = None,
        *,
        run_once: bool = False,
        toolkit: StreamToolkit | None = None,
    ) -> None:
        self.name = name
        self.body = body
        self.run_once = run_once
        self.stream: Stream | None = None
        self.state = TaskState.NOT_STARTED
        self.started_at: datetime | None = None
        self.ended_at: datetime | None = None
        self._toolkit = toolkit or StreamToolkit()
        self._body_ran = False
        self._backlog: list[Stream] = []

        self.dependencies: list[Task | str] = []
        for dep in dependencies:
            if isinstance(dep, Task):
                dep.name = f"{self.name}.{dep.name}"
            self.dependencies.append(dep)

    def __repr__(self) -> str:
        return f"Task(name={self.name!r}, state={self.state.value!r})"

    # ── Introspection ──────────────────────────────────────────────────

    @property
    def is_barrier(self) -> bool:
        """``True`` for tasks with no body (pure dependency grouping)."""
        return self.body is None

    @property
    def dependency_names(self) -> list[str]:
        return [dep if isinstance(dep, str) else dep.name for dep in self.dependencies]

    # ── State ──────────────────────────────────────────────────────────

    def transition(self, to_state: TaskState) -> None:
        """
        Move to ``to_state``.

        Raises ``InvalidTransitionError`` if the move is not allowed.
        """
        TaskStateMachine.validate_transition(self.state, to_state)
        self.state = to_state

    # ── Fluent stream operations ───────────────────────────────────────

    def read(self, *args: Any, **kwargs: Any) -> Task:
        """
        Start a new source stream.

        If the previous stream is still running, the new one stays paused
        until it finishes or fails, so one input stream is active at a time.
        """
        previous = self.stream
        current = self.stream = self._toolkit.source(*args, **kwargs)

        if previous is not None and not (previous.finished or previous.failed):
            self._backlog.append(previous)
            current.pause()
            previous.on("finish", current.resume)
            previous.on("error", lambda _exc: current.resume())
            logger.debug("task.read_queued", task=self.name)

        return self

    def pipe(self, transform: Transform | str, *args: Any, **kwargs: Any) -> Task:
        """
        Pipe the current stream through ``transform``.

        ``transform`` is either a transform callable or the name of a
        registered factory, which is called with ``args``/``kwargs``.
        """
        if isinstance(transform, str):
            try:
                transform = self._toolkit.transform(transform, *args, **kwargs)
            except UnknownTransformError as exc:
                raise UnknownTransformError(exc.name, task_name=self.name) from None
        self.stream = self._require_stream("pipe").pipe(transform)
        return self

    def write(self, *args: Any, **kwargs: Any) -> Task:
        """Pipe the current stream through the toolkit's sink."""
        self.stream = self._require_stream("write").pipe(self._toolkit.sink(*args, **kwargs))
        return self

    def on(self, event: str, handler: Callable[..., Any]) -> Task:
        self.stream = self._require_stream("on").on(event, handler)
        return self

    def _require_stream(self, operation: str) -> Stream:
        if self.stream is None:
            raise StreamError(
                f"Task '{self.name}' has no stream to {operation}; call read() first.",
                task_name=self.name,
            )
        return self.stream

    # ── Completion wrapper ─────────────────────────────────────────────

    def execute(self) -> TaskResult:
        """
        Run the body for one activation.

        The live stream wins over the body's return value because the
        scheduler needs something it can wait on.
        """
        if self.body is None:
            return TaskResult.empty()

        if self.run_once and self._body_ran:
            logger.debug("task.run_once_skipped", task=self.name)
            return TaskResult.empty()

        self._body_ran = True
        self._backlog = []
        result = self.body(self)

        stream = self.stream
        if stream is None and isinstance(result, Stream):
            stream = result

        backlog = [s for s in self._backlog if s is not stream and not s.finished]
        self._backlog = []

        if stream is not None:
            stream.on("finish", lambda: self._release(stream))
            stream.on("end", lambda: self._release(stream))
            stream.on("error", lambda _exc: self._release(stream))
            return TaskResult.of_stream(stream, backlog)

        if inspect.isawaitable(result):
            return TaskResult.of_deferred(result)

        return TaskResult.empty()

    def _release(self, stream: Stream) -> None:
        if self.stream is stream:
            self.stream = None
