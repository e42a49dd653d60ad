"""
Guzzle — Scheduler Events
==========================
Lifecycle signals emitted by the scheduler for every task job.

Event names:
    task_start   job is about to run
    task_stop    job completed successfully
    task_err     job raised

Usage:
    emitter = EventEmitter()
    emitter.on(TASK_STOP, lambda event: print(event.task))
    emitter.emit(TASK_STOP, TaskEvent(task="build", duration=0.2))
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Callable

TASK_START = "task_start"
TASK_STOP = "task_stop"
TASK_ERR = "task_err"

LIFECYCLE_EVENTS: frozenset[str] = frozenset({TASK_START, TASK_STOP, TASK_ERR})


@dataclass(frozen=True, slots=True)
class TaskEvent:
    """Payload delivered with every lifecycle event."""

    task: str
    duration: float | None = None
    error: BaseException | None = None


EventHandler = Callable[[TaskEvent], object]


class EventEmitter:
    """
    Minimal synchronous event emitter.

    Handlers run in registration order on the emitting call stack.
    Exceptions raised by a handler propagate to the emitter.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def on(self, event: str, handler: EventHandler) -> None:
        """Register ``handler`` for ``event``."""
        self._handlers[event].append(handler)

    def emit(self, event: str, payload: TaskEvent) -> None:
        """Call every handler registered for ``event``."""
        for handler in list(self._handlers.get(event, ())):
            handler(payload)

