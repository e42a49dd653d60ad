"""
Guzzle — Orchestration Engine
==============================
Task graph model, dependency resolution, scheduling and lifecycle tracking.

Public API:
    Task, TaskResult, ResultKind
    TaskRegistry
    TaskState, TaskStateMachine, InvalidTransitionError
    GraphBuilder
    AsyncScheduler, Scheduler
    SchedulerBridge
    Watcher
"""

from guzzle.orchestrator.bridge import SchedulerBridge
from guzzle.orchestrator.events import (
    TASK_ERR,
    TASK_START,
    TASK_STOP,
    EventEmitter,
    TaskEvent,
)
from guzzle.orchestrator.graph import GraphBuilder, Renderer, render_with_graphviz
from guzzle.orchestrator.guards import CycleDetector, Guards
from guzzle.orchestrator.registry import TaskRegistry
from guzzle.orchestrator.scheduler import AsyncScheduler, Scheduler
from guzzle.orchestrator.state_machine import (
    InvalidTransitionError,
    TaskState,
    TaskStateMachine,
)
from guzzle.orchestrator.task import ResultKind, Task, TaskResult
from guzzle.orchestrator.watcher import Watcher

__all__ = [
    "Task",
    "TaskResult",
    "ResultKind",
    "TaskRegistry",
    "TaskState",
    "TaskStateMachine",
    "InvalidTransitionError",
    "Guards",
    "CycleDetector",
    "GraphBuilder",
    "Renderer",
    "render_with_graphviz",
    "AsyncScheduler",
    "Scheduler",
    "SchedulerBridge",
    "EventEmitter",
    "TaskEvent",
    "TASK_START",
    "TASK_STOP",
    "TASK_ERR",
    "Watcher",
]
