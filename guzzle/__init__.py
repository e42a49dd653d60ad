"""
Guzzle — Task Orchestration
============================
Declare interdependent tasks, resolve their graph, run them and watch
their state.

Public API:
    Guzzle          declaration API and execution trigger
    Task, TaskState
    Stream, SourceFile
"""

from guzzle.app import Guzzle
from guzzle.core.exceptions import (
    DependencyCycleError,
    DependencyNotFoundError,
    GuzzleError,
    TaskExecutionError,
)
from guzzle.orchestrator.state_machine import TaskState
from guzzle.orchestrator.task import Task
from guzzle.streams import SourceFile, Stream

__version__ = "0.1.0"

__all__ = [
    "Guzzle",
    "Task",
    "TaskState",
    "Stream",
    "SourceFile",
    "GuzzleError",
    "DependencyNotFoundError",
    "DependencyCycleError",
    "TaskExecutionError",
    "__version__",
]
