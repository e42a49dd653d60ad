"""
Guzzle — Error Hierarchy
=========================
Every error Guzzle raises is a ``GuzzleError``, grouped by where it comes
from: graph resolution and scheduling (``OrchestratorError``), stream
chaining (``StreamError``) or setup (``ConfigurationError``).  Each class
carries a stable ``error_code`` and a ``severity`` the CLI logs with it.

Usage:
    from guzzle.core.exceptions import DependencyNotFoundError

    raise DependencyNotFoundError("missing", task_name="build")
"""

from __future__ import annotations

from enum import StrEnum
from typing import Sequence


class ErrorSeverity(StrEnum):
    """How bad an error is; ``CRITICAL`` means the graph cannot run at all."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class GuzzleError(Exception):
    """
    Root of the hierarchy.

    ``task_name`` names the task the error is about, when there is one.
    """

    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    error_code: str = "GUZZLE_ERROR"

    def __init__(self, message: str, *, task_name: str | None = None) -> None:
        self.task_name = task_name
        super().__init__(message)

    def __repr__(self) -> str:
        fields = [f"error_code={self.error_code!r}", f"severity={self.severity.value!r}"]
        if self.task_name:
            fields.append(f"task_name={self.task_name!r}")
        return f"{type(self).__name__}({', '.join(fields)})"


# ── Orchestrator Exceptions ───────────────────────────────────────────────


class OrchestratorError(GuzzleError):
    """Errors in the orchestration layer (resolution, scheduling, state)."""

    error_code = "ORCHESTRATOR_ERROR"


class DependencyNotFoundError(OrchestratorError):
    """Raised when a string dependency does not name any declared task."""

    severity = ErrorSeverity.CRITICAL
    error_code = "DEPENDENCY_NOT_FOUND"

    def __init__(self, dependency: str, *, task_name: str) -> None:
        self.dependency = dependency
        super().__init__(
            f"Task not found: '{dependency}' (required by '{task_name}').",
            task_name=task_name,
        )


class DependencyCycleError(OrchestratorError):
    """Raised when the resolved dependency graph contains a cycle."""

    severity = ErrorSeverity.CRITICAL
    error_code = "DEPENDENCY_CYCLE"

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = list(cycle)
        super().__init__(
            f"Dependency cycle detected: {' -> '.join(self.cycle)}.",
            task_name=self.cycle[0] if self.cycle else None,
        )


class DuplicateTaskError(OrchestratorError):
    """Raised when two declared tasks share the same name."""

    severity = ErrorSeverity.HIGH
    error_code = "DUPLICATE_TASK"

    def __init__(self, name: str) -> None:
        super().__init__(f"Task '{name}' is declared more than once.", task_name=name)


class TaskNotFoundError(OrchestratorError):
    """Raised when the scheduler is asked to run a task it does not know."""

    severity = ErrorSeverity.HIGH
    error_code = "TASK_NOT_FOUND"

    def __init__(self, name: str) -> None:
        super().__init__(f"Task '{name}' is not defined.", task_name=name)


class TaskExecutionError(OrchestratorError):
    """Raised after a scheduler run in which one or more tasks failed."""

    severity = ErrorSeverity.HIGH
    error_code = "TASK_EXECUTION_ERROR"

    def __init__(self, failures: dict[str, BaseException]) -> None:
        self.failures = dict(failures)
        names = ", ".join(self.failures)
        first = next(iter(self.failures), None)
        super().__init__(f"Task(s) failed: {names}.", task_name=first)


# ── Stream Exceptions ─────────────────────────────────────────────────────


class StreamError(GuzzleError):
    """Errors in stream chaining (missing stream, reuse, bad transform)."""

    error_code = "STREAM_ERROR"


class UnknownTransformError(StreamError):
    """Raised when ``pipe`` is given a transform name that is not registered."""

    error_code = "UNKNOWN_TRANSFORM"

    def __init__(self, name: str, *, task_name: str | None = None) -> None:
        self.name = name
        super().__init__(f"Unknown transform '{name}'.", task_name=task_name)


# ── Configuration Exceptions ──────────────────────────────────────────────


class ConfigurationError(GuzzleError):
    """Bad settings or an unusable guzzlefile."""

    severity = ErrorSeverity.HIGH
    error_code = "CONFIGURATION_ERROR"


class GuzzlefileError(ConfigurationError):
    """Raised when the guzzlefile is missing or defines no Guzzle instance."""

    error_code = "GUZZLEFILE_ERROR"
