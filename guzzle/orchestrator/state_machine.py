"""
Guzzle — Task State Machine
============================
A task moves through four states per activation:

    not_started ─▶ started ─▶ done
                      │
                      └────▶ error

A settled task (``done`` or ``error``) can be started again, which is how
watches re-run work.  Anything else raises ``InvalidTransitionError``.
"""

from __future__ import annotations

from collections import defaultdict
from enum import StrEnum

from guzzle.core.exceptions import OrchestratorError


class TaskState(StrEnum):
    NOT_STARTED = "not_started"
    STARTED = "started"
    DONE = "done"
    ERROR = "error"


_EDGES: tuple[tuple[TaskState, TaskState], ...] = (
    (TaskState.NOT_STARTED, TaskState.STARTED),
    (TaskState.STARTED, TaskState.DONE),
    (TaskState.STARTED, TaskState.ERROR),
    (TaskState.DONE, TaskState.STARTED),
    (TaskState.ERROR, TaskState.STARTED),
)


def _build_transitions() -> dict[TaskState, frozenset[TaskState]]:
    targets: dict[TaskState, set[TaskState]] = defaultdict(set)
    for source, target in _EDGES:
        targets[source].add(target)
    return {state: frozenset(targets[state]) for state in TaskState}


VALID_TRANSITIONS: dict[TaskState, frozenset[TaskState]] = _build_transitions()


class InvalidTransitionError(OrchestratorError):
    """A state change outside ``VALID_TRANSITIONS``."""

    error_code = "INVALID_TRANSITION"

    def __init__(self, from_state: TaskState, to_state: TaskState) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Cannot move a task from {from_state.value} to {to_state.value}.")


class TaskStateMachine:
    """Validation helpers over ``VALID_TRANSITIONS``; holds no state itself."""

    @staticmethod
    def can_transition(from_state: TaskState, to_state: TaskState) -> bool:
        return to_state in VALID_TRANSITIONS[from_state]

    @classmethod
    def validate_transition(cls, from_state: TaskState, to_state: TaskState) -> bool:
        """
        Return ``True`` for an allowed move.

        Raises ``InvalidTransitionError`` otherwise.
        """
        if not cls.can_transition(from_state, to_state):
            raise InvalidTransitionError(from_state, to_state)
        return True
