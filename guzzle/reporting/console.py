"""
Guzzle — Live Console Report
=============================
Redraws a snapshot of every task's state and elapsed time.

    - clean
    ? build.css (350ms)
    ✓ build.js (1.2s)
    X lint (20ms)
    ---

The reporter keeps no state of its own; each render reads the registry.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from rich.console import Console
from rich.text import Text

from guzzle.orchestrator.state_machine import TaskState
from guzzle.orchestrator.task import Task

STATE_GLYPHS: dict[TaskState, tuple[str, str]] = {
    TaskState.NOT_STARTED: ("-", ""),
    TaskState.STARTED: ("?", "yellow"),
    TaskState.DONE: ("✓", "bold green"),
    TaskState.ERROR: ("X", "bright_red"),
}


def format_elapsed(milliseconds: float) -> str:
    """``"<n>ms"`` up to one second, then seconds with one decimal."""
    if milliseconds > 1000:
        return f"{milliseconds / 1000:.1f}s"
    return f"{int(round(milliseconds))}ms"


def elapsed_ms(task: Task, now: datetime) -> float | None:
    """Milliseconds since the task started, or ``None`` if it never did."""
    if task.started_at is None:
        return None
    end = task.ended_at or now
    return (end - task.started_at).total_seconds() * 1000


class ConsoleReporter:
    """Renders the task list to a ``rich`` console."""

    def __init__(self, tasks: Iterable[Task], console: Console | None = None) -> None:
        self._tasks = tasks
        self._console = console or Console()

    def line(self, task: Task, now: datetime) -> Text:
        glyph, style = STATE_GLYPHS[task.state]
        text = Text()
        text.append(glyph, style=style)
        text.append(f" {task.name}")
        elapsed = elapsed_ms(task, now)
        if elapsed is not None:
            text.append(f" ({format_elapsed(elapsed)})", style="bright_black")
        return text

    def lines(self, now: datetime | None = None) -> list[str]:
        """Plain-text snapshot, one line per task."""
        now = now or datetime.now(timezone.utc)
        return [self.line(task, now).plain for task in self._tasks]

    def render(self) -> None:
        """Clear the console and print the current snapshot."""
        now = datetime.now(timezone.utc)
        self._console.clear()
        for task in self._tasks:
            self._console.print(self.line(task, now))
        self._console.print("---")
