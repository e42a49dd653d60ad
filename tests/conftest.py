"""
Guzzle — Test Fixtures
=======================
Shared pytest fixtures.

The scheduler is replaced by ``FakeScheduler`` wherever a test needs to
fire lifecycle events by hand; ``AsyncScheduler`` is used for end-to-end
runs.
"""

from __future__ import annotations

import os
from typing import Sequence

import pytest

from guzzle.orchestrator.events import EventEmitter, EventHandler, TaskEvent
from guzzle.orchestrator.registry import TaskRegistry
from guzzle.orchestrator.scheduler import Job


# ── Settings ─────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Ensure a fresh Settings instance for each test."""
    from guzzle.core.config import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings():
    """Return a settings instance with test defaults."""
    os.environ.setdefault("GUZZLE_LOG_LEVEL", "DEBUG")
    os.environ.setdefault("GUZZLE_LOG_FORMAT", "console")
    from guzzle.core.config import get_settings
    return get_settings()


# ── Registry ─────────────────────────────────────────────────────────────
@pytest.fixture
def registry() -> TaskRegistry:
    return TaskRegistry()


# ── Fake scheduler ───────────────────────────────────────────────────────
class FakeScheduler:
    """Records what the bridge hands over and lets tests fire events."""

    def __init__(self) -> None:
        self.events = EventEmitter()
        self.added: list[tuple[str, tuple[str, ...], Job | None]] = []
        self.runs: list[tuple[str, ...]] = []

    def add(self, name: str, dependencies: Sequence[str], job: Job | None) -> None:
        self.added.append((name, tuple(dependencies), job))

    def on(self, event: str, handler: EventHandler) -> None:
        self.events.on(event, handler)

    async def run(self, *names: str) -> None:
        self.runs.append(names)

    def fire(self, event: str, task: str, error: BaseException | None = None) -> None:
        self.events.emit(event, TaskEvent(task=task, error=error))


@pytest.fixture
def fake_scheduler() -> FakeScheduler:
    return FakeScheduler()
