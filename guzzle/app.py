"""
Guzzle — Declaration API
=========================
The object a guzzlefile builds its tasks on.

Usage:
    from guzzle import Guzzle

    guzzle = Guzzle(task_graph="build/tasks.svg")

    guzzle.task("css", lambda t: t.read("src/*.css").pipe("concat", "site.css").write("dist"))
    guzzle.task_once("clean", clean_dist)
    guzzle.task("default", ["clean", "css"])
    guzzle.watch("src/*.css", "css")

    guzzle.run()
"""

from __future__ import annotations

import asyncio
from functools import partial
from pathlib import Path
from typing import Any, Callable, Sequence

from guzzle.core.config import Settings, get_settings
from guzzle.core.logging import get_logger
from guzzle.orchestrator.bridge import SchedulerBridge
from guzzle.orchestrator.graph import GraphBuilder, Renderer
from guzzle.orchestrator.registry import DependencySpec, TaskRegistry
from guzzle.orchestrator.scheduler import AsyncScheduler, Scheduler
from guzzle.orchestrator.task import Task, TaskBody
from guzzle.orchestrator.watcher import Watcher
from guzzle.reporting.console import ConsoleReporter
from guzzle.streams import files
from guzzle.streams.transforms import StreamToolkit, TransformFactory

logger = get_logger(__name__)

DEFAULT_TASK = "default"

WatchTarget = str | Sequence[str] | Callable[[list[Path]], Any]


class Guzzle:
    """
    Owns one task registry and runs it.

    Options left as ``None`` fall back to ``Settings`` (``GUZZLE_*``
    environment variables).
    """

    def __init__(
        self,
        transforms: dict[str, TransformFactory] | None = None,
        *,
        task_graph: Path | str | None = None,
        on_finish: Callable[[], Any] | None = None,
        pretty_print: bool | None = None,
        scheduler: Scheduler | None = None,
        renderer: Renderer | None = None,
        cwd: Path | str | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.cwd = Path(cwd) if cwd is not None else None
        self.toolkit = StreamToolkit()
        if self.cwd is not None:
            self.toolkit.source = partial(files.src, cwd=self.cwd)
            self.toolkit.sink = partial(files.dest, cwd=self.cwd)
        for name, factory in (transforms or {}).items():
            self.toolkit.register(name, factory)
        self.registry = TaskRegistry(self.toolkit)
        self.task_graph = Path(task_graph) if task_graph is not None else self.settings.task_graph
        self.pretty_print = self.settings.pretty_print if pretty_print is None else pretty_print
        self.on_finish = on_finish
        self._scheduler = scheduler
        self._renderer = renderer
        self._watches: list[tuple[list[str] | str, WatchTarget]] = []
        self._bridge: SchedulerBridge | None = None

    # ── Declaration ────────────────────────────────────────────────────

    def task(
        self,
        name: str,
        dependencies: DependencySpec | TaskBody = None,
        body: TaskBody | None = None,
        *,
        run_once: bool = False,
    ) -> Task:
        """
        Declare a task.

        ``task(name, body)`` (a callable second argument and no third)
        declares a task without dependencies.
        """
        if body is None and callable(dependencies) and not isinstance(dependencies, Task):
            body, dependencies = dependencies, None
        return self.registry.declare(name, dependencies, body, run_once=run_once)

    def task_once(
        self,
        name: str,
        dependencies: DependencySpec | TaskBody = None,
        body: TaskBody | None = None,
    ) -> Task:
        """Declare a task whose body runs at most once per process."""
        return self.task(name, dependencies, body, run_once=True)

    def register_transform(self, name: str, factory: TransformFactory) -> None:
        """Make ``factory`` available as ``task.pipe(name, ...)``."""
        self.toolkit.register(name, factory)

    def watch(self, patterns: str | Sequence[str], tasks: WatchTarget) -> None:
        """
        Re-run ``tasks`` whenever files matching ``patterns`` change.

        ``tasks`` is a task name, a list of names, or a callable receiving
        the changed paths.  Watches start after the initial run.
        """
        patterns = [patterns] if isinstance(patterns, str) else list(patterns)
        self._watches.append((patterns, tasks))

    # ── Execution ──────────────────────────────────────────────────────

    @property
    def bridge(self) -> SchedulerBridge:
        if self._bridge is None:
            reporter = ConsoleReporter(self.registry) if self.pretty_print else None
            self._bridge = SchedulerBridge(
                self.registry,
                self._scheduler or AsyncScheduler(),
                graph_path=self.task_graph,
                graph_builder=GraphBuilder(self._renderer),
                on_finish=self.on_finish,
                reporter=reporter,
                finish_debounce=self.settings.finish_debounce_seconds,
            )
        return self._bridge

    def default_targets(self) -> tuple[str, ...]:
        """``default`` if declared, otherwise every task."""
        return (DEFAULT_TASK,) if DEFAULT_TASK in self.registry else ()

    async def start(self, *names: str) -> None:
        """
        Resolve, render the graph, run ``names`` and then keep watching.

        Returns after the initial run when no watches are registered.
        """
        targets = names or self.default_targets()
        await self.bridge.start(*targets)

        if not self._watches:
            return

        watchers = [self._make_watcher(patterns, target) for patterns, target in self._watches]
        logger.info("guzzle.watching", watches=len(watchers))
        await asyncio.gather(*(watcher.run() for watcher in watchers))

    def run(self, *names: str) -> None:
        """Synchronous entry point: ``asyncio.run(self.start(*names))``."""
        asyncio.run(self.start(*names))

    def _make_watcher(self, patterns: list[str] | str, target: WatchTarget) -> Watcher:
        if callable(target):
            on_change = target
        else:
            names = (target,) if isinstance(target, str) else tuple(target)

            async def on_change(_paths: list[Path]) -> None:
                await self.bridge.rerun(*names)

        return Watcher(
            patterns,
            on_change,
            cwd=self.cwd,
            debounce_ms=self.settings.watch_debounce_ms,
        )
