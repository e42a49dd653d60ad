"""
Tests — Scheduler Bridge
=========================
Validates:
- start() resolves first and aborts before the scheduler on bad references
- Tasks are handed over with dependency names and barrier jobs
- Lifecycle events drive TaskState and timestamps (including re-runs)
- Duplicate stop events are ignored
- on_finish fires once per quiet period with no task running
- run_once bodies run once across re-runs
- A task whose stream failed runs normally on the next re-run
"""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from guzzle.core.exceptions import (
    DependencyNotFoundError,
    OrchestratorError,
    TaskExecutionError,
)
from guzzle.orchestrator.bridge import SchedulerBridge
from guzzle.orchestrator.events import TASK_ERR, TASK_START, TASK_STOP
from guzzle.orchestrator.graph import GraphBuilder
from guzzle.orchestrator.registry import TaskRegistry
from guzzle.orchestrator.scheduler import AsyncScheduler
from guzzle.orchestrator.state_machine import TaskState
from guzzle.streams.stream import Stream
from guzzle.streams.transforms import StreamToolkit

DEBOUNCE = 0.02


def _noop(task):
    return None


# ── Start ───────────────────────────────────────────────────────────────


class TestStart:
    @pytest.mark.asyncio
    async def test_tasks_handed_to_scheduler(self, registry, fake_scheduler):
        registry.declare("a", body=_noop)
        registry.declare("all", ["a"])
        bridge = SchedulerBridge(registry, fake_scheduler)

        await bridge.start("all")

        names = [(name, deps) for name, deps, _job in fake_scheduler.added]
        assert names == [("a", ()), ("all", ("a",))]
        assert fake_scheduler.added[0][2] is not None
        assert fake_scheduler.added[1][2] is None
        assert fake_scheduler.runs == [("all",)]

    @pytest.mark.asyncio
    async def test_missing_dependency_aborts_before_scheduler(self, registry, fake_scheduler, tmp_path):
        registry.declare("b", "missing", _noop)
        renderer = MagicMock(return_value=b"")
        bridge = SchedulerBridge(
            registry,
            fake_scheduler,
            graph_path=tmp_path / "g.svg",
            graph_builder=GraphBuilder(renderer),
        )

        with pytest.raises(DependencyNotFoundError):
            await bridge.start()

        assert fake_scheduler.added == []
        assert fake_scheduler.runs == []
        renderer.assert_not_called()

    @pytest.mark.asyncio
    async def test_graph_written_before_run(self, registry, fake_scheduler, tmp_path):
        registry.declare("a", body=_noop)
        renderer = MagicMock(return_value=b"<svg/>")
        bridge = SchedulerBridge(
            registry,
            fake_scheduler,
            graph_path=tmp_path / "g.svg",
            graph_builder=GraphBuilder(renderer),
        )

        await bridge.start()

        assert (tmp_path / "g.svg").read_bytes() == b"<svg/>"
        assert renderer.call_args.args[1] == "svg"

    @pytest.mark.asyncio
    async def test_start_only_once(self, registry, fake_scheduler):
        bridge = SchedulerBridge(registry, fake_scheduler)
        await bridge.start()
        with pytest.raises(OrchestratorError, match="already been started"):
            await bridge.start()

    @pytest.mark.asyncio
    async def test_rerun_requires_start(self, registry, fake_scheduler):
        bridge = SchedulerBridge(registry, fake_scheduler)
        with pytest.raises(OrchestratorError, match="not been started"):
            await bridge.rerun("a")


# ── Lifecycle events ────────────────────────────────────────────────────


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, registry, fake_scheduler):
        a = registry.declare("a", body=_noop)
        SchedulerBridge(registry, fake_scheduler)

        fake_scheduler.fire(TASK_START, "a")
        assert a.state == TaskState.STARTED
        assert a.started_at is not None
        assert a.ended_at is None

        fake_scheduler.fire(TASK_STOP, "a")
        assert a.state == TaskState.DONE
        assert a.ended_at >= a.started_at

    @pytest.mark.asyncio
    async def test_rerun_restarts_timestamps(self, registry, fake_scheduler):
        a = registry.declare("a", body=_noop)
        SchedulerBridge(registry, fake_scheduler)

        fake_scheduler.fire(TASK_START, "a")
        fake_scheduler.fire(TASK_STOP, "a")
        first_started = a.started_at

        fake_scheduler.fire(TASK_START, "a")
        assert a.state == TaskState.STARTED
        assert a.ended_at is None
        assert a.started_at >= first_started

        fake_scheduler.fire(TASK_STOP, "a")
        assert a.state == TaskState.DONE

    @pytest.mark.asyncio
    async def test_duplicate_stop_ignored(self, registry, fake_scheduler):
        a = registry.declare("a", body=_noop)
        SchedulerBridge(registry, fake_scheduler)

        fake_scheduler.fire(TASK_START, "a")
        fake_scheduler.fire(TASK_STOP, "a")
        ended = a.ended_at
        fake_scheduler.fire(TASK_STOP, "a")

        assert a.state == TaskState.DONE
        assert a.ended_at is ended

    @pytest.mark.asyncio
    async def test_error_event(self, registry, fake_scheduler):
        a = registry.declare("a", body=_noop)
        SchedulerBridge(registry, fake_scheduler)

        fake_scheduler.fire(TASK_START, "a")
        fake_scheduler.fire(TASK_ERR, "a", RuntimeError("boom"))

        assert a.state == TaskState.ERROR
        assert a.ended_at is not None

    @pytest.mark.asyncio
    async def test_stop_without_start_is_ignored(self, registry, fake_scheduler):
        a = registry.declare("a", body=_noop)
        SchedulerBridge(registry, fake_scheduler)

        fake_scheduler.fire(TASK_STOP, "a")

        assert a.state == TaskState.NOT_STARTED

    @pytest.mark.asyncio
    async def test_reporter_renders_on_transitions(self, registry, fake_scheduler):
        registry.declare("a", body=_noop)
        reporter = MagicMock()
        SchedulerBridge(registry, fake_scheduler, reporter=reporter)

        fake_scheduler.fire(TASK_START, "a")
        fake_scheduler.fire(TASK_STOP, "a")

        assert reporter.render.call_count == 2


# ── on_finish ───────────────────────────────────────────────────────────


class TestOnFinish:
    @pytest.mark.asyncio
    async def test_fires_once_after_burst(self, registry, fake_scheduler):
        registry.declare("a", body=_noop)
        registry.declare("b", body=_noop)
        on_finish = MagicMock(return_value=None)
        SchedulerBridge(registry, fake_scheduler, on_finish=on_finish, finish_debounce=DEBOUNCE)

        for name in ("a", "b"):
            fake_scheduler.fire(TASK_START, name)
        for name in ("a", "b"):
            fake_scheduler.fire(TASK_STOP, name)
        await asyncio.sleep(DEBOUNCE * 5)

        on_finish.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_not_fired_while_task_running(self, registry, fake_scheduler):
        registry.declare("a", body=_noop)
        registry.declare("b", body=_noop)
        on_finish = MagicMock(return_value=None)
        SchedulerBridge(registry, fake_scheduler, on_finish=on_finish, finish_debounce=DEBOUNCE)

        fake_scheduler.fire(TASK_START, "a")
        fake_scheduler.fire(TASK_START, "b")
        fake_scheduler.fire(TASK_STOP, "a")
        await asyncio.sleep(DEBOUNCE * 5)

        on_finish.assert_not_called()

    @pytest.mark.asyncio
    async def test_fires_after_error(self, registry, fake_scheduler):
        registry.declare("a", body=_noop)
        on_finish = MagicMock(return_value=None)
        SchedulerBridge(registry, fake_scheduler, on_finish=on_finish, finish_debounce=DEBOUNCE)

        fake_scheduler.fire(TASK_START, "a")
        fake_scheduler.fire(TASK_ERR, "a", RuntimeError("boom"))
        await asyncio.sleep(DEBOUNCE * 5)

        on_finish.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_start_waits_for_async_callback(self, registry):
        registry.declare("a", body=_noop)
        finished: list = []

        async def on_finish() -> None:
            await asyncio.sleep(0)
            finished.append(True)

        bridge = SchedulerBridge(
            registry, AsyncScheduler(), on_finish=on_finish, finish_debounce=DEBOUNCE
        )
        await bridge.start()

        assert finished == [True]


# ── End to end ──────────────────────────────────────────────────────────


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_run_once_across_reruns(self, registry):
        calls: list = []
        clean = registry.declare("clean", body=calls.append, run_once=True)
        bridge = SchedulerBridge(registry, AsyncScheduler(), finish_debounce=DEBOUNCE)

        await bridge.start("clean")
        await bridge.rerun("clean")
        await bridge.rerun("clean")

        assert calls == [clean]
        assert clean.state == TaskState.DONE

    @pytest.mark.asyncio
    async def test_failed_task_ends_in_error(self, registry):
        def boom(task):
            raise RuntimeError("boom")

        a = registry.declare("a", body=boom)
        b = registry.declare("b", "a", _noop)
        bridge = SchedulerBridge(registry, AsyncScheduler(), finish_debounce=DEBOUNCE)

        with pytest.raises(TaskExecutionError) as exc_info:
            await bridge.start("b")

        assert list(exc_info.value.failures) == ["a"]
        assert a.state == TaskState.ERROR
        assert b.state == TaskState.NOT_STARTED

    @pytest.mark.asyncio
    async def test_dependencies_done_before_dependent(self, registry):
        order: list = []
        registry.declare("a", body=lambda t: order.append(("a", t.state)))
        registry.declare("b", "a", lambda t: order.append(("b", t.state)))
        bridge = SchedulerBridge(registry, AsyncScheduler(), finish_debounce=DEBOUNCE)

        await bridge.start("b")

        assert [name for name, _ in order] == ["a", "b"]
        assert registry.get("a").state == TaskState.DONE
        assert registry.get("b").state == TaskState.DONE

    @pytest.mark.asyncio
    async def test_rerun_recovers_after_stream_failure(self):
        activations: list = []

        def source(items):
            activations.append(items)
            if len(activations) > 1:
                return Stream(list(items))

            async def failing():
                yield "partial"
                raise ValueError("bad source")

            return Stream(failing())

        registry = TaskRegistry(StreamToolkit(source=source))
        css = registry.declare("css", body=lambda t: t.read(["site.css"]))
        bridge = SchedulerBridge(registry, AsyncScheduler(), finish_debounce=DEBOUNCE)

        with pytest.raises(TaskExecutionError):
            await bridge.start("css")
        assert css.state == TaskState.ERROR
        assert css.stream is None

        await asyncio.wait_for(bridge.rerun("css"), timeout=1)
        assert css.state == TaskState.DONE

        await asyncio.wait_for(bridge.rerun("css"), timeout=1)
        assert css.state == TaskState.DONE
        assert len(activations) == 3
