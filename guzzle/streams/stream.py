"""
Guzzle — Continuable Streams
=============================
A pull-based asynchronous pipeline of items with pause/resume and
completion listeners.

A ``Stream`` wraps a sync or async iterable.  ``pipe(transform)`` returns a
new ``Stream`` that consumes this one; the last stream in a chain is drained
with ``await stream.wait()``, which pulls items through every stage.

Events:
    data     one item passed through (handler receives the item)
    end      source exhausted
    finish   emitted right after ``end``; every item has been handed on
    error    iteration raised (handler receives the exception)

Usage:
    stream = Stream(["a", "b"]).pipe(map_items(str.upper))
    stream.on("finish", lambda: print("done"))
    await stream.wait()
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any, AsyncIterable, AsyncIterator, Callable, Iterable

from guzzle.core.exceptions import StreamError

Transform = Callable[[AsyncIterable[Any]], AsyncIterable[Any]]

STREAM_EVENTS: frozenset[str] = frozenset({"data", "end", "finish", "error"})


async def _aiter(source: AsyncIterable[Any] | Iterable[Any]) -> AsyncIterator[Any]:
    if hasattr(source, "__aiter__"):
        async for item in source:
            yield item
    else:
        for item in source:
            yield item


class Stream:
    """
    Single-use asynchronous stream of items.

    Not thread-safe.  All iteration happens on the event loop.
    """

    def __init__(
        self,
        source: AsyncIterable[Any] | Iterable[Any],
        *,
        label: str | None = None,
    ) -> None:
        self._source = source
        self.label = label
        self._listeners: dict[str, list[Callable[..., Any]]] = defaultdict(list)
        self._flowing = asyncio.Event()
        self._flowing.set()
        self._completed = asyncio.Event()
        self._consumed = False
        self._finished = False
        self._error: BaseException | None = None

    def __repr__(self) -> str:
        status = "finished" if self._finished else "paused" if self.paused else "flowing"
        return f"Stream(label={self.label!r}, {status})"

    # ── State ──────────────────────────────────────────────────────────

    @property
    def paused(self) -> bool:
        return not self._flowing.is_set()

    @property
    def finished(self) -> bool:
        """``True`` once the stream has emitted ``finish``."""
        return self._finished

    @property
    def failed(self) -> bool:
        return self._error is not None

    # ── Flow control ───────────────────────────────────────────────────

    def pause(self) -> Stream:
        """Hold back data until ``resume()`` is called."""
        self._flowing.clear()
        return self

    def resume(self) -> Stream:
        self._flowing.set()
        return self

    # ── Listeners ──────────────────────────────────────────────────────

    def on(self, event: str, handler: Callable[..., Any]) -> Stream:
        """Register a listener.  Returns the stream itself for chaining."""
        if event not in STREAM_EVENTS:
            raise StreamError(
                f"Unknown stream event '{event}'. "
                f"Expected one of: {sorted(STREAM_EVENTS)}."
            )
        self._listeners[event].append(handler)
        return self

    def _emit(self, event: str, *args: Any) -> None:
        for handler in list(self._listeners.get(event, ())):
            handler(*args)

    # ── Chaining ───────────────────────────────────────────────────────

    def pipe(self, transform: Transform) -> Stream:
        """Return a new stream producing ``transform`` applied to this one."""
        return Stream(transform(self), label=getattr(transform, "__name__", None))

    # ── Consumption ────────────────────────────────────────────────────

    def __aiter__(self) -> AsyncIterator[Any]:
        if self._consumed:
            raise StreamError(f"{self!r} has already been consumed.")
        self._consumed = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Any]:
        try:
            await self._flowing.wait()
            async for item in _aiter(self._source):
                await self._flowing.wait()
                self._emit("data", item)
                yield item
        except Exception as exc:
            self._error = exc
            self._completed.set()
            self._emit("error", exc)
            raise
        self._finished = True
        self._completed.set()
        self._emit("end")
        self._emit("finish")

    async def wait(self) -> None:
        """
        Wait for the stream to complete.

        Drains the stream if nothing else is consuming it.  Re-raises the
        error the stream failed with.
        """
        if not self._consumed:
            async for _ in self:
                pass
            return
        await self._completed.wait()
        if self._error is not None:
            raise self._error

    async def collect(self) -> list[Any]:
        """Drain the stream and return every item it produced."""
        return [item async for item in self]
