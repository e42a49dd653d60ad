"""
Guzzle — Quiet-Period Debounce
===============================
Coalesces bursts of calls into a single callback once calls stop arriving
for ``delay`` seconds.

Usage:
    debouncer = Debouncer(0.1, notify)
    debouncer()          # arms the timer
    debouncer()          # re-arms it; ``notify`` runs once, 0.1s later
    await debouncer.settle()
"""

from __future__ import annotations

import asyncio
from typing import Callable


class Debouncer:
    """
    Trailing-edge debounce bound to the running event loop.

    Calling the instance (re)starts the quiet-period timer.  ``settle()``
    waits until no timer is pending.
    """

    def __init__(self, delay: float, callback: Callable[[], object]) -> None:
        self._delay = delay
        self._callback = callback
        self._handle: asyncio.TimerHandle | None = None
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def pending(self) -> bool:
        """``True`` while a callback is scheduled but has not fired yet."""
        return self._handle is not None

    def __call__(self) -> None:
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._idle.clear()
        self._handle = loop.call_later(self._delay, self._fire)

    def cancel(self) -> None:
        """Drop a pending callback without running it."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._idle.set()

    async def settle(self) -> None:
        """Wait until the pending callback (if any) has fired or been cancelled."""
        await self._idle.wait()

    def _fire(self) -> None:
        self._handle = None
        try:
            self._callback()
        finally:
            self._idle.set()
