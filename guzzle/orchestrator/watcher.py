"""
Guzzle — File Watching
=======================
Re-runs tasks when files matching a set of globs change.

Uses ``watchfiles.awatch`` on the static base directories of the globs and
filters change batches with the same glob matcher as ``files.src``.

Usage:
    watcher = Watcher(["src/**/*.css"], on_change, cwd=project_root)
    task = asyncio.create_task(watcher.run())
    # on shutdown:
    task.cancel()
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, Sequence

from watchfiles import awatch

from guzzle.core.exceptions import GuzzleError
from guzzle.core.logging import get_logger
from guzzle.streams.files import glob_base, matches, split_patterns

logger = get_logger(__name__)

ChangeHandler = Callable[[list[Path]], Awaitable[None] | None]


class Watcher:
    """Watches ``patterns`` and calls ``on_change`` with changed paths."""

    def __init__(
        self,
        patterns: str | Sequence[str],
        on_change: ChangeHandler,
        *,
        cwd: Path | str | None = None,
        debounce_ms: int = 50,
    ) -> None:
        self.include, self.exclude = split_patterns(patterns)
        self._on_change = on_change
        self._cwd = Path(cwd).resolve() if cwd is not None else Path.cwd().resolve()
        self._debounce_ms = debounce_ms

    def roots(self) -> list[Path]:
        """Existing directories to hand to the OS watcher."""
        roots: list[Path] = []
        for pattern in self.include:
            root = (self._cwd / glob_base(pattern)).resolve()
            if root.is_dir() and root not in roots:
                roots.append(root)
        return roots

    def wants(self, path: Path | str) -> bool:
        """``True`` if ``path`` matches an include glob and no exclude glob."""
        path = Path(path)
        try:
            rel = path.resolve().relative_to(self._cwd).as_posix()
        except ValueError:
            rel = path.as_posix()
        if not any(matches(p, rel) or matches(p, path.as_posix()) for p in self.include):
            return False
        return not any(matches(p, rel) for p in self.exclude)

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """
        Watch until cancelled or until ``stop_event`` is set.

        Failures of the change handler are logged and watching continues.
        """
        roots = self.roots()
        if not roots:
            logger.warning("watch.no_roots", patterns=self.include)
            return

        logger.info("watch.started", roots=[str(r) for r in roots], patterns=self.include)
        try:
            async for changes in awatch(
                *roots,
                watch_filter=lambda _change, path: self.wants(path),
                debounce=self._debounce_ms,
                stop_event=stop_event,
            ):
                paths = sorted({Path(path) for _change, path in changes})
                logger.info("watch.changed", paths=[str(p) for p in paths])
                try:
                    result = self._on_change(paths)
                    if result is not None:
                        await result
                except GuzzleError as exc:
                    logger.error(
                        "watch.rerun_failed",
                        error_code=exc.error_code,
                        error=str(exc),
                    )
        except asyncio.CancelledError:
            logger.info("watch.stopped")
            raise
