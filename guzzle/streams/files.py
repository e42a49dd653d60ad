"""
Guzzle — File Sources & Sinks
==============================
Glob-driven file source and directory sink used by ``Task.read`` and
``Task.write``.

Glob syntax:
    *        any run of characters except ``/``
    ?        one character except ``/``
    [abc]    one character from the set
    **/      zero or more directories
    !glob    exclude matches (only meaningful alongside positive globs)

Usage:
    stream = src(["src/**/*.css", "!src/vendor/**"])
    stream = stream.pipe(dest("dist"))
    await stream.wait()
"""

from __future__ import annotations

import asyncio
import dataclasses
import os
import re
from dataclasses import dataclass
from fnmatch import fnmatchcase
from functools import lru_cache
from pathlib import Path
from typing import Any, AsyncIterable, AsyncIterator, Sequence

from guzzle.core.logging import get_logger
from guzzle.streams.stream import Stream, Transform

logger = get_logger(__name__)

_MAGIC = re.compile(r"[*?\[]")


# ── Source file ─────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class SourceFile:
    """A file travelling through a stream."""

    path: Path
    base: Path
    contents: bytes = b""

    @property
    def relative(self) -> Path:
        """Path relative to the glob base; preserved by ``dest``."""
        return self.path.relative_to(self.base)

    @property
    def text(self) -> str:
        return self.contents.decode("utf-8")

    def with_contents(self, contents: bytes | str) -> SourceFile:
        if isinstance(contents, str):
            contents = contents.encode("utf-8")
        return dataclasses.replace(self, contents=contents)

    def with_relative(self, relative: Path | str) -> SourceFile:
        return dataclasses.replace(self, path=self.base / relative)


# ── Glob helpers ────────────────────────────────────────────────────────


def _normalize(pattern: str) -> str:
    return pattern.replace(os.sep, "/")


def glob_base(pattern: str) -> str:
    """
    Return the static directory prefix of a glob.

    ``"src/css/**/*.css"`` → ``"src/css"``, ``"*.py"`` → ``"."``,
    ``"src/app.py"`` → ``"src"``.
    """
    parts = _normalize(pattern).split("/")
    static: list[str] = []
    for part in parts[:-1]:
        if _MAGIC.search(part):
            break
        static.append(part)
    if not static:
        return "/" if pattern.startswith("/") else "."
    return "/".join(static) or "/"


@lru_cache(maxsize=256)
def _segments(pattern: str) -> tuple[str, ...]:
    return tuple(_normalize(pattern).split("/"))


def _match_segments(pattern: tuple[str, ...], parts: tuple[str, ...]) -> bool:
    if not pattern:
        return not parts
    head, rest = pattern[0], pattern[1:]
    if head == "**":
        return any(_match_segments(rest, parts[i:]) for i in range(len(parts) + 1))
    return bool(parts) and fnmatchcase(parts[0], head) and _match_segments(rest, parts[1:])


def matches(pattern: str, path: Path | str) -> bool:
    """
    Return ``True`` if the posix form of ``path`` matches ``pattern``.

    Segments are compared with ``fnmatchcase``, so ``*``, ``?`` and
    ``[...]`` behave as in ``Path.glob``; a ``**`` segment spans any
    number of directories.
    """
    return _match_segments(_segments(pattern), tuple(_normalize(str(path)).split("/")))


def split_patterns(patterns: str | Sequence[str]) -> tuple[list[str], list[str]]:
    """Split into ``(include, exclude)`` lists; ``!`` marks an exclusion."""
    if isinstance(patterns, str):
        patterns = [patterns]
    include = [p for p in patterns if p and not p.startswith("!")]
    exclude = [p[1:] for p in patterns if p.startswith("!")]
    return include, exclude


def expand(
    patterns: str | Sequence[str],
    *,
    cwd: Path | str | None = None,
) -> list[tuple[Path, Path]]:
    """
    Expand globs to ``(path, base)`` pairs.

    Order: patterns in the given order, matches sorted within a pattern,
    duplicates dropped.  Only regular files are returned.
    """
    root = Path(cwd) if cwd is not None else Path.cwd()
    include, exclude = split_patterns(patterns)
    seen: set[Path] = set()
    found: list[tuple[Path, Path]] = []

    for pattern in include:
        base_str = glob_base(pattern)
        base = (root / base_str).resolve()
        rest = _normalize(pattern)[len(base_str):].lstrip("/") if base_str != "." else _normalize(pattern)
        if not _MAGIC.search(rest):
            candidates = [base / rest]
        else:
            candidates = sorted(base.glob(rest))
        for path in candidates:
            path = path.resolve()
            if path in seen or not path.is_file():
                continue
            rel = _relative_to(path, root)
            if any(matches(ex, rel) for ex in exclude):
                continue
            seen.add(path)
            found.append((path, base))
    return found


def _relative_to(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root.resolve()).as_posix()
    except ValueError:
        return path.as_posix()


# ── Source / sink ───────────────────────────────────────────────────────


async def _read_files(
    patterns: str | Sequence[str],
    cwd: Path | str | None,
    base: Path | str | None,
    read: bool,
) -> AsyncIterator[SourceFile]:
    for path, glob_root in expand(patterns, cwd=cwd):
        contents = await asyncio.to_thread(path.read_bytes) if read else b""
        yield SourceFile(
            path=path,
            base=Path(base).resolve() if base is not None else glob_root,
            contents=contents,
        )


def src(
    patterns: str | Sequence[str],
    *,
    cwd: Path | str | None = None,
    base: Path | str | None = None,
    read: bool = True,
) -> Stream:
    """Return a stream of ``SourceFile`` objects matching ``patterns``."""
    logger.debug("files.src", patterns=patterns, cwd=str(cwd) if cwd else None)
    return Stream(_read_files(patterns, cwd, base, read), label="src")


def dest(directory: Path | str, *, cwd: Path | str | None = None) -> Transform:
    """
    Return a transform writing every file under ``directory``.

    Files keep their path relative to their base.  Each file is passed on
    with ``path`` and ``base`` pointing at the written location.
    """
    root = Path(cwd) if cwd is not None else Path.cwd()
    target = (root / directory).resolve()

    async def write_files(items: AsyncIterable[Any]) -> AsyncIterator[Any]:
        async for item in items:
            if not isinstance(item, SourceFile):
                yield item
                continue
            out = target / item.relative
            await asyncio.to_thread(_write_bytes, out, item.contents)
            logger.debug("files.written", path=str(out))
            yield dataclasses.replace(item, path=out, base=target)

    write_files.__name__ = "dest"
    return write_files


def _write_bytes(path: Path, contents: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(contents)
