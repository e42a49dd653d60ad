"""
Guzzle — Named Transforms
==========================
The open set of stream operations a task can ``pipe`` through by name.

A *transform factory* takes configuration arguments and returns a
``Transform`` (an async-iterable → async-iterable function).  Factories are
looked up by name in a ``StreamToolkit``, which also carries the source and
sink factories behind ``Task.read`` and ``Task.write``.

Built-in factories:
    map(fn)                   replace each item with fn(item)
    filter(predicate)         keep items where predicate(item) is truthy
    tap(fn)                   call fn(item) and pass the item on unchanged
    rename(...)               change a SourceFile's name or extension
    replace(old, new)         substitute text in SourceFile contents
    concat(filename, sep)     join all SourceFiles into one

``fn`` / ``predicate`` may be plain or ``async`` callables.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any, AsyncIterable, AsyncIterator, Callable

from guzzle.core.exceptions import UnknownTransformError
from guzzle.streams import files
from guzzle.streams.files import SourceFile
from guzzle.streams.stream import Stream, Transform

TransformFactory = Callable[..., Transform]


async def _call(fn: Callable[[Any], Any], item: Any) -> Any:
    result = fn(item)
    if inspect.isawaitable(result):
        result = await result
    return result


# ── Item-level factories ────────────────────────────────────────────────


def map_items(fn: Callable[[Any], Any]) -> Transform:
    """Replace every item with ``fn(item)``."""

    async def map_(items: AsyncIterable[Any]) -> AsyncIterator[Any]:
        async for item in items:
            yield await _call(fn, item)

    map_.__name__ = "map"
    return map_


def filter_items(predicate: Callable[[Any], Any]) -> Transform:
    """Keep only items for which ``predicate`` is truthy."""

    async def filter_(items: AsyncIterable[Any]) -> AsyncIterator[Any]:
        async for item in items:
            if await _call(predicate, item):
                yield item

    filter_.__name__ = "filter"
    return filter_


def tap(fn: Callable[[Any], Any]) -> Transform:
    """Observe every item without changing it."""

    async def tap_(items: AsyncIterable[Any]) -> AsyncIterator[Any]:
        async for item in items:
            await _call(fn, item)
            yield item

    tap_.__name__ = "tap"
    return tap_


# ── File-level factories ────────────────────────────────────────────────


def rename(
    *,
    basename: str | None = None,
    extname: str | None = None,
    prefix: str = "",
    suffix: str = "",
    dirname: str | None = None,
) -> Transform:
    """
    Rename files, keeping them relative to their base.

    ``rename(extname=".min.css")`` turns ``a/site.css`` into
    ``a/site.min.css``; ``prefix``/``suffix`` wrap the stem.
    """

    def new_relative(relative: PurePath) -> PurePath:
        stem = basename if basename is not None else relative.stem
        ext = extname if extname is not None else relative.suffix
        parent = PurePath(dirname) if dirname is not None else relative.parent
        return parent / f"{prefix}{stem}{suffix}{ext}"

    async def rename_(items: AsyncIterable[Any]) -> AsyncIterator[Any]:
        async for item in items:
            if isinstance(item, SourceFile):
                item = item.with_relative(new_relative(PurePath(item.relative)))
            yield item

    rename_.__name__ = "rename"
    return rename_


def replace(old: str, new: str) -> Transform:
    """Substitute ``old`` with ``new`` in every file's text."""

    async def replace_(items: AsyncIterable[Any]) -> AsyncIterator[Any]:
        async for item in items:
            if isinstance(item, SourceFile):
                item = item.with_contents(item.text.replace(old, new))
            yield item

    replace_.__name__ = "replace"
    return replace_


def concat(filename: str, separator: str = "\n") -> Transform:
    """
    Join every file into one named ``filename``.

    The result sits in the base of the first file.  Nothing is emitted for
    an empty stream.
    """
    sep = separator.encode("utf-8")

    async def concat_(items: AsyncIterable[Any]) -> AsyncIterator[Any]:
        first: SourceFile | None = None
        chunks: list[bytes] = []
        async for item in items:
            if not isinstance(item, SourceFile):
                continue
            if first is None:
                first = item
            chunks.append(item.contents)
        if first is not None:
            yield SourceFile(
                path=first.base / filename,
                base=first.base,
                contents=sep.join(chunks),
            )

    concat_.__name__ = "concat"
    return concat_


BUILTIN_TRANSFORMS: dict[str, TransformFactory] = {
    "map": map_items,
    "filter": filter_items,
    "tap": tap,
    "rename": rename,
    "replace": replace,
    "concat": concat,
}


# ── Toolkit ─────────────────────────────────────────────────────────────


@dataclass(slots=True)
class StreamToolkit:
    """
    What tasks use to build streams.

    ``source`` backs ``Task.read``, ``sink`` backs ``Task.write`` and
    ``transforms`` backs ``Task.pipe(name, ...)``.
    """

    source: Callable[..., Stream] = files.src
    sink: Callable[..., Transform] = files.dest
    transforms: dict[str, TransformFactory] = field(
        default_factory=lambda: dict(BUILTIN_TRANSFORMS)
    )

    def register(self, name: str, factory: TransformFactory) -> None:
        """Add or replace a named transform factory."""
        self.transforms[name] = factory

    def transform(self, name: str, *args: Any, **kwargs: Any) -> Transform:
        """
        Build the transform registered as ``name``.

        Raises ``UnknownTransformError`` if no factory has that name.
        """
        factory = self.transforms.get(name)
        if factory is None:
            raise UnknownTransformError(name)
        return factory(*args, **kwargs)
