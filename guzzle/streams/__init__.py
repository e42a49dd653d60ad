"""
Guzzle — Streams
=================
Continuable streams, file sources/sinks and named transforms.

Public API:
    Stream, Transform
    SourceFile, src, dest
    StreamToolkit, BUILTIN_TRANSFORMS
"""

from guzzle.streams.files import SourceFile, dest, src
from guzzle.streams.stream import Stream, Transform
from guzzle.streams.transforms import (
    BUILTIN_TRANSFORMS,
    StreamToolkit,
    TransformFactory,
    concat,
    filter_items,
    map_items,
    rename,
    replace,
    tap,
)

__all__ = [
    "Stream",
    "Transform",
    "SourceFile",
    "src",
    "dest",
    "StreamToolkit",
    "TransformFactory",
    "BUILTIN_TRANSFORMS",
    "map_items",
    "filter_items",
    "tap",
    "rename",
    "replace",
    "concat",
]
