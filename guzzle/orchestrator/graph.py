"""
Guzzle — Task Graph Output
===========================
Serializes the resolved task graph to Graphviz DOT and writes it through
an external renderer.

Node style:
    shape   box if the task has dependencies, ellipse for leaves
    style   solid if the task has a body, dashed for barrier tasks

Edges point from a task to each of its dependencies.  Output order follows
declaration order, then dependency order, so diffs stay stable.

Usage:
    builder = GraphBuilder()
    dot = builder.render(registry)
    builder.write("build/tasks.svg", registry)
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable

import graphviz

from guzzle.core.logging import get_logger
from guzzle.orchestrator.task import Task

logger = get_logger(__name__)

Renderer = Callable[[str, str], bytes]


def render_with_graphviz(dot: str, fmt: str) -> bytes:
    """Render DOT source to ``fmt`` bytes with the Graphviz ``dot`` engine."""
    return graphviz.Source(dot).pipe(format=fmt)


def graph_format(path: Path | str) -> str:
    """Output format named by the file extension (``graph.svg`` → ``svg``)."""
    return Path(path).suffix[1:]


def _quote(name: str) -> str:
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class GraphBuilder:
    """Builds DOT text for a task graph and hands it to a renderer."""

    def __init__(self, renderer: Renderer | None = None) -> None:
        self._renderer = renderer or render_with_graphviz

    @staticmethod
    def node_attributes(task: Task) -> dict[str, str]:
        return {
            "shape": "box" if task.dependencies else "ellipse",
            "style": "dashed" if task.is_barrier else "solid",
        }

    def render(self, tasks: Iterable[Task]) -> str:
        """Return the DOT description of ``tasks``."""
        lines = ["digraph G {"]
        for task in tasks:
            attrs = ",".join(
                f"{key}={value}" for key, value in self.node_attributes(task).items()
            )
            lines.append(f"{_quote(task.name)} [{attrs}];")
            for dep_name in task.dependency_names:
                lines.append(f"{_quote(task.name)} -> {_quote(dep_name)};")
        lines.append("}")
        return "\n".join(lines)

    def write(self, path: Path | str, tasks: Iterable[Task]) -> Path:
        """
        Render ``tasks`` into ``path``.

        The format comes from the extension.  Renderer and I/O errors
        propagate to the caller.
        """
        path = Path(path)
        fmt = graph_format(path)
        data = self._renderer(self.render(tasks), fmt)
        path.write_bytes(data)
        logger.info("graph.written", path=str(path), format=fmt, size=len(data))
        return path
