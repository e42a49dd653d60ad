"""
Guzzle — Command Line
======================
Loads a guzzlefile and runs the requested tasks.

Usage:
    guzzle                      # runs "default" (or every task)
    guzzle css js --graph build/tasks.svg
    guzzle --list
"""

from __future__ import annotations

import asyncio
from importlib.util import module_from_spec, spec_from_file_location
from pathlib import Path

import click

from guzzle import __version__
from guzzle.app import Guzzle
from guzzle.core.config import get_settings
from guzzle.core.exceptions import GuzzleError, GuzzlefileError
from guzzle.core.logging import configure_logging, get_logger

logger = get_logger("guzzle.main")


def load_guzzlefile(path: Path) -> Guzzle:
    """
    Import ``path`` as a module and return the ``Guzzle`` it defines.

    Raises ``GuzzlefileError`` if the file is missing or does not define
    exactly one module-level ``Guzzle`` instance.
    """
    path = path.resolve()
    if not path.is_file():
        raise GuzzlefileError(f"Guzzlefile not found: {path}")

    spec = spec_from_file_location("guzzlefile", path)
    if spec is None or spec.loader is None:
        raise GuzzlefileError(f"Cannot import guzzlefile: {path}")

    module = module_from_spec(spec)
    spec.loader.exec_module(module)

    instances = [value for value in vars(module).values() if isinstance(value, Guzzle)]
    if len(instances) != 1:
        raise GuzzlefileError(
            f"{path.name} must define exactly one Guzzle instance, found {len(instances)}."
        )
    return instances[0]


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="guzzle")
@click.argument("tasks", nargs=-1)
@click.option(
    "--file",
    "-f",
    "guzzlefile",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Guzzlefile to load (default: guzzlefile.py).",
)
@click.option(
    "--graph",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the task graph here; the extension picks the format.",
)
@click.option("--pretty/--no-pretty", default=None, help="Live task status display.")
@click.option("--list", "list_tasks", is_flag=True, help="List tasks and exit.")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override GUZZLE_LOG_LEVEL.",
)
def cli(
    tasks: tuple[str, ...],
    guzzlefile: Path | None,
    graph: Path | None,
    pretty: bool | None,
    list_tasks: bool,
    log_level: str | None,
) -> None:
    """Run TASKS from a guzzlefile."""
    settings = get_settings()
    configure_logging(log_level.upper() if log_level else None)

    try:
        guzzle = load_guzzlefile(guzzlefile or settings.guzzlefile)
    except GuzzleError as exc:
        logger.error("cli.load_failed", error_code=exc.error_code, error=str(exc))
        raise SystemExit(1) from None

    if list_tasks:
        for task in guzzle.registry:
            deps = ", ".join(task.dependency_names)
            click.echo(f"{task.name}" + (f" <- {deps}" if deps else ""))
        return

    if graph is not None:
        guzzle.task_graph = graph
    if pretty is not None:
        guzzle.pretty_print = pretty

    try:
        asyncio.run(guzzle.start(*tasks))
    except GuzzleError as exc:
        logger.error(
            "cli.failed",
            error_code=exc.error_code,
            severity=exc.severity.value,
            error=str(exc),
        )
        raise SystemExit(1) from None
    except KeyboardInterrupt:
        logger.info("cli.interrupted")


if __name__ == "__main__":
    cli()
