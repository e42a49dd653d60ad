"""
Guzzle — Structured Logging
============================
structlog routed through stdlib logging.  Every entry carries the app name
and, while a scheduler run is active, its run ID.

Output goes to stderr: stdout belongs to the console reporter and to
``--list``.

Usage:
    from guzzle.core.logging import get_logger
    logger = get_logger(__name__)
    logger.info("task.started", task="build")
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from guzzle.core.config import get_settings
from guzzle.core.context import run_id_ctx

NOISY_LOGGERS = ("watchfiles", "asyncio")


def _add_app_context(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    event_dict.setdefault("app", get_settings().app_name)
    return event_dict


def _add_run_id(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Tag the entry with the ID of the scheduler run that emitted it."""
    run_id = run_id_ctx.get()
    if run_id is not None:
        event_dict.setdefault("run_id", run_id)
    return event_dict


def _renderer(fmt: str, stream: IO[str]) -> Processor:
    if fmt == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=stream.isatty())


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        _add_app_context,
        _add_run_id,
    ]


def configure_logging(
    level: str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """
    Install the structlog pipeline and a single root handler.

    ``level`` and ``fmt`` default to ``GUZZLE_LOG_LEVEL`` and
    ``GUZZLE_LOG_FORMAT``; ``stream`` defaults to stderr.  Call once,
    before the guzzlefile is loaded.
    """
    settings = get_settings()
    stream = stream or sys.stderr

    structlog.configure(
        processors=[*_pre_chain(), structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(fmt or settings.log_format, stream),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level or settings.log_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str, **initial: Any) -> structlog.stdlib.BoundLogger:
    """Return a structured logger named ``name``, optionally pre-bound."""
    return structlog.get_logger(name, **initial)
