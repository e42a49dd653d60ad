"""
Guzzle — Configuration Management
==================================
Process-wide defaults for the guzzlefile, graph output, debounce timings
and logging, read from ``GUZZLE_*`` variables or a local ``.env``.

Values passed to ``Guzzle(...)`` or on the command line win over these.

Usage:
    from guzzle.core.config import get_settings
    settings = get_settings()
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Guzzle settings, e.g. ``GUZZLE_TASK_GRAPH=build/graph.svg``."""

    model_config = SettingsConfigDict(
        env_prefix="GUZZLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Guzzlefile ──────────────────────────────────────────────────────────
    app_name: str = "guzzle"
    guzzlefile: Path = Path("guzzlefile.py")

    # ── Task graph output ────────────────────────────────────────────────
    task_graph: Path | None = Field(
        default=None,
        description="File to write the task graph to; format follows the extension.",
    )

    # ── Execution ────────────────────────────────────────────────────────
    finish_debounce_seconds: float = Field(
        default=0.1,
        ge=0.0,
        description="Quiet period before on_finish is called.",
    )
    watch_debounce_ms: int = Field(default=50, ge=0)

    # ── Console ──────────────────────────────────────────────────────────
    pretty_print: bool = False

    # ── Logging ──────────────────────────────────────────────────────────
    log_level: str = Field(
        default="INFO", pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    log_format: str = "console"  # "json" or "console"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings for this process; ``get_settings.cache_clear()`` re-reads them."""
    return Settings()
