"""
Guzzle — Run Context
=====================
Context variable carrying the identifier of the current scheduler run.

The run ID is:
1. Generated as a short hex string when a scheduler run begins.
2. Stored in a context variable accessible to all logging processors.
3. Inherited by every task job spawned during that run.
"""

from __future__ import annotations

import uuid
from contextvars import ContextVar

# ── Context Variable ────────────────────────────────────────────────────
run_id_ctx: ContextVar[str | None] = ContextVar("run_id", default=None)


def new_run_id() -> str:
    """Return a fresh run identifier."""
    return uuid.uuid4().hex[:12]
