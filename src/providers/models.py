# src/providers/models.py — v1
"""Provider-facing types."""

from __future__ import annotations

from pydantic import BaseModel, Field


class PollResult(BaseModel):
    """Normalized answer of one poll of a long-running operation."""

    done: bool
    result_locator: str | None = None
    error: str | None = None
    progress_hint: float | None = Field(default=None, ge=0.0, le=100.0)
