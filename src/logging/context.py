# src/logging/context.py — v1
"""Contextual logging support — attach generation_id, subject_id and provider to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging — set per generation.
_generation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "generation_id", default=None
)
_subject_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "subject_id", default=None
)
_provider: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "provider", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    generation_id: str | None = None
    subject_id: str | None = None
    provider: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        generation_id=_generation_id.get(),
        subject_id=_subject_id.get(),
        provider=_provider.get(),
    )


def set_generation_context(generation_id: str, subject_id: str | None = None) -> None:
    """Set generation-level context.

    Background poll tasks copy the context at creation time, so each loop
    keeps logging under its own generation_id.
    """
    _generation_id.set(generation_id)
    _subject_id.set(subject_id)


def set_provider_context(provider: str | None) -> None:
    """Set the provider currently being called."""
    _provider.set(provider)


def clear_context() -> None:
    """Reset all context variables."""
    _generation_id.set(None)
    _subject_id.set(None)
    _provider.set(None)
