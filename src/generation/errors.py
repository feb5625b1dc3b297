# src/generation/errors.py — v1
"""Error taxonomy for submission, polling and fallback.

ConfigurationError (missing credentials) lives in clipforge.config.settings
and is re-exported here for convenience.
"""

from __future__ import annotations

from clipforge.config.settings import ConfigurationError

__all__ = [
    "ConfigurationError",
    "FallbackError",
    "GenerationError",
    "GenerationTimeoutError",
    "InvalidTransitionError",
    "TransportError",
    "UpstreamError",
]

TIMED_OUT_MESSAGE = "timed out"
CANCELLED_MESSAGE = "cancelled"


class GenerationError(Exception):
    """Base class for generation failures."""


class TransportError(GenerationError):
    """Network or transport failure while talking to a provider."""


class UpstreamError(GenerationError):
    """The provider answered with an explicit error payload."""

    def __init__(self, message: str, code: int | None = None) -> None:
        self.code = code
        super().__init__(message)


class GenerationTimeoutError(GenerationError):
    """The poll attempt budget was exhausted without a terminal result."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(TIMED_OUT_MESSAGE)


class InvalidTransitionError(GenerationError):
    """A status change that the generation lifecycle does not allow."""

    def __init__(self, generation_id: str, current: str, requested: str) -> None:
        self.generation_id = generation_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Generation {generation_id}: cannot move from {current!r} to {requested!r}"
        )


class FallbackError(GenerationError):
    """The fallback describer could not produce a description."""
