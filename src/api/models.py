# src/api/models.py — v1
"""API-level models: ClipResponse, PregenerationSummary."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from clipforge.cache.models import CacheEntry
from clipforge.generation.models import GenerationResult


class ClipResponse(BaseModel):
    """Return value of ClipService.request_clip()."""

    fingerprint: str
    source: Literal["cache", "in_flight", "generation"]
    entry: CacheEntry | None = None
    generation: GenerationResult | None = None

    @property
    def generation_id(self) -> str | None:
        return self.generation.generation_id if self.generation else None

    @property
    def ready(self) -> bool:
        """True when a full-fidelity artifact is available now."""
        if self.entry is not None:
            return not self.entry.degraded
        return self.generation is not None and self.generation.success and (
            self.generation.status == "completed"
        )


class PregenerationSummary(BaseModel):
    """Outcome counts of a pre-generation pass.

    ``generation_ids`` maps each submitted request's fingerprint to its generation id.
    """

    generated: int = 0
    cached: int = 0
    failed: int = 0
    generation_ids: dict[str, str] = Field(default_factory=dict)
