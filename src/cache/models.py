# src/cache/models.py — v1
"""Cache domain models: CachedArtifact, CacheEntry, CacheStats."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, model_validator


class CachedArtifact(BaseModel):
    """Payload handed to the store on put()."""

    subject_id: str = Field(min_length=1)
    artifact_type: str = Field(min_length=1)
    source_prompt: str
    locator: str | None = None
    inline_data: str | None = None
    degraded: bool = False

    @model_validator(mode="after")
    def _require_payload(self) -> CachedArtifact:
        if not self.locator and not self.inline_data:
            raise ValueError("Either locator or inline_data must be set")
        return self


class CacheEntry(BaseModel):
    """Single cache entry linking a fingerprint to a completed artifact."""

    id: str
    subject_id: str
    artifact_type: str
    fingerprint: str
    locator: str | None = None
    inline_data: str | None = None
    source_prompt: str
    degraded: bool = False
    created_at: datetime
    last_accessed_at: datetime
    access_count: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def _check_timestamps(self) -> CacheEntry:
        if self.last_accessed_at < self.created_at:
            raise ValueError("last_accessed_at must not precede created_at")
        return self


class CacheStats(BaseModel):
    """Point-in-time cache statistics."""

    size: int
    max_size: int
    hit_rate: float
    oldest_created_at: datetime | None = None
    newest_created_at: datetime | None = None
