# src/generation/models.py — v1
"""Generation domain models: GenerationRequest, GenerationRecord, GenerationResult."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

GenerationStatus = Literal["pending", "processing", "completed", "failed"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})

# Allowed lifecycle edges. Terminal states have no outgoing edges.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"processing", "completed", "failed"}),
    "processing": frozenset({"processing", "completed", "failed"}),
    "completed": frozenset(),
    "failed": frozenset(),
}


class GenerationRequest(BaseModel):
    """Caller request for one video clip."""

    subject_id: str = Field(min_length=1)
    artifact_type: str = Field(min_length=1)
    prompt_text: str = Field(min_length=1)
    aspect_ratio: Literal["16:9", "9:16", "1:1"] | None = None
    resolution: Literal["720p", "1080p"] | None = None
    duration_s: int | None = Field(default=None, ge=1, le=60)

    @field_validator("subject_id", "artifact_type", "prompt_text")
    @classmethod
    def _not_blank(cls, v: str) -> str:  # noqa: N805
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class GenerationRecord(BaseModel):
    """Progress record of one generation, keyed by generation_id."""

    generation_id: str
    status: GenerationStatus = "pending"
    progress_percent: float = Field(default=0.0, ge=0.0, le=100.0)
    operation_handle: str | None = None
    result_locator: str | None = None
    result_text: str | None = None
    error_message: str | None = None
    degraded: bool = False
    attempts: int = 0
    subject_id: str
    artifact_type: str
    prompt_text: str
    created_at: datetime
    updated_at: datetime

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def succeeded(self) -> bool:
        """True only for a full-fidelity completion."""
        return self.status == "completed" and not self.degraded


class GenerationResult(BaseModel):
    """Immediate answer of generate()."""

    generation_id: str
    status: GenerationStatus
    success: bool
    degraded: bool = False
    progress_percent: float = 0.0
    result_locator: str | None = None
    result_text: str | None = None
    error_message: str | None = None

    @classmethod
    def from_record(cls, record: GenerationRecord) -> GenerationResult:
        return cls(
            generation_id=record.generation_id,
            status=record.status,
            success=record.status != "failed" and not record.degraded,
            degraded=record.degraded,
            progress_percent=record.progress_percent,
            result_locator=record.result_locator,
            result_text=record.result_text,
            error_message=record.error_message,
        )
