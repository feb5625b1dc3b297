# src/generation/registry.py — v1
"""Generation-id keyed status records.

Each record has a single writer (its own submission path and poll loop);
readers always get copies, never the live object.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from clipforge.generation.errors import InvalidTransitionError
from clipforge.generation.models import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    GenerationRecord,
)

logger = logging.getLogger(__name__)


class StatusRegistry:
    """In-memory registry of GenerationRecords.

    Grows until clear_terminal() is called; bounding it is the owner's job.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._records: dict[str, GenerationRecord] = {}
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, generation_id: object) -> bool:
        return generation_id in self._records

    def create(self, record: GenerationRecord) -> GenerationRecord:
        if record.generation_id in self._records:
            raise ValueError(f"Generation {record.generation_id} already registered")
        self._records[record.generation_id] = record.model_copy()
        return record.model_copy()

    def get(self, generation_id: str) -> GenerationRecord | None:
        record = self._records.get(generation_id)
        return record.model_copy() if record is not None else None

    def update(self, generation_id: str, **changes: Any) -> GenerationRecord:
        """Apply changes to a record and return the new snapshot.

        Raises:
            KeyError: Unknown generation_id.
            InvalidTransitionError: The record is terminal or the status edge is illegal.
        """
        current = self._records[generation_id]
        requested = changes.get("status", current.status)

        if current.status in TERMINAL_STATUSES:
            raise InvalidTransitionError(generation_id, current.status, requested)
        if requested != current.status and requested not in ALLOWED_TRANSITIONS[current.status]:
            raise InvalidTransitionError(generation_id, current.status, requested)

        data = current.model_dump()
        data.update(changes)
        data["updated_at"] = self._clock()
        updated = GenerationRecord.model_validate(data)
        self._records[generation_id] = updated

        if updated.status != current.status:
            logger.debug(
                "Generation %s: %s -> %s", generation_id, current.status, updated.status,
            )
        return updated.model_copy()

    def list_records(self, status: str | None = None) -> list[GenerationRecord]:
        return [
            r.model_copy() for r in self._records.values()
            if status is None or r.status == status
        ]

    def clear_terminal(self) -> int:
        """Remove every completed/failed record. Returns the number removed."""
        terminal = [gid for gid, r in self._records.items() if r.status in TERMINAL_STATUSES]
        for gid in terminal:
            del self._records[gid]
        if terminal:
            logger.info("Cleared %d terminal generation records", len(terminal))
        return len(terminal)
