# src/cache/memory_store.py — v1
"""Bounded in-memory cache store with TTL expiry and scored eviction.

All mutating operations share one asyncio.Lock, so the store can be used by
any number of concurrent generations and request handlers.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable

from clipforge.cache.base_cache_store import BaseCacheStore
from clipforge.cache.eviction import EvictionPolicy, select_victims
from clipforge.cache.models import CachedArtifact, CacheEntry, CacheStats

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryCacheStore(BaseCacheStore):
    """Content-addressed artifact cache held in process memory.

    Args:
        max_size: Maximum number of entries.
        max_age_s: Time-to-live of an entry, measured from creation.
        policy: Eviction scoring weights.
        clock: Source of "now" (injectable for tests).
    """

    def __init__(
        self,
        max_size: int = 100,
        max_age_s: float = 60 * 60 * 24,
        policy: EvictionPolicy | None = None,
        clock: Clock = utc_now,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._max_size = max_size
        self._max_age = timedelta(seconds=max_age_s)
        self._policy = policy or EvictionPolicy()
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()

    @property
    def max_size(self) -> int:
        return self._max_size

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, fingerprint: str) -> CacheEntry | None:
        async with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is None:
                return None

            now = self._clock()
            if self._is_expired(entry, now):
                del self._entries[fingerprint]
                logger.debug("Cache entry %s expired on read", fingerprint)
                return None

            entry.access_count += 1
            entry.last_accessed_at = max(now, entry.created_at)
            return entry.model_copy()

    async def contains(self, fingerprint: str) -> bool:
        async with self._lock:
            entry = self._entries.get(fingerprint)
            return entry is not None and not self._is_expired(entry, self._clock())

    async def put(self, fingerprint: str, data: CachedArtifact) -> CacheEntry:
        async with self._lock:
            now = self._clock()
            if fingerprint not in self._entries:
                self._make_room(1, now)

            entry = CacheEntry(
                id=f"cache-{uuid.uuid4().hex[:12]}",
                subject_id=data.subject_id,
                artifact_type=data.artifact_type,
                fingerprint=fingerprint,
                locator=data.locator,
                inline_data=data.inline_data,
                source_prompt=data.source_prompt,
                degraded=data.degraded,
                created_at=now,
                last_accessed_at=now,
                access_count=1,
            )
            self._entries[fingerprint] = entry
            logger.debug(
                "Cached %s for subject=%s type=%s (%d/%d)",
                fingerprint, data.subject_id, data.artifact_type,
                len(self._entries), self._max_size,
            )
            return entry.model_copy()

    async def delete(self, fingerprint: str) -> bool:
        async with self._lock:
            return self._entries.pop(fingerprint, None) is not None

    async def evict(self, count: int) -> int:
        async with self._lock:
            return self._evict_locked(count, self._clock())

    async def sweep_expired(self) -> int:
        async with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if self._is_expired(e, now)]
            for key in expired:
                del self._entries[key]
            return len(expired)

    async def export_entries(self) -> list[CacheEntry]:
        async with self._lock:
            return [e.model_copy() for e in self._entries.values()]

    async def import_entries(self, entries: list[CacheEntry]) -> int:
        async with self._lock:
            now = self._clock()
            imported = 0
            for entry in entries:
                if self._is_expired(entry, now):
                    continue
                if entry.fingerprint not in self._entries:
                    self._make_room(1, now)
                self._entries[entry.fingerprint] = entry.model_copy()
                imported += 1
            if imported:
                logger.info("Imported %d cache entries", imported)
            return imported

    async def list_entries(self) -> list[CacheEntry]:
        async with self._lock:
            return [e.model_copy() for e in self._entries.values()]

    async def clear(self) -> int:
        async with self._lock:
            removed = len(self._entries)
            self._entries.clear()
            return removed

    async def stats(self) -> CacheStats:
        async with self._lock:
            entries = list(self._entries.values())
            total_access = sum(e.access_count for e in entries)
            hit_rate = (total_access - len(entries)) / total_access if total_access else 0.0
            return CacheStats(
                size=len(entries),
                max_size=self._max_size,
                hit_rate=hit_rate,
                oldest_created_at=min((e.created_at for e in entries), default=None),
                newest_created_at=max((e.created_at for e in entries), default=None),
            )

    # --- Query helpers ---

    async def entries_for_subject(self, subject_id: str) -> list[CacheEntry]:
        """All entries generated for one subject."""
        async with self._lock:
            return [e.model_copy() for e in self._entries.values() if e.subject_id == subject_id]

    async def entries_by_type(self, artifact_type: str) -> list[CacheEntry]:
        """All entries of one artifact type."""
        async with self._lock:
            return [
                e.model_copy() for e in self._entries.values()
                if e.artifact_type == artifact_type
            ]

    async def clear_subject(self, subject_id: str) -> int:
        """Drop every entry for one subject. Returns the number removed."""
        async with self._lock:
            keys = [k for k, e in self._entries.items() if e.subject_id == subject_id]
            for key in keys:
                del self._entries[key]
            return len(keys)

    # --- Internals (caller holds the lock) ---

    def _is_expired(self, entry: CacheEntry, now: datetime) -> bool:
        return now - entry.created_at > self._max_age

    def _make_room(self, incoming: int, now: datetime) -> None:
        overflow = len(self._entries) + incoming - self._max_size
        if overflow > 0:
            self._evict_locked(overflow, now)

    def _evict_locked(self, count: int, now: datetime) -> int:
        victims = select_victims(self._entries, count, now, self._policy)
        for key in victims:
            del self._entries[key]
        if victims:
            logger.info("Evicted %d cache entries: %s", len(victims), victims)
        return len(victims)
