# src/cache/base_cache_store.py — v1
"""Abstract cache store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from clipforge.cache.models import CachedArtifact, CacheEntry, CacheStats


class BaseCacheStore(ABC):
    """Unified interface for fingerprint-addressed artifact stores."""

    @abstractmethod
    async def get(self, fingerprint: str) -> CacheEntry | None:
        """Retrieve an entry, expiring it lazily and recording the access."""

    @abstractmethod
    async def contains(self, fingerprint: str) -> bool:
        """Whether a live entry exists. Does not record an access."""

    @abstractmethod
    async def put(self, fingerprint: str, data: CachedArtifact) -> CacheEntry:
        """Store an artifact, evicting low-scoring entries when at capacity."""

    @abstractmethod
    async def delete(self, fingerprint: str) -> bool:
        """Remove one entry. Returns True if it existed."""

    @abstractmethod
    async def evict(self, count: int) -> int:
        """Remove the ``count`` lowest-scoring entries."""

    @abstractmethod
    async def sweep_expired(self) -> int:
        """Remove every entry older than the configured max age."""

    @abstractmethod
    async def export_entries(self) -> list[CacheEntry]:
        """Snapshot all entries for handoff to durable storage."""

    @abstractmethod
    async def import_entries(self, entries: list[CacheEntry]) -> int:
        """Load entries from durable storage, skipping expired ones."""

    @abstractmethod
    async def list_entries(self) -> list[CacheEntry]:
        """List all entries without touching access metadata."""

    @abstractmethod
    async def clear(self) -> int:
        """Remove every entry."""

    @abstractmethod
    async def stats(self) -> CacheStats:
        """Return point-in-time statistics."""
