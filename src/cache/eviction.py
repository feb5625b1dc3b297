# src/cache/eviction.py — v1
"""Frequency/recency eviction scoring.

Both terms are normalized to [0, 1] before weighting so that neither the raw
access count nor the idle time dominates:

    frequency = 1 - exp(-access_count / frequency_scale)
    recency   = 2 ** (-idle_seconds / recency_half_life_s)
    score     = w_frequency * frequency + w_recency * recency

Lower scores are evicted first.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime

from clipforge.cache.models import CacheEntry


@dataclass(frozen=True)
class EvictionPolicy:
    """Weights and scales for eviction scoring."""

    w_frequency: float = 0.5
    w_recency: float = 0.5
    frequency_scale: float = 5.0
    recency_half_life_s: float = 3600.0

    def score(self, entry: CacheEntry, now: datetime) -> float:
        """Score an entry; higher means more worth keeping."""
        return score_entry(entry, now, self)


def score_entry(entry: CacheEntry, now: datetime, policy: EvictionPolicy) -> float:
    """Compute the normalized keep-score of one entry."""
    idle_s = max((now - entry.last_accessed_at).total_seconds(), 0.0)
    frequency = 1.0 - math.exp(-entry.access_count / policy.frequency_scale)
    recency = 2.0 ** (-idle_s / policy.recency_half_life_s)
    return policy.w_frequency * frequency + policy.w_recency * recency


def select_victims(
    entries: dict[str, CacheEntry],
    count: int,
    now: datetime,
    policy: EvictionPolicy,
) -> list[str]:
    """Return the fingerprints of the ``count`` lowest-scoring entries."""
    if count <= 0:
        return []
    ranked = sorted(entries.items(), key=lambda item: policy.score(item[1], now))
    return [key for key, _ in ranked[:count]]
