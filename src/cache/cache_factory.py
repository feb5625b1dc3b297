# src/cache/cache_factory.py — v1
"""Factory for cache store and sweeper instantiation."""

from __future__ import annotations

from clipforge.cache.eviction import EvictionPolicy
from clipforge.cache.memory_store import Clock, MemoryCacheStore, utc_now
from clipforge.cache.sweeper import CacheSweeper
from clipforge.config.settings import Settings


def create_eviction_policy(settings: Settings) -> EvictionPolicy:
    """Build the eviction policy from settings."""
    return EvictionPolicy(
        w_frequency=settings.eviction_w_frequency,
        w_recency=settings.eviction_w_recency,
        frequency_scale=settings.eviction_frequency_scale,
        recency_half_life_s=settings.eviction_recency_half_life_s,
    )


def create_cache_store(
    settings: Settings | None = None,
    clock: Clock = utc_now,
) -> MemoryCacheStore:
    """Instantiate the artifact cache.

    Args:
        settings: Application settings. Defaults to built-in limits.
        clock: Source of "now" (injectable for tests).

    Returns:
        Configured MemoryCacheStore.
    """
    if settings is None:
        return MemoryCacheStore(clock=clock)
    return MemoryCacheStore(
        max_size=settings.cache_max_size,
        max_age_s=settings.cache_max_age_s,
        policy=create_eviction_policy(settings),
        clock=clock,
    )


def create_cache_sweeper(store: MemoryCacheStore, settings: Settings | None = None) -> CacheSweeper:
    """Build the recurring expiry sweep for a store."""
    period = 900.0 if settings is None else settings.cache_sweep_period_s
    return CacheSweeper(store, period_s=period)
