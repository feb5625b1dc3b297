# src/cache/sweeper.py — v1
"""Recurring background sweep of expired cache entries.

The sweeper is an explicit start/stop task owned by the service lifecycle,
so tests and shutdown code can tear it down deterministically.
"""

from __future__ import annotations

import asyncio
import logging

from clipforge.cache.base_cache_store import BaseCacheStore

logger = logging.getLogger(__name__)


class CacheSweeper:
    """Periodically calls ``sweep_expired()`` on a cache store.

    Args:
        store: Cache store to sweep.
        period_s: Seconds between sweeps.
    """

    def __init__(self, store: BaseCacheStore, period_s: float = 900.0) -> None:
        if period_s <= 0:
            raise ValueError("period_s must be > 0")
        self._store = store
        self._period_s = period_s
        self._task: asyncio.Task[None] | None = None
        self.total_removed = 0
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the recurring sweep. Calling start twice is a no-op."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run_periodic(), name="cache-sweeper")
        logger.info("Cache sweeper started (period=%.0fs)", self._period_s)

    async def stop(self) -> None:
        """Cancel the recurring sweep and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Cache sweeper stopped after %d runs", self.runs)

    async def run_once(self) -> int:
        """Run a single sweep and return the number of entries removed."""
        removed = await self._store.sweep_expired()
        self.runs += 1
        self.total_removed += removed
        if removed:
            logger.info("Cache sweep removed %d expired entries", removed)
        return removed

    async def _run_periodic(self) -> None:
        while True:
            await asyncio.sleep(self._period_s)
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Cache sweep failed")
