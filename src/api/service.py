# src/api/service.py — v1
"""Caller-facing clip service — cache-aside composition and lifecycle.

Usage:
    service = ClipService.from_settings(load_settings())
    await service.start()
    response = await service.request_clip(GenerationRequest(...))
    ...
    snapshot = await service.stop()   # hand to durable storage

The service owns one cache store, one status registry, one orchestrator and
the cache sweeper. Cache-aside is explicit here:

  1. fingerprint the request and check the cache,
  2. on a miss, reuse an in-flight generation or start a new one,
  3. write the artifact back when the generation reaches ``completed``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from clipforge.api.models import ClipResponse, PregenerationSummary
from clipforge.cache.cache_factory import create_cache_store, create_cache_sweeper
from clipforge.cache.fingerprint import compute_fingerprint
from clipforge.cache.memory_store import Clock, MemoryCacheStore, utc_now
from clipforge.cache.models import CachedArtifact, CacheEntry
from clipforge.cache.sweeper import CacheSweeper
from clipforge.config.settings import Settings
from clipforge.fallback.describer import FallbackDescriber
from clipforge.generation.models import (
    GenerationRecord,
    GenerationRequest,
    GenerationResult,
)
from clipforge.generation.orchestrator import GenerationOrchestrator
from clipforge.generation.registry import StatusRegistry
from clipforge.llm.base_client import BaseLLMClient
from clipforge.llm.client_factory import create_llm_client
from clipforge.providers.base_provider import BaseVideoProvider
from clipforge.providers.provider_factory import create_video_provider

logger = logging.getLogger(__name__)


class ClipService:
    """Cache-aside front for the generation orchestrator.

    Args:
        settings: Application settings.
        cache_store: Artifact cache shared by every caller.
        orchestrator: Generation orchestrator.
        sweeper: Optional recurring expiry sweep for the cache.
        provider: Primary provider (for configuration checks).
    """

    def __init__(
        self,
        settings: Settings,
        cache_store: MemoryCacheStore,
        orchestrator: GenerationOrchestrator,
        sweeper: CacheSweeper | None = None,
        provider: BaseVideoProvider | None = None,
    ) -> None:
        self._settings = settings
        self._cache = cache_store
        self._orchestrator = orchestrator
        self._sweeper = sweeper
        self._provider = provider
        self._in_flight: dict[str, str] = {}
        # Fingerprints whose submission is still awaiting the provider
        self._submitting: dict[str, asyncio.Task[GenerationResult]] = {}
        orchestrator.add_completion_listener(self._on_generation_finished)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        provider: BaseVideoProvider | None = None,
        llm_client: BaseLLMClient | None = None,
        clock: Clock = utc_now,
    ) -> ClipService:
        """Wire every component from settings (one instance per process)."""
        provider = provider or create_video_provider(settings)

        fallback: FallbackDescriber | None = None
        if settings.fallback_enabled:
            client = llm_client or create_llm_client(
                settings.fallback_provider, settings.fallback_model, settings,
            )
            fallback = FallbackDescriber(
                client,
                timeout_s=settings.fallback_timeout_s,
                max_tokens=settings.fallback_max_tokens,
            )

        store = create_cache_store(settings, clock=clock)
        orchestrator = GenerationOrchestrator(
            provider, StatusRegistry(), fallback=fallback, settings=settings,
        )
        return cls(
            settings,
            store,
            orchestrator,
            sweeper=create_cache_sweeper(store, settings),
            provider=provider,
        )

    @property
    def cache(self) -> MemoryCacheStore:
        return self._cache

    @property
    def orchestrator(self) -> GenerationOrchestrator:
        return self._orchestrator

    @property
    def is_configured(self) -> bool:
        """Whether the primary provider has credentials."""
        return self._provider is not None and self._provider.is_configured

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, restore: Iterable[CacheEntry] | None = None) -> None:
        """Restore a persisted cache snapshot and start the expiry sweep."""
        if restore is not None:
            imported = await self._cache.import_entries(list(restore))
            logger.info("Restored %d cache entries", imported)
        if self._sweeper is not None:
            self._sweeper.start()

    async def stop(self) -> list[CacheEntry]:
        """Stop background work and return a cache snapshot for persistence."""
        if self._sweeper is not None:
            await self._sweeper.stop()
        await self._orchestrator.shutdown()
        return await self._cache.export_entries()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def fingerprint(self, request: GenerationRequest) -> str:
        return compute_fingerprint(
            request.subject_id,
            request.artifact_type,
            request.prompt_text,
            length=self._settings.cache_key_length,
        )

    async def request_clip(self, request: GenerationRequest) -> ClipResponse:
        """Serve a clip from cache, an in-flight generation, or a new generation."""
        fingerprint = self.fingerprint(request)

        entry = await self._cache.get(fingerprint)
        if entry is not None:
            logger.debug("Cache hit %s (subject=%s)", fingerprint, request.subject_id)
            return ClipResponse(fingerprint=fingerprint, source="cache", entry=entry)

        generation_id = self._in_flight.get(fingerprint)
        if generation_id is not None:
            record = self._orchestrator.get_status(generation_id)
            if record is not None and not record.is_terminal:
                return ClipResponse(
                    fingerprint=fingerprint,
                    source="in_flight",
                    generation=GenerationResult.from_record(record),
                )
            self._in_flight.pop(fingerprint, None)

        # Nothing awaits between the in-flight checks and registering the
        # submission; concurrent identical requests join it.
        submission = self._submitting.get(fingerprint)
        if submission is not None:
            result = await asyncio.shield(submission)
            record = self._orchestrator.get_status(result.generation_id)
            return ClipResponse(
                fingerprint=fingerprint,
                source="in_flight",
                generation=GenerationResult.from_record(record) if record else result,
            )

        submission = asyncio.create_task(
            self._orchestrator.generate(request), name=f"submit-{fingerprint}",
        )
        self._submitting[fingerprint] = submission
        try:
            result = await submission
            record = self._orchestrator.get_status(result.generation_id)
            if record is not None and not record.is_terminal:
                self._in_flight[fingerprint] = result.generation_id
        finally:
            self._submitting.pop(fingerprint, None)
        return ClipResponse(fingerprint=fingerprint, source="generation", generation=result)

    def get_status(self, generation_id: str) -> GenerationRecord | None:
        return self._orchestrator.get_status(generation_id)

    def cancel(self, generation_id: str) -> bool:
        return self._orchestrator.cancel(generation_id)

    def clear_terminal(self) -> int:
        return self._orchestrator.clear_terminal()

    async def pregenerate(
        self,
        requests: Iterable[GenerationRequest],
        stagger_s: float | None = None,
    ) -> PregenerationSummary:
        """Warm the cache for a list of requests, one submission at a time.

        Requests already cached are skipped. Consecutive submissions are
        separated by ``stagger_s`` seconds to stay under provider rate limits.
        """
        delay = self._settings.pregeneration_stagger_s if stagger_s is None else stagger_s
        summary = PregenerationSummary()
        submitted = 0

        for request in requests:
            fingerprint = self.fingerprint(request)
            if await self._cache.contains(fingerprint):
                summary.cached += 1
                continue

            if submitted and delay > 0:
                await asyncio.sleep(delay)

            try:
                response = await self.request_clip(request)
            except Exception as e:
                logger.error("Pre-generation failed for %s: %s", request.subject_id, e)
                summary.failed += 1
                continue

            submitted += 1
            generation = response.generation
            if generation is None or generation.status == "failed":
                summary.failed += 1
            else:
                summary.generated += 1
                summary.generation_ids[response.fingerprint] = generation.generation_id

        logger.info(
            "Pre-generation complete: %d generated, %d cached, %d failed",
            summary.generated, summary.cached, summary.failed,
        )
        return summary

    # ------------------------------------------------------------------
    # Write-back
    # ------------------------------------------------------------------

    async def _on_generation_finished(self, record: GenerationRecord) -> None:
        fingerprint = compute_fingerprint(
            record.subject_id,
            record.artifact_type,
            record.prompt_text,
            length=self._settings.cache_key_length,
        )
        if self._in_flight.get(fingerprint) == record.generation_id:
            del self._in_flight[fingerprint]

        if record.status != "completed":
            return
        if record.degraded and not self._settings.cache_degraded_results:
            return

        await self._cache.put(
            fingerprint,
            CachedArtifact(
                subject_id=record.subject_id,
                artifact_type=record.artifact_type,
                source_prompt=record.prompt_text,
                locator=record.result_locator,
                inline_data=record.result_text if record.degraded else None,
                degraded=record.degraded,
            ),
        )
        logger.info("Cached generation %s as %s", record.generation_id, fingerprint)
