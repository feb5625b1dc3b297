# tests/integration/test_int_cache_aside.py — v1
"""End-to-end cache-aside flows through ClipService with a scripted provider."""

from __future__ import annotations

import pytest

from clipforge.api.service import ClipService
from clipforge.cache.models import CachedArtifact
from clipforge.config.settings import Settings
from clipforge.generation.errors import UpstreamError
from clipforge.generation.models import GenerationRequest
from clipforge.providers.models import PollResult

VIDEO_URI = "https://cdn.example/vic-testimony.mp4"


def _request(subject: str = "vic", prompt: str = "x") -> GenerationRequest:
    return GenerationRequest(subject_id=subject, artifact_type="testimony", prompt_text=prompt)


class TestCacheAsideFlows:
    @pytest.mark.asyncio
    async def test_repeated_requests_submit_once(self, settings, make_provider, mock_llm_client):
        provider = make_provider(
            polls=[PollResult(done=False), PollResult(done=True, result_locator=VIDEO_URI)],
        )
        service = ClipService.from_settings(settings, provider=provider, llm_client=mock_llm_client)
        await service.start()

        first = await service.request_clip(_request())
        record = await service.orchestrator.wait_for(first.generation_id)
        second = await service.request_clip(_request())
        third = await service.request_clip(_request())
        await service.stop()

        assert record.status == "completed"
        assert len(provider.start_calls) == 1
        assert [second.source, third.source] == ["cache", "cache"]
        assert third.entry.locator == VIDEO_URI
        assert third.entry.access_count == 3

    @pytest.mark.asyncio
    async def test_frequent_entry_survives_capacity_eviction(
        self, clock, make_provider, mock_llm_client,
    ):
        settings = Settings(_env_file=None, gemini_api_key="k", cache_max_size=2)
        service = ClipService.from_settings(
            settings, provider=make_provider(), llm_client=mock_llm_client, clock=clock,
        )
        store = service.cache

        def artifact(subject: str) -> CachedArtifact:
            return CachedArtifact(
                subject_id=subject, artifact_type="testimony",
                source_prompt="x", locator=f"https://cdn.example/{subject}.mp4",
            )

        await store.put("F1", artifact("vic"))
        for _ in range(9):
            clock.advance(1)
            await store.get("F1")
        clock.advance(1)
        await store.put("F2", artifact("tom"))
        clock.advance(1)
        await store.put("F3", artifact("ada"))

        assert await store.get("F1") is not None
        assert await store.get("F2") is None
        assert await store.get("F3") is not None

    @pytest.mark.asyncio
    async def test_poll_budget_exhaustion(self, settings, make_provider, mock_llm_client):
        provider = make_provider()
        service = ClipService.from_settings(settings, provider=provider, llm_client=mock_llm_client)

        response = await service.request_clip(_request())
        record = await service.orchestrator.wait_for(response.generation_id)

        assert record.status == "failed"
        assert record.error_message == "timed out"
        assert provider.poll_calls == 60
        assert await service.cache.get(response.fingerprint) is None
        mock_llm_client.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_upstream_and_fallback_both_fail(
        self, settings, make_provider, failing_llm_client,
    ):
        provider = make_provider(start_error=UpstreamError("prompt rejected", code=400))
        service = ClipService.from_settings(
            settings, provider=provider, llm_client=failing_llm_client,
        )

        response = await service.request_clip(_request())
        record = service.get_status(response.generation_id)

        assert record.status == "failed"
        assert record.error_message == "prompt rejected"
        assert record.degraded is False
        assert record.result_text is None
        assert len(await service.cache.list_entries()) == 0
