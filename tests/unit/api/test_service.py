# tests/unit/api/test_service.py — v1
"""Tests for api/service.py — cache-aside composition and lifecycle."""

from __future__ import annotations

import asyncio

import pytest

from clipforge.api.service import ClipService
from clipforge.cache.models import CachedArtifact
from clipforge.config.settings import ConfigurationError, Settings
from clipforge.generation.errors import TransportError
from clipforge.generation.models import GenerationRequest
from clipforge.providers.models import PollResult

VIDEO_URI = "https://cdn.example/video.mp4"


@pytest.fixture
def slow_settings() -> Settings:
    """Settings whose poll loops stay in flight until cancelled."""
    return Settings(_env_file=None, gemini_api_key="k", poll_interval_s=30, poll_max_attempts=10)


def _request(subject: str = "vic", prompt: str = "Victoria by the fireplace") -> GenerationRequest:
    return GenerationRequest(subject_id=subject, artifact_type="testimony", prompt_text=prompt)


class TestRequestClip:
    @pytest.mark.asyncio
    async def test_completion_is_written_back(self, settings, make_provider, mock_llm_client):
        provider = make_provider(polls=[PollResult(done=True, result_locator=VIDEO_URI)])
        service = ClipService.from_settings(settings, provider=provider, llm_client=mock_llm_client)

        first = await service.request_clip(_request())
        assert first.source == "generation"
        await service.orchestrator.wait_for(first.generation_id)

        second = await service.request_clip(_request())

        assert second.source == "cache"
        assert second.fingerprint == first.fingerprint
        assert second.entry.locator == VIDEO_URI
        assert second.ready
        assert len(provider.start_calls) == 1

    @pytest.mark.asyncio
    async def test_in_flight_requests_are_deduplicated(
        self, slow_settings, make_provider, mock_llm_client,
    ):
        provider = make_provider()
        service = ClipService.from_settings(
            slow_settings, provider=provider, llm_client=mock_llm_client,
        )

        first = await service.request_clip(_request())
        second = await service.request_clip(_request())

        assert second.source == "in_flight"
        assert second.generation_id == first.generation_id
        assert len(provider.start_calls) == 1
        await service.stop()

    @pytest.mark.asyncio
    async def test_failed_generation_is_retried(self, settings, make_provider, mock_llm_client):
        provider = make_provider(polls=[PollResult(done=True, error="safety filter")])
        service = ClipService.from_settings(settings, provider=provider, llm_client=mock_llm_client)

        first = await service.request_clip(_request())
        record = await service.orchestrator.wait_for(first.generation_id)
        assert record.status == "failed"

        second = await service.request_clip(_request())

        assert second.source == "generation"
        assert second.generation_id != first.generation_id
        assert await service.cache.get(first.fingerprint) is None
        await service.stop()

    @pytest.mark.asyncio
    async def test_distinct_prompts_distinct_fingerprints(
        self, settings, make_provider, mock_llm_client,
    ):
        service = ClipService.from_settings(
            settings, provider=make_provider(), llm_client=mock_llm_client,
        )
        assert service.fingerprint(_request(prompt="a")) != service.fingerprint(_request(prompt="b"))
        assert len(service.fingerprint(_request())) == settings.cache_key_length


    @pytest.mark.asyncio
    async def test_concurrent_identical_requests_submit_once(
        self, settings, make_provider, mock_llm_client,
    ):
        provider = make_provider(
            polls=[PollResult(done=True, result_locator=VIDEO_URI)], start_delay_s=0.01,
        )
        service = ClipService.from_settings(settings, provider=provider, llm_client=mock_llm_client)

        responses = await asyncio.gather(
            *(service.request_clip(_request(prompt="x")) for _ in range(3)),
        )

        assert len(provider.start_calls) == 1
        assert sorted(r.source for r in responses) == ["generation", "in_flight", "in_flight"]
        assert len({r.generation_id for r in responses}) == 1
        record = await service.orchestrator.wait_for(responses[0].generation_id)
        assert record.status == "completed"
        assert (await service.request_clip(_request(prompt="x"))).source == "cache"
        await service.stop()

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_submission_error(
        self, settings, make_provider, mock_llm_client,
    ):
        provider = make_provider(
            start_error=ConfigurationError("GEMINI_API_KEY not configured"), start_delay_s=0.01,
        )
        service = ClipService.from_settings(settings, provider=provider, llm_client=mock_llm_client)

        results = await asyncio.gather(
            *(service.request_clip(_request()) for _ in range(2)), return_exceptions=True,
        )

        assert len(provider.start_calls) == 1
        assert all(isinstance(r, ConfigurationError) for r in results)


class TestDegradedResults:
    @pytest.mark.asyncio
    async def test_degraded_not_cached_by_default(self, settings, make_provider, mock_llm_client):
        provider = make_provider(start_error=TransportError("network down"))
        service = ClipService.from_settings(settings, provider=provider, llm_client=mock_llm_client)

        response = await service.request_clip(_request())

        assert response.generation.degraded is True
        assert response.ready is False
        assert await service.cache.get(response.fingerprint) is None

    @pytest.mark.asyncio
    async def test_degraded_cached_when_enabled(self, make_provider, mock_llm_client):
        settings = Settings(
            _env_file=None, gemini_api_key="k", poll_interval_s=0, cache_degraded_results=True,
        )
        provider = make_provider(start_error=TransportError("network down"))
        service = ClipService.from_settings(settings, provider=provider, llm_client=mock_llm_client)

        response = await service.request_clip(_request())
        again = await service.request_clip(_request())

        assert again.source == "cache"
        assert again.entry.degraded is True
        assert again.entry.inline_data == response.generation.result_text
        assert again.ready is False

    @pytest.mark.asyncio
    async def test_fallback_disabled(self, make_provider):
        settings = Settings(_env_file=None, gemini_api_key="k", fallback_enabled=False)
        provider = make_provider(start_error=TransportError("network down"))
        service = ClipService.from_settings(settings, provider=provider)

        response = await service.request_clip(_request())

        assert response.generation.status == "failed"
        assert response.generation.error_message == "network down"


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_restore_and_export(self, settings, make_provider, mock_llm_client):
        source = ClipService.from_settings(
            settings, provider=make_provider(), llm_client=mock_llm_client,
        )
        fingerprint = source.fingerprint(_request())
        await source.cache.put(
            fingerprint,
            CachedArtifact(
                subject_id="vic", artifact_type="testimony",
                source_prompt="Victoria by the fireplace", locator=VIDEO_URI,
            ),
        )
        snapshot = await source.stop()

        provider = make_provider()
        target = ClipService.from_settings(settings, provider=provider, llm_client=mock_llm_client)
        await target.start(restore=snapshot)
        try:
            response = await target.request_clip(_request())
        finally:
            await target.stop()

        assert response.source == "cache"
        assert provider.start_calls == []

    @pytest.mark.asyncio
    async def test_start_runs_sweeper(self, settings, make_provider, mock_llm_client):
        service = ClipService.from_settings(
            settings, provider=make_provider(), llm_client=mock_llm_client,
        )
        await service.start()
        assert service._sweeper.running
        await service.stop()
        assert not service._sweeper.running

    @pytest.mark.asyncio
    async def test_stop_cancels_running_generations(
        self, slow_settings, make_provider, mock_llm_client,
    ):
        service = ClipService.from_settings(
            slow_settings, provider=make_provider(), llm_client=mock_llm_client,
        )
        response = await service.request_clip(_request())

        await service.stop()

        assert service.get_status(response.generation_id).error_message == "cancelled"

    def test_is_configured(self, make_provider, mock_llm_client):
        settings = Settings(_env_file=None, gemini_api_key="")
        service = ClipService.from_settings(settings, llm_client=mock_llm_client)
        assert service.is_configured is False

        service = ClipService.from_settings(
            settings, provider=make_provider(), llm_client=mock_llm_client,
        )
        assert service.is_configured is True


class TestPregenerate:
    @pytest.mark.asyncio
    async def test_counts(self, settings, make_provider, mock_llm_client):
        provider = make_provider(polls=[PollResult(done=True, result_locator=VIDEO_URI)] * 3)
        service = ClipService.from_settings(settings, provider=provider, llm_client=mock_llm_client)
        cached = _request(subject="ada")
        await service.cache.put(
            service.fingerprint(cached),
            CachedArtifact(
                subject_id="ada", artifact_type="testimony",
                source_prompt=cached.prompt_text, locator=VIDEO_URI,
            ),
        )

        summary = await service.pregenerate(
            [_request(subject="vic"), cached, _request(subject="tom")],
        )

        assert summary.generated == 2
        assert summary.cached == 1
        assert summary.failed == 0
        assert set(summary.generation_ids) == {
            service.fingerprint(_request(subject="vic")),
            service.fingerprint(_request(subject="tom")),
        }
        assert len(provider.start_calls) == 2
        await service.stop()

    @pytest.mark.asyncio
    async def test_cached_skip_leaves_access_stats(self, settings, make_provider, mock_llm_client):
        service = ClipService.from_settings(
            settings, provider=make_provider(), llm_client=mock_llm_client,
        )
        request = _request()
        fingerprint = service.fingerprint(request)
        await service.cache.put(
            fingerprint,
            CachedArtifact(
                subject_id="vic", artifact_type="testimony",
                source_prompt=request.prompt_text, locator=VIDEO_URI,
            ),
        )
        before = (await service.cache.list_entries())[0]

        summary = await service.pregenerate([request, request])

        after = (await service.cache.list_entries())[0]
        assert summary.cached == 2
        assert after.access_count == before.access_count == 1
        assert after.last_accessed_at == before.last_accessed_at
        assert (await service.cache.stats()).hit_rate == 0.0

    @pytest.mark.asyncio
    async def test_same_subject_keeps_every_generation(
        self, settings, make_provider, mock_llm_client,
    ):
        provider = make_provider(polls=[PollResult(done=True, result_locator=VIDEO_URI)] * 2)
        service = ClipService.from_settings(settings, provider=provider, llm_client=mock_llm_client)
        requests = [
            GenerationRequest(subject_id="vic", artifact_type="testimony", prompt_text="a"),
            GenerationRequest(subject_id="vic", artifact_type="introduction", prompt_text="b"),
        ]

        summary = await service.pregenerate(requests)
        await asyncio.gather(
            *(service.orchestrator.wait_for(gid) for gid in summary.generation_ids.values()),
        )

        assert summary.generated == 2
        assert len(summary.generation_ids) == 2
        assert len(set(summary.generation_ids.values())) == 2
        for request in requests:
            entry = await service.cache.get(service.fingerprint(request))
            assert entry is not None
            assert entry.artifact_type == request.artifact_type
        await service.stop()

    @pytest.mark.asyncio
    async def test_configuration_error_counts_as_failed(
        self, settings, make_provider, mock_llm_client,
    ):
        provider = make_provider(start_error=ConfigurationError("GEMINI_API_KEY not configured"))
        service = ClipService.from_settings(settings, provider=provider, llm_client=mock_llm_client)

        summary = await service.pregenerate([_request(subject="vic"), _request(subject="tom")])

        assert summary.failed == 2
        assert summary.generated == 0

