# tests/conftest.py — v1
"""Shared test fixtures for unit and integration tests.

Provides a controllable clock, a scripted video provider, a mock LLM client
and settings tuned for fast polling. No network I/O.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from unittest.mock import AsyncMock

import pytest

from clipforge.config.settings import Settings
from clipforge.generation.models import GenerationRequest
from clipforge.llm.models import LLMResponse
from clipforge.providers.base_provider import BaseVideoProvider
from clipforge.providers.models import PollResult


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeVideoProvider(BaseVideoProvider):
    """Scripted provider: start() may raise, poll() replays a list of outcomes.

    Poll script items are PollResult instances or exceptions to raise. Once the
    script is exhausted every poll answers ``done=False``.
    ``start_delay_s`` keeps submissions pending so concurrent callers overlap.
    """

    def __init__(
        self,
        polls: list[PollResult | Exception] | None = None,
        start_error: Exception | None = None,
        handle: str = "operations/op-1",
        on_poll: Callable[[int], Any] | None = None,
        start_delay_s: float = 0.0,
    ) -> None:
        self.polls = list(polls or [])
        self.start_error = start_error
        self.handle = handle
        self.on_poll = on_poll
        self.start_delay_s = start_delay_s
        self.start_calls: list[dict[str, Any]] = []
        self.poll_calls = 0

    async def start(self, prompt_text, aspect_ratio="16:9", resolution="720p", duration_s=5):
        self.start_calls.append(
            {
                "prompt_text": prompt_text,
                "aspect_ratio": aspect_ratio,
                "resolution": resolution,
                "duration_s": duration_s,
            }
        )
        if self.start_delay_s:
            await asyncio.sleep(self.start_delay_s)
        if self.start_error is not None:
            raise self.start_error
        return f"{self.handle}-{len(self.start_calls)}"

    async def poll(self, operation_handle):
        self.poll_calls += 1
        if self.on_poll is not None:
            self.on_poll(self.poll_calls)
        item = self.polls.pop(0) if self.polls else PollResult(done=False)
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def provider_name(self) -> str:
        return "fake"

    @property
    def is_configured(self) -> bool:
        return True


# === FIXTURES ===


@pytest.fixture
def make_provider() -> type[FakeVideoProvider]:
    """Factory for scripted providers: make_provider(polls=[...], start_error=...)."""
    return FakeVideoProvider


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    """Settings with zero-delay polling so loops finish immediately."""
    return Settings(
        _env_file=None,
        gemini_api_key="test-key",
        poll_interval_s=0,
        poll_initial_delay_s=0,
        pregeneration_stagger_s=0,
    )


@pytest.fixture
def sample_request() -> GenerationRequest:
    return GenerationRequest(
        subject_id="vic",
        artifact_type="testimony",
        prompt_text="Victoria pauses by the fireplace, glancing at the study door.",
    )


@pytest.fixture
def mock_llm_response() -> LLMResponse:
    return LLMResponse(
        content="Low angle shot. Firelight flickers across Victoria's face.",
        input_tokens=120,
        output_tokens=40,
        model="gemini-2.0-flash",
        provider="google",
        latency_ms=350,
    )


@pytest.fixture
def mock_llm_client(mock_llm_response: LLMResponse) -> AsyncMock:
    """Mock BaseLLMClient with a default description."""
    client = AsyncMock()
    client.complete = AsyncMock(return_value=mock_llm_response)
    client.provider_name = "mock"
    return client


@pytest.fixture
def failing_llm_client() -> AsyncMock:
    client = AsyncMock()
    client.complete = AsyncMock(side_effect=RuntimeError("fallback model unavailable"))
    client.provider_name = "mock"
    return client
