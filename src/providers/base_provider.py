# src/providers/base_provider.py — v1
"""Abstract primary video provider: start a long-running operation, then poll it."""

from __future__ import annotations

from abc import ABC, abstractmethod

from clipforge.providers.models import PollResult


class BaseVideoProvider(ABC):
    """Minimal request/poll contract for text-to-video providers.

    Implementations raise ConfigurationError when credentials are missing,
    TransportError on network failures and UpstreamError when the provider
    answers with an explicit error.
    """

    @abstractmethod
    async def start(
        self,
        prompt_text: str,
        aspect_ratio: str = "16:9",
        resolution: str = "720p",
        duration_s: int = 5,
    ) -> str:
        """Submit a generation and return an opaque operation handle."""

    @abstractmethod
    async def poll(self, operation_handle: str) -> PollResult:
        """Check the state of a previously started operation."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (veo, ...)."""

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether credentials are present."""
