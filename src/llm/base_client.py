# src/llm/base_client.py — v1
"""Abstract text-generation client used by the fallback describer."""

from __future__ import annotations

from abc import ABC, abstractmethod

from clipforge.llm.models import LLMResponse, Message


class BaseLLMClient(ABC):
    """Unified interface for text-generation providers."""

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Text completion."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (google, anthropic)."""
