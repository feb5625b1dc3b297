# src/fallback/describer.py — v1
"""Degraded fallback: a text scene description in place of a video clip.

One call, one timeout, no retry and no further fallback.
"""

from __future__ import annotations

import asyncio
import logging

from clipforge.generation.errors import FallbackError
from clipforge.llm.base_client import BaseLLMClient
from clipforge.llm.models import Message

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You write cinematic visual descriptions of short video scenes. "
    "The description stands in for a clip that could not be rendered."
)

_DESCRIPTION_TEMPLATE = """Create a detailed visual description of this scene.

Scene: {prompt}

Cover the camera angle and movement, lighting and atmosphere, character
positions and expressions, and the key visual details. Keep it cinematic."""


class FallbackDescriber:
    """Produces a text description when the primary video path fails.

    Args:
        client: Text-generation client.
        timeout_s: Hard timeout for the single call.
        max_tokens: Output budget.
    """

    def __init__(
        self,
        client: BaseLLMClient,
        timeout_s: float = 30.0,
        max_tokens: int = 1024,
    ) -> None:
        self._client = client
        self._timeout_s = timeout_s
        self._max_tokens = max_tokens

    @property
    def provider_name(self) -> str:
        return self._client.provider_name

    async def describe(self, prompt_text: str) -> str:
        """Generate a scene description for a prompt.

        Raises:
            FallbackError: On timeout, provider error, or empty output.
        """
        messages = [Message(role="user", content=_DESCRIPTION_TEMPLATE.format(prompt=prompt_text))]
        try:
            response = await asyncio.wait_for(
                self._client.complete(
                    messages, system=_SYSTEM_PROMPT, max_tokens=self._max_tokens,
                ),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise FallbackError(f"Fallback description timed out after {self._timeout_s:.0f}s") from e
        except Exception as e:
            raise FallbackError(f"Fallback description failed: {e}") from e

        text = response.content.strip()
        if not text:
            raise FallbackError("Fallback description was empty")

        logger.info(
            "Fallback description generated by %s (%d chars, %dms)",
            response.provider, len(text), response.latency_ms,
        )
        return text
