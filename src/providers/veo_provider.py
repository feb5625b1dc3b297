# src/providers/veo_provider.py — v1
"""Google Veo adapter implementing BaseVideoProvider.

Uses the google-genai SDK: ``client.aio.models.generate_videos`` to submit and
``client.aio.operations.get`` to poll the returned operation.
"""

from __future__ import annotations

import logging
from typing import Any

from clipforge.config.settings import ConfigurationError
from clipforge.generation.errors import TransportError, UpstreamError
from clipforge.providers.base_provider import BaseVideoProvider
from clipforge.providers.models import PollResult

logger = logging.getLogger(__name__)

_TRANSIENT_CODES = frozenset({408, 429, 500, 502, 503, 504})


def append_api_key(uri: str, api_key: str) -> str:
    """Make a provider download URI fetchable by adding the API key."""
    if not api_key or "key=" in uri:
        return uri
    separator = "&" if "?" in uri else "?"
    return f"{uri}{separator}key={api_key}"


class VeoProvider(BaseVideoProvider):
    """Adapter for Veo text-to-video models."""

    def __init__(
        self,
        model: str = "veo-2.0-generate-001",
        api_key: str = "",
        client: Any = None,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self.__client = client  # Lazy initialization unless injected

    @property
    def _client(self) -> Any:
        """Lazy-init google-genai client (only on first API call)."""
        if self.__client is None:
            if not self._api_key:
                raise ConfigurationError("GEMINI_API_KEY not configured")
            from google import genai

            self.__client = genai.Client(api_key=self._api_key)
        return self.__client

    @property
    def provider_name(self) -> str:
        return "veo"

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def start(
        self,
        prompt_text: str,
        aspect_ratio: str = "16:9",
        resolution: str = "720p",
        duration_s: int = 5,
    ) -> str:
        from google.genai import errors, types

        client = self._client
        config_kwargs: dict[str, Any] = {
            "number_of_videos": 1,
            "duration_seconds": duration_s,
            "aspect_ratio": aspect_ratio,
        }
        # Veo 2 rejects an explicit resolution
        if not self._model.startswith("veo-2"):
            config_kwargs["resolution"] = resolution
        config = types.GenerateVideosConfig(**config_kwargs)

        logger.info("Starting %s generation: %.100s", self._model, prompt_text)
        try:
            operation = await client.aio.models.generate_videos(
                model=self._model, prompt=prompt_text, config=config,
            )
        except errors.APIError as e:
            raise UpstreamError(e.message or str(e), code=e.code) from e
        except Exception as e:
            raise TransportError(f"Veo submit failed: {e}") from e

        if not getattr(operation, "name", None):
            raise UpstreamError("Veo returned an operation without a name")
        logger.debug("Veo operation started: %s", operation.name)
        return operation.name

    async def poll(self, operation_handle: str) -> PollResult:
        from google.genai import errors, types

        client = self._client
        try:
            operation = await client.aio.operations.get(
                operation=types.GenerateVideosOperation(name=operation_handle),
            )
        except errors.APIError as e:
            if e.code in _TRANSIENT_CODES:
                raise TransportError(f"Veo poll failed ({e.code}): {e.message}") from e
            raise UpstreamError(e.message or str(e), code=e.code) from e
        except Exception as e:
            raise TransportError(f"Veo poll failed: {e}") from e

        if not operation.done:
            return PollResult(done=False, progress_hint=_progress_hint(operation))

        uri = _video_uri(operation)
        if uri:
            return PollResult(done=True, result_locator=append_api_key(uri, self._api_key))

        error = getattr(operation, "error", None)
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            return PollResult(done=True, error=message or "Generation failed")

        logger.error("Veo operation %s finished without a video", operation_handle)
        return PollResult(done=True, error="No video in response")


def _video_uri(operation: Any) -> str | None:
    response = getattr(operation, "response", None)
    videos = getattr(response, "generated_videos", None) if response else None
    if not videos:
        return None
    video = getattr(videos[0], "video", None)
    return getattr(video, "uri", None) if video else None


def _progress_hint(operation: Any) -> float | None:
    metadata = getattr(operation, "metadata", None) or {}
    value = metadata.get("progressPercent", metadata.get("progress")) if isinstance(metadata, dict) else None
    if isinstance(value, (int, float)) and 0 <= value <= 100:
        return float(value)
    return None
