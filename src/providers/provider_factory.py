# src/providers/provider_factory.py — v1
"""Factory: instantiate the primary video provider from settings."""

from __future__ import annotations

import importlib
import logging

from clipforge.config.settings import Settings
from clipforge.providers.base_provider import BaseVideoProvider

logger = logging.getLogger(__name__)

# Registry of provider name → adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "veo": "clipforge.providers.veo_provider.VeoProvider",
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def create_video_provider(settings: Settings) -> BaseVideoProvider:
    """Instantiate the configured primary video provider.

    Raises:
        UnsupportedProviderError: If the provider is not registered.
    """
    name = settings.video_provider
    if name not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported video provider: {name!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    module_path, class_name = _PROVIDER_REGISTRY[name].rsplit(".", 1)
    provider_cls = getattr(importlib.import_module(module_path), class_name)

    kwargs: dict[str, object] = {}
    if name == "veo":
        kwargs = {"model": settings.veo_model, "api_key": settings.gemini_api_key}

    logger.debug("Creating video provider: %s", name)
    return provider_cls(**kwargs)


def register_provider(name: str, class_path: str) -> None:
    """Register a custom video provider adapter.

    The class is instantiated without arguments unless it is the built-in Veo adapter.
    """
    _PROVIDER_REGISTRY[name] = class_path
    logger.info("Registered video provider: %s -> %s", name, class_path)
