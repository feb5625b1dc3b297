# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for provider credentials, polling budgets,
cache capacity and logging options.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is missing or internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Primary video provider ===
    video_provider: str = "veo"
    gemini_api_key: str = ""
    veo_model: str = "veo-2.0-generate-001"
    video_resolution: Literal["720p", "1080p"] = "720p"
    video_aspect_ratio: Literal["16:9", "9:16", "1:1"] = "16:9"
    video_duration_s: int = 5

    # === Polling ===
    poll_initial_delay_s: float = 0.0
    poll_interval_s: float = 5.0
    poll_max_attempts: int = 60
    poll_max_consecutive_errors: int = 3

    # === Fallback description ===
    fallback_enabled: bool = True
    fallback_provider: str = "google"
    fallback_model: str = "gemini-2.0-flash"
    fallback_timeout_s: float = 30.0
    fallback_max_tokens: int = 1024
    anthropic_api_key: str = ""

    # === Cache ===
    cache_max_size: int = 100
    cache_max_age_s: float = 60 * 60 * 24
    cache_sweep_period_s: float = 60 * 15
    cache_key_length: int = 16
    cache_degraded_results: bool = False

    # Eviction scoring (both terms normalized to [0, 1])
    eviction_w_frequency: float = 0.5
    eviction_w_recency: float = 0.5
    eviction_frequency_scale: float = 5.0
    eviction_recency_half_life_s: float = 60 * 60

    # === Pre-generation ===
    pregeneration_stagger_s: float = 10.0

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("poll_max_attempts", "poll_max_consecutive_errors", "cache_max_size")
    @classmethod
    def validate_positive_int(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator(
        "poll_interval_s",
        "poll_initial_delay_s",
        "fallback_timeout_s",
        "pregeneration_stagger_s",
    )
    @classmethod
    def validate_non_negative(cls, v: float) -> float:  # noqa: N805
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.cache_max_age_s <= 0:
            errors.append("CACHE_MAX_AGE_S must be > 0")

        if self.cache_sweep_period_s <= 0:
            errors.append("CACHE_SWEEP_PERIOD_S must be > 0")

        if self.cache_key_length < 8 or self.cache_key_length > 64:
            errors.append("CACHE_KEY_LENGTH must be between 8 and 64")

        if self.eviction_w_frequency < 0 or self.eviction_w_recency < 0:
            errors.append("Eviction weights must be non-negative")
        elif self.eviction_w_frequency == 0 and self.eviction_w_recency == 0:
            errors.append("At least one eviction weight must be > 0")

        if self.eviction_frequency_scale <= 0 or self.eviction_recency_half_life_s <= 0:
            errors.append("Eviction scale and half-life must be > 0")

        if self.video_duration_s < 1:
            errors.append("VIDEO_DURATION_S must be >= 1")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def poll_ceiling_s(self) -> float:
        """Hard client-side ceiling for one generation's poll loop."""
        return self.poll_initial_delay_s + self.poll_max_attempts * self.poll_interval_s


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-service config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
