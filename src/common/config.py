"""Configuration management for the bilingual subtitle system."""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

SUPPORTED_TRANSLATION_BACKENDS = ("google", "openai")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Redis Configuration
    redis_url: str = Field(default="redis://localhost:6379", env="REDIS_URL")
    redis_reconnect_max_retries: int = Field(
        default=3, env="REDIS_RECONNECT_MAX_RETRIES"
    )
    redis_reconnect_initial_delay: float = Field(
        default=1.0, env="REDIS_RECONNECT_INITIAL_DELAY"
    )
    redis_reconnect_max_delay: float = Field(
        default=30.0, env="REDIS_RECONNECT_MAX_DELAY"
    )

    # Persistent Subtitle Cache
    subtitle_cache_key_prefix: str = Field(
        default="bilingual_cache:", env="SUBTITLE_CACHE_KEY_PREFIX"
    )
    subtitle_cache_ttl_days: int = Field(
        default=7, ge=1, env="SUBTITLE_CACHE_TTL_DAYS"
    )  # 7 days
    subtitle_cache_max_entries: int = Field(
        default=50, ge=1, env="SUBTITLE_CACHE_MAX_ENTRIES"
    )  # Maximum number of cached videos
    subtitle_cache_min_translated_ratio: float = Field(
        default=0.9, ge=0.0, le=1.0, env="SUBTITLE_CACHE_MIN_TRANSLATED_RATIO"
    )  # Don't cache partially translated subtitles

    # Translation Scheduler
    translation_target_language: str = Field(
        default="zh-TW", env="TRANSLATION_TARGET_LANGUAGE"
    )
    translation_source_language: str = Field(
        default="en", env="TRANSLATION_SOURCE_LANGUAGE"
    )
    translation_concurrency: int = Field(
        default=5, ge=1, env="TRANSLATION_CONCURRENCY"
    )  # Concurrent batch requests
    translation_batch_size: int = Field(
        default=10, ge=1, env="TRANSLATION_BATCH_SIZE"
    )  # Texts per batch request
    translation_preload_window_seconds: float = Field(
        default=120.0, gt=0, env="TRANSLATION_PRELOAD_WINDOW_SECONDS"
    )  # 2 minutes ahead of playback
    translation_initial_count: int = Field(
        default=50, ge=0, env="TRANSLATION_INITIAL_COUNT"
    )
    translation_preload_debounce_seconds: float = Field(
        default=10.0, gt=0, env="TRANSLATION_PRELOAD_DEBOUNCE_SECONDS"
    )
    translation_remaining_chunk_size: int = Field(
        default=50, ge=1, env="TRANSLATION_REMAINING_CHUNK_SIZE"
    )
    translation_remaining_chunk_delay: float = Field(
        default=0.2, ge=0, env="TRANSLATION_REMAINING_CHUNK_DELAY"
    )  # Seconds between background chunks

    # Playback Sync
    subtitle_sync_interval_ms: int = Field(
        default=100, ge=1, env="SUBTITLE_SYNC_INTERVAL_MS"
    )

    # Translation API Client
    translation_api_url: str = Field(
        default="http://localhost:3001", env="TRANSLATION_API_URL"
    )
    translation_api_timeout: float = Field(
        default=30.0, env="TRANSLATION_API_TIMEOUT"
    )
    translation_api_max_retries: int = Field(
        default=3, ge=0, env="TRANSLATION_API_MAX_RETRIES"
    )
    translation_retry_initial_delay: float = Field(
        default=1.0, env="TRANSLATION_RETRY_INITIAL_DELAY"
    )
    translation_retry_max_delay: float = Field(
        default=10.0, env="TRANSLATION_RETRY_MAX_DELAY"
    )
    translation_retry_exponential_base: int = Field(
        default=2, env="TRANSLATION_RETRY_EXPONENTIAL_BASE"
    )

    # Translation Server
    translation_backend: str = Field(default="google", env="TRANSLATION_BACKEND")
    translation_cache_max_size: int = Field(
        default=2000, ge=1, env="TRANSLATION_CACHE_MAX_SIZE"
    )
    translation_cache_ttl_seconds: int = Field(
        default=604800, env="TRANSLATION_CACHE_TTL_SECONDS"
    )  # 7 days
    translation_batch_max_texts: int = Field(
        default=100, ge=1, env="TRANSLATION_BATCH_MAX_TEXTS"
    )
    google_translate_url: str = Field(
        default="https://translate.googleapis.com/translate_a/single",
        env="GOOGLE_TRANSLATE_URL",
    )

    # OpenAI backend
    openai_api_key: Optional[str] = Field(default=None, env="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", env="OPENAI_MODEL")
    openai_temperature: float = Field(
        default=0.3, env="OPENAI_TEMPERATURE"
    )  # Lower for consistent translations

    # API Configuration
    api_host: str = Field(default="0.0.0.0", env="API_HOST")
    api_port: int = Field(default=3001, env="API_PORT")
    cors_allowed_origins: Optional[str] = Field(
        default=None, env="CORS_ALLOWED_ORIGINS"
    )

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")

    @field_validator("translation_backend", mode="before")
    @classmethod
    def validate_translation_backend(cls, v: str) -> str:
        """
        Normalize and validate the server translation backend name.

        Args:
            v: Backend name from the environment

        Returns:
            Lowercased backend name

        Raises:
            ValueError: If the backend is not supported
        """
        backend = str(v).strip().lower()
        if backend not in SUPPORTED_TRANSLATION_BACKENDS:
            raise ValueError(
                f"translation_backend must be one of {SUPPORTED_TRANSLATION_BACKENDS}, got {v!r}"
            )
        return backend

    @property
    def subtitle_cache_ttl_seconds(self) -> int:
        """Persistent cache TTL expressed in seconds."""
        return self.subtitle_cache_ttl_days * 24 * 60 * 60

    @property
    def subtitle_sync_interval_seconds(self) -> float:
        """Playback sampling interval expressed in seconds."""
        return self.subtitle_sync_interval_ms / 1000

    class Config:
        # This file is in src/common/, so go up 2 levels to project root
        _project_root = Path(__file__).parent.parent.parent
        env_file = str(_project_root / ".env")
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = Settings()
