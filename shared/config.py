"""
Configuration management.

Centralized environment variable management and validation.
"""

from typing import Literal, Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from shared.errors import ConfigError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # Allow case-insensitive env var matching
        extra="ignore"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    # LOG_DIR: Directory for the rotating JSON log file. Empty string disables file logging.
    log_dir: str = "logs"

    # Google Generative Language API
    # GEMINI_API_KEY / GEMINI_MODEL_OVERRIDE are the fallback when no credentials file exists
    gemini_api_key: Optional[str] = None
    gemini_model_override: Optional[str] = None
    gemini_api_base: str = "https://generativelanguage.googleapis.com"
    image_model: str = "gemini-2.5-flash-image-preview"
    video_model: str = "veo-3.0-generate-preview"
    http_timeout: float = 120.0

    # Retry policy
    retry_max_attempts: int = 5
    retry_initial_delay: float = 2.0  # seconds, doubled on every attempt
    # RETRY_EMPTY_RESULTS: Treat "no artifact produced" responses as transient
    # Default: false (an empty result fails the item immediately)
    retry_empty_results: bool = False

    # Video long-running operation polling
    video_poll_interval: float = 10.0
    video_max_polls: int = 60  # 60 x 10s = 10 minutes

    # Client-side daily video quota
    video_daily_limit: int = 10
    # QUOTA_CHARGE_POLICY: When a video submission consumes a quota unit
    # "on_attempt": charged before the create-operation request is sent (even if it then fails)
    # "on_accepted": reserved at the gate, then refunded for items whose create-operation
    #                request the backend never accepted
    quota_charge_policy: Literal["on_attempt", "on_accepted"] = "on_attempt"
    quota_store_path: str = ".batchgen/quota.json"

    # Locally stored credentials (written by CredentialStore.save)
    credentials_path: str = ".batchgen/credentials.json"

    # Batch fan-out: maximum in-flight items, 0 means unbounded
    max_concurrency: int = 0

    @field_validator("gemini_api_base")
    @classmethod
    def validate_api_base(cls, v: str) -> str:
        """Validate API base URL format."""
        if not v.startswith(("http://", "https://")):
            raise ConfigError("GEMINI_API_BASE must be a valid HTTP/HTTPS URL")
        return v.rstrip("/")

    @field_validator("retry_max_attempts", "video_max_polls", "video_daily_limit")
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        """Validate counters and limits are at least 1."""
        if v < 1:
            raise ConfigError(f"Value must be at least 1, got {v}")
        return v

    @field_validator("retry_initial_delay", "video_poll_interval")
    @classmethod
    def validate_non_negative_delay(cls, v: float) -> float:
        """Validate delays are not negative."""
        if v < 0:
            raise ConfigError(f"Delay must not be negative, got {v}")
        return v

    @field_validator("max_concurrency")
    @classmethod
    def validate_max_concurrency(cls, v: int) -> int:
        """Validate concurrency bound."""
        if v < 0:
            raise ConfigError("MAX_CONCURRENCY must be 0 (unbounded) or positive")
        return v

    @property
    def concurrency_limit(self) -> Optional[int]:
        """Maximum in-flight batch items, or None when unbounded."""
        return self.max_concurrency or None


# Singleton instance
try:
    settings = Settings()
except Exception as e:
    # Re-raise as ConfigError for consistency
    if isinstance(e, ConfigError):
        raise
    raise ConfigError(f"Failed to load configuration: {str(e)}") from e
