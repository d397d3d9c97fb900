"""
Configuration management using Pydantic settings.

All configuration values are loaded from environment variables or .env file.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .models.session import PollingConfig, RetryPolicy


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Status API Configuration
    status_api_base_url: str = "http://localhost:5000/api"
    status_api_timeout: float = 30.0
    status_api_max_requests: int = 120  # Requests allowed per rate window
    status_api_rate_window_seconds: float = 60.0

    # Polling Defaults (milliseconds)
    polling_initial_delay_ms: int = 1000
    polling_retry_intervals_ms: list[int] = [2000, 5000, 10000, 30000]
    polling_max_retries: int = 10
    polling_backoff_multiplier: float = 1.5
    polling_timeout_ms: int = 300000  # 5 minutes
    polling_jitter_max_ms: int = 1000

    # 404 / Rate Limit Retry Policy
    processing_window_ms: int = 300000
    stale_not_found_retry_limit: int = 3
    rate_limited_min_delay_ms: int = 30000
    hidden_delay_multiplier: float = 2.0  # Applied while the page is hidden

    # Session Management
    session_removal_grace_seconds: float = 5.0
    session_snapshot_path: Optional[str] = None
    stale_component_max_age_ms: int = 300000
    maintenance_interval: int = 60  # Background cleanup every minute

    # Server Configuration
    port: int = 8080
    host: str = "127.0.0.1"
    reload: bool = False

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "text"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def polling_config(self) -> PollingConfig:
        """
        Build the default polling configuration snapshot.

        Returns:
            PollingConfig populated from the polling_* settings
        """
        return PollingConfig(
            initial_delay_ms=self.polling_initial_delay_ms,
            retry_intervals_ms=list(self.polling_retry_intervals_ms),
            max_retries=self.polling_max_retries,
            backoff_multiplier=self.polling_backoff_multiplier,
            timeout_ms=self.polling_timeout_ms,
            jitter_max_ms=self.polling_jitter_max_ms,
        )

    def retry_policy(self) -> RetryPolicy:
        """Build the 404 / rate-limit retry thresholds."""
        return RetryPolicy(
            processing_window_ms=self.processing_window_ms,
            stale_not_found_retry_limit=self.stale_not_found_retry_limit,
            rate_limited_min_delay_ms=self.rate_limited_min_delay_ms,
        )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Singleton Settings instance loaded from environment.

    Note:
        Uses lru_cache to ensure settings are loaded only once.
        To reload settings (e.g., in tests), call get_settings.cache_clear()
    """
    return Settings()
