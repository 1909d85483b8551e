"""
FluentPro - Configuration and settings.

FluentproSettings holds what the onboarding flow and its shell need:
backend location, collaborator timeout, environment and logging.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FluentproSettings(BaseSettings):
    """
    Application settings.

    Loaded from environment variables and an optional .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Backend API
    fluentpro_api_base_url: str = "https://api.fluentpro.com/v1"
    fluentpro_api_token: str | None = None  # Used by the CLI; the web app forwards the caller's token

    # Collaborator calls (role matching, course recommendation, persistence)
    collaborator_timeout_seconds: float = Field(default=20.0, gt=0, le=120)

    # Web sessions untouched for this long are dropped and their clients closed
    onboarding_session_ttl_seconds: float = Field(default=3600.0, gt=0)

    # Application
    fluentpro_env: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # CORS for the web frontend dev server
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    @property
    def is_development(self) -> bool:
        return self.fluentpro_env == "development"

    @property
    def is_production(self) -> bool:
        return self.fluentpro_env == "production"


@lru_cache
def get_settings() -> FluentproSettings:
    """Get cached settings instance."""
    return FluentproSettings()


class _SettingsProxy:
    """Lazy proxy for settings to avoid loading .env at import time."""

    _instance: FluentproSettings | None = None

    def __getattr__(self, name: str):
        if self._instance is None:
            self._instance = get_settings()
        return getattr(self._instance, name)


settings = _SettingsProxy()
