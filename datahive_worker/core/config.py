"""
Core configuration and settings for the DataHive worker.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Worker settings loaded from environment variables (``DATAHIVE_*``)."""

    model_config = SettingsConfigDict(
        env_prefix="DATAHIVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_version: str = "0.2.4"
    environment: Literal["development", "staging", "production"] = "development"

    # API
    api_base_url: str = "https://api.datahive.ai/api"
    api_timeout: float = 30.0  # seconds, for calls to the job API itself
    jwt: str | None = None
    device_id: str | None = None
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    # Job loop timing (milliseconds)
    job_interval: int = Field(default=60_000, ge=0)
    ping_interval: int = Field(default=120_000, gt=0)
    config_refresh_interval: int = Field(default=5 * 60 * 1000, gt=0)

    # Defaults the server may override via /configuration
    reload_after_jobs: int = Field(default=0, ge=0)
    max_concurrent_jobs: int = Field(default=1, ge=1)
    enable_performance_tracking: bool = False
    timeout: int = 60_000  # ms, default page load timeout for offscreen steps

    # Headless browser
    browser_enabled: bool = True
    headless: bool = True

    # Logging
    log_level: str = "INFO"
    json_logs: bool = False

    @property
    def has_credentials(self) -> bool:
        return bool(self.jwt) and bool(self.device_id)

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Endpoints are appended as ``/job``, ``/ping`` etc."""
        if not v:
            raise ValueError("api_base_url cannot be empty")
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Only the CLI entry point should call this; components receive their
    ``Settings`` explicitly.
    """
    return Settings()
