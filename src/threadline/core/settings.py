"""Application settings and configuration.

This module defines all configuration options for the Threadline service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Threadline", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # HTTP server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8080, alias="PORT")
    log_level: str = Field(default="info", alias="LOG_LEVEL")

    # Public URL where the app is hosted (for Open Graph meta tags)
    public_url: str = Field(default="https://sklonger.app", alias="PUBLIC_URL")

    # Bluesky AppView access
    bluesky_api_url: str = Field(
        default="https://public.api.bsky.app",
        alias="BLUESKY_API_URL",
    )
    request_timeout_seconds: float = Field(default=10.0, alias="REQUEST_TIMEOUT_SECONDS")
    user_agent: str = Field(default="threadline/0.1", alias="USER_AGENT")

    # Upper bound on parent hops when locating the root of a chain
    max_root_hops: int = Field(default=1000, ge=1, alias="MAX_ROOT_HOPS")

    # Client-side polling for new replies
    poll_enabled: bool = Field(default=True, alias="POLL_ENABLED")
    poll_initial_interval_seconds: int = Field(
        default=30,
        ge=1,
        alias="POLL_INITIAL_INTERVAL_SECONDS",
    )
    poll_max_interval_seconds: int = Field(
        default=120,
        ge=1,
        alias="POLL_MAX_INTERVAL_SECONDS",
    )
    poll_disable_after_seconds: int = Field(
        default=1800,
        ge=0,
        alias="POLL_DISABLE_AFTER_SECONDS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.strip().lower()

    @property
    def public_base_url(self) -> str:
        """Return the public URL without a trailing slash."""
        return self.public_url.rstrip("/")


settings = Settings()
