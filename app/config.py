"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


class Settings(BaseSettings):
    """Application configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        description="Database connection URL used by SQLAlchemy to connect to the DB",
        min_length=1,
    )
    app_timezone: str = Field(
        default="UTC",
        description="IANA timezone name (or UTC+HH:MM offset) used for queue timestamps",
    )
    log_level: str = Field(default="INFO", description="Root logging level")

    sendgrid_api_key: str | None = Field(
        default=None,
        description="SendGrid API key used for sending notification emails via the REST API",
    )
    sendgrid_sender: str | None = Field(
        default=None,
        description="Email address that will appear as the sender of notification emails",
        min_length=3,
    )
    site_name: str = Field(
        default="Easy Kanban", description="Name shown in notification subjects"
    )
    site_url: str | None = Field(
        default=None, description="Base URL used to build links back to tasks"
    )

    notification_delay_minutes: int = Field(
        default=30,
        ge=0,
        description="Default accumulation window; 0 queues every event for immediate delivery",
    )
    dispatcher_enabled: bool = Field(
        default=True, description="Run the periodic dispatch sweep inside the API process"
    )
    dispatch_interval_seconds: int = Field(
        default=60, gt=0, description="Seconds between two dispatch sweeps"
    )
    dispatch_batch_size: int = Field(
        default=50, gt=0, description="Maximum number of entries handled per sweep"
    )
    max_retries: int = Field(
        default=3, gt=0, description="Delivery attempts before an entry is marked failed"
    )
    retry_backoff_minutes: int = Field(
        default=5, ge=0, description="Initial delay before retrying a failed delivery"
    )
    retry_backoff_max_minutes: int = Field(
        default=60, ge=0, description="Upper bound for the exponential retry delay"
    )
    flush_on_shutdown: bool = Field(
        default=True,
        description="Deliver every pending notification when the dispatcher shuts down",
    )
    send_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Maximum time a single delivery attempt may take"
    )
    demo_enabled: bool = Field(
        default=False, description="Demo deployments never queue notifications"
    )
    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Origins allowed to call the admin API from a browser",
    )

    @model_validator(mode="after")
    def _validate_sendgrid_pair(self) -> "Settings":
        if bool(self.sendgrid_api_key) ^ bool(self.sendgrid_sender):
            raise ValueError(
                "SENDGRID_API_KEY and SENDGRID_SENDER must both be provided to enable email"
            )
        if self.sendgrid_sender and "@" not in self.sendgrid_sender:
            raise ValueError("SENDGRID_SENDER must be a valid email address")
        if self.retry_backoff_max_minutes < self.retry_backoff_minutes:
            raise ValueError(
                "RETRY_BACKOFF_MAX_MINUTES must not be lower than RETRY_BACKOFF_MINUTES"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
