"""
Shared configuration management for the Webhook Relay.
"""

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEVELOPMENT_ENVS = ("local", "development", "dev")


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="production", validation_alias="RELAY_ENV")
    log_level: str = Field(default="info", validation_alias="RELAY_LOG_LEVEL")

    # Service
    host: str = Field(default="0.0.0.0", validation_alias="RELAY_HOST")
    port: int = Field(default=8000, validation_alias="RELAY_PORT")

    # External services
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        validation_alias=AliasChoices("RELAY_REDIS_URL", "REDIS_URL"),
    )

    @property
    def expose_error_details(self) -> bool:
        """Error detail is only surfaced to callers in development setups."""
        return self.env.lower() in DEVELOPMENT_ENVS


class RelayConfig(BaseConfig):
    """Relay-specific configuration."""

    service_name: str = "relay"

    # Upstream webhook
    webhook_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("RELAY_WEBHOOK_URL", "DISCORD_WEBHOOK_URL"),
    )
    user_agent: str = Field(default="Webhook-Relay/1.0", validation_alias="RELAY_USER_AGENT")
    forward_timeout_seconds: float = Field(
        default=10.0,
        validation_alias="RELAY_FORWARD_TIMEOUT_SECONDS",
    )

    # Security
    client_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("RELAY_CLIENT_KEY", "CLIENT_KEY"),
    )
    shared_secret: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("RELAY_SHARED_SECRET", "SHARED_SECRET"),
    )
    signature_tolerance_seconds: int = Field(
        default=30,
        validation_alias="RELAY_SIGNATURE_TOLERANCE_SECONDS",
    )

    # Rate limiting
    rate_limit_max: int = Field(default=1, validation_alias="RELAY_RATE_LIMIT_MAX")
    rate_limit_window_seconds: int = Field(
        default=60,
        validation_alias="RELAY_RATE_LIMIT_WINDOW_SECONDS",
    )


@lru_cache(maxsize=1)
def get_config() -> RelayConfig:
    """Get the process-wide relay configuration, read once from the environment."""
    return RelayConfig()
