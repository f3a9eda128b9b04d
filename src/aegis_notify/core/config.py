"""Application configuration loaded from environment and config files."""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings


class BackendConfig(BaseSettings):
    """Backend REST service configuration (users and groups)."""

    model_config = {"env_prefix": "AEGIS_BACKEND_"}

    base_url: str = "http://localhost:8080"
    api_token: str | None = None
    timeout_seconds: float = 10.0
    max_retries: int = 1
    retry_backoff_seconds: float = 0.5


class PushConfig(BaseSettings):
    """Push-delivery service configuration."""

    model_config = {"env_prefix": "AEGIS_PUSH_"}

    base_url: str = "http://localhost:8080"
    api_token: str | None = None
    timeout_seconds: float = 30.0
    default_channel: str = "default"


class NotifyConfig(BaseSettings):
    """Chat notification rendering configuration."""

    model_config = {"env_prefix": "AEGIS_NOTIFY_"}

    templates_path: str | None = None
    body_max_length: int = Field(default=100, ge=0)
    ellipsis: str = "..."
    default_title: str = "New message"


class GroupsCacheConfig(BaseSettings):
    """User group-list cache configuration."""

    model_config = {"env_prefix": "AEGIS_GROUPS_CACHE_"}

    ttl_seconds: float = 30.0


class TelemetryConfig(BaseSettings):
    """Pipeline telemetry configuration."""

    model_config = {"env_prefix": "AEGIS_TELEMETRY_"}

    log_dir: str | None = None
    log_file: str = "pipeline_events.jsonl"
    max_events: int = Field(default=1000, ge=1)


class Settings(BaseSettings):
    """Root application settings."""

    model_config = {"env_prefix": "AEGIS_"}

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    backend: BackendConfig = Field(default_factory=BackendConfig)
    push: PushConfig = Field(default_factory=PushConfig)
    notify: NotifyConfig = Field(default_factory=NotifyConfig)
    groups_cache: GroupsCacheConfig = Field(default_factory=GroupsCacheConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)


def configure_logging(settings: Settings) -> None:
    """Apply the configured log level to the root logger."""
    level = logging.DEBUG if settings.debug else settings.log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
