"""
Shared configuration management for the Publishing Access Layer.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings.

    Every field can be overridden through an ``ACCESS_``-prefixed
    environment variable (``ACCESS_REDIS_URL``, ``ACCESS_LOG_LEVEL`` ...)
    or a local ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="ACCESS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = "local"
    log_level: str = "info"

    # External services
    redis_url: str = "redis://localhost:6379/0"
    postgres_dsn: str = "postgres://localhost:5432/access"

    # Observability
    enable_tracing: bool = False
    otel_exporter: Optional[str] = "http://localhost:4317"
    enable_console_tracing: bool = False

    # Experiments
    exposure_ttl_seconds: int = 3600
    max_experiments: int = 1000


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)
