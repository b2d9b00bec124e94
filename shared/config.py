"""
Shared configuration management for the Conditional Container service.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="CONTAINER_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Host environment flags
    preview: bool = Field(default=False, description="Surface diagnostics to the host")
    interact: bool = Field(default=False, description="Authoring mode, children always render")

    # Lookup backoff
    lookup_initial_delay_ms: float = Field(default=10.0, gt=0)
    lookup_backoff_multiplier: float = Field(default=1.5, ge=1.0)
    lookup_max_wait_ms: float = Field(default=5000.0, ge=0)

    # Evaluation
    profile_fetch_timeout_seconds: float = Field(default=10.0, gt=0)
    not_equal_polarity: Literal["inverted", "plain"] = Field(default="inverted")


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
