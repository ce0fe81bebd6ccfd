"""
Shared configuration management for the UI Rules layer.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="UI_RULES_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Remote catalogs
    default_effects_url: str = Field(default="", description="Base URL of the default effects store")
    default_effects_file: Optional[str] = Field(default=None, description="Local JSON/YAML default effects file")
    flex_features_url: str = Field(
        default="https://homer-assets.s3.eu-west-1.amazonaws.com/flex/flexFeatures.json"
    )
    http_timeout_seconds: float = Field(default=5.0)

    # Catalog cache
    cache_backend: str = Field(default="memory", description="memory or redis")
    catalog_cache_ttl_seconds: int = Field(default=3600)
    redis_url: str = Field(default="redis://localhost:6379/0")

    # Circuit breaker for remote catalogs
    circuit_failure_threshold: int = Field(default=3)
    circuit_recovery_timeout_seconds: float = Field(default=30.0)

    # Rule evaluation
    inactive_condition_mode: str = Field(default="force_false", description="force_false or exclude")
    default_language: str = Field(default="en")


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
