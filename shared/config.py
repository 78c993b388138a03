"""
Shared configuration management for the Climate Risk API.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="CLIMATE_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    cors_origin: str = Field(default="*")

    # Spatial store
    postgres_dsn: str = Field(default="postgresql://postgres@localhost:5432/sarva")
    db_pool_min_size: int = Field(default=2)
    db_pool_max_size: int = Field(default=20)
    db_command_timeout: float = Field(default=30.0)

    # Response cache
    cache_enabled: bool = Field(default=True)
    cache_max_size: int = Field(default=200)
    cache_default_ttl: int = Field(default=3600)
    cache_tiered_ttl: bool = Field(default=True)
    cache_etag: bool = Field(default=True)

    # Cache warming
    cache_warm_on_startup: bool = Field(default=True)
    cache_warm_scenario: str = Field(default="ssp245")
    cache_warm_period: str = Field(default="near-term_2021-2040")
    cache_warm_batch_size: int = Field(default=5)
    cache_warm_timeout: float = Field(default=30.0)


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
