"""
Shared configuration management for the dataset gateway.
"""

from typing import FrozenSet, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Object store (Supabase-compatible storage + PostgREST)
    object_store_url: str = Field(default="http://localhost:54321")
    object_store_key: str = Field(default="")
    data_bucket: str = Field(default="api-data")
    logs_bucket: str = Field(default="api-logs")
    credentials_table: str = Field(default="apis")
    store_timeout_seconds: float = Field(default=10.0)

    # Dataset cache
    cache_dir: str = Field(default="/tmp/api-cache")
    cache_expiration_seconds: float = Field(default=300.0)
    cache_bypass_tokens: str = Field(default="debug,test")

    # HTTP surface
    cors_allow_origins: str = Field(default="*")

    @property
    def bypass_tokens(self) -> FrozenSet[str]:
        """Routing tokens that force a live fetch."""
        return frozenset(_split_csv(self.cache_bypass_tokens))

    @property
    def allowed_origins(self) -> List[str]:
        return _split_csv(self.cors_allow_origins)


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
