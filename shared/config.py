"""
Shared configuration management for the LTI Consumer services.
"""

from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings.

    Instances are frozen: the configuration is built once at startup and
    handed to every component that needs it.
    """

    model_config = SettingsConfigDict(
        env_prefix="LTI_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Consumer identity; consumer_url is the issuer of every ID Token and is
    # stored without a trailing slash
    consumer_url: str
    encryption_key: SecretStr

    # Routes
    login_route: str = Field(default="/login")
    accesstoken_route: str = Field(default="/accesstoken")
    deep_linking_route: str = Field(default="/deeplinking")
    memberships_route: str = Field(default="/memberships")

    # Nonce ledger
    nonce_backend: str = Field(default="memory")
    redis_url: str = Field(default="redis://localhost:6379/0")
    nonce_retention_seconds: Optional[int] = Field(default=None)

    # Tool key sets
    jwks_cache_ttl: int = Field(default=300)
    jwks_http_timeout: float = Field(default=5.0)
    jwks_failure_threshold: int = Field(default=5)
    jwks_recovery_timeout: float = Field(default=30.0)

    # Launch hints
    launch_hint_ttl: Optional[int] = Field(default=600)

    @field_validator("consumer_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("nonce_retention_seconds")
    @classmethod
    def _retention_unset_when_not_positive(cls, value: Optional[int]) -> Optional[int]:
        # Zero keeps nonces forever, like an unset value
        if value is not None and value <= 0:
            return None
        return value

    @field_validator("nonce_backend")
    @classmethod
    def _known_backend(cls, value: str) -> str:
        value = value.lower()
        if value not in ("memory", "redis"):
            raise ValueError(f"Unsupported nonce backend: {value}")
        return value


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
