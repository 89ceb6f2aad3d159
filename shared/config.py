"""
Shared configuration management for the ISPyB Sessions service.
"""

from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = ("critical", "error", "warning", "info", "debug")


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local", validation_alias=AliasChoices("SESSIONS_ENV", "env"))
    log_level: str = Field(default="info")

    # Observability
    otel_collector_url: Optional[str] = Field(default=None)
    enable_console_tracing: bool = Field(default=False)

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        if value.lower() not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {value}")
        return value.lower()

    @property
    def enable_tracing(self) -> bool:
        """Spans are recorded when they are exported somewhere."""
        return bool(self.otel_collector_url) or self.enable_console_tracing


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str = "sessions"
    port: int = Field(default=80)
    host: str = Field(default="0.0.0.0")

    # ISPyB database
    database_url: str = Field(default="mysql://localhost:3306/ispyb")
    database_pool_size: int = Field(default=5, ge=1)
    database_timeout_seconds: float = Field(default=10.0, gt=0)

    # Open Policy Agent
    opa_url: str = Field(default="http://localhost:8181/v0/data/diamond/policy/session/read")
    policy_timeout_seconds: float = Field(default=5.0, gt=0)


def get_config(**overrides) -> ServiceConfig:
    """Get configuration, letting explicit overrides win over the environment."""
    return ServiceConfig(**{key: value for key, value in overrides.items() if value is not None})
