"""
Shared configuration management for the donor screening service.
"""

from typing import Dict

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="SCREENING_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local", description="Deployment environment")
    log_level: str = Field(default="info", description="Log level")

    # Storage
    postgres_dsn: str = Field(default="postgres://localhost:5432/screening")
    storage_backend: str = Field(default="postgres", description="postgres or memory")

    # Batch evaluation
    batch_chunk_size: int = Field(default=3, ge=1)
    batch_pause_seconds: float = Field(default=1.0, ge=0)
    batch_default_limit: int = Field(default=50, ge=1)

    # Score penalties per matched severity
    penalty_critical: int = Field(default=100, ge=0)
    penalty_high: int = Field(default=30, ge=0)
    penalty_medium: int = Field(default=15, ge=0)
    penalty_low: int = Field(default=5, ge=0)

    def severity_penalties(self) -> Dict[str, int]:
        """Penalty table keyed by severity name."""
        return {
            "critical": self.penalty_critical,
            "high": self.penalty_high,
            "medium": self.penalty_medium,
            "low": self.penalty_low,
        }


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
