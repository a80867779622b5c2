"""
Configuration management using pydantic-settings.

Hierarchical configuration with environment variable support.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ControllerSettings(BaseSettings):
    """Polling controller settings shared by every trigger."""

    model_config = SettingsConfigDict(env_prefix="CONTROLLER_")

    fetch_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Metric fetch timeout (defaults to the trigger's polling interval)",
    )
    backoff_multiplier: float = Field(default=2.0, ge=1.0, le=10.0)
    backoff_max_seconds: float = Field(default=300.0, ge=1.0, description="Backoff ceiling")
    auth_failure_threshold: int = Field(
        default=3,
        ge=1,
        description="Consecutive auth failures before a trigger is reported degraded",
    )


class GCSSettings(BaseSettings):
    """Google Cloud Storage metric source settings."""

    model_config = SettingsConfigDict(env_prefix="GCS_")

    project: str | None = Field(default=None)
    max_bucket_items_to_scan: int = Field(default=1000, ge=1)


class MetricsSettings(BaseSettings):
    """Prometheus exporter settings."""

    model_config = SettingsConfigDict(env_prefix="METRICS_")

    prefix: str = Field(default="bucket_scaler")


class AppSettings(BaseSettings):
    """Application-level settings."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: Literal["development", "staging", "production"] = Field(default="development")
    debug: bool = Field(default=True)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000, ge=1, le=65535)
    triggers_file: Path | None = Field(
        default=None,
        description="JSON file with trigger definitions loaded at startup",
    )

    # Nested settings
    controller: ControllerSettings = Field(default_factory=ControllerSettings)
    gcs: GCSSettings = Field(default_factory=GCSSettings)
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)

    @field_validator("triggers_file", mode="before")
    @classmethod
    def validate_triggers_file(cls, v: str | Path | None) -> Path | None:
        if v in (None, ""):
            return None
        return Path(v)

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def is_development(self) -> bool:
        return self.env == "development"


@lru_cache
def get_settings() -> AppSettings:
    """Get cached application settings."""
    return AppSettings()
