"""Configuration management.

Loads from an optional TOML file + environment variables.
Uses pydantic-settings for validation and env var overriding.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from .errors import ConfigError


class ObservabilityConfig(BaseModel):
    log_level: str = "INFO"
    log_format: str = "json"  # "json" or "console"


class Settings(BaseSettings):
    """Top-level settings for the event index and object store."""

    # Index store
    index_url: str = "sqlite+aiosqlite:///cloud_event_index.db"
    index_pool_size: int = 5
    index_echo: bool = False

    # Object store
    bucket_name: str = "cloud-events"
    s3_endpoint_url: str | None = None  # e.g. a local MinIO
    s3_region: str = "us-east-2"

    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    model_config = {"env_prefix": "CLOUDEVENT_", "env_nested_delimiter": "__"}

    def validate_store(self) -> None:
        """Ensure both stores are addressable."""
        if not self.index_url:
            raise ConfigError("index_url must be set (CLOUDEVENT_INDEX_URL).")
        if not self.bucket_name:
            raise ConfigError("bucket_name must be set (CLOUDEVENT_BUCKET_NAME).")


def load_settings(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Load settings from TOML file + env vars.

    Args:
        config_path: Path to TOML config file (optional).
        overrides: Dict of overrides to apply on top.
    """
    data: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            import tomli

            with open(path, "rb") as f:
                data = tomli.load(f)

    if overrides:
        data.update(overrides)

    return Settings(**data)
