"""Application configuration."""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    skylight_base_url: str = "https://app.ourskylight.com"
    product_lookup_base_url: str = "https://world.openfoodfacts.org/api/v0"
    user_agent: str = "ScanToSky/1.0 (Python)"
    storage_dir: Path = Path("~/.scan-to-sky")
    http_timeout_seconds: float = 15.0
    history_limit: int = 100
    product_cache_ttl_seconds: int = 3600
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    def resolved_storage_dir(self) -> Path:
        """Return the storage directory with ``~`` expanded."""
        return self.storage_dir.expanduser()
