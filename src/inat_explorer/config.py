"""
Application settings.

Values come from environment variables prefixed with ``INAT_EXPLORER_`` (or a
local ``.env`` file), falling back to the defaults below.

Usage::

    from inat_explorer.config import get_settings

    settings = get_settings()
    print(settings.cache_dir)
"""

from __future__ import annotations

import logging
import sys
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


class Settings(BaseSettings):
    """Runtime configuration for the query pipeline and CLI."""

    model_config = SettingsConfigDict(
        env_prefix="INAT_EXPLORER_",
        env_file=".env",
        extra="ignore",
    )

    app_name: str = "inat-explorer"
    app_env: str = "development"
    debug: bool = False
    log_level: str = "WARNING"

    # Upstream API
    api_base: str = "https://api.inaturalist.org/v1"
    api_token: str | None = Field(default=None, description="iNaturalist API token (JWT)")
    request_interval: float = Field(default=1.0, gt=0, description="Seconds between API calls")
    http_timeout: float = 30.0
    http_retries: int = Field(default=0, ge=0)

    # Retrieval ceilings
    max_results: int = Field(default=10_000, gt=0)
    max_pages: int = Field(default=50, gt=0)

    # Request cache
    cache_dir: Path = Path("data/cache")
    cache_ttl_hours: float | None = 1.0


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings (read once)."""
    return Settings()


def configure_logging(level: str | int = logging.WARNING, fmt: str = DEFAULT_LOG_FORMAT) -> None:
    """Send log records to stderr at ``level``.

    Replaces any handlers already installed on the root logger so repeated
    calls (e.g. from tests) don't duplicate output.
    """
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt))
    root.addHandler(handler)
    root.setLevel(level.upper() if isinstance(level, str) else level)
