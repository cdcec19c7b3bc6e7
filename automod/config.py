"""Runtime settings for automod.

Values come from ``AUTOMOD_*`` environment variables (or a ``.env`` file in
the working directory). Stores fall back to subdirectories of
``settings.data_dir`` when no explicit ``base_dir`` is passed.

Usage::

    from automod.config import get_settings
    settings = get_settings()
    settings.store_dir("rules")
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Settings(BaseSettings):
    """Application settings loaded from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="AUTOMOD_",
        env_file=".env",
        extra="ignore",
    )

    data_dir: Path = Field(
        default=Path.home() / ".automod",
        description="Root directory for rule, workflow and audit files",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Level passed to logging.basicConfig by the CLI and web app",
    )

    default_rule_priority: int = Field(
        default=5,
        description="Priority given to rules created without one",
    )

    reject_priority_threshold: int = Field(
        default=8,
        description="A matched rule at or above this priority makes the pipeline recommend REJECT",
    )

    require_reject_comment: bool = Field(
        default=True,
        description="Refuse workflow rejections that carry no review comment",
    )

    def store_dir(self, area: str) -> Path:
        """Return the directory used by the store for *area*."""
        return self.data_dir / area


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for an entry point (CLI or web app)."""
    logging.basicConfig(
        level=level or get_settings().log_level,
        format=LOG_FORMAT,
    )
