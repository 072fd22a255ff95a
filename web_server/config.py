"""Application configuration via pydantic-settings."""

import logging
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# env_logger style names mapped onto stdlib logging levels
LOG_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "off": logging.CRITICAL + 10,
}


def parse_level_directives(value: str) -> str:
    """Pick the global level out of an env_logger style directive list.

    ``info,actix_web=warn`` yields ``info``. Per-target items (``target=level``)
    and bare target names are skipped; the last bare level wins. Without one
    the default ``info`` applies.
    """
    level = "info"
    for item in value.split(","):
        item = item.strip().lower()
        if "=" in item:
            continue
        if item in LOG_LEVELS:
            level = item
    return level


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", frozen=True
    )

    # host:port for the HTTP listener
    LISTEN: str = "127.0.0.1:8081"

    # Minimum log severity. RUST_LOG is still honoured for existing deployments.
    LOG_LEVEL: str = Field(
        default="info",
        validation_alias=AliasChoices("LOG_LEVEL", "RUST_LOG"),
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        return parse_level_directives(value)

    @property
    def log_level(self) -> int:
        """Numeric stdlib logging level."""
        return LOG_LEVELS[self.LOG_LEVEL]


LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: int) -> None:
    """Initialize root logging once, before any other log line is emitted."""
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)


def load_settings() -> Settings:
    """Read settings from the environment and .env."""
    return Settings()


class BuildSettings(BaseSettings):
    """Switches read by the setuptools build hook."""

    model_config = SettingsConfigDict(env_prefix="WEB_SERVER_", extra="ignore", frozen=True)

    # Frontend project holding package.json and dist/ (default: parent of this project)
    FRONTEND_ROOT: Optional[Path] = None

    # Embed an already built dist/ without running the install/build commands
    SKIP_FRONTEND_BUILD: bool = False
