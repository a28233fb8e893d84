"""Application configuration — env vars, YAML files, defaults."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings


def _repo_root() -> Path:
    """Find the repository root (directory containing pyproject.toml)."""
    current = Path(__file__).resolve().parent.parent
    if (current / "pyproject.toml").exists():
        return current
    return Path.cwd()


REPO_ROOT = _repo_root()

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class EngineKind(str, Enum):
    """Supported database engines — embedded file (SQLite) or networked server (PostgreSQL)."""

    EMBEDDED = "embedded"
    NETWORKED = "networked"

    @property
    def requires_network_address(self) -> bool:
        return self is EngineKind.NETWORKED

    @property
    def address_prefix(self) -> str:
        if self is EngineKind.NETWORKED:
            return "postgresql+psycopg2://"
        return "sqlite:///"


class DatabaseConfig(BaseSettings):
    engine: EngineKind = EngineKind.EMBEDDED
    name: str = ""
    address: str = "localhost"
    port: str = "5432"
    username: str | None = None
    password: str | None = None
    probe_timeout: float = 1.0
    connect_timeout: float = 10.0

    model_config = {"env_prefix": "SQLUTIL_DB_", "coerce_numbers_to_str": True}


class AppConfig(BaseSettings):
    """Top-level configuration."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    log_level: str = "info"
    worker_threads: int = 4

    model_config = {"env_prefix": "SQLUTIL_"}

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> AppConfig:
        """Load config from YAML file, with env var overrides."""
        if path is None:
            path = REPO_ROOT / "config" / "sqlutil.yml"

        values: dict[str, Any] = {}
        if path.exists():
            with open(path) as f:
                values = yaml.safe_load(f) or {}

        return cls(**values)


def configure_logging(config: AppConfig) -> None:
    """Apply the configured log level and the package log format."""
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
