"""
Runtime settings for docmigrate.

Values come from environment variables, optionally loaded from a `.env`
file in the project root.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from docmigrate.core.exceptions import ConfigurationError

# backend/docmigrate/core/config.py -> backend -> project root
DEFAULT_ENV_PATH = Path(__file__).resolve().parents[3] / ".env"

TRUE_VALUES = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Connection and execution settings for a migration run."""

    mongo_uri: str = Field(default="mongodb://localhost:27017", description="MongoDB connection string.")
    db_name: str = Field(default="docmigrate-dev", min_length=1)
    batch_size: int = Field(default=500, ge=1, description="Pending updates per bulk write.")
    fail_fast: bool = Field(default=True, description="Stop the runner at the first failed migration.")
    dry_run: bool = False
    log_level: str = "INFO"
    timeout_ms: int = Field(default=5000, ge=1, description="Server selection timeout.")


def _flag(value: str | None) -> bool | None:
    if value is None:
        return None
    return value.strip().lower() in TRUE_VALUES


def load_settings(env_file: Path | None = None, environ: Mapping[str, str] | None = None) -> Settings:
    """
    Build settings from the environment.

    Args:
        env_file: Optional .env file; defaults to the project root .env
        environ: Mapping to read instead of os.environ (used by tests)

    Returns:
        Validated settings

    Raises:
        ConfigurationError: If a value cannot be parsed or fails validation
    """
    if environ is None:
        load_dotenv(env_file or DEFAULT_ENV_PATH)
        environ = os.environ

    raw = {
        "mongo_uri": environ.get("MONGO_URI"),
        "db_name": environ.get("DB_NAME"),
        "batch_size": environ.get("MIGRATION_BATCH_SIZE"),
        "fail_fast": _flag(environ.get("MIGRATION_FAIL_FAST")),
        "dry_run": _flag(environ.get("MIGRATION_DRY_RUN")),
        "log_level": environ.get("LOG_LEVEL"),
        "timeout_ms": environ.get("MONGO_TIMEOUT_MS"),
    }

    try:
        return Settings(**{key: value for key, value in raw.items() if value is not None})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid migration settings: {e}", details={"errors": e.errors()}) from e
