"""
Runtime configuration for the calendar core.

Settings are read from an optional YAML file (path in ``CALCORE_CONFIG``)
and then overridden by environment variables, so a deployment can ship
defaults in a file and tweak individual values per container.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Environment variable -> Settings field
ENV_FIELDS = {
    "DATABASE_URL": "database_url",
    "LOG_LEVEL": "log_level",
    "LOG_FORMAT": "log_format",
    "USER_ID_HEADER": "user_id_header",
    "MAX_OCCURRENCES_PER_EVENT": "max_occurrences_per_event",
    "MAX_QUERY_RANGE_DAYS": "max_query_range_days",
    "DB_POOL_MIN_SIZE": "db_pool_min_size",
    "DB_POOL_MAX_SIZE": "db_pool_max_size",
    "HOST": "host",
    "PORT": "port",
}


class Settings(BaseModel):
    """Service settings."""

    database_url: Optional[str] = Field(
        None,
        description="PostgreSQL DSN; an in-memory store is used when unset",
    )
    log_level: str = Field("INFO", description="Root logging level")
    log_format: str = Field(
        DEFAULT_LOG_FORMAT, description="logging format string"
    )
    user_id_header: str = Field(
        "X-User-Id",
        description="Header carrying the authenticated principal id",
    )
    max_occurrences_per_event: int = Field(
        5000,
        gt=0,
        description="Safety cap on occurrences produced by one expansion",
    )
    max_query_range_days: int = Field(
        366, gt=0, description="Longest accepted occurrence query range"
    )
    db_pool_min_size: int = Field(1, ge=0)
    db_pool_max_size: int = Field(10, gt=0)
    host: str = Field("0.0.0.0")
    port: int = Field(8000, gt=0)

    @field_validator("log_level")
    @classmethod
    def normalise_log_level(cls, v: str) -> str:
        return v.upper()


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning(f"Configuration file not found: {path}")
        return {}

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    if not data:
        return {}
    if not isinstance(data, dict):
        raise ValueError(
            f"Configuration file must contain a YAML dictionary: {path}"
        )
    return data


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from the optional YAML file and the environment."""
    env = os.environ if environ is None else environ

    values: Dict[str, Any] = {}
    config_path = env.get("CALCORE_CONFIG")
    if config_path:
        values.update(_read_yaml(Path(config_path).expanduser()))

    for env_name, field_name in ENV_FIELDS.items():
        if env.get(env_name):
            values[field_name] = env[env_name]

    settings = Settings(**values)
    logger.debug(
        "Loaded settings",
        extra={
            "config_file": config_path,
            "uses_database": settings.database_url is not None,
        },
    )
    return settings


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure logging from settings (or the environment)."""
    settings = settings or load_settings()
    numeric_level = getattr(logging, settings.log_level, None)
    if not isinstance(numeric_level, int):
        print(f"Invalid log level: {settings.log_level}, defaulting to INFO")
        numeric_level = logging.INFO

    logging.basicConfig(
        level=numeric_level,
        format=settings.log_format,
        force=True,
    )
