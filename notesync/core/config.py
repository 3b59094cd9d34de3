"""
Configuration Management.

Two sources, both located relative to the directory holding the
.project_root marker:

    config/.env                 secrets (API_KEY), read by pydantic-settings
    config/settings/*.yaml      everything else, validated by config_schema

    application.yaml   - app identity, service endpoint, timeouts, paging, sorting
    logging.yaml       - level, format, console and file handlers
    features.yaml      - demo mode and its simulated latency

Usage:
    from notesync.core.config import get_app_config

    page_size = get_app_config().application.pagination.default_page_size
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from notesync.core.config_schema import (
    ApplicationSchema,
    FeaturesSchema,
    LoggingSchema,
)

PROJECT_MARKER = ".project_root"
SETTINGS_DIR = Path("config") / "settings"
ENV_FILE = Path("config") / ".env"


def find_project_root(start: Path | None = None) -> Path:
    """
    Walk up from `start` (default: the working directory) to the marker file.

    Raises:
        RuntimeError: If no ancestor holds the marker
    """
    current = (start or Path.cwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / PROJECT_MARKER).exists():
            return candidate
    raise RuntimeError(f"Project root not found. Ensure {PROJECT_MARKER} file exists.")


def validate_project_root() -> Path:
    """Entry-point variant of find_project_root() that exits with a message."""
    try:
        return find_project_root()
    except RuntimeError as e:
        raise SystemExit(f"Error: {e}") from e


def load_yaml_config(filename: str) -> dict[str, Any]:
    """
    Read one file from config/settings/.

    An empty file yields an empty dict.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    config_path = find_project_root() / SETTINGS_DIR / filename
    if not config_path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_path.open(encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _load_validated(schema_cls: type[BaseModel], filename: str) -> Any:
    try:
        return schema_cls.model_validate(load_yaml_config(filename))
    except ValidationError as e:
        raise ValueError(f"Invalid configuration in {filename}:\n{e}") from e


class Settings(BaseSettings):
    """Secrets from config/.env. Missing values default to empty."""

    api_key: str = ""

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class AppConfig(BaseModel):
    """The three validated YAML files, one attribute each."""

    application: ApplicationSchema
    logging: LoggingSchema
    features: FeaturesSchema

    model_config = ConfigDict(frozen=True)

    @classmethod
    def load(cls) -> "AppConfig":
        """
        Read and validate every settings file.

        Raises:
            FileNotFoundError: If a settings file is missing
            ValueError: If a file does not match its schema
        """
        return cls(
            application=_load_validated(ApplicationSchema, "application.yaml"),
            logging=_load_validated(LoggingSchema, "logging.yaml"),
            features=_load_validated(FeaturesSchema, "features.yaml"),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings(_env_file=str(find_project_root() / ENV_FILE))


@lru_cache
def get_app_config() -> AppConfig:
    return AppConfig.load()


def get_api_base_url() -> tuple[str, float]:
    """
    Notes service endpoint.

    Returns:
        Tuple of (base_url without trailing slash, timeout_seconds), the
        timeout being the larger of the connect and read timeouts.
    """
    app = get_app_config().application
    timeout = float(max(app.timeouts.connect, app.timeouts.read))
    return app.api.base_url.rstrip("/"), timeout
