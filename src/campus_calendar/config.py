"""Configuration management for Campus Calendar."""

from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .utils.exceptions import ConfigurationError

load_dotenv()


class BackendConfig(BaseSettings):
    """Hosted backend configuration."""

    # "memory" or "rest"
    kind: str = Field(default="memory", validation_alias="CAMPUS_BACKEND")
    url: Optional[str] = Field(None, validation_alias="CAMPUS_BACKEND_URL")
    api_key: Optional[str] = Field(None, validation_alias="CAMPUS_BACKEND_API_KEY")
    request_timeout: float = Field(default=15.0, validation_alias="CAMPUS_REQUEST_TIMEOUT")
    seed_file: Optional[Path] = Field(None, validation_alias="CAMPUS_SEED_FILE")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_parse_none_str="",  # Treat empty string as None
    )


class AppConfig(BaseSettings):
    """Application configuration."""

    backend: BackendConfig = Field(default_factory=BackendConfig)

    # Dashboard
    timezone: str = Field(default="UTC", validation_alias="CAMPUS_TIMEZONE")
    default_view: str = Field(default="month", validation_alias="CAMPUS_DEFAULT_VIEW")
    aggregate_marker: str = Field(default="main", validation_alias="CAMPUS_AGGREGATE_MARKER")

    # Share links
    share_base_url: str = Field(
        default="http://localhost:5173", validation_alias="CAMPUS_SHARE_BASE_URL"
    )
    share_ttl_days: int = Field(default=30, validation_alias="CAMPUS_SHARE_TTL_DAYS")

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: Optional[Path] = Field(default=None, validation_alias="LOG_FILE")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )


class SeedData:
    """Seed records for the in-memory backend, loaded from YAML."""

    def __init__(self, data: Optional[dict[str, Any]] = None):
        data = data or {}
        self.users: list[dict[str, Any]] = list(data.get("users", []))
        self.universities: list[dict[str, Any]] = list(data.get("universities", []))
        self.calendars: list[dict[str, Any]] = list(data.get("calendars", []))
        self.event_types: list[dict[str, Any]] = list(data.get("event_types", []))
        self.events: list[dict[str, Any]] = list(data.get("events", []))
        self.editor_emails: list[str] = [
            e.lower().strip() for e in data.get("editor_emails", [])
        ]

    @classmethod
    def from_file(cls, path: Path) -> "SeedData":
        """
        Load seed data from a YAML file.

        Raises:
            ConfigurationError: If the file is missing or not a mapping
        """
        if not path.exists():
            raise ConfigurationError(f"Seed file not found: {path}")
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Seed file {path} must contain a mapping")
        return cls(data)


# Global config instance
config = AppConfig()
