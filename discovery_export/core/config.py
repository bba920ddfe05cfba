"""
Export configuration management.

Loads organization profiles and database settings from a YAML file.
Database settings not present in the file fall back to DB_* environment
variables.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from discovery_export.core.exceptions import ConfigurationError
from discovery_export.core.models import OrganizationProfile


class DatabaseSettings(BaseModel):
    """
    Connection settings for the catalog database.

    Attributes:
        host: Database host
        port: Database port
        name: Database name
        user: Database user
        password: Database password
        statement_timeout_seconds: Upper bound for a single query
    """

    host: str = "localhost"
    port: int = 5432
    name: str = "evergreen"
    user: str = "evergreen"
    password: str | None = None
    statement_timeout_seconds: int = Field(default=600, ge=0)

    @classmethod
    def from_sources(cls, section: dict[str, Any] | None) -> "DatabaseSettings":
        """Merge a YAML `database` section over DB_* environment variables."""
        env = {
            "host": os.getenv("DB_HOST"),
            "port": os.getenv("DB_PORT"),
            "name": os.getenv("DB_NAME"),
            "user": os.getenv("DB_USER"),
            "password": os.getenv("DB_PASSWORD"),
        }
        merged = {key: value for key, value in env.items() if value}
        merged.update({key: value for key, value in (section or {}).items() if value is not None})
        return cls(**merged)


class ExportConfig(BaseModel):
    """
    Complete export configuration.

    Attributes:
        database: Catalog database settings
        holdings_chunk_size: Record ids bound per holdings query
        organizations: Organization profiles in file order
    """

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    holdings_chunk_size: int = Field(default=500, gt=0)
    organizations: list[OrganizationProfile] = Field(..., min_length=1)

    @field_validator("organizations")
    @classmethod
    def check_unique_names(cls, v):
        """Organization names select profiles, so they must be unique."""
        names = [profile.name for profile in v]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate organization names: {', '.join(duplicates)}")
        return v


class ExportConfigLoader:
    """
    Loads export configuration from a YAML file.

    Expected YAML format:
    ```yaml
    database:
      host: localhost
      name: evergreen
    organizations:
      - name: Example Library
        orgs: [4, 5]
        source_id: example
        agency_code: EXL
        transfer:
          host: sftp.example.org
          user: exl
          password: secret
    ```
    """

    def __init__(self, config_path: str | Path):
        """
        Initialize the config loader.

        Args:
            config_path: Path to the YAML configuration file

        Raises:
            ConfigurationError: If the file does not exist
        """
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

    def load(self) -> ExportConfig:
        """
        Load and validate the configuration.

        Returns:
            Validated ExportConfig

        Raises:
            ConfigurationError: If YAML is invalid or required settings are missing
        """
        try:
            with open(self.config_path) as f:
                raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}") from e

        if not raw or "organizations" not in raw:
            raise ConfigurationError("Configuration file must contain 'organizations' section")

        try:
            return ExportConfig(
                database=DatabaseSettings.from_sources(raw.get("database")),
                holdings_chunk_size=raw.get("holdings_chunk_size", 500),
                organizations=raw["organizations"],
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {self.config_path}: {e}") from e


def load_export_config(config_path: str | Path) -> ExportConfig:
    return ExportConfigLoader(config_path).load()


def select_profiles(config: ExportConfig, name: str | None = None) -> list[OrganizationProfile]:
    """
    Pick the organizations to process.

    Args:
        config: Loaded configuration
        name: Organization name to restrict to, or None for all (in file order)

    Raises:
        ConfigurationError: If `name` matches no organization
    """
    if name is None:
        return list(config.organizations)

    matches = [profile for profile in config.organizations if profile.name == name]
    if not matches:
        known = ", ".join(profile.name for profile in config.organizations)
        raise ConfigurationError(f"Unknown organization '{name}'. Configured: {known}")
    return matches
