"""
Application configuration using Pydantic Settings.

Settings are built once at process start and handed to every collaborator;
nothing below the CLI reads the environment on its own.
"""
import os
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_DIR_NAME = "mariadb-tool"


def xdg_dir(env_var: str, *fallback_parts: str) -> Path:
    """
    Resolve an XDG base directory.

    Args:
        env_var: XDG variable name (e.g. "XDG_CONFIG_HOME")
        fallback_parts: Path parts below the home directory used when unset

    Returns:
        Base directory path
    """
    value = os.environ.get(env_var, "").strip()
    if value:
        return Path(value)
    return Path.home().joinpath(*fallback_parts)


def default_config_path() -> Path:
    return xdg_dir("XDG_CONFIG_HOME", ".config") / APP_DIR_NAME / "config.ini"


def default_csv_path() -> Path:
    return xdg_dir("XDG_DATA_HOME", ".local", "share") / APP_DIR_NAME / "accounts.csv"


def default_error_log_path() -> Path:
    return xdg_dir("XDG_STATE_HOME", ".local", "state") / APP_DIR_NAME / "error.log"


class Settings(BaseSettings):
    """Tool settings with environment variable loading."""

    model_config = SettingsConfigDict(
        env_prefix="PROVISIONER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="mariadb-provisioner", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment (development/production)")
    log_level: str = Field(default="WARNING", description="Logging level")

    # Paths
    config_path: Path = Field(default_factory=default_config_path, description="Server credentials INI file")
    config_section: str = Field(default="mariadb", description="INI section holding the credentials")
    csv_path: Path = Field(default_factory=default_csv_path, description="Audit CSV of created accounts")
    error_log_path: Path = Field(default_factory=default_error_log_path, description="Append-only error trail")

    # Provisioning
    default_user_host: str = Field(default="localhost", description="Host part of created accounts")
    timeout_seconds: float = Field(default=6.0, gt=0, le=3600, description="Per-attempt server time budget")
    password_length: int = Field(default=20, ge=8, le=128, description="Generated password length")
    export_csv: bool = Field(default=True, description="Append created accounts to the audit CSV")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment."""
        valid_envs = ["development", "production"]
        if v.lower() not in valid_envs:
            raise ValueError(f"Environment must be one of {valid_envs}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"
