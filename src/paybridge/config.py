"""Centralized configuration management for PayBridge.

This module provides a Pydantic Settings-based configuration system that
consolidates connector credentials, sync defaults, storage and logging
settings with environment variable integration and validation.
"""

import os
import re
from pathlib import Path
from typing import Any, Literal

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PROFILE_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


def profile_env_file(profile: str) -> Path:
    """Env file for a profile: .env.{profile} if present, else .env."""
    candidate = Path(f".env.{profile}")
    return candidate if candidate.exists() else Path(".env")


def _has_prefixed_plaid_settings() -> bool:
    return any(key.upper().startswith("PAYBRIDGE_PLAID__") for key in os.environ)


class DatabaseConfig(BaseModel):
    """DuckDB storage for cursor states and normalized records."""

    model_config = ConfigDict(frozen=True)

    path: Path = Field(
        default=Path("data/duckdb/paybridge.duckdb"),
        description="Path to DuckDB database file",
    )
    create_dirs: bool = Field(
        default=True, description="Automatically create data directories"
    )

    @field_validator("path")
    @classmethod
    def validate_database_path(cls, v: Path) -> Path:
        """Ensure database path has correct extension."""
        if not str(v).endswith((".db", ".duckdb")):
            raise ValueError("Database path must end with .db or .duckdb")
        return v


class SyncConfig(BaseModel):
    """Defaults for fetch calls and sync runs."""

    model_config = ConfigDict(frozen=True)

    page_size: int = Field(
        default=100, ge=1, le=1000, description="Records requested per fetch call"
    )
    max_batches: int | None = Field(
        default=None,
        ge=1,
        description="Stop a sync run after this many batches (None: until caught up)",
    )
    save_raw_data: bool = Field(
        default=True, description="Write every consumed batch to Parquet"
    )
    raw_data_path: Path = Field(
        default=Path("data/raw"), description="Directory for raw Parquet batches"
    )


class PlaidConfig(BaseModel):
    """Plaid API configuration settings."""

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(default="", description="Plaid client ID")
    secret: str = Field(default="", description="Plaid secret key")
    environment: Literal["sandbox", "development", "production"] = Field(
        default="sandbox", description="Plaid environment"
    )
    access_tokens: dict[str, str] = Field(
        default_factory=dict, description="Plaid item ID to access token"
    )
    item_id: str | None = Field(
        default=None, description="Item synced by scheduled (non-webhook) runs"
    )


class GenericConfig(BaseModel):
    """Generic REST provider configuration settings."""

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(default="", description="Provider API base URL")
    api_key: str = Field(default="", description="Bearer token for the provider")
    timeout: float = Field(
        default=30.0, gt=0, le=300, description="Per-request timeout in seconds"
    )


class LoggingConfig(BaseModel):
    """Logging configuration settings."""

    model_config = ConfigDict(frozen=True)

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_to_file: bool = Field(default=True, description="Enable file logging")
    log_file_path: Path = Field(
        default=Path("logs/paybridge.log"), description="Path to log file"
    )
    max_file_size_mb: int = Field(
        default=50, ge=1, le=1000, description="Maximum log file size in MB"
    )
    backup_count: int = Field(
        default=5, ge=1, le=50, description="Number of log file backups to keep"
    )


class PayBridgeSettings(BaseSettings):
    """Main application settings with environment variable integration.

    Environment variables are loaded with the PAYBRIDGE_ prefix.
    For nested configs, use double underscores: PAYBRIDGE_SYNC__PAGE_SIZE

    Profile Support:
    - Loads from .env.{profile} files (e.g., .env.dev, .env.prod)
    - Falls back to .env when no profile file exists
    """

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    plaid: PlaidConfig = Field(default_factory=PlaidConfig)
    generic: GenericConfig = Field(default_factory=GenericConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    debug: bool = Field(default=False, description="Enable debug mode")
    profile: str = Field(
        default="default",
        description="Profile name (e.g., dev, prod, sandbox)",
    )

    @field_validator("profile")
    @classmethod
    def validate_profile_name(cls, v: str) -> str:
        """Ensure profile name is safe for use as a filename."""
        if not v:
            raise ValueError("Profile name cannot be empty")
        if not PROFILE_PATTERN.match(v):
            raise ValueError(
                "Profile name must contain only alphanumeric characters, "
                "dashes, and underscores"
            )
        return v

    def __init__(self, **kwargs: Any):
        """Initialize settings with legacy Plaid environment variables.

        Args:
            **kwargs: Additional configuration overrides
        """
        if "plaid" not in kwargs and not _has_prefixed_plaid_settings():
            client_id = os.getenv("PLAID_CLIENT_ID")
            secret = os.getenv("PLAID_SECRET")
            env = os.getenv("PLAID_ENV", "sandbox")
            if client_id and secret:
                plaid_config: dict[str, Any] = {
                    "client_id": client_id,
                    "secret": secret,
                }
                if env in ("sandbox", "development", "production"):
                    plaid_config["environment"] = env
                kwargs["plaid"] = PlaidConfig(**plaid_config)

        super().__init__(**kwargs)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Load the profile-specific env file instead of the default one."""
        init_dict = init_settings.init_kwargs if init_settings else {}
        profile = init_dict.get("profile", "default")  # type: ignore[reportUnknownMemberType]

        env_file = str(profile_env_file(profile))

        from pydantic_settings import DotEnvSettingsSource

        custom_dotenv = DotEnvSettingsSource(
            settings_cls,
            env_file=env_file,
            env_file_encoding="utf-8",
        )

        # Later sources are overridden by earlier ones
        return (
            init_settings,
            env_settings,
            custom_dotenv,
            file_secret_settings,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PAYBRIDGE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    def create_directories(self) -> None:
        """Create necessary directories for the application."""
        directories = [
            self.database.path.parent,
            self.sync.raw_data_path,
            self.logging.log_file_path.parent,
        ]
        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)


_settings_cache: dict[str, PayBridgeSettings] = {}
_current_profile: str = "default"


def _check_profile(profile: str) -> None:
    if not profile:
        raise ValueError("Profile name cannot be empty")
    if not PROFILE_PATTERN.match(profile):
        raise ValueError(
            f"Invalid profile: {profile}. "
            "Profile name must contain only alphanumeric characters, dashes, and underscores"
        )


def get_settings(profile: str | None = None) -> PayBridgeSettings:
    """Get the settings instance for the specified profile.

    Settings are loaded once per profile and cached.

    Args:
        profile: Profile name. Defaults to the current profile.

    Returns:
        PayBridgeSettings: The configuration instance for the profile

    Raises:
        ValueError: If configuration is invalid
    """
    if profile is None:
        profile = _current_profile

    if profile in _settings_cache:
        return _settings_cache[profile]

    # Expose unprefixed variables (PLAID_CLIENT_ID, ...) from the profile's env file
    load_dotenv(profile_env_file(profile))

    try:
        settings = PayBridgeSettings(profile=profile)
    except Exception as e:
        raise ValueError(f"Configuration error for profile '{profile}': {e}") from e

    if settings.database.create_dirs:
        settings.create_directories()

    _settings_cache[profile] = settings
    return settings


def set_current_profile(profile: str) -> None:
    """Set the current active profile.

    Raises:
        ValueError: If profile name contains invalid characters
    """
    global _current_profile

    _check_profile(profile)
    _current_profile = profile


def get_current_profile() -> str:
    """Get the current active profile name."""
    return _current_profile


def reload_settings(profile: str | None = None) -> PayBridgeSettings:
    """Reload settings from environment variables.

    Args:
        profile: Profile to reload. If None, reloads current profile.

    Returns:
        PayBridgeSettings: The reloaded configuration instance
    """
    if profile is None:
        profile = _current_profile

    _settings_cache.pop(profile, None)
    return get_settings(profile)


def clear_settings_cache() -> None:
    """Drop every cached settings instance (used by tests)."""
    _settings_cache.clear()
