"""
Configuration Management for Zenfolio

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Remote credentials are NOT configuration: the user enters them at runtime
and they are persisted by the CredentialStore. The SUPABASE_* variables
below only prefill the credential prompt.
"""

import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.models.region import DEFAULT_REGION, REGIONS


class SupabaseSettings(BaseSettings):
    """Remote store layout and realtime configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SUPABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: Optional[str] = Field(
        default=None,
        description="Project URL used to prefill the credential prompt"
    )
    key: Optional[str] = Field(
        default=None,
        description="Anon key used to prefill the credential prompt"
    )

    schema_name: str = Field(
        default="public",
        description="Postgres schema holding the tables"
    )
    entries_table: str = Field(
        default="financial_entries",
        description="Table of financial entries"
    )
    users_table: str = Field(
        default="users",
        description="Table of users (id, username, password)"
    )
    channel_name: str = Field(
        default="financial_entries",
        description="Realtime channel name"
    )
    subscribe_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times to try joining the realtime channel"
    )
    join_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=60.0,
        description="How long one join attempt waits for the channel to be subscribed"
    )


class StorageSettings(BaseSettings):
    """Where local state (credentials and session) is kept."""

    model_config = SettingsConfigDict(
        env_prefix="ZENFOLIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    state_dir: Path = Field(
        default_factory=lambda: Path.home() / ".zenfolio",
        description="Durable directory, survives restarts and reboots"
    )
    session_dir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "zenfolio",
        description="Session directory, survives restarts but not reboots"
    )
    credentials_file: str = Field(default="credentials.json")
    session_file: str = Field(default="session.json")

    @property
    def credentials_path(self) -> Path:
        return self.state_dir / self.credentials_file

    @property
    def session_path(self) -> Path:
        return self.session_dir / self.session_file


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    default_region: str = Field(
        default=DEFAULT_REGION,
        description="Region selected after login"
    )
    refresh_interval_seconds: float = Field(
        default=2.0,
        ge=0.5,
        le=60.0,
        description="How often the UI re-reads the orchestrator snapshot"
    )

    generic_connection_error: str = Field(
        default="Failed to connect. Please check credentials and try again.",
    )
    generic_fetch_error: str = Field(
        default="An unknown error occurred.",
    )
    generic_delete_error: str = Field(
        default="Failed to delete entry.",
    )
    generic_save_error: str = Field(
        default="Failed to save entry.",
    )

    @field_validator('default_region')
    @classmethod
    def validate_default_region(cls, v: str) -> str:
        if v not in REGIONS:
            raise ValueError(f"Unknown region: {v}. Expected one of {REGIONS}")
        return v


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def supabase(self) -> SupabaseSettings:
        return SupabaseSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus `<name>_error`
    entries describing failures. Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("supabase", "storage", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
