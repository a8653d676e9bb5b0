"""Configuration package."""

from src.config.settings import (
    AppSettings,
    Settings,
    StorageSettings,
    SupabaseSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "Settings",
    "StorageSettings",
    "SupabaseSettings",
    "get_settings",
    "validate_all_settings",
]
