"""
Remote Storage Services Package

Provides the abstract interface and the Supabase implementation.
"""

from src.services.storage.interface import (
    ChangeCallback,
    ConnectionError,
    FetchError,
    InvalidCredentialsError,
    RemoteStorageError,
    RemoteStorageInterface,
)
from src.services.storage.supabase_store import (
    SupabaseRemoteStorage,
    classify_connection_error,
    create_supabase_storage,
    error_message,
    is_auth_error,
)

__all__ = [
    # Interface
    "ChangeCallback",
    "RemoteStorageInterface",
    # Exceptions
    "ConnectionError",
    "FetchError",
    "InvalidCredentialsError",
    "RemoteStorageError",
    # Supabase implementation
    "SupabaseRemoteStorage",
    "classify_connection_error",
    "create_supabase_storage",
    "error_message",
    "is_auth_error",
]
