"""Services package."""

from src.services.auth import LOGIN_FAILED_MESSAGE, AuthGate
from src.services.connection import ConnectionManager, StorageFactory
from src.services.credentials import CredentialStore, StorageError
from src.services.entries import EntryRepository, LiveSyncSubscription
from src.services.storage import (
    ChangeCallback,
    ConnectionError,
    FetchError,
    InvalidCredentialsError,
    RemoteStorageError,
    RemoteStorageInterface,
    SupabaseRemoteStorage,
    create_supabase_storage,
)

__all__ = [
    # Local storage
    "CredentialStore",
    "StorageError",
    # Connection and auth
    "AuthGate",
    "ConnectionManager",
    "LOGIN_FAILED_MESSAGE",
    "StorageFactory",
    # Entries
    "EntryRepository",
    "LiveSyncSubscription",
    # Remote storage
    "ChangeCallback",
    "ConnectionError",
    "FetchError",
    "InvalidCredentialsError",
    "RemoteStorageError",
    "RemoteStorageInterface",
    "SupabaseRemoteStorage",
    "create_supabase_storage",
]
