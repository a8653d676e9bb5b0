"""Local credential and session storage."""

from src.services.credentials.store import CredentialStore, StorageError

__all__ = ["CredentialStore", "StorageError"]
