"""
Abstract Remote Storage Interface

DESIGN DECISION: We define an abstract interface for remote operations.
This allows us to:
1. Keep the sync engine ignorant of the Supabase client
2. Use in-memory storage for testing
3. Replace the backend without touching the orchestrator

The interface is intentionally small. It is exactly the set of remote
operations the ledger client performs, nothing more.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable


ChangeCallback = Callable[[], None]


class RemoteStorageInterface(ABC):
    """
    One live handle to the remote data source.

    Implementations must raise the exceptions defined at the bottom of this
    module. Raw client exceptions never leak to callers.
    """

    @abstractmethod
    async def probe(self, table: str) -> None:
        """
        Lightweight existence check against a table (head/count query).

        Raises:
            InvalidCredentialsError: If the backend rejects the key/token
            ConnectionError: For any other failure
        """
        pass

    @abstractmethod
    async def find_users(self, table: str, username: str, password: str) -> list[dict]:
        """
        Rows matching username and password exactly.

        Returns:
            Matching rows with at least `id` and `username`

        Raises:
            RemoteStorageError: If the lookup fails
        """
        pass

    @abstractmethod
    async def select_entries(self, table: str, user_id: str) -> list[dict]:
        """
        All rows owned by `user_id`. The filter runs server-side.

        Raises:
            FetchError: If the read fails
        """
        pass

    @abstractmethod
    async def delete_entry(self, table: str, entry_id: str) -> None:
        """
        Delete one row by id.

        Raises:
            FetchError: If the delete fails
        """
        pass

    @abstractmethod
    async def upsert_entry(self, table: str, row: dict[str, Any]) -> None:
        """
        Insert or update one row.

        Raises:
            FetchError: If the write fails
        """
        pass

    @abstractmethod
    async def subscribe(self, channel_name: str, table: str, callback: ChangeCallback) -> Any:
        """
        Watch a table for any insert/update/delete.

        `callback` is invoked with no arguments on every change.

        Returns:
            An opaque channel handle to pass to `unsubscribe`

        Raises:
            ConnectionError: If the channel cannot be joined
        """
        pass

    @abstractmethod
    async def unsubscribe(self, channel: Any) -> None:
        """Stop a channel returned by `subscribe`. Must not raise."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the handle. No further calls are made on it afterwards."""
        pass


class RemoteStorageError(Exception):
    """Base exception for remote operations."""
    pass


class InvalidCredentialsError(RemoteStorageError):
    """The backend rejected the key, or username/password did not match."""
    pass


class ConnectionError(RemoteStorageError):
    """Could not reach or use the remote backend."""
    pass


class FetchError(RemoteStorageError):
    """A read or write against the entries table failed."""
    pass
