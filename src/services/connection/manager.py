"""
Connection Manager

Owns the one live handle to the remote data source.

DESIGN DECISION: The handle is never a module-level global. It is held
here and swapped atomically, and every swap bumps a generation counter.
Async work captures the generation when it starts and checks
`is_current(generation)` before applying its result, so nothing computed
against a replaced connection can leak into application state.
"""

from typing import Awaitable, Callable, Optional
from uuid import UUID

import structlog
from pydantic import ValidationError

from src.audit import AuditLogger
from src.config import get_settings
from src.models.session import Credentials
from src.models.state import ConnectivityStatus
from src.services.credentials import CredentialStore, StorageError
from src.services.storage import (
    ConnectionError,
    InvalidCredentialsError,
    RemoteStorageInterface,
    classify_connection_error,
    create_supabase_storage,
)


logger = structlog.get_logger(__name__)

StorageFactory = Callable[[Credentials], Awaitable[RemoteStorageInterface]]

# Within one attempt the status may only move to a higher rank
_STATUS_RANK = {
    ConnectivityStatus.IDLE: 0,
    ConnectivityStatus.CONNECTING: 1,
    ConnectivityStatus.CONNECTED: 2,
    ConnectivityStatus.ERROR: 3,
}


class ConnectionManager:
    """
    Builds, validates, persists and replaces the remote handle.

    Exactly one handle exists at a time. A replaced handle is closed
    and its generation is no longer current.
    """

    def __init__(
        self,
        credential_store: CredentialStore,
        storage_factory: Optional[StorageFactory] = None,
        audit_logger: Optional[AuditLogger] = None,
        entries_table: Optional[str] = None,
    ):
        self._credential_store = credential_store
        self._storage_factory = storage_factory or create_supabase_storage
        self._audit_logger = audit_logger or AuditLogger()
        self._entries_table = entries_table or get_settings().supabase.entries_table

        self._storage: Optional[RemoteStorageInterface] = None
        self._credentials: Optional[Credentials] = None
        self._generation = 0
        self._status = ConnectivityStatus.IDLE

    @property
    def status(self) -> ConnectivityStatus:
        return self._status

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def credentials(self) -> Optional[Credentials]:
        """Credentials of the current handle, if any."""
        return self._credentials

    @property
    def storage(self) -> RemoteStorageInterface:
        """
        The current handle.

        Raises:
            ConnectionError: If no connection has been made
        """
        if self._storage is None:
            raise ConnectionError("Not connected to a data source")
        return self._storage

    def is_current(self, generation: int) -> bool:
        return self._storage is not None and generation == self._generation

    async def connect(
        self,
        endpoint: str,
        key: str,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Validate new credentials and make them the current connection.

        The candidate handle is probed with a head query on the entries
        table before anything is persisted. No retry.

        Returns:
            The new connection generation

        Raises:
            InvalidCredentialsError: If the backend rejects the key
            ConnectionError: For any other failure
        """
        try:
            credentials = Credentials(endpoint=endpoint, key=key)
        except ValidationError as e:
            raise InvalidCredentialsError("Both the project URL and the key are required.") from e

        self._begin_attempt()
        self._audit_logger.log_connection_started(credentials.endpoint, correlation_id)

        candidate: Optional[RemoteStorageInterface] = None
        try:
            candidate = await self._storage_factory(credentials)
            await candidate.probe(self._entries_table)
            self._credential_store.save_credentials(credentials)
        except Exception as e:
            if isinstance(e, StorageError):
                error = ConnectionError(f"Could not save credentials: {e}")
            else:
                error = classify_connection_error(e)
            if candidate is not None:
                await candidate.close()
            self._advance(ConnectivityStatus.ERROR)
            self._audit_logger.log_connection_failed(credentials.endpoint, error, correlation_id)
            raise error from e

        await self._swap(candidate, credentials)
        self._advance(ConnectivityStatus.CONNECTED)
        self._audit_logger.log_connection_succeeded(
            credentials.endpoint, self._generation, correlation_id
        )
        return self._generation

    async def activate(self, credentials: Credentials) -> int:
        """
        Make sure the current handle was built from `credentials`.

        Used when entering Loading with stored credentials. Does not probe:
        the entry fetch that follows is the real check. Reuses the current
        handle when the credentials are unchanged.

        Returns:
            The connection generation to capture for the work that follows
        """
        if self._storage is not None and self._credentials == credentials:
            if self._status != ConnectivityStatus.CONNECTED:
                self._begin_attempt()
            return self._generation

        self._begin_attempt()
        try:
            storage = await self._storage_factory(credentials)
        except Exception as e:
            error = classify_connection_error(e)
            self._advance(ConnectivityStatus.ERROR)
            self._audit_logger.log_connection_failed(credentials.endpoint, error)
            raise error from e

        await self._swap(storage, credentials)
        return self._generation

    def mark_connected(self, generation: int) -> None:
        if self.is_current(generation):
            self._advance(ConnectivityStatus.CONNECTED)

    def mark_failed(self, generation: int) -> None:
        if self.is_current(generation):
            self._advance(ConnectivityStatus.ERROR)

    async def reset(self) -> None:
        """
        Discard stored credentials and the current handle.

        Status returns to idle. This is the only way back to idle.
        """
        try:
            self._credential_store.clear_credentials()
        except StorageError as e:
            # The handle is still dropped; the next connect overwrites the file
            logger.warning("credentials_clear_failed", error=str(e))
        await self._swap(None, None)
        self._status = ConnectivityStatus.IDLE
        self._audit_logger.log_credentials_reset(self._generation)

    async def close(self) -> None:
        """Close the handle on shutdown. Stored credentials are kept."""
        await self._swap(None, None)
        self._status = ConnectivityStatus.IDLE

    async def _swap(
        self,
        storage: Optional[RemoteStorageInterface],
        credentials: Optional[Credentials],
    ) -> None:
        # Replace before awaiting so no task can observe the old handle as current
        old = self._storage
        self._storage = storage
        self._credentials = credentials
        self._generation += 1
        if old is not None and old is not storage:
            await old.close()

    def _begin_attempt(self) -> None:
        self._status = ConnectivityStatus.CONNECTING

    def _advance(self, status: ConnectivityStatus) -> None:
        if _STATUS_RANK[status] >= _STATUS_RANK[self._status]:
            self._status = status
