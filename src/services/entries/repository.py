"""
Entry Repository

Reads and writes rows of the remote `financial_entries` table.

DESIGN DECISION: The repository never patches a local cache. A delete or
save only tells the remote store; the change notification that follows is
what refreshes the client. This keeps exactly one path by which the cache
can change.
"""

from typing import Optional
from uuid import UUID

from pydantic import ValidationError

from src.audit import AuditLogger
from src.config import get_settings
from src.models.entry import FinancialEntry, entry_to_row, parse_entries
from src.services.connection import ConnectionManager
from src.services.storage import FetchError, RemoteStorageError


class EntryRepository:
    """CRUD on financial entries through the current connection."""

    def __init__(
        self,
        connection: ConnectionManager,
        audit_logger: Optional[AuditLogger] = None,
        entries_table: Optional[str] = None,
    ):
        self._connection = connection
        self._audit_logger = audit_logger or AuditLogger()
        self._entries_table = entries_table or get_settings().supabase.entries_table

    @property
    def table(self) -> str:
        return self._entries_table

    async def fetch_all(
        self,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[FinancialEntry, ...]:
        """
        Every entry owned by `user_id`, filtered server-side.

        A row that fails validation fails the whole fetch: returning a
        partial set would show totals that do not match the remote data.

        Raises:
            FetchError: If the read fails or a row is malformed
        """
        try:
            rows = await self._connection.storage.select_entries(self._entries_table, user_id)
            entries = parse_entries(rows)
        except ValidationError as e:
            error = FetchError(f"Malformed entry in {self._entries_table}: {e.errors()[0]['msg']}")
            self._audit_logger.log_fetch_failed(user_id, str(error), correlation_id)
            raise error from e
        except RemoteStorageError as e:
            error = e if isinstance(e, FetchError) else FetchError(str(e))
            self._audit_logger.log_fetch_failed(user_id, str(error), correlation_id)
            raise error from e

        self._audit_logger.log_fetch_completed(user_id, len(entries), correlation_id)
        return entries

    async def delete(self, entry_id: str, correlation_id: Optional[UUID] = None) -> None:
        """
        Delete one entry by id. Confirmation is the caller's job.

        Raises:
            FetchError: If the delete fails
        """
        try:
            await self._connection.storage.delete_entry(self._entries_table, entry_id)
        except RemoteStorageError as e:
            error = e if isinstance(e, FetchError) else FetchError(str(e))
            self._audit_logger.log_delete_failed(entry_id, str(error), correlation_id)
            raise error from e

        self._audit_logger.log_entry_deleted(entry_id, correlation_id)

    async def save(self, entry: FinancialEntry, correlation_id: Optional[UUID] = None) -> None:
        """
        Insert or update one entry (the entry form's write path).

        Raises:
            FetchError: If the write fails
        """
        try:
            await self._connection.storage.upsert_entry(self._entries_table, entry_to_row(entry))
        except RemoteStorageError as e:
            error = e if isinstance(e, FetchError) else FetchError(str(e))
            self._audit_logger.log_save_failed(entry.id, str(error), correlation_id)
            raise error from e

        self._audit_logger.log_entry_saved(entry.id, entry.name, correlation_id)
