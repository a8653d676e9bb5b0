"""
Authentication Gate

Checks a username/password pair against the remote `users` table and
owns the resulting Session.

CRITICAL: Every failure looks the same to the caller. No match, several
matches and a failed lookup all raise the same InvalidCredentialsError
with the same message, so the login prompt cannot be used to find out
which usernames exist.

NOTE: Passwords are compared as stored plain values by the remote query.
This is a known weakness of the existing `users` table, see DESIGN.md.
"""

from typing import Optional
from uuid import UUID

from pydantic import ValidationError

from src.audit import AuditLogger
from src.config import get_settings
from src.models.session import Session
from src.services.connection import ConnectionManager
from src.services.credentials import CredentialStore, StorageError
from src.services.storage import InvalidCredentialsError, RemoteStorageError


LOGIN_FAILED_MESSAGE = "Invalid username or password."


class AuthGate:
    """Establishes and destroys the authenticated session."""

    def __init__(
        self,
        connection: ConnectionManager,
        credential_store: CredentialStore,
        audit_logger: Optional[AuditLogger] = None,
        users_table: Optional[str] = None,
    ):
        self._connection = connection
        self._credential_store = credential_store
        self._audit_logger = audit_logger or AuditLogger()
        self._users_table = users_table or get_settings().supabase.users_table

    def restore(self) -> Optional[Session]:
        """Session left by a previous process, if it can be read."""
        return self._credential_store.load_session()

    async def login(
        self,
        username: str,
        password: str,
        correlation_id: Optional[UUID] = None,
    ) -> Session:
        """
        Look up exactly one user matching username and password.

        Raises:
            InvalidCredentialsError: For every kind of failure
        """
        try:
            rows = await self._connection.storage.find_users(
                self._users_table, username, password
            )
        except RemoteStorageError as e:
            raise self._reject(username, f"lookup failed: {e}", correlation_id)

        if len(rows) != 1:
            raise self._reject(username, f"{len(rows)} matching rows", correlation_id)

        try:
            session = Session.model_validate(rows[0])
        except ValidationError:
            raise self._reject(username, "malformed user row", correlation_id)

        try:
            self._credential_store.save_session(session)
        except StorageError as e:
            # Logged in for this process only; next start asks again
            self._audit_logger.log_storage_write_failed("session", str(e))

        self._audit_logger.log_login_succeeded(session.id, session.username, correlation_id)
        return session

    def logout(self, session: Optional[Session] = None) -> None:
        """Clear session storage. Safe to call any number of times."""
        try:
            self._credential_store.clear_session()
        except StorageError as e:
            self._audit_logger.log_storage_write_failed("session", str(e))
        self._audit_logger.log_logout(session.id if session else None)

    def _reject(
        self,
        username: str,
        reason: str,
        correlation_id: Optional[UUID],
    ) -> InvalidCredentialsError:
        self._audit_logger.log_login_failed(username, reason, correlation_id)
        return InvalidCredentialsError(LOGIN_FAILED_MESSAGE)
