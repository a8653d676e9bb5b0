"""
Local Credential and Session Storage

Two independent scopes, each a small JSON file:
- durable: remote connection credentials, kept until explicitly reset
- session: the logged-in user, kept across restarts of the app process

DESIGN DECISION: Unreadable or corrupt files are never fatal. They are
logged, removed, and treated as absent, which sends the user back to the
matching prompt instead of crashing on startup.
"""

import json
import os
from pathlib import Path
from typing import Optional, TypeVar

from pydantic import BaseModel, ValidationError

from src.audit import AuditLogger
from src.config import get_settings
from src.models.session import Credentials, Session


ModelT = TypeVar("ModelT", bound=BaseModel)


class StorageError(Exception):
    """Local persistence is unreadable or corrupt."""
    pass


class CredentialStore:
    """
    Persists credentials (durable scope) and the session (session scope).

    `load_*` never raise: a StorageError is recovered as "absent".
    `save_*` and `clear_*` raise StorageError if the disk write fails.
    """

    def __init__(
        self,
        credentials_path: Optional[Path] = None,
        session_path: Optional[Path] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        if credentials_path is None or session_path is None:
            storage_settings = get_settings().storage
            credentials_path = credentials_path or storage_settings.credentials_path
            session_path = session_path or storage_settings.session_path

        self._credentials_path = Path(credentials_path)
        self._session_path = Path(session_path)
        self._audit_logger = audit_logger or AuditLogger()

    # -------------------------------------------------------------------------
    # Durable scope
    # -------------------------------------------------------------------------

    def load_credentials(self) -> Optional[Credentials]:
        return self._load("durable", self._credentials_path, Credentials)

    def save_credentials(self, credentials: Credentials) -> None:
        self._write(self._credentials_path, credentials)

    def clear_credentials(self) -> None:
        self._remove(self._credentials_path)

    # -------------------------------------------------------------------------
    # Session scope
    # -------------------------------------------------------------------------

    def load_session(self) -> Optional[Session]:
        return self._load("session", self._session_path, Session)

    def save_session(self, session: Session) -> None:
        self._write(self._session_path, session)

    def clear_session(self) -> None:
        self._remove(self._session_path)

    # -------------------------------------------------------------------------
    # File helpers
    # -------------------------------------------------------------------------

    def _load(self, scope: str, path: Path, model: type[ModelT]) -> Optional[ModelT]:
        try:
            return self._read(path, model)
        except StorageError as e:
            self._audit_logger.log_storage_read_failed(scope, str(e))
            try:
                self._remove(path)
            except StorageError:
                pass  # already reported the read failure
            return None

    def _read(self, path: Path, model: type[ModelT]) -> Optional[ModelT]:
        if not path.exists():
            return None
        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Cannot read {path}: {e}") from e
        try:
            return model.model_validate_json(raw)
        except ValidationError as e:
            raise StorageError(f"Corrupt record in {path}: {e.error_count()} errors") from e

    def _write(self, path: Path, record: BaseModel) -> None:
        payload = json.dumps(record.model_dump(mode="json"))
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, path)
        except OSError as e:
            raise StorageError(f"Cannot write {path}: {e}") from e

    def _remove(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot remove {path}: {e}") from e
