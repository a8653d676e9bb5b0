"""
Shared fixtures.

Every component is wired against the in-memory database from
tests/fakes.py and local storage under pytest's tmp_path.
"""

import pytest

from src.audit import AuditLogger
from src.orchestrator import create_app_components
from src.services.auth import AuthGate
from src.services.connection import ConnectionManager
from src.services.credentials import CredentialStore
from src.services.entries import EntryRepository, LiveSyncSubscription
from src.services.storage import FetchError

from tests.fakes import FakeDatabase, FakeStorageFactory


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def factory(database) -> FakeStorageFactory:
    return FakeStorageFactory(database)


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger()


@pytest.fixture
def credential_store(tmp_path, audit_logger) -> CredentialStore:
    return CredentialStore(
        credentials_path=tmp_path / "state" / "credentials.json",
        session_path=tmp_path / "session" / "session.json",
        audit_logger=audit_logger,
    )


@pytest.fixture
def connection(credential_store, factory, audit_logger) -> ConnectionManager:
    return ConnectionManager(credential_store, storage_factory=factory, audit_logger=audit_logger)


@pytest.fixture
def auth(connection, credential_store, audit_logger) -> AuthGate:
    return AuthGate(connection, credential_store, audit_logger=audit_logger)


@pytest.fixture
def repository(connection, audit_logger) -> EntryRepository:
    return EntryRepository(connection, audit_logger=audit_logger)


@pytest.fixture
def live_sync(connection, audit_logger) -> LiveSyncSubscription:
    return LiveSyncSubscription(connection, audit_logger=audit_logger)


@pytest.fixture
def make_orchestrator(factory, credential_store, audit_logger):
    """Build a fresh orchestrator on the same local storage (a 'restart')."""
    def make():
        return create_app_components(
            storage_factory=factory,
            credential_store=credential_store,
            audit_logger=audit_logger,
        )
    return make


@pytest.fixture
def fetch_failure() -> FetchError:
    return FetchError("permission denied for table financial_entries")
