"""
Main Orchestrator for Zenfolio

This module ties together all the components and drives which screen
is shown:

    AwaitingCredentials -> AwaitingAuthentication -> Loading -> Ready
                                                            -> FetchErrored

DESIGN DECISION: The orchestrator is level-triggered. Whenever a
dependency changes (credentials, session) it bumps its epoch and restarts
from Loading instead of reconciling partial state. Every async
continuation re-checks its epoch and connection generation before it
touches state, so a superseded answer is dropped rather than applied.

Each change produces a new immutable Snapshot. The UI renders snapshots
and sends intents back through the public coroutines below.
"""

import asyncio
from typing import Callable, Optional
from uuid import UUID

from src.audit import AuditLogger, create_correlation_id
from src.config import get_settings
from src.metrics import MetricsDeriver, filter_by_kind, filter_by_region, unique_names
from src.models.entry import EntryKind, FinancialEntry
from src.models.metrics import DerivedMetrics
from src.models.region import View
from src.models.session import Credentials
from src.models.state import Snapshot, ViewState
from src.services.auth import AuthGate
from src.services.connection import ConnectionManager, StorageFactory
from src.services.credentials import CredentialStore
from src.services.entries import EntryRepository, LiveSyncSubscription
from src.services.storage import FetchError, InvalidCredentialsError, RemoteStorageError


SnapshotListener = Callable[[Snapshot], None]


class ViewOrchestrator:
    """
    The root state machine of the client.

    GUARANTEES:
    - logout always lands in AWAITING_AUTHENTICATION with an empty cache
      and no live subscription
    - a fetch failure always lands in FETCH_ERRORED, whose only way out is
      reset_credentials()
    - the entry cache only changes through a successful, current fetch
    """

    def __init__(
        self,
        credential_store: CredentialStore,
        connection: ConnectionManager,
        auth: AuthGate,
        repository: EntryRepository,
        live_sync: LiveSyncSubscription,
        deriver: Optional[MetricsDeriver] = None,
        audit_logger: Optional[AuditLogger] = None,
        default_region: Optional[str] = None,
    ):
        app_settings = get_settings().app
        self._credential_store = credential_store
        self._connection = connection
        self._auth = auth
        self._repository = repository
        self._live_sync = live_sync
        self._deriver = deriver or MetricsDeriver()
        self._audit_logger = audit_logger or AuditLogger()
        self._messages = app_settings

        self._credentials: Optional[Credentials] = None
        self._snapshot = Snapshot(region=default_region or app_settings.default_region)
        self._epoch = 0
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[SnapshotListener] = []

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def state(self) -> ViewState:
        return self._snapshot.state

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def subscription_active(self) -> bool:
        return self._live_sync.active

    def filtered_entries(self) -> tuple[FinancialEntry, ...]:
        """Entries of the selected region. Never mutates the cache."""
        return filter_by_region(self._snapshot.entries, self._snapshot.region)

    def stocks(self) -> tuple[FinancialEntry, ...]:
        return filter_by_kind(self.filtered_entries(), EntryKind.STOCK)

    def mutual_funds(self) -> tuple[FinancialEntry, ...]:
        return filter_by_kind(self.filtered_entries(), EntryKind.MUTUAL_FUND)

    def metrics(self) -> DerivedMetrics:
        """Metrics for the selected region, recomputed only when it changes."""
        return self._deriver.metrics_for(self.filtered_entries())

    def unique_names(self, kind: EntryKind) -> list[str]:
        """Names across all regions, for the entry form's suggestions."""
        return unique_names(self._snapshot.entries, kind)

    def find_entry(self, entry_id: str) -> Optional[FinancialEntry]:
        """The cached entry with this id, for the edit form."""
        for entry in self._snapshot.entries:
            if entry.id == entry_id:
                return entry
        return None

    def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call `listener` with every new snapshot. Returns a remover."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # -------------------------------------------------------------------------
    # Intents
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Restore stored credentials and session, then reconcile."""
        self._credentials = self._credential_store.load_credentials()
        session = self._auth.restore()
        self._publish(session=session)
        await self._reconcile()

    async def connect(self, endpoint: str, key: str) -> bool:
        """
        Validate and store new remote credentials.

        Errors are shown on the credential prompt; nothing else changes.
        """
        correlation_id = create_correlation_id()
        self._publish(connection_error=None)
        try:
            await self._connection.connect(endpoint, key, correlation_id)
        except RemoteStorageError as e:
            self._publish(connection_error=str(e) or self._messages.generic_connection_error)
            return False

        self._credentials = self._connection.credentials
        await self._reconcile(correlation_id)
        return True

    async def login(self, username: str, password: str) -> bool:
        """Authenticate and, on success, start loading the ledger."""
        correlation_id = create_correlation_id()
        self._publish(login_error=None)

        if self._credentials is not None:
            try:
                await self._connection.activate(self._credentials)
            except RemoteStorageError as e:
                self._publish(login_error=str(e) or self._messages.generic_connection_error)
                return False

        try:
            session = await self._auth.login(username, password, correlation_id)
        except InvalidCredentialsError as e:
            self._publish(login_error=str(e))
            return False

        self._publish(session=session, login_error=None)
        await self._reconcile(correlation_id)
        return True

    async def logout(self) -> None:
        """Drop the session, the cache and the subscription. No confirmation."""
        self._epoch += 1
        self._auth.logout(self._snapshot.session)
        self._publish(
            state=ViewState.AWAITING_AUTHENTICATION,
            session=None,
            entries=(),
            fetch_error=None,
            login_error=None,
            notice=None,
        )
        await self._live_sync.unsubscribe()

    async def reset_credentials(self) -> None:
        """
        Forget the remote credentials and go back to the credential prompt.

        The recovery action offered in FETCH_ERRORED. The session is kept,
        so reconnecting goes straight to Loading.
        """
        self._epoch += 1
        await self._live_sync.unsubscribe()
        await self._connection.reset()
        self._credentials = None
        self._publish(
            state=ViewState.AWAITING_CREDENTIALS,
            entries=(),
            fetch_error=None,
            connection_error=None,
            notice=None,
        )

    async def delete_entry(self, entry_id: str) -> bool:
        """
        Delete an entry remotely. The caller must have confirmed already.

        The cache is not patched: the change notification refreshes it.
        A failure becomes a transient notice and changes nothing else.
        """
        try:
            await self._repository.delete(entry_id, create_correlation_id())
        except FetchError as e:
            message = str(e) or self._messages.generic_delete_error
            self._publish(notice=f"Failed to delete entry: {message}")
            return False
        return True

    async def save_entry(self, entry: FinancialEntry) -> bool:
        """
        Write path used by the entry form, for new and edited entries.

        No optimistic update: the change notification refreshes the cache.
        """
        try:
            await self._repository.save(entry, create_correlation_id())
        except FetchError as e:
            message = str(e) or self._messages.generic_save_error
            self._publish(notice=f"Failed to save entry: {message}")
            return False
        return True

    # Coroutines, so every snapshot is published from the orchestrator's loop

    async def set_region(self, region: str) -> None:
        if region != self._snapshot.region:
            self._publish(region=region)

    async def set_view(self, view: View) -> None:
        if view != self._snapshot.view:
            self._publish(view=view)

    async def dismiss_notice(self) -> None:
        if self._snapshot.notice is not None:
            self._publish(notice=None)

    async def drain(self) -> None:
        """Wait for every refresh triggered by change notifications."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def shutdown(self) -> None:
        """Tear everything down (process exit or UI unmount)."""
        self._epoch += 1
        for task in list(self._tasks):
            task.cancel()
        await self._live_sync.unsubscribe()
        await self._connection.close()

    # -------------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------------

    async def _reconcile(self, correlation_id: Optional[UUID] = None) -> None:
        self._epoch += 1
        epoch = self._epoch
        await self._live_sync.unsubscribe()
        if epoch != self._epoch:
            return

        if self._credentials is None:
            self._publish(state=ViewState.AWAITING_CREDENTIALS, entries=(), fetch_error=None)
            return

        session = self._snapshot.session
        if session is None:
            self._publish(state=ViewState.AWAITING_AUTHENTICATION, entries=(), fetch_error=None)
            return

        self._publish(state=ViewState.LOADING, entries=(), fetch_error=None, notice=None)

        try:
            generation = await self._connection.activate(self._credentials)
            if not self._is_current(epoch):
                return
            # Subscribe before the first read so no change can fall in between
            await self._live_sync.subscribe(self._on_change, session.id)
            if not self._is_current(epoch, generation):
                return
            entries = await self._repository.fetch_all(session.id, correlation_id)
        except RemoteStorageError as e:
            if not self._is_current(epoch):
                self._audit_logger.log_stale_result("load", epoch, self._epoch)
                return
            await self._enter_fetch_errored(self._connection.generation, e)
            return

        if not self._is_current(epoch, generation):
            self._audit_logger.log_stale_result("load", epoch, self._epoch)
            return

        self._connection.mark_connected(generation)
        self._publish(state=ViewState.READY, entries=entries)

    def _on_change(self) -> None:
        if self._snapshot.state not in (ViewState.LOADING, ViewState.READY):
            return
        task = asyncio.get_running_loop().create_task(self._refresh(self._epoch))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _refresh(self, epoch: int) -> None:
        session = self._snapshot.session
        if not self._is_current(epoch) or session is None:
            return

        generation = self._connection.generation
        try:
            entries = await self._repository.fetch_all(session.id)
        except FetchError as e:
            if not self._is_current(epoch, generation):
                self._audit_logger.log_stale_result("refresh", epoch, self._epoch)
                return
            await self._enter_fetch_errored(generation, e)
            return

        if not self._is_current(epoch, generation):
            self._audit_logger.log_stale_result("refresh", epoch, self._epoch)
            return

        self._connection.mark_connected(generation)
        self._publish(state=ViewState.READY, entries=entries)

    async def _enter_fetch_errored(self, generation: int, error: Exception) -> None:
        # New epoch: no in-flight refresh may flip us back to READY
        self._epoch += 1
        self._connection.mark_failed(generation)
        self._publish(
            state=ViewState.FETCH_ERRORED,
            entries=(),
            fetch_error=str(error) or self._messages.generic_fetch_error,
        )
        await self._live_sync.unsubscribe()

    def _is_current(self, epoch: int, generation: Optional[int] = None) -> bool:
        if epoch != self._epoch:
            return False
        return generation is None or self._connection.is_current(generation)

    def _publish(self, **changes) -> None:
        previous = self._snapshot
        changes["connectivity"] = self._connection.status
        changes["version"] = previous.version + 1
        self._snapshot = previous.model_copy(update=changes)

        if self._snapshot.state != previous.state:
            self._audit_logger.log_state_changed(
                previous.state.value, self._snapshot.state.value, self._epoch
            )

        for listener in list(self._listeners):
            listener(self._snapshot)


def create_app_components(
    storage_factory: Optional[StorageFactory] = None,
    credential_store: Optional[CredentialStore] = None,
    audit_logger: Optional[AuditLogger] = None,
) -> ViewOrchestrator:
    """
    Factory function to wire the orchestrator and its services.

    Args:
        storage_factory: Builds a remote handle from credentials.
                         Defaults to the Supabase implementation.
        credential_store: Local storage. Defaults to the configured paths.
        audit_logger: Shared audit logger.

    Returns:
        A ViewOrchestrator; call `start()` on the event loop that will run it
    """
    audit_logger = audit_logger or AuditLogger()
    credential_store = credential_store or CredentialStore(audit_logger=audit_logger)

    connection = ConnectionManager(
        credential_store,
        storage_factory=storage_factory,
        audit_logger=audit_logger,
    )
    return ViewOrchestrator(
        credential_store=credential_store,
        connection=connection,
        auth=AuthGate(connection, credential_store, audit_logger=audit_logger),
        repository=EntryRepository(connection, audit_logger=audit_logger),
        live_sync=LiveSyncSubscription(connection, audit_logger=audit_logger),
        audit_logger=audit_logger,
    )
