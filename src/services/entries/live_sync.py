"""
Live Sync Subscription

Turns realtime change notifications on the entries table into a plain
"something changed" signal.

DESIGN DECISION: The signal carries no payload. The handler re-fetches the
full filtered set instead of merging deltas, so there is no merge order to
get wrong and a missed or reordered event cannot corrupt the cache.
"""

from typing import Any, Callable, Optional

from src.audit import AuditLogger
from src.config import get_settings
from src.services.connection import ConnectionManager
from src.services.storage import RemoteStorageInterface


class LiveSyncSubscription:
    """
    At most one live channel on the entries table.

    Subscribing again tears the previous channel down first. A handler
    belonging to a torn-down channel, or to a replaced connection, is
    ignored even if the backend still delivers to it.
    """

    def __init__(
        self,
        connection: ConnectionManager,
        audit_logger: Optional[AuditLogger] = None,
        entries_table: Optional[str] = None,
        channel_name: Optional[str] = None,
    ):
        settings = get_settings().supabase
        self._connection = connection
        self._audit_logger = audit_logger or AuditLogger()
        self._table = entries_table or settings.entries_table
        self._channel_name = channel_name or settings.channel_name

        self._channel: Any = None
        self._storage: Optional[RemoteStorageInterface] = None
        self._generation: Optional[int] = None
        self._token: Optional[object] = None

    @property
    def active(self) -> bool:
        return (
            self._channel is not None
            and self._generation is not None
            and self._connection.is_current(self._generation)
        )

    async def subscribe(self, on_change: Callable[[], None], user_id: str) -> None:
        """
        Start delivering change signals to `on_change`.

        Raises:
            ConnectionError: If the channel cannot be joined
        """
        await self.unsubscribe()

        storage = self._connection.storage
        generation = self._connection.generation
        token = object()
        self._token = token

        def handle_change() -> None:
            if self._token is not token or not self._connection.is_current(generation):
                return  # orphaned channel
            self._audit_logger.log_change_received(self._table)
            on_change()

        channel = await storage.subscribe(self._channel_name, self._table, handle_change)

        if self._token is not token or not self._connection.is_current(generation):
            # Torn down or reconnected while joining
            await storage.unsubscribe(channel)
            return

        self._channel = channel
        self._storage = storage
        self._generation = generation
        self._audit_logger.log_subscription_started(self._table, user_id)

    async def unsubscribe(self) -> None:
        """Tear the channel down. Safe to call when nothing is subscribed."""
        channel, storage = self._channel, self._storage
        self._channel = None
        self._storage = None
        self._generation = None
        self._token = None

        if channel is not None and storage is not None:
            await storage.unsubscribe(channel)
            self._audit_logger.log_subscription_stopped(self._table)
