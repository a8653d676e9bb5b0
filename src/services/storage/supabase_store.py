"""
Supabase Storage Implementation

DESIGN DECISION: Supabase is the remote backend because:
1. The user brings their own project (URL + anon key), no server to run
2. PostgREST gives us server-side filtering by user id
3. Realtime postgres_changes gives us push notifications for free

TRADEOFFS:
- Users are a plain table with plaintext passwords (see DESIGN.md)
- Row Level Security misconfiguration surfaces as fetch errors, which is
  why the UI explains RLS on the fetch error screen

The implementation follows the abstract interface, so the orchestrator
never imports the Supabase client.
"""

import asyncio
from typing import Any, Callable, Optional

import structlog
from supabase import AsyncClient, acreate_client
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from src.config import get_settings
from src.models.session import Credentials
from src.services.storage.interface import (
    ChangeCallback,
    ConnectionError,
    FetchError,
    InvalidCredentialsError,
    RemoteStorageError,
    RemoteStorageInterface,
)


logger = structlog.get_logger(__name__)

# Substrings Supabase/PostgREST use when the key or token is rejected
AUTH_ERROR_MARKERS = (
    "invalid api key",
    "invalid jwt",
    "jwt expired",
    "no api key found",
)

# PostgREST error codes for JWT problems
AUTH_ERROR_CODES = {"PGRST301", "PGRST302"}

# Join outcomes reported by realtime through the subscribe state callback
JOINED_STATE = "SUBSCRIBED"
JOIN_FAILED_STATES = {"CHANNEL_ERROR", "TIMED_OUT", "CLOSED"}


def error_message(error: BaseException) -> str:
    """Best human-readable message from a client exception."""
    message = getattr(error, "message", None)
    if message:
        return str(message)
    return str(error) or type(error).__name__


def is_auth_error(error: BaseException) -> bool:
    """Does this exception mean the key/token was rejected?"""
    code = getattr(error, "code", None)
    if code is not None and str(code) in AUTH_ERROR_CODES:
        return True
    message = error_message(error).lower()
    return any(marker in message for marker in AUTH_ERROR_MARKERS)


def classify_connection_error(error: BaseException) -> RemoteStorageError:
    """Map a client exception raised while connecting to our taxonomy."""
    if isinstance(error, RemoteStorageError):
        return error
    if is_auth_error(error):
        return InvalidCredentialsError(
            "Connection failed: Invalid Supabase URL or Anon Key."
        )
    return ConnectionError(error_message(error))


class SupabaseRemoteStorage(RemoteStorageInterface):
    """
    Supabase implementation of remote storage.

    Wraps one AsyncClient. Every data call goes through PostgREST;
    change notifications go through a realtime channel per subscription.
    """

    def __init__(
        self,
        client: AsyncClient,
        schema_name: str = "public",
        subscribe_attempts: int = 3,
        join_timeout: float = 10.0,
    ):
        self._client = client
        self._schema_name = schema_name
        self._subscribe_attempts = subscribe_attempts
        self._join_timeout = join_timeout
        self._closed = False

    def _ensure_open(self) -> AsyncClient:
        if self._closed:
            raise ConnectionError("Connection handle has been replaced")
        return self._client

    async def probe(self, table: str) -> None:
        """Head/count query on `table`."""
        client = self._ensure_open()
        try:
            await client.table(table).select("*", count="exact", head=True).execute()
        except Exception as e:
            raise classify_connection_error(e) from e

    async def find_users(self, table: str, username: str, password: str) -> list[dict]:
        client = self._ensure_open()
        try:
            response = await (
                client.table(table)
                .select("id, username")
                .eq("username", username)
                .eq("password", password)
                .execute()
            )
        except Exception as e:
            raise RemoteStorageError(error_message(e)) from e
        return list(response.data or [])

    async def select_entries(self, table: str, user_id: str) -> list[dict]:
        client = self._ensure_open()
        try:
            response = await (
                client.table(table)
                .select("*")
                .eq("user_id", user_id)
                .execute()
            )
        except Exception as e:
            raise FetchError(error_message(e)) from e
        return list(response.data or [])

    async def delete_entry(self, table: str, entry_id: str) -> None:
        client = self._ensure_open()
        try:
            await client.table(table).delete().eq("id", entry_id).execute()
        except Exception as e:
            raise FetchError(error_message(e)) from e

    async def upsert_entry(self, table: str, row: dict[str, Any]) -> None:
        client = self._ensure_open()
        try:
            await client.table(table).upsert(row).execute()
        except Exception as e:
            raise FetchError(error_message(e)) from e

    async def subscribe(self, channel_name: str, table: str, callback: ChangeCallback) -> Any:
        """
        Join a realtime channel for `table`, event filter `*`.

        The payload is dropped: callers only need to know that something
        changed. Each attempt builds a fresh channel, since a realtime
        channel can only be joined once.
        """
        self._ensure_open()

        def on_change(payload: dict) -> None:
            logger.debug(
                "realtime_change",
                table=table,
                event_type=payload.get("eventType") if isinstance(payload, dict) else None,
            )
            callback()

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._subscribe_attempts),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
                reraise=True,
            ):
                with attempt:
                    channel = await self._join(channel_name, table, on_change)
        except Exception as e:
            raise ConnectionError(f"Could not subscribe to {table}: {error_message(e)}") from e

        return channel

    async def _join(self, channel_name: str, table: str, on_change: Callable[[dict], None]) -> Any:
        """
        One join attempt.

        realtime reports the outcome only through the state callback, so
        the attempt waits for SUBSCRIBED and fails on an error state or
        after `join_timeout` seconds. A failed channel is removed.
        """
        client = self._ensure_open()
        channel = client.channel(channel_name)
        channel.on_postgres_changes(
            event="*",
            schema=self._schema_name,
            table=table,
            callback=on_change,
        )
        joined = asyncio.get_running_loop().create_future()

        def on_state(state: Any, error: Optional[Exception] = None) -> None:
            if joined.done():
                return
            status = str(getattr(state, "value", state))
            if status == JOINED_STATE:
                joined.set_result(None)
            elif status in JOIN_FAILED_STATES:
                reason = error_message(error) if error is not None else status
                joined.set_exception(ConnectionError(reason))

        try:
            await channel.subscribe(on_state)
            await asyncio.wait_for(joined, timeout=self._join_timeout)
        except Exception as e:
            logger.warning("realtime_join_failed", table=table, error=error_message(e))
            await self.unsubscribe(channel)
            raise

        return channel

    async def unsubscribe(self, channel: Any) -> None:
        if channel is None:
            return
        try:
            await self._client.remove_channel(channel)
        except Exception as e:
            # Channel may already be gone with the socket
            logger.warning("realtime_unsubscribe_failed", error=error_message(e))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._client.remove_all_channels()
        except Exception as e:
            logger.warning("realtime_close_failed", error=error_message(e))


async def create_supabase_storage(
    credentials: Credentials,
    schema_name: Optional[str] = None,
    subscribe_attempts: Optional[int] = None,
    join_timeout: Optional[float] = None,
) -> SupabaseRemoteStorage:
    """
    Build a storage handle for a Supabase project.

    Client construction validates the URL and key format, so it can
    already fail with InvalidCredentialsError or ConnectionError.
    """
    settings = get_settings().supabase
    try:
        client = await acreate_client(credentials.endpoint, credentials.key)
    except Exception as e:
        raise classify_connection_error(e) from e

    return SupabaseRemoteStorage(
        client,
        schema_name=schema_name or settings.schema_name,
        subscribe_attempts=subscribe_attempts or settings.subscribe_attempts,
        join_timeout=join_timeout or settings.join_timeout_seconds,
    )
