"""Tests for the Supabase storage adapter, with the client mocked out."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.models.session import Credentials
from src.services.storage import (
    ConnectionError,
    FetchError,
    InvalidCredentialsError,
    RemoteStorageError,
    SupabaseRemoteStorage,
    classify_connection_error,
    create_supabase_storage,
    error_message,
    is_auth_error,
)
from src.services.storage import supabase_store


class FakeAPIError(Exception):
    """Shaped like postgrest's APIError: message and code attributes."""

    def __init__(self, message, code=None):
        super().__init__(message)
        self.message = message
        self.code = code


def make_client():
    client = MagicMock()
    client.remove_channel = AsyncMock()
    client.remove_all_channels = AsyncMock()
    return client


class TestErrorClassification:
    """Tests for mapping client errors to our exceptions."""

    def test_auth_error_by_message(self):
        """Test that key rejections are recognised from the message."""
        assert is_auth_error(Exception("Invalid API key"))
        assert is_auth_error(FakeAPIError("JWT expired"))

    def test_auth_error_by_code(self):
        """Test that PostgREST JWT codes are recognised."""
        assert is_auth_error(FakeAPIError("whatever", code="PGRST301"))

    def test_other_errors_are_not_auth(self):
        """Test that missing tables are not credential problems."""
        assert not is_auth_error(FakeAPIError('relation "financial_entries" does not exist', code="42P01"))

    def test_classify_auth(self):
        """Test that an auth failure gets the user-facing message."""
        error = classify_connection_error(Exception("Invalid API key"))
        assert isinstance(error, InvalidCredentialsError)
        assert str(error) == "Connection failed: Invalid Supabase URL or Anon Key."

    def test_classify_other(self):
        """Test that other failures keep the backend message."""
        error = classify_connection_error(FakeAPIError("timed out"))
        assert isinstance(error, ConnectionError)
        assert str(error) == "timed out"

    def test_classify_passes_ours_through(self):
        """Test that already-classified errors are returned unchanged."""
        original = FetchError("boom")
        assert classify_connection_error(original) is original

    def test_error_message_fallback(self):
        """Test that exceptions without text still produce a message."""
        assert error_message(ValueError()) == "ValueError"


class TestQueries:
    """Tests for PostgREST calls."""

    def test_probe_success(self):
        """Test that a head query that succeeds is a valid probe."""
        client = make_client()
        client.table.return_value.select.return_value.execute = AsyncMock()
        storage = SupabaseRemoteStorage(client)

        asyncio.run(storage.probe("financial_entries"))

        client.table.assert_called_with("financial_entries")
        client.table.return_value.select.assert_called_with("*", count="exact", head=True)

    def test_probe_rejected_key(self):
        """Test that a rejected key is InvalidCredentialsError."""
        client = make_client()
        client.table.return_value.select.return_value.execute = AsyncMock(
            side_effect=FakeAPIError("Invalid API key")
        )
        storage = SupabaseRemoteStorage(client)

        with pytest.raises(InvalidCredentialsError):
            asyncio.run(storage.probe("financial_entries"))

    def test_find_users(self):
        """Test that user rows are returned as a list."""
        client = make_client()
        query = client.table.return_value.select.return_value.eq.return_value.eq.return_value
        query.execute = AsyncMock(return_value=MagicMock(data=[{"id": 1, "username": "asha"}]))
        storage = SupabaseRemoteStorage(client)

        rows = asyncio.run(storage.find_users("users", "asha", "secret"))
        assert rows == [{"id": 1, "username": "asha"}]

    def test_find_users_error(self):
        """Test that lookup failures are RemoteStorageError."""
        client = make_client()
        query = client.table.return_value.select.return_value.eq.return_value.eq.return_value
        query.execute = AsyncMock(side_effect=FakeAPIError("relation users does not exist"))
        storage = SupabaseRemoteStorage(client)

        with pytest.raises(RemoteStorageError):
            asyncio.run(storage.find_users("users", "asha", "secret"))

    def test_select_entries_error(self):
        """Test that read failures are FetchError with the backend message."""
        client = make_client()
        query = client.table.return_value.select.return_value.eq.return_value
        query.execute = AsyncMock(side_effect=FakeAPIError("permission denied"))
        storage = SupabaseRemoteStorage(client)

        with pytest.raises(FetchError, match="permission denied"):
            asyncio.run(storage.select_entries("financial_entries", "1"))

    def test_select_entries_empty(self):
        """Test that a null data payload is an empty list."""
        client = make_client()
        query = client.table.return_value.select.return_value.eq.return_value
        query.execute = AsyncMock(return_value=MagicMock(data=None))
        storage = SupabaseRemoteStorage(client)

        assert asyncio.run(storage.select_entries("financial_entries", "1")) == []

    def test_closed_handle_refuses_calls(self):
        """Test that a replaced handle cannot be used."""
        storage = SupabaseRemoteStorage(make_client())

        async def scenario():
            await storage.close()
            await storage.select_entries("financial_entries", "1")

        with pytest.raises(ConnectionError):
            asyncio.run(scenario())


class FakeChannel:
    """
    Shaped like a realtime channel: `subscribe` returns normally and the
    join outcome arrives through the state callback. `state=None` never
    answers, like a server that does not reply.
    """

    def __init__(self, state="SUBSCRIBED", error=None, later=()):
        self.state = state
        self.later = later
        self.error = error
        self.on_postgres_changes = MagicMock()
        self.subscribe_calls = 0

    async def subscribe(self, callback=None):
        self.subscribe_calls += 1
        if callback is not None and self.state is not None:
            callback(self.state, self.error)
            for state in self.later:
                callback(state, None)
        return self


class TestRealtime:
    """Tests for the realtime channel."""

    def test_subscribe_delivers_changes(self):
        """Test that payloads become plain change signals."""
        client = make_client()
        channel = FakeChannel()
        client.channel.return_value = channel
        storage = SupabaseRemoteStorage(client)
        changes = []

        result = asyncio.run(
            storage.subscribe("financial_entries", "financial_entries", lambda: changes.append(1))
        )

        assert result is channel
        kwargs = channel.on_postgres_changes.call_args.kwargs
        assert kwargs["event"] == "*"
        assert kwargs["table"] == "financial_entries"
        kwargs["callback"]({"eventType": "DELETE"})
        assert changes == [1]

    def test_channel_error_is_a_failed_join(self):
        """Test that CHANNEL_ERROR reported through the callback fails the subscribe."""
        client = make_client()
        channel = FakeChannel("CHANNEL_ERROR", RuntimeError("permission denied"))
        client.channel.return_value = channel
        storage = SupabaseRemoteStorage(client, subscribe_attempts=1)

        with pytest.raises(ConnectionError, match="permission denied"):
            asyncio.run(storage.subscribe("c", "financial_entries", lambda: None))
        client.remove_channel.assert_awaited_once_with(channel)

    def test_no_answer_times_out(self):
        """Test that a join that is never confirmed fails after the timeout."""
        client = make_client()
        client.channel.return_value = FakeChannel(state=None)
        storage = SupabaseRemoteStorage(client, subscribe_attempts=1, join_timeout=0.05)

        with pytest.raises(ConnectionError, match="Could not subscribe"):
            asyncio.run(storage.subscribe("c", "financial_entries", lambda: None))

    def test_retry_uses_fresh_channel(self):
        """Test that each attempt joins a new channel and the failed one is removed."""
        client = make_client()
        failed = FakeChannel("TIMED_OUT")
        joined = FakeChannel()
        client.channel.side_effect = [failed, joined]
        storage = SupabaseRemoteStorage(client, subscribe_attempts=2)

        result = asyncio.run(storage.subscribe("c", "financial_entries", lambda: None))

        assert result is joined
        assert failed.subscribe_calls == 1
        assert joined.subscribe_calls == 1
        client.remove_channel.assert_awaited_once_with(failed)

    def test_subscribe_gives_up(self):
        """Test that an unjoinable channel is reported after every attempt."""
        client = make_client()
        client.channel.side_effect = lambda name: FakeChannel("CHANNEL_ERROR")
        storage = SupabaseRemoteStorage(client, subscribe_attempts=2)

        with pytest.raises(ConnectionError, match="Could not subscribe"):
            asyncio.run(storage.subscribe("c", "financial_entries", lambda: None))
        assert client.channel.call_count == 2
        assert client.remove_channel.await_count == 2

    def test_late_states_are_ignored(self):
        """Test that a CLOSED after a successful join does not fail the subscribe."""
        client = make_client()
        channel = FakeChannel(later=("CLOSED",))
        client.channel.return_value = channel
        storage = SupabaseRemoteStorage(client)

        result = asyncio.run(storage.subscribe("c", "financial_entries", lambda: None))
        assert result is channel
        client.remove_channel.assert_not_awaited()

    def test_unsubscribe_never_raises(self):
        """Test that a failing removal is only logged."""
        client = make_client()
        client.remove_channel = AsyncMock(side_effect=RuntimeError("already gone"))
        storage = SupabaseRemoteStorage(client)

        asyncio.run(storage.unsubscribe(MagicMock()))


class TestFactory:
    """Tests for building a handle from credentials."""

    def test_bad_url(self, monkeypatch):
        """Test that client construction errors are classified."""
        monkeypatch.setattr(
            supabase_store,
            "acreate_client",
            AsyncMock(side_effect=Exception("Invalid URL")),
        )
        credentials = Credentials(endpoint="not a url", key="k")

        with pytest.raises(ConnectionError, match="Invalid URL"):
            asyncio.run(create_supabase_storage(credentials))

    def test_builds_storage(self, monkeypatch):
        """Test that a client becomes a storage handle."""
        client = make_client()
        monkeypatch.setattr(supabase_store, "acreate_client", AsyncMock(return_value=client))
        credentials = Credentials(endpoint="https://demo.supabase.co", key="k")

        storage = asyncio.run(create_supabase_storage(credentials))
        assert isinstance(storage, SupabaseRemoteStorage)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
