"""
Tests for Zenfolio

Test strategy:
1. Unit tests for individual components (models, metrics, storage)
2. Integration tests for flows against an in-memory remote database
3. No real Supabase calls in tests
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from pydantic import ValidationError

from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from src.models.entry import (
    EntryKind,
    MutualFundEntry,
    Operation,
    StockEntry,
    entry_to_row,
    parse_entries,
)
from src.models.region import REGIONS, currency_for, format_currency
from src.models.session import Credentials, Session
from src.models.state import ConnectivityStatus, Snapshot, ViewState

from tests.fakes import fund_row, stock_row


class TestEntryModels:
    """Tests for the financial entry union."""

    def test_parse_picks_variant_from_type(self):
        """Test that the `type` column selects the model."""
        entries = parse_entries([stock_row("a"), fund_row("b")])
        assert isinstance(entries[0], StockEntry)
        assert isinstance(entries[1], MutualFundEntry)
        assert entries[0].kind == EntryKind.STOCK
        assert entries[1].kind == EntryKind.MUTUAL_FUND

    def test_parse_returns_tuple_in_row_order(self):
        """Test that parsing keeps the fetch order."""
        entries = parse_entries([stock_row("2"), stock_row("1")])
        assert isinstance(entries, tuple)
        assert [e.id for e in entries] == ["2", "1"]

    def test_numeric_ids_become_strings(self):
        """Test that bigint ids from Postgres are accepted."""
        row = stock_row("x")
        row["id"] = 42
        row["user_id"] = 7
        entry = parse_entries([row])[0]
        assert entry.id == "42"
        assert entry.user_id == "7"

    def test_unknown_type_rejected(self):
        """Test that an unknown discriminator fails validation."""
        row = stock_row("x")
        row["type"] = "bond"
        with pytest.raises(ValidationError):
            parse_entries([row])

    def test_negative_price_rejected(self):
        """Test that negative prices are rejected."""
        with pytest.raises(ValidationError):
            parse_entries([stock_row("x", price="-1")])

    def test_extra_columns_ignored(self):
        """Test that unknown columns do not break parsing."""
        row = fund_row("x")
        row["notes"] = "monthly SIP"
        entry = parse_entries([row])[0]
        assert entry.name == "Index Fund"

    def test_stock_gross_amount(self):
        """Test that a stock trade is worth price times quantity."""
        entry = parse_entries([stock_row("x", price="12.5", quantity="4")])[0]
        assert entry.gross_amount == Decimal("50.0")
        assert entry.unit_price == Decimal("12.5")
        assert entry.volume == Decimal("4")

    def test_fund_gross_amount_prefers_amount(self):
        """Test that the recorded amount wins over units times NAV."""
        entry = parse_entries([fund_row("x", units="10", nav="50", amount="480")])[0]
        assert entry.gross_amount == Decimal("480")

    def test_fund_gross_amount_falls_back_to_units_nav(self):
        """Test that rows without an amount use units times NAV."""
        entry = parse_entries([fund_row("x", units="10", nav="50", amount="0")])[0]
        assert entry.gross_amount == Decimal("500")

    def test_entries_are_frozen(self):
        """Test that cached entries cannot be mutated."""
        entry = parse_entries([stock_row("x")])[0]
        with pytest.raises(ValidationError):
            entry.name = "TCS"

    def test_entry_to_row_keeps_discriminator(self):
        """Test that serialized rows carry their type."""
        entry = StockEntry(
            id="x",
            user_id="1",
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            name="INFY",
            region="India",
            operation=Operation.SELL,
            price=Decimal("10"),
            quantity=Decimal("2"),
        )
        row = entry_to_row(entry)
        assert row["type"] == "stock"
        assert row["operation"] == "sell"
        assert row["price"] == "10"


class TestSessionModels:
    """Tests for credentials and session."""

    def test_credentials_hide_key(self):
        """Test that the key never shows up in repr or str."""
        credentials = Credentials(endpoint="https://x.supabase.co", key="super-secret")
        assert "super-secret" not in repr(credentials)
        assert "super-secret" not in str(credentials)

    def test_credentials_require_both_fields(self):
        """Test that blank values are rejected."""
        with pytest.raises(ValidationError):
            Credentials(endpoint="https://x.supabase.co", key="   ")

    def test_credentials_equality(self):
        """Test that identical credentials compare equal."""
        a = Credentials(endpoint="https://x.supabase.co", key="k")
        b = Credentials(endpoint=" https://x.supabase.co ", key="k")
        assert a == b

    def test_session_user_id(self):
        """Test that numeric user ids are coerced."""
        session = Session.model_validate({"id": 5, "username": "asha"})
        assert session.user_id == "5"


class TestRegions:
    """Tests for currency formatting."""

    def test_format_currency(self):
        """Test grouping and two decimals."""
        assert format_currency(Decimal("1234.5"), "India") == "₹1,234.50"
        assert format_currency(10, "US") == "$10.00"

    def test_format_negative(self):
        """Test that losses carry a leading minus."""
        assert format_currency(Decimal("-3.456"), "Europe") == "-€3.46"

    def test_unknown_region_falls_back(self):
        """Test that unknown regions use USD."""
        assert currency_for("Mars").code == "USD"

    def test_every_region_has_currency(self):
        """Test that each selectable region maps to a currency."""
        for region in REGIONS:
            assert currency_for(region).symbol


class TestSnapshot:
    """Tests for the view snapshot."""

    def test_defaults(self):
        """Test that a fresh snapshot waits for credentials."""
        snapshot = Snapshot()
        assert snapshot.state == ViewState.AWAITING_CREDENTIALS
        assert snapshot.connectivity == ConnectivityStatus.IDLE
        assert snapshot.entries == ()
        assert snapshot.username is None

    def test_snapshot_is_frozen(self):
        """Test that snapshots are immutable."""
        with pytest.raises(ValidationError):
            Snapshot().state = ViewState.READY


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.FETCH_COMPLETED,
            entity_id="1",
            description="Fetched 3 entries",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "fetch_completed"
        assert log_dict["entity_id"] == "1"
        assert log_dict["severity"] == "info"

    def test_login_failed_has_no_password(self):
        """Test that rejected logins only record the reason."""
        event = AuditEventBuilder.login_failed("asha", "0 matching rows")
        assert event.severity == AuditSeverity.WARNING
        assert event.details == {"reason": "0 matching rows"}

    def test_stale_result_event(self):
        """Test the stale result event records both epochs."""
        event = AuditEventBuilder.stale_result_discarded("load", 2, 3)
        assert event.event_type == AuditEventType.STALE_RESULT_DISCARDED
        assert event.details["started_epoch"] == 2
        assert event.details["current_epoch"] == 3


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
