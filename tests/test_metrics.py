"""Tests for portfolio metric derivation."""

from datetime import date
from decimal import Decimal

import pytest

from src.metrics import (
    MetricsDeriver,
    build_timeline,
    derive,
    filter_by_kind,
    filter_by_region,
    slice_timeline,
    unique_names,
)
from src.models.entry import EntryKind, parse_entries

from tests.fakes import fund_row, stock_row


def entries(*rows):
    return parse_entries(list(rows))


class TestFilters:
    """Tests for region and kind filtering."""

    def test_filter_by_region_keeps_order(self):
        """Test that filtering keeps only the region, in order."""
        ledger = entries(
            stock_row("1", region="India"),
            stock_row("2", region="US"),
            stock_row("3", region="India"),
        )
        assert [e.id for e in filter_by_region(ledger, "India")] == ["1", "3"]

    def test_filter_does_not_mutate(self):
        """Test that the source tuple is untouched."""
        ledger = entries(stock_row("1", region="US"))
        filter_by_region(ledger, "India")
        assert len(ledger) == 1

    def test_filter_by_kind(self):
        """Test splitting stocks from funds."""
        ledger = entries(stock_row("1"), fund_row("2"))
        assert [e.id for e in filter_by_kind(ledger, EntryKind.MUTUAL_FUND)] == ["2"]

    def test_unique_names_first_seen(self):
        """Test that names are distinct and in first-seen order."""
        ledger = entries(
            stock_row("1", name="TCS"),
            stock_row("2", name="INFY"),
            stock_row("3", name="TCS"),
            fund_row("4", name="Index Fund"),
        )
        assert unique_names(ledger, EntryKind.STOCK) == ["TCS", "INFY"]


class TestDerive:
    """Tests for holdings and totals."""

    def test_empty(self):
        """Test that no entries give zero metrics."""
        metrics = derive(())
        assert metrics.entry_count == 0
        assert metrics.total_invested == 0
        assert metrics.return_pct == 0
        assert metrics.holdings == ()

    def test_single_buy(self):
        """Test a single stock purchase."""
        metrics = derive(entries(stock_row("1", price="100", quantity="10")))
        assert metrics.total_invested == Decimal("1000")
        assert metrics.current_value == Decimal("1000")
        assert metrics.stock_count == 1
        assert metrics.unrealized_gain == 0

    def test_latest_price_values_holding(self):
        """Test that the most recent price values the position."""
        metrics = derive(entries(
            stock_row("1", price="100", quantity="10", created_at="2024-01-01T00:00:00+00:00"),
            stock_row("2", price="120", quantity="10", created_at="2024-02-01T00:00:00+00:00"),
        ))
        holding = metrics.holdings[0]
        assert holding.quantity == Decimal("20")
        assert holding.average_cost == Decimal("110")
        assert metrics.current_value == Decimal("2400")
        assert metrics.unrealized_gain == Decimal("200")

    def test_sell_uses_average_cost(self):
        """Test realized gain against the average cost."""
        metrics = derive(entries(
            stock_row("1", price="100", quantity="10", created_at="2024-01-01T00:00:00+00:00"),
            stock_row("2", price="200", quantity="10", created_at="2024-02-01T00:00:00+00:00"),
            stock_row(
                "3", price="180", quantity="5", operation="sell",
                created_at="2024-03-01T00:00:00+00:00",
            ),
        ))
        holding = metrics.holdings[0]
        # average cost 150, sold 5 at 180
        assert holding.realized_gain == Decimal("150")
        assert holding.quantity == Decimal("15")
        assert holding.cost_basis == Decimal("2250")
        assert metrics.realized_gain == Decimal("150")

    def test_oversell_is_clamped(self):
        """Test that selling more than held only sells what is held."""
        metrics = derive(entries(
            stock_row("1", price="10", quantity="5", created_at="2024-01-01T00:00:00+00:00"),
            stock_row(
                "2", price="12", quantity="8", operation="sell",
                created_at="2024-02-01T00:00:00+00:00",
            ),
        ))
        holding = metrics.holdings[0]
        assert holding.quantity == 0
        assert holding.cost_basis == 0
        assert holding.realized_gain == Decimal("10")
        assert not holding.is_open
        assert metrics.open_holdings == ()

    def test_entry_order_does_not_matter(self):
        """Test that replay uses timestamps, not fetch order."""
        buy = stock_row("1", price="10", quantity="5", created_at="2024-01-01T00:00:00+00:00")
        sell = stock_row(
            "2", price="12", quantity="5", operation="sell",
            created_at="2024-02-01T00:00:00+00:00",
        )
        assert derive(entries(buy, sell)) == derive(entries(sell, buy))
        assert derive(entries(sell, buy)).realized_gain == Decimal("10")

    def test_funds_and_categories(self):
        """Test fund values and the category split, largest first."""
        metrics = derive(entries(
            fund_row("1", name="Debt Fund", units="10", nav="10", amount="100", category="Debt"),
            fund_row("2", name="Index Fund", units="10", nav="50", amount="500", category="Equity"),
            stock_row("3", price="1", quantity="1"),
        ))
        assert metrics.mutual_fund_count == 2
        assert metrics.mutual_fund_value == Decimal("600")
        assert metrics.stock_value == Decimal("1")
        assert [name for name, _ in metrics.category_allocation] == ["Equity", "Debt"]

    def test_same_name_different_kind_kept_apart(self):
        """Test that a stock and a fund with one name are separate holdings."""
        metrics = derive(entries(stock_row("1", name="HDFC"), fund_row("2", name="HDFC")))
        assert len(metrics.holdings) == 2

    def test_derive_is_pure(self):
        """Test that equal inputs give equal metrics and the input is untouched."""
        rows = [
            stock_row("1", price="100", quantity="10", created_at="2024-01-01T00:00:00+00:00"),
            stock_row(
                "2", price="120", quantity="4", operation="sell",
                created_at="2024-02-01T00:00:00+00:00",
            ),
            fund_row("3", category="Debt"),
        ]
        ledger = entries(*rows)
        copy = entries(*[dict(row) for row in rows])
        before = [e.model_dump() for e in ledger]

        assert derive(ledger) == derive(copy)
        assert derive(ledger) == derive(ledger)
        assert [e.model_dump() for e in ledger] == before
        assert ledger == copy

    def test_return_pct(self):
        """Test the unrealized return percentage."""
        metrics = derive(entries(
            stock_row("1", price="100", quantity="1", created_at="2024-01-01T00:00:00+00:00"),
            stock_row("2", price="150", quantity="1", created_at="2024-02-01T00:00:00+00:00"),
        ))
        # cost 250, value 300
        assert metrics.return_pct == Decimal("20")


class TestTimeline:
    """Tests for the invested-over-time series."""

    def test_cumulative_per_day(self):
        """Test that points accumulate and collapse to one per day."""
        points = build_timeline(entries(
            stock_row("1", price="10", quantity="1", created_at="2024-01-01T09:00:00+00:00"),
            stock_row("2", price="5", quantity="1", created_at="2024-01-01T15:00:00+00:00"),
            stock_row(
                "3", price="3", quantity="1", operation="sell",
                created_at="2024-01-05T09:00:00+00:00",
            ),
        ))
        assert [(p.day, p.invested) for p in points] == [
            (date(2024, 1, 1), Decimal("15")),
            (date(2024, 1, 5), Decimal("12")),
        ]

    def test_slice_ranges(self):
        """Test that ranges cut from the end date backwards."""
        points = build_timeline(entries(
            stock_row("1", created_at="2023-01-01T00:00:00+00:00"),
            stock_row("2", created_at="2024-05-01T00:00:00+00:00"),
            stock_row("3", created_at="2024-06-20T00:00:00+00:00"),
        ))
        today = date(2024, 6, 30)
        assert len(slice_timeline(points, "1m", today)) == 1
        assert len(slice_timeline(points, "6m", today)) == 2
        assert len(slice_timeline(points, "1y", today)) == 2
        assert len(slice_timeline(points, "All", today)) == 3

    def test_unknown_range(self):
        """Test that an unknown range is rejected."""
        with pytest.raises(ValueError, match="Unknown time range"):
            slice_timeline((), "5y", date(2024, 1, 1))


class TestMetricsDeriver:
    """Tests for memoization."""

    def test_same_entries_not_recomputed(self):
        """Test that asking twice for the same set computes once."""
        deriver = MetricsDeriver()
        ledger = entries(stock_row("1"))
        first = deriver.metrics_for(ledger)
        second = deriver.metrics_for(entries(stock_row("1")))
        assert first is second
        assert deriver.computations == 1

    def test_changed_entries_recomputed(self):
        """Test that a different set is recomputed."""
        deriver = MetricsDeriver()
        deriver.metrics_for(entries(stock_row("1")))
        metrics = deriver.metrics_for(entries(stock_row("1"), stock_row("2")))
        assert metrics.entry_count == 2
        assert deriver.computations == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
