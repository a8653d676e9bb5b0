"""
Portfolio Metrics

DESIGN DECISION: Metric derivation is a PURE function of the filtered
entry set. No I/O, no clock, no mutation of the input. This makes it
safe to memoize on the content of the entry tuple, which is what
MetricsDeriver does: recompute when the filtered set changes, never on an
unrelated re-render.

Holdings use the average cost method: a sell removes cost basis at the
current average cost of the position.
"""

from collections import OrderedDict
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from src.models.entry import EntryKind, FinancialEntry, MutualFundEntry, Operation
from src.models.metrics import ZERO, DerivedMetrics, InstrumentHolding, TimelinePoint


# Days covered by each dashboard time range; None means everything
TIME_RANGE_DAYS = {
    "1m": 30,
    "6m": 182,
    "1y": 365,
    "All": None,
}


def filter_by_region(entries: Iterable[FinancialEntry], region: str) -> tuple[FinancialEntry, ...]:
    """Entries whose region equals `region`, in their original order."""
    return tuple(e for e in entries if e.region == region)


def filter_by_kind(entries: Iterable[FinancialEntry], kind: EntryKind) -> tuple[FinancialEntry, ...]:
    return tuple(e for e in entries if e.kind == kind)


def unique_names(entries: Iterable[FinancialEntry], kind: EntryKind) -> list[str]:
    """Distinct instrument names of one kind, in first-seen order."""
    return list(OrderedDict.fromkeys(e.name for e in entries if e.kind == kind))


def _chronological(entries: Sequence[FinancialEntry]) -> list[FinancialEntry]:
    # sorted() is stable, so same-timestamp entries keep their fetch order
    return sorted(entries, key=lambda e: e.created_at)


def _replay(name: str, kind: EntryKind, history: list[FinancialEntry]) -> InstrumentHolding:
    quantity = ZERO
    cost_basis = ZERO
    realized = ZERO
    category: Optional[str] = None

    for entry in history:
        if isinstance(entry, MutualFundEntry):
            category = entry.category

        if entry.operation == Operation.BUY:
            quantity += entry.volume
            cost_basis += entry.gross_amount
            continue

        if quantity <= 0 or entry.volume <= 0:
            continue
        sold = min(entry.volume, quantity)
        average_cost = cost_basis / quantity
        proceeds = entry.gross_amount * sold / entry.volume
        realized += proceeds - average_cost * sold
        cost_basis -= average_cost * sold
        quantity -= sold
        if quantity == 0:
            cost_basis = ZERO

    return InstrumentHolding(
        name=name,
        kind=kind,
        category=category,
        quantity=quantity,
        cost_basis=cost_basis,
        last_price=history[-1].unit_price,
        realized_gain=realized,
        transaction_count=len(history),
    )


def build_timeline(entries: Sequence[FinancialEntry]) -> tuple[TimelinePoint, ...]:
    """Cumulative net invested (buys minus sell proceeds) per calendar day."""
    totals: "OrderedDict[date, Decimal]" = OrderedDict()
    running = ZERO
    for entry in _chronological(entries):
        if entry.operation == Operation.BUY:
            running += entry.gross_amount
        else:
            running -= entry.gross_amount
        totals[entry.created_at.date()] = running
    return tuple(TimelinePoint(day=day, invested=value) for day, value in totals.items())


def slice_timeline(
    points: Sequence[TimelinePoint],
    time_range: str,
    today: date,
) -> tuple[TimelinePoint, ...]:
    """
    Points inside a dashboard time range ending at `today`.

    Raises:
        ValueError: If the range is not one of TIME_RANGE_DAYS
    """
    if time_range not in TIME_RANGE_DAYS:
        raise ValueError(f"Unknown time range: {time_range}")
    days = TIME_RANGE_DAYS[time_range]
    if days is None:
        return tuple(points)
    start = today - timedelta(days=days)
    return tuple(p for p in points if start <= p.day <= today)


def derive(entries: Sequence[FinancialEntry]) -> DerivedMetrics:
    """Aggregate metrics for an entry set (normally one region)."""
    ordered = _chronological(entries)

    histories: "OrderedDict[tuple[EntryKind, str], list[FinancialEntry]]" = OrderedDict()
    for entry in ordered:
        histories.setdefault((entry.kind, entry.name), []).append(entry)

    holdings = tuple(
        _replay(name, kind, history) for (kind, name), history in histories.items()
    )

    stock_value = sum(
        (h.market_value for h in holdings if h.kind == EntryKind.STOCK), ZERO
    )
    fund_value = sum(
        (h.market_value for h in holdings if h.kind == EntryKind.MUTUAL_FUND), ZERO
    )

    allocation: dict[str, Decimal] = {}
    for holding in holdings:
        if holding.kind == EntryKind.MUTUAL_FUND and holding.is_open:
            key = holding.category or "Other"
            allocation[key] = allocation.get(key, ZERO) + holding.market_value

    total_invested = sum((h.cost_basis for h in holdings), ZERO)
    current_value = stock_value + fund_value

    return DerivedMetrics(
        entry_count=len(ordered),
        stock_count=sum(1 for e in ordered if e.kind == EntryKind.STOCK),
        mutual_fund_count=sum(1 for e in ordered if e.kind == EntryKind.MUTUAL_FUND),
        total_invested=total_invested,
        current_value=current_value,
        unrealized_gain=current_value - total_invested,
        realized_gain=sum((h.realized_gain for h in holdings), ZERO),
        stock_value=stock_value,
        mutual_fund_value=fund_value,
        holdings=holdings,
        category_allocation=tuple(
            sorted(allocation.items(), key=lambda item: item[1], reverse=True)
        ),
        timeline=build_timeline(ordered),
    )


class MetricsDeriver:
    """
    Memoizes `derive` on the content of the filtered entry set.

    The orchestrator asks for metrics on every render; only a different
    entry tuple causes a recomputation.
    """

    def __init__(self):
        self._last_entries: Optional[tuple[FinancialEntry, ...]] = None
        self._last_metrics: Optional[DerivedMetrics] = None
        self.computations = 0

    def metrics_for(self, entries: Sequence[FinancialEntry]) -> DerivedMetrics:
        key = tuple(entries)
        if self._last_metrics is not None and key == self._last_entries:
            return self._last_metrics

        self._last_metrics = derive(key)
        self._last_entries = key
        self.computations += 1
        return self._last_metrics
