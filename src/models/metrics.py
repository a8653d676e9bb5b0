"""
Derived Metric Models

These are computed from the current filtered entry set and never persisted.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from src.models.entry import EntryKind


ZERO = Decimal("0")


class InstrumentHolding(BaseModel):
    """Position in one instrument after replaying all its entries."""
    model_config = ConfigDict(frozen=True)

    name: str
    kind: EntryKind
    category: Optional[str] = None

    quantity: Decimal = Field(
        default=ZERO,
        description="Shares or units still held"
    )
    cost_basis: Decimal = Field(
        default=ZERO,
        description="Cost of the quantity still held (average cost method)"
    )
    last_price: Decimal = Field(
        default=ZERO,
        description="Price or NAV of the most recent entry"
    )
    realized_gain: Decimal = ZERO
    transaction_count: int = 0

    @property
    def average_cost(self) -> Decimal:
        if self.quantity <= 0:
            return ZERO
        return self.cost_basis / self.quantity

    @property
    def market_value(self) -> Decimal:
        return self.quantity * self.last_price

    @property
    def unrealized_gain(self) -> Decimal:
        return self.market_value - self.cost_basis

    @property
    def is_open(self) -> bool:
        return self.quantity > 0


class TimelinePoint(BaseModel):
    """Cumulative net invested amount at the end of a day."""
    model_config = ConfigDict(frozen=True)

    day: date
    invested: Decimal


class DerivedMetrics(BaseModel):
    """
    Aggregated portfolio metrics for one region.

    Every field is a function of the filtered entry set only.
    """
    model_config = ConfigDict(frozen=True)

    entry_count: int = 0
    stock_count: int = 0
    mutual_fund_count: int = 0

    total_invested: Decimal = Field(
        default=ZERO,
        description="Cost basis of everything still held"
    )
    current_value: Decimal = Field(
        default=ZERO,
        description="Held quantity valued at last known prices"
    )
    unrealized_gain: Decimal = ZERO
    realized_gain: Decimal = ZERO

    stock_value: Decimal = ZERO
    mutual_fund_value: Decimal = ZERO

    holdings: tuple[InstrumentHolding, ...] = ()
    category_allocation: tuple[tuple[str, Decimal], ...] = Field(
        default=(),
        description="Mutual fund market value per category, largest first"
    )
    timeline: tuple[TimelinePoint, ...] = ()

    @property
    def total_gain_loss(self) -> Decimal:
        return self.unrealized_gain + self.realized_gain

    @property
    def return_pct(self) -> Decimal:
        """Unrealized return on the remaining cost basis, in percent."""
        if self.total_invested <= 0:
            return ZERO
        return self.unrealized_gain / self.total_invested * 100

    @property
    def open_holdings(self) -> tuple[InstrumentHolding, ...]:
        return tuple(h for h in self.holdings if h.is_open)
