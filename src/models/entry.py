"""
Financial Entry Models

Every row in the remote `financial_entries` table is one of these records.
The remote store owns them; the client only ever holds read-only copies.

DESIGN DECISION: Entries are a tagged union discriminated by `type`.
Stock and mutual fund rows share a table, so parsing has to pick the
right shape from the row itself rather than from where it came from.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class Operation(str, Enum):
    """Direction of a transaction."""
    BUY = "buy"
    SELL = "sell"


class EntryKind(str, Enum):
    """Values of the `type` discriminator column."""
    STOCK = "stock"
    MUTUAL_FUND = "mf"


# Fund categories offered by the entry form. Stored as free text remotely.
CATEGORIES = ["Equity", "Debt", "Hybrid", "Other"]


class BaseEntry(BaseModel):
    """
    Fields shared by every entry variant.

    Models are frozen so a fetched entry set can be used as a cache key.
    """
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )

    id: str = Field(
        ...,
        min_length=1,
        description="Row identifier assigned by the remote store"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owner of the entry"
    )
    created_at: datetime = Field(
        ...,
        description="When the transaction was recorded"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Instrument name (ticker or fund name)"
    )
    region: str = Field(
        ...,
        min_length=1,
        description="Currency/market region the entry belongs to"
    )
    operation: Operation


class StockEntry(BaseEntry):
    """A stock buy or sell."""
    type: Literal["stock"] = "stock"

    price: Annotated[Decimal, Field(ge=0, description="Price per share")]
    quantity: Annotated[Decimal, Field(ge=0, description="Number of shares")]

    @property
    def kind(self) -> EntryKind:
        return EntryKind.STOCK

    @property
    def unit_price(self) -> Decimal:
        return self.price

    @property
    def volume(self) -> Decimal:
        return self.quantity

    @property
    def gross_amount(self) -> Decimal:
        return self.price * self.quantity


class MutualFundEntry(BaseEntry):
    """A mutual fund purchase or redemption."""
    type: Literal["mf"] = "mf"

    units: Annotated[Decimal, Field(ge=0, description="Units bought or redeemed")]
    nav: Annotated[Decimal, Field(ge=0, description="Net asset value per unit")]
    amount: Annotated[Decimal, Field(ge=0, description="Cash amount of the transaction")]
    category: str = Field(
        default="Other",
        description="Fund category (Equity, Debt, Hybrid, Other)"
    )

    @property
    def kind(self) -> EntryKind:
        return EntryKind.MUTUAL_FUND

    @property
    def unit_price(self) -> Decimal:
        return self.nav

    @property
    def volume(self) -> Decimal:
        return self.units

    @property
    def gross_amount(self) -> Decimal:
        # Older rows were saved without an amount
        if self.amount > 0:
            return self.amount
        return self.units * self.nav


FinancialEntry = Annotated[
    Union[StockEntry, MutualFundEntry],
    Field(discriminator="type"),
]

_ENTRY_LIST_ADAPTER = TypeAdapter(list[FinancialEntry])


def parse_entries(rows: list[dict]) -> tuple[FinancialEntry, ...]:
    """
    Validate raw rows from the remote store into entries.

    Raises:
        pydantic.ValidationError: If any row does not match either variant
    """
    return tuple(_ENTRY_LIST_ADAPTER.validate_python(rows))


def entry_to_row(entry: FinancialEntry) -> dict:
    """Serialize an entry into a row suitable for an upsert."""
    return entry.model_dump(mode="json")
