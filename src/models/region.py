"""Currency regions and the views the UI can show."""

from decimal import Decimal
from enum import Enum
from typing import NamedTuple, Union


class Currency(NamedTuple):
    code: str
    symbol: str


REGIONS = ["India", "US", "Europe", "Japan"]

REGIONS_CURRENCY = {
    "India": Currency(code="INR", symbol="₹"),
    "US": Currency(code="USD", symbol="$"),
    "Europe": Currency(code="EUR", symbol="€"),
    "Japan": Currency(code="JPY", symbol="¥"),
}

DEFAULT_REGION = "India"

TIME_RANGES = ["1m", "6m", "1y", "All"]


class View(str, Enum):
    """Screens available once the ledger is loaded."""
    DASHBOARD = "Dashboard"
    STOCKS = "Stocks"
    MUTUAL_FUNDS = "Mutual Funds"


def currency_for(region: str) -> Currency:
    """Currency of a region. Unknown regions fall back to USD."""
    return REGIONS_CURRENCY.get(region, REGIONS_CURRENCY["US"])


def format_currency(value: Union[Decimal, float, int], region: str) -> str:
    """
    Format an amount in the region's currency, e.g. ``₹1,234.50``.

    Always two decimal places, negative amounts carry a leading minus.
    """
    currency = currency_for(region)
    amount = Decimal(str(value)).quantize(Decimal("0.01"))
    sign = "-" if amount < 0 else ""
    return f"{sign}{currency.symbol}{abs(amount):,.2f}"
