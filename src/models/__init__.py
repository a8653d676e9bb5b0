"""
Data Models Package

This package contains all Pydantic models used in Zenfolio.
All data flowing through the system must conform to these schemas.
"""

from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from src.models.entry import (
    CATEGORIES,
    BaseEntry,
    EntryKind,
    FinancialEntry,
    MutualFundEntry,
    Operation,
    StockEntry,
    entry_to_row,
    parse_entries,
)
from src.models.metrics import DerivedMetrics, InstrumentHolding, TimelinePoint
from src.models.region import (
    DEFAULT_REGION,
    REGIONS,
    REGIONS_CURRENCY,
    TIME_RANGES,
    Currency,
    View,
    currency_for,
    format_currency,
)
from src.models.session import Credentials, Session
from src.models.state import ConnectivityStatus, Snapshot, ViewState

__all__ = [
    # Entry models
    "BaseEntry",
    "CATEGORIES",
    "EntryKind",
    "FinancialEntry",
    "MutualFundEntry",
    "Operation",
    "StockEntry",
    "entry_to_row",
    "parse_entries",
    # Regions and views
    "Currency",
    "DEFAULT_REGION",
    "REGIONS",
    "REGIONS_CURRENCY",
    "TIME_RANGES",
    "View",
    "currency_for",
    "format_currency",
    # Session models
    "Credentials",
    "Session",
    # Derived metrics
    "DerivedMetrics",
    "InstrumentHolding",
    "TimelinePoint",
    # View state
    "ConnectivityStatus",
    "Snapshot",
    "ViewState",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
