"""Portfolio metrics derived from financial entries."""

from src.metrics.deriver import (
    TIME_RANGE_DAYS,
    MetricsDeriver,
    build_timeline,
    derive,
    filter_by_kind,
    filter_by_region,
    slice_timeline,
    unique_names,
)

__all__ = [
    "MetricsDeriver",
    "TIME_RANGE_DAYS",
    "build_timeline",
    "derive",
    "filter_by_kind",
    "filter_by_region",
    "slice_timeline",
    "unique_names",
]
