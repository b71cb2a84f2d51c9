"""Foundational building blocks of the order analytics pipeline.

This package exposes the injectable product catalog, canonical period keys,
the order normaliser and the coverage simulator that turns orders into
per-period active-customer sets.
"""

from .catalog import DEFAULT_CATALOG, CatalogConfig
from .coverage import (
    ActivityLedger,
    OrderCoverage,
    Segment,
    build_activity_ledger,
    parse_cadence,
    simulate_order_coverage,
)
from .orders import (
    NormalizationStats,
    NormalizedOrders,
    OrderNormalizer,
    OrderRecord,
    normalise_orders,
    read_order_rows,
)
from .periods import NO_DATA_MONTH, PeriodGranularity, resolve_as_of_month

__all__ = [
    "DEFAULT_CATALOG",
    "CatalogConfig",
    "ActivityLedger",
    "OrderCoverage",
    "Segment",
    "build_activity_ledger",
    "parse_cadence",
    "simulate_order_coverage",
    "NormalizationStats",
    "NormalizedOrders",
    "OrderNormalizer",
    "OrderRecord",
    "normalise_orders",
    "read_order_rows",
    "NO_DATA_MONTH",
    "PeriodGranularity",
    "resolve_as_of_month",
]
