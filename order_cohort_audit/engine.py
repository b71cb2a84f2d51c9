"""Single entry point of the order analytics pipeline.

``raw export -> normalised orders -> activity ledger -> all tables``

The pipeline is a pure function of its input: it keeps no state between
calls and recomputes everything from the full order history, so running it
twice on the same buffer yields identical tables.

Quick Start
-----------
>>> from datetime import date
>>> from order_cohort_audit.engine import compute_from_buffer
>>> result = compute_from_buffer(b"", today=date(2024, 6, 1))
>>> result.as_of_month
'—'
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Sequence

from order_cohort_audit.analyses.catalogue import CatalogueSummary, compute_catalogue
from order_cohort_audit.analyses.churn import ChurnSummary, compute_churn_summary
from order_cohort_audit.analyses.cohorts import (
    LtvRow,
    RetentionRow,
    assign_customer_cohorts,
    compute_ltv,
    compute_retention,
)
from order_cohort_audit.analyses.headline import HeadlineSummary, compute_headline
from order_cohort_audit.analyses.survival import SurvivalRow, compute_survival
from order_cohort_audit.analyses.waterfall import WaterfallRow, compute_waterfall
from order_cohort_audit.foundation.catalog import DEFAULT_CATALOG, CatalogConfig
from order_cohort_audit.foundation.coverage import build_activity_ledger
from order_cohort_audit.foundation.orders import (
    NormalizationStats,
    NormalizedOrders,
    OrderRecord,
    normalise_orders,
)
from order_cohort_audit.foundation.periods import NO_DATA_MONTH, resolve_as_of_month

logger = logging.getLogger(__name__)


@dataclass
class OrderAnalyticsResult:
    """Every table derived from one order export.

    Attributes
    ----------
    as_of_month:
        Latest fully observed month, or ``"—"`` when there are no orders.
    order_count:
        Deduplicated delivered orders.
    customer_count:
        Distinct customers with at least one order.
    headline:
        MoM order tables and the QA summary.
    catalogue:
        Per-SKU economics.
    churn:
        Transition tables at monthly, daily and weekly granularity.
    retention, ltv:
        Cohort tables, right-censored at ``as_of_month``.
    survival:
        Subscription category survival curves.
    waterfall:
        Monthly active-base reconciliation per category and overall.
    stats:
        Normalisation counters of the input.
    """

    as_of_month: str = NO_DATA_MONTH
    order_count: int = 0
    customer_count: int = 0
    headline: HeadlineSummary = field(default_factory=HeadlineSummary)
    catalogue: CatalogueSummary = field(default_factory=CatalogueSummary)
    churn: ChurnSummary = field(default_factory=ChurnSummary)
    retention: list[RetentionRow] = field(default_factory=list)
    ltv: list[LtvRow] = field(default_factory=list)
    survival: list[SurvivalRow] = field(default_factory=list)
    waterfall: list[WaterfallRow] = field(default_factory=list)
    stats: NormalizationStats = field(default_factory=NormalizationStats)

    def as_dict(self) -> dict[str, Any]:
        """Plain, JSON-serialisable view of the result."""
        return {
            "as_of_month": self.as_of_month,
            "order_count": self.order_count,
            "customer_count": self.customer_count,
            "snapshot_month": self.headline.snapshot_month,
            "mom_orders": [row.as_dict() for row in self.headline.mom_orders],
            "mom_orders_by_vertical": [
                row.as_dict() for row in self.headline.mom_orders_by_vertical
            ],
            "qa": self.headline.qa.as_dict(),
            "catalogue": self.catalogue.as_dict(),
            "churn": self.churn.as_dict(),
            "retention": [row.as_dict() for row in self.retention],
            "ltv": [row.as_dict() for row in self.ltv],
            "survival": [row.as_dict() for row in self.survival],
            "waterfall": [row.as_dict() for row in self.waterfall],
            "stats": {
                "rows_read": self.stats.rows_read,
                "not_delivered": self.stats.not_delivered,
                "bad_date": self.stats.bad_date,
                "delivered": self.stats.delivered,
                "duplicates": self.stats.duplicates,
                "missing_customer": self.stats.missing_customer,
            },
        }


def _as_batch(orders: NormalizedOrders | Sequence[OrderRecord]) -> NormalizedOrders:
    if isinstance(orders, NormalizedOrders):
        return orders
    records = list(orders)
    return NormalizedOrders(
        rows=records,
        orders=records,
        unknown_keys=frozenset(r.order_key for r in records if not r.categories),
    )


def compute_all(
    orders: NormalizedOrders | Sequence[OrderRecord],
    catalog: CatalogConfig = DEFAULT_CATALOG,
    today: date | None = None,
) -> OrderAnalyticsResult:
    """Compute every table from normalised orders.

    Parameters
    ----------
    orders:
        Output of :func:`normalise_orders`, or already deduplicated
        :class:`OrderRecord` objects.
    catalog:
        Product catalog; defaults to the production catalog.
    today:
        Reference date for clamping the as-of month, defaults to today.

    Returns
    -------
    OrderAnalyticsResult
        All tables empty and ``as_of_month == "—"`` when there is no order.
    """
    batch = _as_batch(orders)
    if not batch.orders:
        logger.info("No usable orders; returning empty tables")
        return OrderAnalyticsResult(stats=batch.stats)

    latest_month = max(order.month_key for order in batch.orders)
    as_of_month = resolve_as_of_month(latest_month, today)
    logger.info(
        "Computing order analytics for %d orders as of %s", len(batch.orders), as_of_month
    )

    customer_orders = batch.customer_orders
    ledger = build_activity_ledger(customer_orders, as_of_month, catalog)
    cohorts = assign_customer_cohorts(customer_orders, catalog)

    result = OrderAnalyticsResult(
        as_of_month=as_of_month,
        order_count=len(batch.orders),
        customer_count=len(cohorts),
        headline=compute_headline(batch, catalog),
        catalogue=compute_catalogue(batch.orders, catalog),
        churn=compute_churn_summary(ledger, catalog),
        retention=compute_retention(cohorts, ledger, catalog),
        ltv=compute_ltv(cohorts, customer_orders, as_of_month, catalog),
        survival=compute_survival(ledger, catalog),
        waterfall=compute_waterfall(ledger, catalog),
        stats=batch.stats,
    )
    logger.info(
        "Computed %d retention, %d LTV, %d survival and %d waterfall rows",
        len(result.retention),
        len(result.ltv),
        len(result.survival),
        len(result.waterfall),
    )
    return result


def compute_from_buffer(
    source: bytes | str,
    catalog: CatalogConfig = DEFAULT_CATALOG,
    today: date | None = None,
) -> OrderAnalyticsResult:
    """Normalise a raw CSV export and compute every table."""
    return compute_all(normalise_orders(source, catalog), catalog, today)
