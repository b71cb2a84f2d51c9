"""Month-over-month delivered order counts, per vertical breakdown and QA checks.

Headline counts use one order per order key. The per-vertical breakdown
explodes every raw delivered row into distinct ``(order key, month,
category)`` triples, so a duplicate row can contribute a category its first
row lacked, and a multi-category order counts once per category. The QA
summary reconciles the two.

Average daily orders (``ado``) divide by the calendar days of the month.
The snapshot month (month of the latest delivered order) is partial, so it
also reports ``ado_pacing``: orders divided by the latest day-of-month seen.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from typing import Sequence

from order_cohort_audit.foundation.catalog import DEFAULT_CATALOG, CatalogConfig
from order_cohort_audit.foundation.orders import NormalizedOrders, OrderRecord
from order_cohort_audit.foundation.periods import days_in_month

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MomOrdersRow:
    """Delivered orders of one month.

    Attributes
    ----------
    month:
        ``YYYY-MM`` key.
    orders:
        Distinct order keys placed in the month.
    orders_mom_abs:
        Change versus the previous observed month, ``None`` for the first.
    orders_mom_pct:
        Relative change as a fraction, ``None`` when there is no previous
        month or it had no orders.
    ado:
        Orders per calendar day of the month.
    ado_pacing:
        Orders per elapsed day, set for the partial snapshot month only.
    is_partial:
        1 for the snapshot month, else 0.
    """

    month: str
    orders: int
    orders_mom_abs: int | None
    orders_mom_pct: float | None
    ado: float
    ado_pacing: float | None
    is_partial: int

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class MomOrdersByVerticalRow:
    """Delivered orders of one category in one month."""

    month: str
    vertical: str
    orders: int
    orders_mom_abs: int | None
    orders_mom_pct: float | None
    ado_vertical: float
    ado_vertical_pacing: float | None
    is_partial: int

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class HeadlineReconciliation:
    """Headline count versus the sum of per-vertical counts for one month."""

    month: str
    headline: int
    vertical_sum: int
    delta: int

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass
class OrdersQA:
    """Data-quality summary of the category mapping.

    Attributes
    ----------
    no_vertical_pct:
        Fraction of distinct order keys with no mapped category.
    multi_vertical_pct:
        Fraction of distinct order keys with more than one category.
    unknown_count:
        Order keys with at least one delivered row that mapped to no category.
    headline_vs_verticals:
        Per-month reconciliation rows.
    """

    no_vertical_pct: float = 0.0
    multi_vertical_pct: float = 0.0
    unknown_count: int = 0
    headline_vs_verticals: list[HeadlineReconciliation] = field(default_factory=list)

    def as_dict(self) -> dict[str, object]:
        return {
            "no_vertical_pct": self.no_vertical_pct,
            "multi_vertical_pct": self.multi_vertical_pct,
            "unknown_count": self.unknown_count,
            "headline_vs_verticals": [row.as_dict() for row in self.headline_vs_verticals],
        }


@dataclass
class HeadlineSummary:
    """Output of :func:`compute_headline`."""

    snapshot_month: str | None = None
    mom_orders: list[MomOrdersRow] = field(default_factory=list)
    mom_orders_by_vertical: list[MomOrdersByVerticalRow] = field(default_factory=list)
    qa: OrdersQA = field(default_factory=OrdersQA)


def _elapsed_days(order: OrderRecord, snapshot_month: str) -> int:
    if order.month_key != snapshot_month:
        return days_in_month(order.month_key)
    return order.order_date.day


def _change(current: int, previous: int | None) -> tuple[int | None, float | None]:
    if previous is None:
        return None, None
    diff = current - previous
    return diff, (diff / previous if previous else None)


def _rates(
    month: str,
    count: int,
    pacing_days: int,
    snapshot_month: str,
) -> tuple[float, float | None, int]:
    calendar_days = days_in_month(month)
    is_partial = 1 if month == snapshot_month else 0
    pacing = count / (pacing_days or calendar_days) if is_partial else None
    return count / calendar_days, pacing, is_partial


def compute_headline(
    batch: NormalizedOrders, catalog: CatalogConfig = DEFAULT_CATALOG
) -> HeadlineSummary:
    """Build the MoM tables and the QA summary of a normalised export."""
    orders = batch.orders
    if not orders:
        return HeadlineSummary()

    snapshot_month = max(order.order_date for order in orders).strftime("%Y-%m")
    months = sorted({order.month_key for order in orders})

    counts: dict[str, int] = defaultdict(int)
    pacing: dict[str, int] = defaultdict(int)
    for order in orders:
        counts[order.month_key] += 1
        pacing[order.month_key] = max(pacing[order.month_key], _elapsed_days(order, snapshot_month))

    summary = HeadlineSummary(snapshot_month=snapshot_month)
    previous: int | None = None
    for month in months:
        diff, pct = _change(counts[month], previous)
        ado, ado_pacing, is_partial = _rates(month, counts[month], pacing[month], snapshot_month)
        summary.mom_orders.append(
            MomOrdersRow(
                month=month,
                orders=counts[month],
                orders_mom_abs=diff,
                orders_mom_pct=pct,
                ado=ado,
                ado_pacing=ado_pacing,
                is_partial=is_partial,
            )
        )
        previous = counts[month]

    vertical_counts, vertical_pacing = _explode_verticals(batch.rows, snapshot_month)
    for vertical in catalog.categories:
        previous = None
        for month in months:
            key = (month, vertical)
            count = vertical_counts.get(key, 0)
            diff, pct = _change(count, previous)
            ado, ado_pacing, is_partial = _rates(
                month, count, vertical_pacing.get(key, 0), snapshot_month
            )
            summary.mom_orders_by_vertical.append(
                MomOrdersByVerticalRow(
                    month=month,
                    vertical=vertical,
                    orders=count,
                    orders_mom_abs=diff,
                    orders_mom_pct=pct,
                    ado_vertical=ado,
                    ado_vertical_pacing=ado_pacing,
                    is_partial=is_partial,
                )
            )
            previous = count

    summary.qa = _quality_summary(batch, months, counts, vertical_counts)
    logger.info(
        "Headline: %d months, snapshot %s, %d unknown-category orders",
        len(months),
        snapshot_month,
        summary.qa.unknown_count,
    )
    return summary


def _explode_verticals(
    rows: Sequence[OrderRecord], snapshot_month: str
) -> tuple[dict[tuple[str, str], int], dict[tuple[str, str], int]]:
    """Count distinct ``(order key, month, category)`` triples per month and category."""
    seen: set[tuple[str, str, str]] = set()
    counts: dict[tuple[str, str], int] = defaultdict(int)
    pacing: dict[tuple[str, str], int] = defaultdict(int)
    for row in rows:
        for vertical in row.categories:
            triple = (row.order_key, row.month_key, vertical)
            if triple in seen:
                continue
            seen.add(triple)
            key = (row.month_key, vertical)
            counts[key] += 1
            pacing[key] = max(pacing[key], _elapsed_days(row, snapshot_month))
    return dict(counts), dict(pacing)


def _quality_summary(
    batch: NormalizedOrders,
    months: Sequence[str],
    counts: dict[str, int],
    vertical_counts: dict[tuple[str, str], int],
) -> OrdersQA:
    verticals_by_key: dict[str, set[str]] = defaultdict(set)
    for row in batch.rows:
        verticals_by_key[row.order_key].update(row.categories)

    total = len(verticals_by_key)
    no_vertical = sum(1 for found in verticals_by_key.values() if not found)
    multi_vertical = sum(1 for found in verticals_by_key.values() if len(found) > 1)

    per_month_vertical: dict[str, int] = defaultdict(int)
    for (month, _vertical), count in vertical_counts.items():
        per_month_vertical[month] += count

    reconciliation = [
        HeadlineReconciliation(
            month=month,
            headline=counts.get(month, 0),
            vertical_sum=per_month_vertical.get(month, 0),
            delta=per_month_vertical.get(month, 0) - counts.get(month, 0),
        )
        for month in months
    ]
    return OrdersQA(
        no_vertical_pct=no_vertical / total if total else 0.0,
        multi_vertical_pct=multi_vertical / total if total else 0.0,
        unknown_count=len(batch.unknown_keys),
        headline_vs_verticals=reconciliation,
    )
