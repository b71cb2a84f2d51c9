"""Cohort retention and lifetime-value tables.

Every customer belongs to exactly one cohort: the month of their
chronologically first order. The category dimension further splits each
cohort by the customer's first category, the highest-priority category
among the orders placed in that first month.

For each cohort and offset ``m`` (``0..max_cohort_offset``) two measures are
reported:

- retention: share of the cohort active in ``cohort_month + m``, where
  "active" is the coverage-derived monthly credit of the activity ledger.
  The ``same`` metric restricts activity to the cohort's first category.
- LTV: revenue of the cohort over months ``cohort_month..cohort_month + m``
  inclusive, per cohort member. The ``same`` metric counts only revenue
  attributed to the cohort's category; multi-category orders split their
  price evenly across categories.

Rows whose target month is later than the as-of month are never emitted.

Quick Start
-----------
>>> from order_cohort_audit.analyses.cohorts import assign_customer_cohorts
>>> cohorts = assign_customer_cohorts(orders)  # doctest: +SKIP
>>> cohorts["U1"].cohort_month  # doctest: +SKIP
'2024-01'
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Iterable, Mapping

from order_cohort_audit.analyses._rates import round_money, safe_rate
from order_cohort_audit.foundation.catalog import DEFAULT_CATALOG, CatalogConfig
from order_cohort_audit.foundation.coverage import ActivityLedger, Segment
from order_cohort_audit.foundation.orders import OrderRecord
from order_cohort_audit.foundation.periods import shift_month_key

logger = logging.getLogger(__name__)

#: ``first_value`` of overall-dimension rows.
ALL_CUSTOMERS = "ALL"


class CohortDimension(str, Enum):
    OVERALL = "overall"
    CATEGORY = "category"


class CohortMetric(str, Enum):
    """Stickiness metric: activity in any category, or in the cohort category only."""

    ANY = "any"
    SAME = "same"


@dataclass(frozen=True)
class CustomerCohort:
    """Cohort membership of one customer.

    Attributes
    ----------
    customer_id:
        Customer identifier.
    cohort_month:
        ``YYYY-MM`` of the customer's first order.
    first_category:
        Highest-priority category ordered in ``cohort_month``; ``""`` when
        none of those orders mapped to a category.
    """

    customer_id: str
    cohort_month: str
    first_category: str = ""


@dataclass(frozen=True)
class RetentionRow:
    """Share of a cohort active ``m`` months after its cohort month."""

    cohort_month: str
    dimension: str
    first_value: str
    m: int
    metric: str
    cohort_size: int
    retention: float

    def __post_init__(self) -> None:
        if self.m < 0:
            raise ValueError(f"m must be >= 0, got {self.m}")
        if self.cohort_size < 0:
            raise ValueError(f"cohort_size must be >= 0, got {self.cohort_size}")
        if not 0 <= self.retention <= 1:
            raise ValueError(f"retention must be within 0-1, got {self.retention}")

    @property
    def target_month(self) -> str:
        return shift_month_key(self.cohort_month, self.m)

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class LtvRow:
    """Cumulative revenue per cohort member up to ``m`` months after the cohort month."""

    cohort_month: str
    dimension: str
    first_value: str
    m: int
    metric: str
    cohort_size: int
    ltv_per_user: float
    measure: str = "revenue"

    def __post_init__(self) -> None:
        if self.m < 0:
            raise ValueError(f"m must be >= 0, got {self.m}")
        if self.ltv_per_user < 0:
            raise ValueError(f"ltv_per_user must be >= 0, got {self.ltv_per_user}")

    @property
    def target_month(self) -> str:
        return shift_month_key(self.cohort_month, self.m)

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


def assign_customer_cohorts(
    orders: Iterable[OrderRecord], catalog: CatalogConfig = DEFAULT_CATALOG
) -> dict[str, CustomerCohort]:
    """Assign every customer to its first-order month and first category.

    Orders without a customer identifier are ignored. The result is
    keyed by customer id and sorted by it.
    """
    by_customer: dict[str, list[OrderRecord]] = defaultdict(list)
    for order in orders:
        if order.customer_id:
            by_customer[order.customer_id].append(order)

    cohorts: dict[str, CustomerCohort] = {}
    for customer_id in sorted(by_customer):
        history = by_customer[customer_id]
        cohort_month = min(order.order_date for order in history).strftime("%Y-%m")
        first_month_categories = [
            category
            for order in history
            if order.month_key == cohort_month
            for category in order.categories
        ]
        cohorts[customer_id] = CustomerCohort(
            customer_id=customer_id,
            cohort_month=cohort_month,
            first_category=catalog.prioritise(first_month_categories),
        )
    return cohorts


def _group_overall(cohorts: Mapping[str, CustomerCohort]) -> dict[str, set[str]]:
    groups: dict[str, set[str]] = defaultdict(set)
    for cohort in cohorts.values():
        groups[cohort.cohort_month].add(cohort.customer_id)
    return dict(sorted(groups.items()))


def _group_by_category(
    cohorts: Mapping[str, CustomerCohort],
) -> dict[tuple[str, str], set[str]]:
    groups: dict[tuple[str, str], set[str]] = defaultdict(set)
    for cohort in cohorts.values():
        if cohort.first_category:
            groups[(cohort.cohort_month, cohort.first_category)].add(cohort.customer_id)
    return dict(sorted(groups.items()))


def _offsets(cohort_month: str, as_of_month: str, max_offset: int) -> list[tuple[int, str]]:
    """``(m, target_month)`` pairs up to the as-of month."""
    pairs = []
    for m in range(max_offset + 1):
        target = shift_month_key(cohort_month, m)
        if target > as_of_month:
            break
        pairs.append((m, target))
    return pairs


def compute_retention(
    cohorts: Mapping[str, CustomerCohort],
    ledger: ActivityLedger,
    catalog: CatalogConfig = DEFAULT_CATALOG,
) -> list[RetentionRow]:
    """Build the retention table for both dimensions.

    Parameters
    ----------
    cohorts:
        Output of :func:`assign_customer_cohorts`.
    ledger:
        Activity ledger whose monthly credits define "active"; its
        ``as_of_month`` right-censors the table.
    catalog:
        Supplies ``max_cohort_offset``.

    Returns
    -------
    list[RetentionRow]
        Overall rows (``first_value="ALL"``, metric ``any``) first, then
        category rows with an ``any`` and a ``same`` row per offset.
    """
    as_of = ledger.as_of_month
    max_offset = catalog.max_cohort_offset
    monthly_total = ledger.monthly[Segment.TOTAL]
    rows: list[RetentionRow] = []

    for cohort_month, members in _group_overall(cohorts).items():
        size = len(members)
        for m, target in _offsets(cohort_month, as_of, max_offset):
            retained = len(members & monthly_total.get(target, set()))
            rows.append(
                RetentionRow(
                    cohort_month=cohort_month,
                    dimension=CohortDimension.OVERALL.value,
                    first_value=ALL_CUSTOMERS,
                    m=m,
                    metric=CohortMetric.ANY.value,
                    cohort_size=size,
                    retention=safe_rate(retained, size),
                )
            )

    for (cohort_month, category), members in _group_by_category(cohorts).items():
        size = len(members)
        category_store = ledger.monthly_by_category.get(category, {})
        for m, target in _offsets(cohort_month, as_of, max_offset):
            retained_any = len(members & monthly_total.get(target, set()))
            retained_same = len(members & category_store.get(target, set()))
            for metric, retained in (
                (CohortMetric.ANY, retained_any),
                (CohortMetric.SAME, retained_same),
            ):
                rows.append(
                    RetentionRow(
                        cohort_month=cohort_month,
                        dimension=CohortDimension.CATEGORY.value,
                        first_value=category,
                        m=m,
                        metric=metric.value,
                        cohort_size=size,
                        retention=safe_rate(retained, size),
                    )
                )

    logger.debug("Built %d retention rows", len(rows))
    return rows


def _revenue_ledgers(
    orders: Iterable[OrderRecord], as_of_month: str
) -> tuple[dict[str, dict[str, float]], dict[tuple[str, str], dict[str, float]]]:
    """Revenue per customer per month, overall and per (customer, category)."""
    overall: dict[str, dict[str, float]] = defaultdict(lambda: defaultdict(float))
    by_category: dict[tuple[str, str], dict[str, float]] = defaultdict(
        lambda: defaultdict(float)
    )
    for order in orders:
        if not order.customer_id or order.month_key > as_of_month:
            continue
        overall[order.customer_id][order.month_key] += order.price
        if not order.categories:
            continue
        share = order.price / len(order.categories)
        for category in order.categories:
            by_category[(order.customer_id, category)][order.month_key] += share
    return overall, by_category


def _cumulative(revenue: Mapping[str, float], months: list[str]) -> float:
    return sum(revenue.get(month, 0.0) for month in months)


def compute_ltv(
    cohorts: Mapping[str, CustomerCohort],
    orders: Iterable[OrderRecord],
    as_of_month: str,
    catalog: CatalogConfig = DEFAULT_CATALOG,
) -> list[LtvRow]:
    """Build the cumulative revenue-per-user table for both dimensions.

    Only orders placed up to ``as_of_month`` contribute revenue. The row
    layout mirrors :func:`compute_retention`.
    """
    overall_revenue, category_revenue = _revenue_ledgers(orders, as_of_month)
    max_offset = catalog.max_cohort_offset
    empty: dict[str, float] = {}
    rows: list[LtvRow] = []

    for cohort_month, members in _group_overall(cohorts).items():
        size = len(members)
        window: list[str] = []
        for m, target in _offsets(cohort_month, as_of_month, max_offset):
            window.append(target)
            total = sum(_cumulative(overall_revenue.get(c, empty), window) for c in members)
            rows.append(
                LtvRow(
                    cohort_month=cohort_month,
                    dimension=CohortDimension.OVERALL.value,
                    first_value=ALL_CUSTOMERS,
                    m=m,
                    metric=CohortMetric.ANY.value,
                    cohort_size=size,
                    ltv_per_user=round_money(total / size) if size else 0.0,
                )
            )

    for (cohort_month, category), members in _group_by_category(cohorts).items():
        size = len(members)
        window = []
        for m, target in _offsets(cohort_month, as_of_month, max_offset):
            window.append(target)
            total_any = sum(
                _cumulative(overall_revenue.get(c, empty), window) for c in members
            )
            total_same = sum(
                _cumulative(category_revenue.get((c, category), empty), window)
                for c in members
            )
            for metric, total in (
                (CohortMetric.ANY, total_any),
                (CohortMetric.SAME, total_same),
            ):
                rows.append(
                    LtvRow(
                        cohort_month=cohort_month,
                        dimension=CohortDimension.CATEGORY.value,
                        first_value=category,
                        m=m,
                        metric=metric.value,
                        cohort_size=size,
                        ltv_per_user=round_money(total / size) if size else 0.0,
                    )
                )

    logger.debug("Built %d LTV rows", len(rows))
    return rows
