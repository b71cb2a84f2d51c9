"""Coverage simulation: which periods each order keeps its customer active.

A subscription order keeps its customer active for ``cadence`` months from
the order date, where the cadence is read from the order's free-text notes.
A one-time order keeps its customer active for a fixed window (30 days by
default), which may spill into the following month.

Simulating every order yields, per granularity, a mapping from period key to
the set of customer ids active in that period. These active-sets feed the
cohort tables and the transition (churn/retention/waterfall) engine.

Notes
-----
Cadence parsing sums every ``<N> month(s)``/``<N> mo(s)`` mention, so
multi-clause notes such as "3 months free, then 1 month billing" read as 4
months. The summing rule is kept on purpose until the product owners decide
between sum and maximum.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, Mapping

from order_cohort_audit.foundation.catalog import DEFAULT_CATALOG, CatalogConfig
from order_cohort_audit.foundation.orders import OrderRecord
from order_cohort_audit.foundation.periods import (
    add_months,
    day_key,
    iter_days,
    last_day_of_month,
    month_key,
    months_between,
    week_key,
)

logger = logging.getLogger(__name__)

_CADENCE = re.compile(r"(\d+)\s*(?:months?|mos?)", re.IGNORECASE)

ActiveSets = dict[str, set[str]]


class Segment(str, Enum):
    """Customer segments of the active-sets."""

    SUBSCRIBERS = "subscribers"
    ONETIME = "onetime"
    TOTAL = "total"


def parse_cadence(notes: str | None) -> int:
    """Number of months a subscription order covers.

    All month mentions are summed; empty or unparsable notes mean one month.

    >>> parse_cadence("Subscribe 3 months")
    3
    >>> parse_cadence("")
    1
    >>> parse_cadence("no subscription info")
    1
    """
    if not notes or not notes.strip():
        return 1
    total = sum(int(value) for value in _CADENCE.findall(notes))
    return max(1, total)


@dataclass(frozen=True)
class OrderCoverage:
    """Periods in which one order credits its customer as active.

    Attributes
    ----------
    customer_id:
        Customer credited by the order.
    is_subscription:
        Whether any of the order's categories is a subscription category.
    cadence_months:
        Coverage length in months for subscriptions, 0 for one-time orders.
    months:
        ``YYYY-MM`` keys credited, clipped to the as-of month.
    days:
        ``YYYY-MM-DD`` keys credited, clipped to the last day of the as-of month.
    category_months:
        Month keys credited per category of the order.
    """

    customer_id: str
    is_subscription: bool
    cadence_months: int
    months: tuple[str, ...]
    days: tuple[str, ...]
    category_months: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    @property
    def segment(self) -> Segment:
        return Segment.SUBSCRIBERS if self.is_subscription else Segment.ONETIME


def is_subscription_order(order: OrderRecord, catalog: CatalogConfig = DEFAULT_CATALOG) -> bool:
    return any(catalog.is_subscription(category) for category in order.categories)


def simulate_order_coverage(
    order: OrderRecord,
    as_of_month: str,
    catalog: CatalogConfig = DEFAULT_CATALOG,
) -> OrderCoverage:
    """Expand one order into the periods it keeps its customer active.

    Parameters
    ----------
    order:
        Normalised order.
    as_of_month:
        Latest fully observed ``YYYY-MM`` month; nothing later is credited.
    catalog:
        Catalog deciding which categories are subscriptions.

    Examples
    --------
    >>> from datetime import date
    >>> from order_cohort_audit.foundation.orders import OrderRecord
    >>> order = OrderRecord("id|1", date(2024, 1, 27), "2024-01", 100.0,
    ...                     frozenset({"otc sk"}), ("serum",), "U1")
    >>> simulate_order_coverage(order, "2024-12").months
    ('2024-01', '2024-02')
    """
    is_subscription = is_subscription_order(order, catalog)
    start = order.order_date
    order_month = order.month_key
    day_cutoff = last_day_of_month(as_of_month)

    if is_subscription:
        cadence = parse_cadence(order.notes)
        observable = months_between(order_month, as_of_month) + 1
        months = tuple(
            month_key(add_months(start.replace(day=1), offset))
            for offset in range(min(cadence, max(observable, 0)))
        )
        # cadences running past the cutoff are clipped before any date arithmetic
        if cadence <= observable:
            end_exclusive = add_months(start, cadence)
        else:
            end_exclusive = day_cutoff + timedelta(days=1)
        category_months: dict[str, tuple[str, ...]] = {}
        for category in sorted(order.categories):
            if catalog.is_subscription(category):
                category_months[category] = months
            elif order_month <= as_of_month:
                category_months[category] = (order_month,)
    else:
        cadence = 0
        window = catalog.one_time_coverage_days
        spill_month = month_key(start + timedelta(days=window))
        credited = [order_month]
        if spill_month != order_month:
            credited.append(spill_month)
        months = tuple(key for key in credited if key <= as_of_month)
        end_exclusive = start + timedelta(days=window)
        category_months = {category: months for category in sorted(order.categories)}

    last_day = min(end_exclusive - timedelta(days=1), day_cutoff)
    days = tuple(day_key(d) for d in iter_days(start, last_day))

    return OrderCoverage(
        customer_id=order.customer_id,
        is_subscription=is_subscription,
        cadence_months=cadence,
        months=months,
        days=days,
        category_months={k: v for k, v in category_months.items() if v},
    )


@dataclass
class ActivityLedger:
    """Active-customer sets per granularity, segment and category.

    Attributes
    ----------
    as_of_month:
        Month all credits are clipped to.
    monthly:
        Segment to ``{month: customer ids}``.
    daily:
        Segment to ``{day: customer ids}``.
    monthly_by_category:
        Category to ``{month: customer ids}``.
    """

    as_of_month: str
    monthly: dict[Segment, ActiveSets] = field(
        default_factory=lambda: {segment: {} for segment in Segment}
    )
    daily: dict[Segment, ActiveSets] = field(
        default_factory=lambda: {segment: {} for segment in Segment}
    )
    monthly_by_category: dict[str, ActiveSets] = field(default_factory=dict)

    def credit(self, coverage: OrderCoverage) -> None:
        """Add one order's coverage to the ledger."""
        customer = coverage.customer_id
        segment = coverage.segment
        for month in coverage.months:
            self.monthly[segment].setdefault(month, set()).add(customer)
            self.monthly[Segment.TOTAL].setdefault(month, set()).add(customer)
        for day in coverage.days:
            self.daily[segment].setdefault(day, set()).add(customer)
            self.daily[Segment.TOTAL].setdefault(day, set()).add(customer)
        for category, months in coverage.category_months.items():
            store = self.monthly_by_category.setdefault(category, {})
            for month in months:
                store.setdefault(month, set()).add(customer)

    @property
    def weekly(self) -> dict[Segment, ActiveSets]:
        """Daily sets bucketed into Monday-start weeks."""
        return {segment: bucket_weekly(store) for segment, store in self.daily.items()}

    def first_month(self) -> str | None:
        months = self.monthly[Segment.TOTAL]
        return min(months) if months else None

    def first_day(self) -> str | None:
        days = self.daily[Segment.TOTAL]
        return min(days) if days else None


def bucket_weekly(daily: Mapping[str, set[str]]) -> ActiveSets:
    """Union daily active-sets into Monday-start weekly sets."""
    weeks: ActiveSets = {}
    for day in sorted(daily):
        weeks.setdefault(week_key(day), set()).update(daily[day])
    return weeks


def build_activity_ledger(
    orders: Iterable[OrderRecord],
    as_of_month: str,
    catalog: CatalogConfig = DEFAULT_CATALOG,
) -> ActivityLedger:
    """Simulate every customer-attributed order into an :class:`ActivityLedger`."""
    ledger = ActivityLedger(as_of_month=as_of_month)
    simulated = 0
    for order in orders:
        if not order.customer_id:
            continue
        ledger.credit(simulate_order_coverage(order, as_of_month, catalog))
        simulated += 1
    logger.debug(
        "Simulated coverage for %d orders: %d active months, %d active days",
        simulated,
        len(ledger.monthly[Segment.TOTAL]),
        len(ledger.daily[Segment.TOTAL]),
    )
    return ledger
