"""Monthly active-base waterfall: start, new, reactivated, churned, end.

Each row reconciles one month's active-set with the previous month's::

    end_active == start_active + new_active + reactivated - churned

``new_active`` counts first-ever arrivals; customers returning after a gap
are reported under ``reactivated`` only. The aggregate row series uses the
label ``ALL`` and the total monthly active-sets.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import AbstractSet, Mapping, Sequence

from order_cohort_audit.analyses.churn import classify_transition, ordered_categories
from order_cohort_audit.foundation.catalog import DEFAULT_CATALOG, CatalogConfig
from order_cohort_audit.foundation.coverage import ActivityLedger, Segment
from order_cohort_audit.foundation.periods import PeriodGranularity, period_range

logger = logging.getLogger(__name__)

#: Category label of the aggregate waterfall series.
ALL_CATEGORIES = "ALL"


@dataclass(frozen=True)
class WaterfallRow:
    """Active-base movement of one category in one month."""

    month: str
    category: str
    start_active: int
    new_active: int
    reactivated: int
    churned: int
    end_active: int

    def __post_init__(self) -> None:
        """Validate counts and the waterfall identity."""
        for name in ("start_active", "new_active", "reactivated", "churned", "end_active"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")
        expected = self.start_active + self.new_active + self.reactivated - self.churned
        if self.end_active != expected:
            raise ValueError(
                f"Waterfall for {self.category} {self.month} does not reconcile: "
                f"end_active={self.end_active}, expected {expected}"
            )

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


def build_waterfall(
    category: str,
    store: Mapping[str, AbstractSet[str]],
    months: Sequence[str],
) -> list[WaterfallRow]:
    """Walk ``months`` from an empty base and reconcile each month."""
    rows: list[WaterfallRow] = []
    previous: AbstractSet[str] = frozenset()
    seen: set[str] = set()
    for month in months:
        current = store.get(month, frozenset())
        transition = classify_transition(previous, current, seen)
        rows.append(
            WaterfallRow(
                month=month,
                category=category,
                start_active=len(previous),
                new_active=len(transition.new),
                reactivated=len(transition.reactivated),
                churned=len(transition.churned),
                end_active=len(current),
            )
        )
        seen.update(current)
        previous = current
    return rows


def compute_waterfall(
    ledger: ActivityLedger, catalog: CatalogConfig = DEFAULT_CATALOG
) -> list[WaterfallRow]:
    """Waterfall rows for ``ALL`` then every category, first active month to as-of."""
    first_month = ledger.first_month()
    if first_month is None:
        return []
    months = period_range(PeriodGranularity.MONTH, first_month, ledger.as_of_month)

    rows = build_waterfall(ALL_CATEGORIES, ledger.monthly[Segment.TOTAL], months)
    for category in ordered_categories(ledger.monthly_by_category, catalog):
        rows.extend(build_waterfall(category, ledger.monthly_by_category[category], months))
    logger.debug("Built %d waterfall rows over %d months", len(rows), len(months))
    return rows
