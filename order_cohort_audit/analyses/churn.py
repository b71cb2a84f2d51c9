"""Period-over-period customer transitions: churn, retention and reactivation.

At each boundary between two consecutive periods every customer present in
either period falls into exactly one bucket:

- ``retained``: active in both periods
- ``churned``: active in the previous period only
- ``new``: active in the current period only, never seen before in the series
- ``reactivated``: active in the current period only, seen in an earlier period

The same state machine runs for monthly, daily and weekly active-sets, for
each segment (subscribers, one-time, total) and for each category.

Quick Start
-----------
>>> from order_cohort_audit.analyses.churn import classify_transition
>>> t = classify_transition({"A", "B"}, {"B", "C", "D"}, seen_before={"A", "B", "D"})
>>> sorted(t.retained), sorted(t.churned), sorted(t.new), sorted(t.reactivated)
(['B'], ['A'], ['C'], ['D'])
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import AbstractSet, Mapping, Sequence

from order_cohort_audit.analyses._rates import safe_rate
from order_cohort_audit.foundation.catalog import DEFAULT_CATALOG, CatalogConfig
from order_cohort_audit.foundation.coverage import ActivityLedger, ActiveSets, Segment
from order_cohort_audit.foundation.periods import (
    PeriodGranularity,
    day_key,
    last_day_of_month,
    period_range,
    week_key,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeriodTransition:
    """Customer movement across one period boundary.

    All four sets are disjoint; ``retained | new | reactivated`` is exactly
    the current period's active-set and ``retained | churned`` the previous.
    """

    retained: frozenset[str]
    churned: frozenset[str]
    new: frozenset[str]
    reactivated: frozenset[str]

    def __post_init__(self) -> None:
        """Validate that the transition buckets are disjoint."""
        pairs = (
            ("retained", "churned"),
            ("retained", "new"),
            ("retained", "reactivated"),
            ("churned", "new"),
            ("churned", "reactivated"),
            ("new", "reactivated"),
        )
        for left, right in pairs:
            overlap = getattr(self, left) & getattr(self, right)
            if overlap:
                raise ValueError(
                    f"Customer IDs cannot be both {left} and {right}: {sorted(overlap)}"
                )


def classify_transition(
    previous: AbstractSet[str],
    current: AbstractSet[str],
    seen_before: AbstractSet[str],
) -> PeriodTransition:
    """Split the customers of two consecutive periods into transition buckets.

    Parameters
    ----------
    previous:
        Active-set of the earlier period.
    current:
        Active-set of the later period.
    seen_before:
        Every customer active in any period before ``current``.
    """
    arrivals = current - previous
    return PeriodTransition(
        retained=frozenset(previous & current),
        churned=frozenset(previous - current),
        new=frozenset(arrivals - seen_before),
        reactivated=frozenset(arrivals & seen_before),
    )


@dataclass(frozen=True)
class TransitionRow:
    """One period boundary of one transition series.

    Attributes
    ----------
    period:
        Key of the later period (``YYYY-MM``, ``YYYY-MM-DD`` or week Monday).
    label:
        Segment name (``subscribers``/``onetime``/``total``) or category.
    prev_active:
        Size of the previous period's active-set.
    current_active:
        Size of the current period's active-set.
    retained, churned, new, reactivated:
        Bucket sizes, see :class:`PeriodTransition`.
    churn_rate:
        ``churned / prev_active`` (0 when ``prev_active`` is 0).
    retention_rate:
        ``retained / prev_active`` (0 when ``prev_active`` is 0).
    """

    period: str
    label: str
    prev_active: int
    current_active: int
    retained: int
    churned: int
    new: int
    reactivated: int
    churn_rate: float
    retention_rate: float

    def __post_init__(self) -> None:
        """Validate the conservation identities of the row."""
        if self.retained + self.churned != self.prev_active:
            raise ValueError(
                f"retained ({self.retained}) + churned ({self.churned}) must equal "
                f"prev_active ({self.prev_active}) for {self.label} {self.period}"
            )
        if self.retained + self.new + self.reactivated != self.current_active:
            raise ValueError(
                f"retained + new + reactivated must equal current_active "
                f"({self.current_active}) for {self.label} {self.period}"
            )
        if not 0 <= self.churn_rate <= 1 or not 0 <= self.retention_rate <= 1:
            raise ValueError(
                f"Rates must be within 0-1: churn={self.churn_rate}, "
                f"retention={self.retention_rate}"
            )

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class ActiveCountRow:
    """Active-customer counts of one period per segment."""

    period: str
    subscribers: int
    onetime: int
    total: int

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


def build_transition_series(
    store: Mapping[str, AbstractSet[str]],
    periods: Sequence[str],
    label: str,
) -> list[TransitionRow]:
    """Walk ``periods`` in order and record every consecutive transition.

    ``periods`` must be contiguous and sorted; periods missing from ``store``
    have an empty active-set. The first period only seeds the history.
    """
    rows: list[TransitionRow] = []
    if not periods:
        return rows

    empty: frozenset[str] = frozenset()
    previous = store.get(periods[0], empty)
    seen: set[str] = set(previous)
    for period in periods[1:]:
        current = store.get(period, empty)
        transition = classify_transition(previous, current, seen)
        prev_active = len(previous)
        rows.append(
            TransitionRow(
                period=period,
                label=label,
                prev_active=prev_active,
                current_active=len(current),
                retained=len(transition.retained),
                churned=len(transition.churned),
                new=len(transition.new),
                reactivated=len(transition.reactivated),
                churn_rate=safe_rate(len(transition.churned), prev_active),
                retention_rate=safe_rate(len(transition.retained), prev_active),
            )
        )
        seen.update(current)
        previous = current
    return rows


@dataclass
class ChurnSummary:
    """All transition tables derived from one activity ledger.

    Attributes
    ----------
    months:
        Contiguous month keys from the first active month to the as-of month.
    overview:
        Monthly transitions per segment.
    by_category:
        Monthly transitions per category.
    daily:
        Active counts per day.
    daily_retention:
        Day-over-day transitions per segment.
    weekly_retention:
        Week-over-week transitions per segment (Monday-start weeks).
    monthly_active:
        Active counts per month.
    """

    months: list[str] = field(default_factory=list)
    overview: list[TransitionRow] = field(default_factory=list)
    by_category: list[TransitionRow] = field(default_factory=list)
    daily: list[ActiveCountRow] = field(default_factory=list)
    daily_retention: list[TransitionRow] = field(default_factory=list)
    weekly_retention: list[TransitionRow] = field(default_factory=list)
    monthly_active: list[ActiveCountRow] = field(default_factory=list)

    def as_dict(self) -> dict[str, object]:
        return {
            "months": list(self.months),
            "overview": [row.as_dict() for row in self.overview],
            "by_category": [row.as_dict() for row in self.by_category],
            "daily": [row.as_dict() for row in self.daily],
            "daily_retention": [row.as_dict() for row in self.daily_retention],
            "weekly_retention": [row.as_dict() for row in self.weekly_retention],
            "monthly_active": [row.as_dict() for row in self.monthly_active],
        }


def ordered_categories(
    categories: Sequence[str] | AbstractSet[str], catalog: CatalogConfig = DEFAULT_CATALOG
) -> list[str]:
    """Catalog priority order first, then any other labels alphabetically."""
    rank = {category: index for index, category in enumerate(catalog.categories)}
    return sorted(set(categories), key=lambda c: (rank.get(c, len(rank)), c))


def _active_counts(
    stores: Mapping[Segment, ActiveSets], periods: Sequence[str]
) -> list[ActiveCountRow]:
    return [
        ActiveCountRow(
            period=period,
            subscribers=len(stores[Segment.SUBSCRIBERS].get(period, ())),
            onetime=len(stores[Segment.ONETIME].get(period, ())),
            total=len(stores[Segment.TOTAL].get(period, ())),
        )
        for period in periods
    ]


def _segment_series(
    stores: Mapping[Segment, ActiveSets], periods: Sequence[str]
) -> list[TransitionRow]:
    rows: list[TransitionRow] = []
    for segment in Segment:
        rows.extend(build_transition_series(stores[segment], periods, segment.value))
    return rows


def compute_churn_summary(
    ledger: ActivityLedger, catalog: CatalogConfig = DEFAULT_CATALOG
) -> ChurnSummary:
    """Build the monthly, daily and weekly transition tables of a ledger."""
    first_month = ledger.first_month()
    if first_month is None:
        return ChurnSummary()

    months = period_range(PeriodGranularity.MONTH, first_month, ledger.as_of_month)
    summary = ChurnSummary(months=months)
    summary.overview = _segment_series(ledger.monthly, months)
    for category in ordered_categories(ledger.monthly_by_category, catalog):
        summary.by_category.extend(
            build_transition_series(ledger.monthly_by_category[category], months, category)
        )
    summary.monthly_active = _active_counts(ledger.monthly, months)

    first_day = ledger.first_day()
    if first_day is not None:
        last_day = day_key(last_day_of_month(ledger.as_of_month))
        days = period_range(PeriodGranularity.DAY, first_day, last_day)
        summary.daily = _active_counts(ledger.daily, days)
        summary.daily_retention = _segment_series(ledger.daily, days)

        weekly = ledger.weekly
        weeks = period_range(PeriodGranularity.WEEK, week_key(first_day), last_day)
        summary.weekly_retention = _segment_series(weekly, weeks)

    logger.debug(
        "Churn summary: %d months, %d days, %d category rows",
        len(months),
        len(summary.daily),
        len(summary.by_category),
    )
    return summary
