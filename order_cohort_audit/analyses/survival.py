"""Subscriber survival curves per subscription category.

A customer's survival cohort is the first month they appear in a
subscription category's monthly active-set. Survival at offset ``m`` is the
share of that cohort still present in the category's active-set in
``cohort_month + m``.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass
from typing import AbstractSet, Mapping

from order_cohort_audit.analyses._rates import safe_rate
from order_cohort_audit.analyses.churn import ordered_categories
from order_cohort_audit.foundation.catalog import DEFAULT_CATALOG, CatalogConfig
from order_cohort_audit.foundation.coverage import ActivityLedger
from order_cohort_audit.foundation.periods import shift_month_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SurvivalRow:
    """Share of a category cohort still active ``m`` months later."""

    cohort_month: str
    category: str
    m: int
    cohort_size: int
    survival_rate: float

    def __post_init__(self) -> None:
        if self.m < 0:
            raise ValueError(f"m must be >= 0, got {self.m}")
        if not 0 <= self.survival_rate <= 1:
            raise ValueError(f"survival_rate must be within 0-1, got {self.survival_rate}")

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


def first_seen_months(store: Mapping[str, AbstractSet[str]]) -> dict[str, str]:
    """Earliest month each customer appears in a monthly active-set store."""
    first_seen: dict[str, str] = {}
    for month in sorted(store):
        for customer in store[month]:
            first_seen.setdefault(customer, month)
    return first_seen


def category_survival(
    category: str,
    store: Mapping[str, AbstractSet[str]],
    as_of_month: str,
    max_offset: int,
) -> list[SurvivalRow]:
    """Survival rows of one category's monthly active-set store."""
    cohorts: dict[str, set[str]] = defaultdict(set)
    for customer, month in first_seen_months(store).items():
        cohorts[month].add(customer)

    rows: list[SurvivalRow] = []
    for cohort_month in sorted(cohorts):
        members = cohorts[cohort_month]
        size = len(members)
        for m in range(max_offset + 1):
            target = shift_month_key(cohort_month, m)
            if target > as_of_month:
                break
            still_active = len(members & store.get(target, set()))
            rows.append(
                SurvivalRow(
                    cohort_month=cohort_month,
                    category=category,
                    m=m,
                    cohort_size=size,
                    survival_rate=safe_rate(still_active, size),
                )
            )
    return rows


def compute_survival(
    ledger: ActivityLedger, catalog: CatalogConfig = DEFAULT_CATALOG
) -> list[SurvivalRow]:
    """Survival curves for every subscription category with activity."""
    rows: list[SurvivalRow] = []
    for category in ordered_categories(catalog.subscription_categories, catalog):
        store = ledger.monthly_by_category.get(category)
        if not store:
            continue
        rows.extend(
            category_survival(category, store, ledger.as_of_month, catalog.max_cohort_offset)
        )
    logger.debug("Built %d survival rows", len(rows))
    return rows
