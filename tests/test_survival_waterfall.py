"""Tests for subscription survival curves and the active-base waterfall."""

from datetime import date

import pytest

from order_cohort_audit.analyses.survival import (
    SurvivalRow,
    category_survival,
    compute_survival,
    first_seen_months,
)
from order_cohort_audit.analyses.waterfall import (
    ALL_CATEGORIES,
    WaterfallRow,
    build_waterfall,
    compute_waterfall,
)
from order_cohort_audit.foundation.coverage import build_activity_ledger
from order_cohort_audit.foundation.periods import month_range


@pytest.fixture
def ledger(make_order):
    orders = [
        make_order("A", date(2024, 1, 5), categories=("pom hl",), notes="3 months"),
        make_order("B", date(2024, 1, 20), categories=("pom hl",), notes="1 month"),
        make_order("C", date(2024, 2, 10), categories=("pom hl",), notes="2 months"),
        # 2024-02-25 + 30 days = 2024-03-26
        make_order("D", date(2024, 2, 25), categories=("otc sk",)),
    ]
    return build_activity_ledger(orders, "2024-04")


class TestSurvival:
    """Share of a subscription cohort still covered m months later."""

    def test_first_seen_months(self):
        store = {"2024-02": {"A", "C"}, "2024-01": {"A", "B"}}
        assert first_seen_months(store) == {"A": "2024-01", "B": "2024-01", "C": "2024-02"}

    def test_curves(self, ledger):
        rows = compute_survival(ledger)

        assert {r.category for r in rows} == {"pom hl"}
        jan = [r for r in rows if r.cohort_month == "2024-01"]
        feb = [r for r in rows if r.cohort_month == "2024-02"]
        assert [r.survival_rate for r in jan] == [1.0, 0.5, 0.5, 0.0]
        assert {r.cohort_size for r in jan} == {2}
        assert [r.survival_rate for r in feb] == [1.0, 1.0, 0.0]

    def test_one_time_categories_have_no_curve(self, ledger):
        assert all(r.category != "otc sk" for r in compute_survival(ledger))

    def test_max_offset_respected(self):
        store = {month: {"A"} for month in month_range("2022-01", "2024-01")}
        rows = category_survival("pom hl", store, "2024-01", max_offset=12)
        assert [r.m for r in rows] == list(range(13))

    def test_rate_bounds(self):
        with pytest.raises(ValueError, match="survival_rate must be within 0-1"):
            SurvivalRow("2024-01", "pom hl", 0, 1, 1.2)


class TestWaterfall:
    """end_active = start_active + new_active + reactivated - churned."""

    def test_overall_series(self, ledger):
        rows = [r for r in compute_waterfall(ledger) if r.category == ALL_CATEGORIES]
        assert [
            (r.month, r.start_active, r.new_active, r.reactivated, r.churned, r.end_active)
            for r in rows
        ] == [
            ("2024-01", 0, 2, 0, 0, 2),
            ("2024-02", 2, 2, 0, 1, 3),
            ("2024-03", 3, 0, 0, 0, 3),
            ("2024-04", 3, 0, 0, 3, 0),
        ]

    def test_category_order(self, ledger):
        rows = compute_waterfall(ledger)
        assert len(rows) == 12
        assert [rows[i].category for i in (0, 4, 8)] == [ALL_CATEGORIES, "pom hl", "otc sk"]

    def test_reactivation_is_not_new(self):
        store = {"2024-01": {"A"}, "2024-03": {"A", "B"}}
        jan, feb, mar = build_waterfall("pom hl", store, month_range("2024-01", "2024-03"))

        assert (feb.start_active, feb.churned, feb.end_active) == (1, 1, 0)
        assert (mar.start_active, mar.new_active, mar.reactivated, mar.end_active) == (
            0, 1, 1, 2,
        )

    def test_identity_holds_for_every_row(self, ledger):
        for r in compute_waterfall(ledger):
            assert r.end_active == r.start_active + r.new_active + r.reactivated - r.churned

    def test_unreconciled_row_rejected(self):
        with pytest.raises(ValueError, match="does not reconcile"):
            WaterfallRow("2024-01", "ALL", 2, 1, 0, 1, 3)

    def test_negative_counts_rejected(self):
        with pytest.raises(ValueError, match="churned must be >= 0"):
            WaterfallRow("2024-01", "ALL", 0, 0, 0, -1, 1)

    def test_empty_ledger(self):
        assert compute_waterfall(build_activity_ledger([], "2024-04")) == []
