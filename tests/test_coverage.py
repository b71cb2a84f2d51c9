"""Tests for coverage simulation and the activity ledger."""

from datetime import date

import pytest

from order_cohort_audit.foundation.coverage import (
    Segment,
    bucket_weekly,
    build_activity_ledger,
    parse_cadence,
    simulate_order_coverage,
)


class TestParseCadence:
    @pytest.mark.parametrize(
        "notes,expected",
        [
            ("Subscribe 3 months", 3),
            ("", 1),
            (None, 1),
            ("no subscription info", 1),
            ("2 Months", 2),
            ("6mo", 6),
            ("3 months free, then 1 month billing", 4),
            ("0 months", 1),
            ("3 monthly refills", 3),
        ],
    )
    def test_cadence(self, notes, expected):
        assert parse_cadence(notes) == expected


class TestSubscriptionCoverage:
    """Subscription orders credit whole calendar months."""

    def test_two_month_subscription(self, make_order):
        order = make_order("U1", date(2024, 1, 10), categories=("pom hl",), notes="2 months")
        coverage = simulate_order_coverage(order, "2024-12")

        assert coverage.is_subscription
        assert coverage.segment is Segment.SUBSCRIBERS
        assert coverage.cadence_months == 2
        assert coverage.months == ("2024-01", "2024-02")
        # 2024-01-10 through 2024-03-09
        assert len(coverage.days) == 60
        assert coverage.days[0] == "2024-01-10"
        assert coverage.days[-1] == "2024-03-09"

    def test_credits_clipped_to_as_of_month(self, make_order):
        order = make_order("U1", date(2024, 1, 10), categories=("pom hl",), notes="2 months")
        coverage = simulate_order_coverage(order, "2024-01")

        assert coverage.months == ("2024-01",)
        assert len(coverage.days) == 22
        assert coverage.days[-1] == "2024-01-31"

    def test_huge_cadence_stops_at_as_of_month(self, make_order):
        order = make_order(
            "U1", date(2024, 1, 10), categories=("pom hl",), notes="Ref 120000 months"
        )
        coverage = simulate_order_coverage(order, "2024-03")

        assert coverage.cadence_months == 120000
        assert coverage.months == ("2024-01", "2024-02", "2024-03")
        assert coverage.days[0] == "2024-01-10"
        assert coverage.days[-1] == "2024-03-31"

    def test_subscription_after_as_of_month_credits_nothing(self, make_order):
        order = make_order("U1", date(2024, 5, 2), categories=("pom hl",), notes="3 months")
        coverage = simulate_order_coverage(order, "2024-03")

        assert coverage.months == ()
        assert coverage.days == ()
        assert coverage.category_months == {}

    def test_side_categories_only_credit_order_month(self, make_order):
        order = make_order(
            "U1", date(2024, 1, 15), categories=("pom hl", "otc sk"), notes="3 months"
        )
        coverage = simulate_order_coverage(order, "2024-12")

        assert coverage.category_months == {
            "pom hl": ("2024-01", "2024-02", "2024-03"),
            "otc sk": ("2024-01",),
        }


class TestOneTimeCoverage:
    """One-time orders credit their month plus the month 30 days later."""

    def test_spillover_skips_intermediate_month(self, make_order):
        # 2023-01-31 + 30 days = 2023-03-02
        order = make_order("U2", date(2023, 1, 31))
        coverage = simulate_order_coverage(order, "2023-12")

        assert not coverage.is_subscription
        assert coverage.segment is Segment.ONETIME
        assert coverage.cadence_months == 0
        assert coverage.months == ("2023-01", "2023-03")
        assert len(coverage.days) == 30
        assert coverage.days[-1] == "2023-03-01"

    def test_late_month_order_spills_over(self, make_order):
        coverage = simulate_order_coverage(make_order("U2", date(2024, 1, 27)), "2024-12")
        assert coverage.months == ("2024-01", "2024-02")

    def test_no_spillover_within_month(self, make_order):
        coverage = simulate_order_coverage(make_order("U2", date(2024, 3, 1)), "2024-12")
        assert coverage.months == ("2024-03",)

    def test_order_after_as_of_month_credits_nothing(self, make_order):
        coverage = simulate_order_coverage(make_order("U2", date(2024, 5, 2)), "2024-04")
        assert coverage.months == ()
        assert coverage.days == ()
        assert coverage.category_months == {}


class TestActivityLedger:
    @pytest.fixture
    def ledger(self, make_order):
        orders = [
            make_order("U1", date(2024, 1, 10), categories=("pom hl",), notes="2 months"),
            make_order("U2", date(2024, 1, 20)),
            make_order("", date(2024, 1, 22)),
        ]
        return build_activity_ledger(orders, "2024-03")

    def test_monthly_segments(self, ledger):
        assert ledger.monthly[Segment.SUBSCRIBERS] == {"2024-01": {"U1"}, "2024-02": {"U1"}}
        assert ledger.monthly[Segment.ONETIME] == {"2024-01": {"U2"}, "2024-02": {"U2"}}
        assert ledger.monthly[Segment.TOTAL] == {
            "2024-01": {"U1", "U2"},
            "2024-02": {"U1", "U2"},
        }

    def test_monthly_by_category(self, ledger):
        assert ledger.monthly_by_category == {
            "pom hl": {"2024-01": {"U1"}, "2024-02": {"U1"}},
            "otc sk": {"2024-01": {"U2"}, "2024-02": {"U2"}},
        }

    def test_anonymous_orders_are_skipped(self, ledger):
        assert all("" not in customers for customers in ledger.daily[Segment.TOTAL].values())

    def test_first_periods(self, ledger):
        assert ledger.first_month() == "2024-01"
        assert ledger.first_day() == "2024-01-10"

    def test_weekly_buckets(self, ledger):
        weekly = ledger.weekly[Segment.TOTAL]
        assert weekly["2024-01-08"] == {"U1"}
        assert weekly["2024-01-15"] == {"U1", "U2"}

    def test_bucket_weekly(self):
        daily = {"2024-01-01": {"A"}, "2024-01-07": {"B"}, "2024-01-08": {"C"}}
        assert bucket_weekly(daily) == {"2024-01-01": {"A", "B"}, "2024-01-08": {"C"}}

    def test_empty_ledger(self):
        ledger = build_activity_ledger([], "2024-03")
        assert ledger.first_month() is None
        assert ledger.first_day() is None
