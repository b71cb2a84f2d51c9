"""End-to-end tests of the analytics pipeline entry points."""

import json
from datetime import date

import pytest

from order_cohort_audit.engine import OrderAnalyticsResult, compute_all, compute_from_buffer
from order_cohort_audit.foundation.periods import NO_DATA_MONTH, shift_month_key

TODAY = date(2024, 9, 1)


@pytest.fixture
def result(orders_csv):
    return compute_from_buffer(orders_csv, today=TODAY)


class TestComputeFromBuffer:
    def test_counts(self, result):
        assert result.as_of_month == "2024-05"
        assert result.order_count == 7
        assert result.customer_count == 5
        assert result.stats.rows_read == 8
        assert result.stats.not_delivered == 1
        assert result.headline.snapshot_month == "2024-05"

    def test_overall_retention_of_first_cohort(self, result):
        rows = [
            r
            for r in result.retention
            if r.dimension == "overall" and r.cohort_month == "2024-01"
        ]
        assert [r.retention for r in rows] == [1.0, 1.0, 1.0, 0.5, 0.5]
        assert {r.cohort_size for r in rows} == {2}

    def test_subscription_survival_present(self, result):
        assert {r.category for r in result.survival} == {"pom hl", "pom bg"}

    def test_nothing_after_as_of_month(self, result):
        as_of = result.as_of_month
        assert all(r.target_month <= as_of for r in result.retention)
        assert all(r.target_month <= as_of for r in result.ltv)
        assert all(shift_month_key(r.cohort_month, r.m) <= as_of for r in result.survival)
        assert all(r.month <= as_of for r in result.waterfall)
        assert result.churn.months[-1] == as_of

    def test_current_month_is_excluded(self, orders_csv):
        result = compute_from_buffer(orders_csv, today=date(2024, 5, 20))
        assert result.as_of_month == "2024-04"

    def test_idempotent(self, orders_csv):
        first = compute_from_buffer(orders_csv, today=TODAY).as_dict()
        second = compute_from_buffer(orders_csv, today=TODAY).as_dict()
        assert json.dumps(first, sort_keys=True) == json.dumps(second, sort_keys=True)

    def test_as_dict_is_json_serialisable(self, result):
        payload = json.loads(json.dumps(result.as_dict()))
        assert payload["as_of_month"] == "2024-05"
        assert payload["stats"]["duplicates"] == 0
        assert payload["retention"][0]["dimension"] == "overall"


class TestEmptyInput:
    """No usable order yields empty tables and the no-data marker."""

    @pytest.mark.parametrize(
        "source",
        [
            b"",
            "Order_id,Order Date,Status Order,Price\n",
            "Order_id,Order Date,Status Order,Price\n1,05/01/2024,Cancelled,10\n",
        ],
    )
    def test_no_orders(self, source):
        result = compute_from_buffer(source, today=TODAY)

        assert result.as_of_month == NO_DATA_MONTH
        assert result.retention == []
        assert result.ltv == []
        assert result.survival == []
        assert result.waterfall == []
        assert result.churn.overview == []
        assert result.headline.mom_orders == []
        assert result.catalogue.rows == []

    def test_default_result(self):
        payload = OrderAnalyticsResult().as_dict()
        assert payload["as_of_month"] == NO_DATA_MONTH
        assert payload["snapshot_month"] is None


class TestComputeAll:
    def test_orders_without_customer_only_count_in_headline(self, make_order):
        orders = [
            make_order("U1", date(2024, 1, 5)),
            make_order("", date(2024, 1, 6)),
        ]
        result = compute_all(orders, today=TODAY)

        assert result.headline.mom_orders[0].orders == 2
        assert result.customer_count == 1
        assert {r.cohort_size for r in result.retention} == {1}

    def test_oversized_cadence_note_does_not_abort(self):
        source = (
            "Order_id,Order Date,Status Order,Price,Customer,SKUs,Notes\n"
            "A1,10/01/2024,Delivered,100,Ann,Ultimate Revival,Ref 120000 months\n"
        )
        result = compute_from_buffer(source, today=TODAY)

        assert result.as_of_month == "2024-01"
        assert result.customer_count == 1
        assert [r.retention for r in result.retention if r.dimension == "overall"] == [1.0]
