"""Tests for raw export normalisation."""

from datetime import date

import pytest

from order_cohort_audit.foundation.orders import (
    OrderRecord,
    find_column,
    normalise_orders,
    parse_order_date,
    parse_price,
    read_order_rows,
    resolve_columns,
)

MESSY_EXPORT = """\
Order_id,Order Date,Status Order,Price,Customer,name_uid,SKUs,Category,Notes,Type
A1,05/01/2024,Delivered,"1,250.00",Jane Doe,U1,Ultimate Revival,,3 months,new
A1,05/01/2024,Delivered,"1,250.00",Jane Doe,U1,Shampoo,,3 months,new
stripe,06/01/2024,Delivered,200,Bob,U2,Cleanser,,,
stripe,06/01/2024,delivered,200,Bob,U2,Cleanser,,,
B7,07/01/2024,Cancelled,50,Carl,U3,Serum,,,
B8,xx,Delivered,50,Carl,U3,Serum,,,
B9,08/01/2024,Delivered,80,Dana,,Mystery Box,,,
B10,09/01/2024,DELIVERED,60,,,,OTCSK,,
"""


class TestColumnResolution:
    """Column names drift between exports."""

    def test_exact_match(self):
        columns = ["Status Order", "Order Date"]
        assert find_column(columns, ("Status Order", "Order Status", "Status")) == "Status Order"

    def test_fuzzy_match(self):
        assert (
            find_column(["order_status_v2"], ("Status Order", "Order Status", "Status"))
            == "order_status_v2"
        )

    def test_short_candidates_never_fuzzy(self):
        assert find_column(["customer_id"], ("Order_id", "orderid", "id")) is None

    def test_display_name_does_not_swallow_customer_id(self):
        resolved = resolve_columns(["Customer", "name_uid"])
        assert resolved["customer_name"] == "Customer"
        assert resolved["customer_id"] == "name_uid"

        resolved = resolve_columns(["Customer"])
        assert resolved["customer_id"] is None


class TestParsing:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("03/04/2024", date(2024, 4, 3)),
            ("3.4.2024", date(2024, 4, 3)),
            ("12/25/2024", date(2024, 12, 25)),
            ("2024-04-03", date(2024, 4, 3)),
            ("2024/4/3", date(2024, 4, 3)),
            ("2024-04-03T10:00:00Z", date(2024, 4, 3)),
            ("05/01/2024 14:30", date(2024, 1, 5)),
        ],
    )
    def test_order_dates(self, raw, expected):
        assert parse_order_date(raw) == expected

    @pytest.mark.parametrize("raw", ["", None, "not a date", "31/02/2024"])
    def test_unparsable_dates(self, raw):
        assert parse_order_date(raw) is None

    @pytest.mark.parametrize(
        "raw,expected",
        [("1,250.00", 1250.0), ("AED 99", 99.0), ("", 0.0), (None, 0.0), ("-5", 0.0), (12, 12.0)],
    )
    def test_prices(self, raw, expected):
        assert parse_price(raw) == expected


class TestReadOrderRows:
    def test_cells_are_trimmed_text(self):
        rows = read_order_rows(b"Order_id,Price\n A1 , 10 \n\n")
        assert rows == [{"Order_id": "A1", "Price": "10"}]

    def test_non_utf8_bytes_are_replaced(self):
        source = (
            "Order_id,Order Date,Status Order,Price,Customer,SKUs\n"
            "A1,05/01/2024,Delivered,100,Zoë,Ultimate Revival\n"
        ).encode("cp1252")

        rows = read_order_rows(source)

        assert len(rows) == 1
        assert rows[0]["Order_id"] == "A1"
        assert rows[0]["Customer"] == "Zo\ufffd"
        assert len(normalise_orders(source).orders) == 1

    def test_empty_and_header_only(self):
        assert read_order_rows(b"") == []
        assert read_order_rows("Order_id,Price\n") == []


class TestOrderNormalizer:
    """End-to-end normalisation of a messy export."""

    @pytest.fixture
    def batch(self):
        return normalise_orders(MESSY_EXPORT)

    def test_drop_counters(self, batch):
        stats = batch.stats
        assert stats.rows_read == 8
        assert stats.not_delivered == 1
        assert stats.bad_date == 1
        assert stats.delivered == 6
        assert stats.duplicates == 2
        assert stats.missing_customer == 1

    def test_duplicate_rows_merge_labels(self, batch):
        assert len(batch.rows) == 6
        assert len(batch.orders) == 4

        first = batch.orders[0]
        assert first.order_key == "id|a1"
        assert first.order_date == date(2024, 1, 5)
        assert first.price == 1250.0
        assert first.customer_id == "U1"
        assert first.categories == frozenset({"pom hl", "otc hl"})
        assert first.sku_names == ("ultimate revival", "shampoo")
        assert first.notes == "3 months"

    def test_placeholder_ids_use_synthetic_key(self, batch):
        synthetic = [o for o in batch.orders if o.order_key.startswith("syn|")]
        assert len(synthetic) == 1
        assert synthetic[0].order_key.startswith("syn|U2|2024-01-06|200")

    def test_customer_falls_back_to_display_name(self, batch):
        b9 = next(o for o in batch.orders if o.order_key == "id|b9")
        assert b9.customer_id == "dana"

    def test_category_column_and_unknown_keys(self, batch):
        b10 = next(o for o in batch.orders if o.order_key == "id|b10")
        assert b10.categories == frozenset({"otc sk"})
        assert batch.unknown_keys == frozenset({"id|b9"})

    def test_customer_orders_skip_anonymous(self, batch):
        assert [o.order_key for o in batch.customer_orders] == ["id|a1", batch.orders[1].order_key, "id|b9"]

    def test_empty_export(self):
        batch = normalise_orders(b"")
        assert batch.orders == []
        assert batch.stats.rows_read == 0


class TestOrderRecord:
    def test_negative_price_rejected(self):
        with pytest.raises(ValueError, match="price must be >= 0"):
            OrderRecord("id|1", date(2024, 1, 1), "2024-01", -1.0, frozenset(), (), "U1")

    def test_month_key_must_match_date(self):
        with pytest.raises(ValueError, match="does not match"):
            OrderRecord("id|1", date(2024, 1, 1), "2024-02", 1.0, frozenset(), (), "U1")
