"""Shared fixtures for the order analytics test suite."""

from datetime import date

import pytest

from order_cohort_audit.foundation.orders import OrderRecord
from order_cohort_audit.foundation.periods import month_key

ORDERS_CSV = """\
Order_id,Order Date,Status Order,Price,Customer,name_uid,SKUs,Category,Notes
1001,05/01/2024,Delivered,900,Ann,U1,Ultimate Revival,POM HL,Subscribe 3 months
1002,18/01/2024,Delivered,120,Ben,U2,Cleanser,,
1003,02/02/2024,Delivered,150,Ben,U2,Serum,,
1004,14/03/2024,Delivered,300,Cat,U3,Beard Growth Serum,,2 months
1005,20/04/2024,Delivered,900,Ann,U1,Power Regrowth,,3 months
1006,28/04/2024,Delivered,80,Dan,,Shampoo,,
1007,03/05/2024,Cancelled,80,Eve,U5,Shampoo,,
stripe,11/05/2024,Delivered,60,Fay,U6,Delay Spray,,
"""


def _make_order(
    customer_id: str,
    order_date: date,
    categories=("otc sk",),
    price: float = 100.0,
    notes: str = "",
    sku_names=(),
    order_key: str | None = None,
) -> OrderRecord:
    return OrderRecord(
        order_key=order_key or f"id|{customer_id}-{order_date.isoformat()}",
        order_date=order_date,
        month_key=month_key(order_date),
        price=price,
        categories=frozenset(categories),
        sku_names=tuple(sku_names),
        customer_id=customer_id,
        notes=notes,
    )


@pytest.fixture
def make_order():
    """Factory building a normalised order with sensible defaults."""
    return _make_order


@pytest.fixture
def orders_csv() -> str:
    """Small export covering subscriptions, one-time orders and a cancelled row."""
    return ORDERS_CSV
