"""Order normalisation: raw export rows to canonical order records.

Raw order exports arrive as loosely typed rows whose column names drift
between exports ("Status Order" vs "Order Status", "SKUs" vs "Items").
This module resolves those columns, keeps only delivered orders with a
parsable date, maps SKU and category text onto the catalog's categories
and derives a deduplication key for every order.

Rows that cannot be used are dropped silently; the only trace they leave is
the :class:`NormalizationStats` counters.

Quick Start
-----------
>>> from order_cohort_audit.foundation.orders import OrderNormalizer
>>> rows = [{"Order_id": "A1", "Order Date": "05/01/2024", "Status Order": "Delivered",
...          "Price": "1,250.00", "Customer": "Jane", "SKUs": "Ultimate Revival",
...          "Notes": "3 months"}]
>>> batch = OrderNormalizer().normalise(rows)
>>> batch.orders[0].month_key, batch.orders[0].categories
('2024-01', frozenset({'pom hl'}))
"""

from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Callable, Iterable, Mapping, Sequence

import pandas as pd

from order_cohort_audit.foundation.catalog import (
    DEFAULT_CATALOG,
    CatalogConfig,
    normalise_text,
    split_values,
)
from order_cohort_audit.foundation.periods import month_key

logger = logging.getLogger(__name__)

DELIVERED_STATUS = "delivered"

#: Candidate column names per canonical field, most specific first.
COLUMN_CANDIDATES: Mapping[str, tuple[str, ...]] = {
    "status": ("Status Order", "Order Status", "Status"),
    "date": ("Order Date", "Created At", "Date"),
    "order_id": ("Order_id", "orderid", "id"),
    "customer_id": ("name_uid", "final_id", "customer_id", "source_user_id", "user_id"),
    "price": ("Price", "Total", "Order Total", "Amount"),
    "categories": ("Category", "Categories"),
    "skus": ("SKUs", "SKU", "Products", "Items"),
    "notes": ("Notes", "Note", "Subscription Notes", "Cadence"),
    "type": ("Type",),
}

#: Display-name columns are only matched exactly; "Customer" would otherwise
#: swallow "customer_id".
DISPLAY_NAME_CANDIDATES: tuple[str, ...] = ("Customer", "Customer Name")

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_DAY_FIRST = re.compile(r"^(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{4})$")
_ISO_DATE = re.compile(r"^(\d{4})[/\-](\d{1,2})[/\-](\d{1,2})$")
_NUMBER = re.compile(r"[-+]?\d*\.?\d+")


@dataclass(frozen=True)
class OrderRecord:
    """Canonical delivered order.

    Attributes
    ----------
    order_key:
        Deduplication identity: ``id|<order id>`` when the export carries a
        usable id, else ``syn|<customer>|<date>|<price>|<type>``.
    order_date:
        Calendar day of the order.
    month_key:
        ``YYYY-MM`` of ``order_date``.
    price:
        Non-negative order value; unparsable prices are 0.
    categories:
        Catalog categories found in the SKU and category columns.
    sku_names:
        Canonical SKU labels (or the normalised raw text for unknown SKUs).
    customer_id:
        Stable customer identifier, ``""`` when the row has none.
    customer_label:
        Normalised display name of the customer.
    notes:
        Free text used to infer the subscription cadence.
    order_type:
        Normalised value of the ``Type`` column, part of synthetic keys.
    """

    order_key: str
    order_date: date
    month_key: str
    price: float
    categories: frozenset[str]
    sku_names: tuple[str, ...]
    customer_id: str
    customer_label: str = ""
    notes: str = ""
    order_type: str = ""

    def __post_init__(self) -> None:
        if self.price < 0:
            raise ValueError(f"price must be >= 0, got {self.price}")
        if self.month_key != month_key(self.order_date):
            raise ValueError(
                f"month_key {self.month_key} does not match order_date "
                f"{self.order_date.isoformat()}"
            )


@dataclass
class NormalizationStats:
    """Row counters collected while normalising one export."""

    rows_read: int = 0
    not_delivered: int = 0
    bad_date: int = 0
    delivered: int = 0
    duplicates: int = 0
    missing_customer: int = 0


@dataclass
class NormalizedOrders:
    """Result of normalising one export.

    Attributes
    ----------
    rows:
        Every delivered row with a parsable date, in input order, before
        deduplication.
    orders:
        One record per ``order_key`` (first row wins), with categories and
        SKUs unioned across all rows sharing the key.
    unknown_keys:
        Order keys with at least one row that mapped to no category.
    stats:
        Drop and duplicate counters.
    """

    rows: list[OrderRecord]
    orders: list[OrderRecord]
    unknown_keys: frozenset[str] = frozenset()
    stats: NormalizationStats = field(default_factory=NormalizationStats)

    @property
    def customer_orders(self) -> list[OrderRecord]:
        """Deduplicated orders that can be attributed to a customer."""
        return [order for order in self.orders if order.customer_id]


def read_order_rows(source: bytes | str) -> list[dict[str, str]]:
    """Parse a delimited export into string-valued rows.

    Every cell is read as text (empty cells become ``""``) and trimmed, and
    fully empty lines are skipped.
    """
    if not source.strip():
        return []
    if isinstance(source, bytes):
        buffer: io.IOBase = io.BytesIO(source)
    else:
        buffer = io.StringIO(source)
    frame = pd.read_csv(
        buffer,
        encoding_errors="replace",
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        skipinitialspace=True,
    )
    frame.columns = [str(column).strip() for column in frame.columns]
    if frame.empty:
        return []
    frame = frame.apply(lambda column: column.str.strip())
    return frame.to_dict(orient="records")


def _compact(name: str) -> str:
    return _NON_ALNUM.sub("", name.lower())


def find_column(
    columns: Sequence[str], candidates: Sequence[str], fuzzy: bool = True
) -> str | None:
    """Pick the column matching one of ``candidates``.

    Names are compared on their lower-case alphanumeric characters. An exact
    match on any candidate wins; otherwise, when ``fuzzy`` is set, the first
    column containing a candidate is used. Candidates of three characters
    or fewer only ever match exactly.
    """
    compact = {_compact(column): column for column in columns}
    for candidate in candidates:
        hit = compact.get(_compact(candidate))
        if hit is not None:
            return hit
    if not fuzzy:
        return None
    for column in columns:
        name = _compact(column)
        for candidate in candidates:
            needle = _compact(candidate)
            if len(needle) > 3 and needle in name:
                return column
    return None


def resolve_columns(columns: Sequence[str]) -> dict[str, str | None]:
    """Map every canonical field to the export column that carries it."""
    resolved = {
        name: find_column(columns, candidates)
        for name, candidates in COLUMN_CANDIDATES.items()
    }
    resolved["customer_name"] = find_column(columns, DISPLAY_NAME_CANDIDATES, fuzzy=False)
    return resolved


def parse_order_date(value: object) -> date | None:
    """Parse an order date, day-first.

    Accepted forms, tried in order:

    1. ``d/m/yyyy`` with ``/``, ``-`` or ``.`` separators (day first)
    2. the same digits month first, only when day-first is impossible
    3. ISO ``yyyy-mm-dd`` or ``yyyy/mm/dd``
    4. any ISO 8601 datetime

    Anything after the first space (a time of day) is ignored.

    >>> parse_order_date("03/04/2024")
    datetime.date(2024, 4, 3)
    >>> parse_order_date("12/25/2024")
    datetime.date(2024, 12, 25)
    >>> parse_order_date("not a date") is None
    True
    """
    raw = str(value or "").strip()
    if not raw:
        return None
    head = raw.split(" ")[0]

    match = _DAY_FIRST.match(head)
    if match:
        first, second, year = (int(part) for part in match.groups())
        for day, month in ((first, second), (second, first)):
            try:
                return date(year, month, day)
            except ValueError:
                continue
        return None

    match = _ISO_DATE.match(head)
    if match:
        year, month, day = (int(part) for part in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            return None

    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def parse_price(value: object) -> float:
    """Extract the first number from ``value``, ignoring thousands separators.

    >>> parse_price("AED 1,299.50")
    1299.5
    >>> parse_price("free")
    0.0
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        number = float(value)
    else:
        match = _NUMBER.search(str(value).replace(",", ""))
        if not match:
            return 0.0
        number = float(match.group(0))
    if number != number or number in (float("inf"), float("-inf")):
        return 0.0
    return max(number, 0.0)


class OrderNormalizer:
    """Turn raw export rows into canonical, deduplicated orders."""

    def __init__(self, catalog: CatalogConfig = DEFAULT_CATALOG) -> None:
        self.catalog = catalog

    def normalise(self, rows: Iterable[Mapping[str, object]]) -> NormalizedOrders:
        stats = NormalizationStats()
        records: list[OrderRecord] = []
        unknown_keys: set[str] = set()
        column_cache: dict[tuple[str, ...], dict[str, str | None]] = {}

        for row in rows:
            stats.rows_read += 1
            header = tuple(str(key) for key in row.keys())
            columns = column_cache.get(header)
            if columns is None:
                columns = column_cache[header] = resolve_columns(header)

            def cell(name: str) -> object:
                column = columns.get(name)
                return row.get(column) if column is not None else None

            if normalise_text(cell("status")) != DELIVERED_STATUS:
                stats.not_delivered += 1
                continue

            order_date = parse_order_date(cell("date"))
            if order_date is None:
                stats.bad_date += 1
                continue

            record = self._build_record(order_date, cell)
            if not record.customer_id:
                stats.missing_customer += 1
            if not record.categories:
                unknown_keys.add(record.order_key)
            records.append(record)

        stats.delivered = len(records)
        orders = _deduplicate(records)
        stats.duplicates = len(records) - len(orders)

        logger.info(
            "Normalised %d rows: %d delivered, %d unique orders "
            "(%d not delivered, %d bad dates, %d duplicates)",
            stats.rows_read,
            stats.delivered,
            len(orders),
            stats.not_delivered,
            stats.bad_date,
            stats.duplicates,
        )
        return NormalizedOrders(
            rows=records,
            orders=orders,
            unknown_keys=frozenset(unknown_keys),
            stats=stats,
        )

    def _build_record(self, order_date: date, cell: Callable[[str], object]) -> OrderRecord:
        catalog = self.catalog
        customer_label = normalise_text(cell("customer_name"))
        customer_id = str(cell("customer_id") or "").strip() or customer_label

        raw_price = str(cell("price") if cell("price") is not None else "").strip()
        order_type = normalise_text(cell("type"))
        order_id = normalise_text(cell("order_id"))
        if order_id and order_id not in catalog.placeholder_order_ids:
            order_key = f"id|{order_id}"
        else:
            order_key = (
                f"syn|{customer_id}|{order_date.isoformat()}|{raw_price}|{order_type}"
            )

        sku_names: list[str] = []
        for item in split_values(cell("skus")):
            name = catalog.match_sku(item) or item
            if name not in sku_names:
                sku_names.append(name)

        categories = catalog.categories_from_skus(cell("skus")) | catalog.categories_from_labels(
            cell("categories")
        )

        return OrderRecord(
            order_key=order_key,
            order_date=order_date,
            month_key=month_key(order_date),
            price=parse_price(cell("price")),
            categories=frozenset(categories),
            sku_names=tuple(sku_names),
            customer_id=customer_id,
            customer_label=customer_label,
            notes=str(cell("notes") or ""),
            order_type=order_type,
        )


def _deduplicate(records: Sequence[OrderRecord]) -> list[OrderRecord]:
    """Collapse records sharing an order key, unioning their labels."""
    merged: dict[str, OrderRecord] = {}
    for record in records:
        first = merged.get(record.order_key)
        if first is None:
            merged[record.order_key] = record
            continue
        extra_skus = tuple(s for s in record.sku_names if s not in first.sku_names)
        if record.categories <= first.categories and not extra_skus:
            continue
        merged[record.order_key] = replace(
            first,
            categories=first.categories | record.categories,
            sku_names=first.sku_names + extra_skus,
        )
    return list(merged.values())


def normalise_orders(
    source: bytes | str, catalog: CatalogConfig = DEFAULT_CATALOG
) -> NormalizedOrders:
    """Read and normalise an export buffer in one step."""
    return OrderNormalizer(catalog).normalise(read_order_rows(source))
