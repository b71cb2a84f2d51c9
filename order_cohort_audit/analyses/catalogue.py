"""Per-SKU catalogue economics: units, revenue, cost of goods and take rate.

Every SKU line of a delivered order counts as one unit and carries the full
order price as revenue. Unit cost comes from the catalog's legacy or current
cost table, chosen by the order month against the cutover month.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Iterable

from order_cohort_audit.foundation.catalog import DEFAULT_CATALOG, CatalogConfig
from order_cohort_audit.foundation.orders import OrderRecord

logger = logging.getLogger(__name__)

UNKNOWN_CATEGORY = "unknown"


@dataclass(frozen=True)
class CatalogueRow:
    """Economics of one SKU.

    Attributes
    ----------
    category:
        Catalog category of the SKU, ``"unknown"`` when unmapped.
    sku:
        Canonical SKU label.
    units:
        SKU lines sold.
    avg_price:
        ``revenue / units``.
    revenue:
        Sum of the prices of orders containing the SKU.
    cogs_per_unit:
        Average unit cost over the period.
    cogs_total:
        Total cost of goods.
    take_rate:
        ``(revenue - cogs_total) / revenue``, 0 without revenue.
    margin_label:
        Cutover label when the SKU sold after a cost change, else ``""``.
    """

    category: str
    sku: str
    units: int
    avg_price: float
    revenue: float
    cogs_per_unit: float
    cogs_total: float
    take_rate: float
    margin_label: str = ""

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class CatalogueTotals:
    units: int = 0
    revenue: float = 0.0
    cogs: float = 0.0
    take_rate: float = 0.0

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass
class CatalogueSummary:
    rows: list[CatalogueRow] = field(default_factory=list)
    totals: CatalogueTotals = field(default_factory=CatalogueTotals)

    def as_dict(self) -> dict[str, object]:
        return {
            "rows": [row.as_dict() for row in self.rows],
            "totals": self.totals.as_dict(),
        }


@dataclass
class _SkuAccumulator:
    category: str
    units: int = 0
    revenue: float = 0.0
    cogs: float = 0.0
    margin_label: str = ""


def _take_rate(revenue: float, cogs: float) -> float:
    return (revenue - cogs) / revenue if revenue else 0.0


def compute_catalogue(
    orders: Iterable[OrderRecord], catalog: CatalogConfig = DEFAULT_CATALOG
) -> CatalogueSummary:
    """Aggregate SKU economics over deduplicated delivered orders.

    Rows are sorted by category then SKU.
    """
    stats: dict[str, _SkuAccumulator] = {}
    for order in orders:
        after_cutover = order.month_key >= catalog.cogs_cutover_month
        for sku in order.sku_names:
            entry = stats.get(sku)
            if entry is None:
                entry = stats[sku] = _SkuAccumulator(
                    category=catalog.category_for_sku(sku) or UNKNOWN_CATEGORY
                )
            entry.units += 1
            entry.revenue += order.price
            entry.cogs += catalog.cogs_for(sku, order.month_key)
            if not entry.margin_label and after_cutover and catalog.cost_changed_at_cutover(sku):
                entry.margin_label = catalog.cutover_label

    rows = [
        CatalogueRow(
            category=entry.category,
            sku=sku,
            units=entry.units,
            avg_price=entry.revenue / entry.units,
            revenue=entry.revenue,
            cogs_per_unit=entry.cogs / entry.units,
            cogs_total=entry.cogs,
            take_rate=_take_rate(entry.revenue, entry.cogs),
            margin_label=entry.margin_label,
        )
        for sku, entry in stats.items()
    ]
    rows.sort(key=lambda row: (row.category, row.sku))

    units = sum(row.units for row in rows)
    revenue = sum(row.revenue for row in rows)
    cogs = sum(row.cogs_total for row in rows)
    logger.debug("Catalogue: %d SKUs, %d units", len(rows), units)
    return CatalogueSummary(
        rows=rows,
        totals=CatalogueTotals(
            units=units, revenue=revenue, cogs=cogs, take_rate=_take_rate(revenue, cogs)
        ),
    )
