"""Pandas DataFrame adapters for order analytics tables."""

from dataclasses import fields
from typing import Any, Dict, Iterable, Sequence, Type
import pandas as pd  # type: ignore

from order_cohort_audit.analyses.catalogue import CatalogueRow, CatalogueSummary
from order_cohort_audit.analyses.churn import ActiveCountRow, TransitionRow
from order_cohort_audit.analyses.cohorts import LtvRow, RetentionRow
from order_cohort_audit.analyses.headline import (
    HeadlineReconciliation,
    MomOrdersByVerticalRow,
    MomOrdersRow,
)
from order_cohort_audit.analyses.survival import SurvivalRow
from order_cohort_audit.analyses.waterfall import WaterfallRow
from order_cohort_audit.engine import OrderAnalyticsResult
from order_cohort_audit.foundation.orders import OrderRecord


def rows_to_dataframe(rows: Sequence[Any], row_type: Type[Any]) -> pd.DataFrame:
    """Convert a sequence of row dataclasses to a DataFrame.

    Args:
        rows: Row dataclass instances (anything with ``as_dict()``)
        row_type: Dataclass type of the rows, used for the column order so
            empty tables keep their header

    Returns:
        DataFrame with one column per dataclass field

    Example:
        >>> df = rows_to_dataframe(result.retention, RetentionRow)
        >>> df[df["m"] == 1]["retention"].mean()
    """
    columns = [f.name for f in fields(row_type)]
    if not rows:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame([row.as_dict() for row in rows], columns=columns)


def orders_to_dataframe(orders: Iterable[OrderRecord]) -> pd.DataFrame:
    """Convert normalised orders to a flat DataFrame.

    Categories and SKUs are joined with ``", "`` so the frame can be written
    to CSV.
    """
    columns = [
        "order_key",
        "order_date",
        "month_key",
        "price",
        "categories",
        "sku_names",
        "customer_id",
        "notes",
    ]
    records = [
        {
            "order_key": order.order_key,
            "order_date": pd.Timestamp(order.order_date),
            "month_key": order.month_key,
            "price": order.price,
            "categories": ", ".join(sorted(order.categories)),
            "sku_names": ", ".join(order.sku_names),
            "customer_id": order.customer_id,
            "notes": order.notes,
        }
        for order in orders
    ]
    return pd.DataFrame(records, columns=columns)


def catalogue_to_dataframe(catalogue: CatalogueSummary) -> pd.DataFrame:
    return rows_to_dataframe(catalogue.rows, CatalogueRow)


def result_to_dataframes(result: OrderAnalyticsResult) -> Dict[str, pd.DataFrame]:
    """Convert every table of an analytics result to a DataFrame.

    Args:
        result: Output of ``compute_all``/``compute_from_buffer``

    Returns:
        Dictionary keyed by table name: ``mom_orders``,
        ``mom_orders_by_vertical``, ``headline_vs_verticals``, ``catalogue``,
        ``churn_overview``, ``churn_by_category``, ``daily_active``,
        ``daily_retention``, ``weekly_retention``, ``monthly_active``,
        ``retention``, ``ltv``, ``survival``, ``waterfall``

    Example:
        >>> dfs = result_to_dataframes(compute_from_buffer(csv_bytes))
        >>> dfs["waterfall"].to_csv("waterfall.csv", index=False)
    """
    churn = result.churn
    return {
        "mom_orders": rows_to_dataframe(result.headline.mom_orders, MomOrdersRow),
        "mom_orders_by_vertical": rows_to_dataframe(
            result.headline.mom_orders_by_vertical, MomOrdersByVerticalRow
        ),
        "headline_vs_verticals": rows_to_dataframe(
            result.headline.qa.headline_vs_verticals, HeadlineReconciliation
        ),
        "catalogue": catalogue_to_dataframe(result.catalogue),
        "churn_overview": rows_to_dataframe(churn.overview, TransitionRow),
        "churn_by_category": rows_to_dataframe(churn.by_category, TransitionRow),
        "daily_active": rows_to_dataframe(churn.daily, ActiveCountRow),
        "daily_retention": rows_to_dataframe(churn.daily_retention, TransitionRow),
        "weekly_retention": rows_to_dataframe(churn.weekly_retention, TransitionRow),
        "monthly_active": rows_to_dataframe(churn.monthly_active, ActiveCountRow),
        "retention": rows_to_dataframe(result.retention, RetentionRow),
        "ltv": rows_to_dataframe(result.ltv, LtvRow),
        "survival": rows_to_dataframe(result.survival, SurvivalRow),
        "waterfall": rows_to_dataframe(result.waterfall, WaterfallRow),
    }
