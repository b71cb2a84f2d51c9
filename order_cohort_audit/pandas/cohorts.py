"""Pandas adapters shaping cohort tables into heatmap matrices."""

from typing import Sequence, Union
import pandas as pd  # type: ignore

from order_cohort_audit.analyses.cohorts import (
    ALL_CUSTOMERS,
    CohortDimension,
    CohortMetric,
    LtvRow,
    RetentionRow,
)
from .tables import rows_to_dataframe


def _pivot(
    frame: pd.DataFrame,
    value_column: str,
    dimension: str,
    first_value: str,
    metric: str,
) -> pd.DataFrame:
    selected = frame[
        (frame["dimension"] == dimension)
        & (frame["first_value"] == first_value)
        & (frame["metric"] == metric)
    ]
    if selected.empty:
        return pd.DataFrame()

    matrix = selected.pivot(index="cohort_month", columns="m", values=value_column)
    matrix = matrix.sort_index().reindex(columns=sorted(matrix.columns))
    sizes = selected.groupby("cohort_month")["cohort_size"].first()
    matrix.insert(0, "cohort_size", sizes.reindex(matrix.index).astype(int))
    matrix.columns.name = None
    return matrix


def cohort_heatmap(
    rows: Sequence[Union[RetentionRow, LtvRow]],
    dimension: Union[str, CohortDimension] = CohortDimension.OVERALL,
    first_value: str = ALL_CUSTOMERS,
    metric: Union[str, CohortMetric] = CohortMetric.ANY,
) -> pd.DataFrame:
    """Pivot retention or LTV rows into a cohort x offset matrix.

    Args:
        rows: Retention rows or LTV rows (not mixed)
        dimension: ``overall`` or ``category``
        first_value: ``ALL`` for the overall dimension, else a category
        metric: ``any`` or ``same``

    Returns:
        DataFrame indexed by cohort month with a ``cohort_size`` column and
        one column per offset ``m``. Censored cells are NaN. Empty when no
        row matches the selection.

    Example:
        >>> heatmap = cohort_heatmap(result.retention, "category", "pom hl", "same")
        >>> heatmap.loc["2024-01", 3]
    """
    if not rows:
        return pd.DataFrame()
    row_type = type(rows[0])
    value_column = "retention" if row_type is RetentionRow else "ltv_per_user"
    frame = rows_to_dataframe(rows, row_type)
    return _pivot(
        frame,
        value_column,
        CohortDimension(dimension).value,
        first_value,
        CohortMetric(metric).value,
    )
