"""Pandas DataFrame adapters for order analytics tables."""

from .tables import (
    rows_to_dataframe,
    orders_to_dataframe,
    catalogue_to_dataframe,
    result_to_dataframes,
)
from .cohorts import cohort_heatmap

__all__ = [
    # Table adapters
    "rows_to_dataframe",
    "orders_to_dataframe",
    "catalogue_to_dataframe",
    "result_to_dataframes",
    # Heatmaps
    "cohort_heatmap",
]
