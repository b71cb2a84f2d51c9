"""JSON and spreadsheet exports of order analytics results."""

from .exports import (
    export_orders_workbook,
    export_result_json,
    format_percentage,
    workbook_bytes,
)

__all__ = [
    "export_orders_workbook",
    "export_result_json",
    "format_percentage",
    "workbook_bytes",
]
