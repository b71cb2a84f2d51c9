"""MCP Tools for Order Cohort Analytics.

This module exports the order analytics tools and the health check.
"""

from .orders import compute_order_analytics, export_orders_workbook
from .health_check import health_check

__all__ = [
    "compute_order_analytics",
    "export_orders_workbook",
    "health_check",
]
