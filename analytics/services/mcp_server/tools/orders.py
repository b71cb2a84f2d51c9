"""Order Analytics MCP Tools

Wraps the order analytics engine as MCP tools:

- compute_order_analytics: CSV export -> churn/retention/LTV/survival/waterfall
  tables, summarised in the response and kept in shared state
- export_orders_workbook: CSV export -> MoM + catalogue XLSX workbook

Input and output files must live under ``MCP_DATA_DIR`` (defaults to the
working directory) and inputs are capped at ``ORDERS_MAX_INPUT_BYTES``.
"""

import os
from datetime import date
from pathlib import Path

import structlog
from fastmcp import Context
from pydantic import BaseModel, Field

from analytics.services.mcp_server.instance import mcp
from analytics.services.mcp_server.state import get_shared_state
from order_cohort_audit.engine import OrderAnalyticsResult, compute_from_buffer
from order_cohort_audit.reporting.exports import (
    CATALOGUE_SHEET,
    MOM_SHEET,
    VERTICAL_SHEET,
    export_orders_workbook as write_orders_workbook,
)

logger = structlog.get_logger(__name__)

DEFAULT_MAX_INPUT_BYTES = 25 * 1024 * 1024  # 25 MiB


def data_dir() -> Path:
    """Allowed base directory for tool inputs and outputs."""
    return Path(os.getenv("MCP_DATA_DIR") or Path.cwd()).resolve()


def max_input_bytes() -> int:
    return int(os.getenv("ORDERS_MAX_INPUT_BYTES", str(DEFAULT_MAX_INPUT_BYTES)))


def _resolve_path(raw_path: str) -> Path:
    """Resolve ``raw_path`` against the data directory and keep it inside."""
    base = data_dir()
    path = Path(raw_path)
    if not path.is_absolute():
        path = base / path

    resolved = path.resolve()
    try:
        resolved.relative_to(base)
    except ValueError as e:
        raise ValueError(
            f"Path {resolved} is outside allowed directory {base}. "
            f"Only files within the data directory can be used."
        ) from e
    return resolved


def _read_orders_file(raw_path: str) -> tuple[Path, bytes]:
    path = _resolve_path(raw_path)
    if not path.exists():
        raise FileNotFoundError(f"Order export not found: {path}")

    limit = max_input_bytes()
    size = path.stat().st_size
    if size > limit:
        raise ValueError(
            f"Input file {path} is {size} bytes; exceeds limit of {limit} bytes"
        )
    return path, path.read_bytes()


def _parse_today(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ValueError(f"today must be an ISO date (YYYY-MM-DD), got {value!r}") from e


class ComputeOrderAnalyticsRequest(BaseModel):
    """Request to compute order analytics from a CSV export."""

    file_path: str = Field(
        default="allorders.csv",
        description="Path to the CSV order export (relative to MCP_DATA_DIR or absolute)",
    )
    today: str | None = Field(
        default=None,
        description="Reference date (YYYY-MM-DD) for the as-of month; defaults to today",
    )
    include_tables: bool = Field(
        default=False,
        description="Return every table in the response instead of a summary only",
    )


class ComputeOrderAnalyticsResponse(BaseModel):
    """Summary of a computed analytics result."""

    file_path: str
    as_of_month: str
    snapshot_month: str | None
    order_count: int
    customer_count: int
    rows_read: int
    dropped_rows: int
    table_sizes: dict[str, int]
    qa: dict
    latest_month: dict | None = None
    tables: dict | None = None


class ExportOrdersWorkbookRequest(BaseModel):
    """Request to export the MoM/catalogue workbook."""

    file_path: str = Field(
        default="allorders.csv",
        description="Path to the CSV order export (relative to MCP_DATA_DIR or absolute)",
    )
    output_path: str = Field(
        default="orders_mom.xlsx",
        description="Workbook destination (relative to MCP_DATA_DIR or absolute)",
    )
    include_catalogue: bool = Field(
        default=True, description="Add the catalogue summary sheet"
    )
    today: str | None = Field(
        default=None,
        description="Reference date (YYYY-MM-DD) for the as-of month; defaults to today",
    )


class ExportOrdersWorkbookResponse(BaseModel):
    output_path: str
    sheets: list[str]
    months: int
    catalogue_skus: int


def _table_sizes(result: OrderAnalyticsResult) -> dict[str, int]:
    return {
        "mom_orders": len(result.headline.mom_orders),
        "mom_orders_by_vertical": len(result.headline.mom_orders_by_vertical),
        "catalogue": len(result.catalogue.rows),
        "churn_overview": len(result.churn.overview),
        "churn_by_category": len(result.churn.by_category),
        "daily_retention": len(result.churn.daily_retention),
        "weekly_retention": len(result.churn.weekly_retention),
        "retention": len(result.retention),
        "ltv": len(result.ltv),
        "survival": len(result.survival),
        "waterfall": len(result.waterfall),
    }


async def _compute_order_analytics_impl(
    request: ComputeOrderAnalyticsRequest, ctx: Context
) -> ComputeOrderAnalyticsResponse:
    """Implementation of order analytics computation."""
    shared_state = get_shared_state()
    await ctx.info(f"Loading order export {request.file_path}")

    path, buffer = _read_orders_file(request.file_path)
    today = _parse_today(request.today)

    await ctx.report_progress(0.3, "Normalising orders and simulating coverage...")
    result = compute_from_buffer(buffer, today=today)

    await ctx.report_progress(0.8, "Summarising tables...")
    stats = result.stats
    shared_state.set("order_result", result)
    shared_state.set(
        "order_result_metadata",
        {"file_path": str(path), "as_of_month": result.as_of_month},
    )

    logger.info(
        "orders_computed",
        file_path=str(path),
        as_of_month=result.as_of_month,
        rows_read=stats.rows_read,
        delivered=stats.delivered,
        duplicates=stats.duplicates,
    )
    await ctx.info(f"Order analytics complete as of {result.as_of_month}")

    mom = result.headline.mom_orders
    return ComputeOrderAnalyticsResponse(
        file_path=str(path),
        as_of_month=result.as_of_month,
        snapshot_month=result.headline.snapshot_month,
        order_count=result.order_count,
        customer_count=result.customer_count,
        rows_read=stats.rows_read,
        dropped_rows=stats.not_delivered + stats.bad_date,
        table_sizes=_table_sizes(result),
        qa=result.headline.qa.as_dict(),
        latest_month=mom[-1].as_dict() if mom else None,
        tables=result.as_dict() if request.include_tables else None,
    )


@mcp.tool()
async def compute_order_analytics(
    request: ComputeOrderAnalyticsRequest, ctx: Context
) -> ComputeOrderAnalyticsResponse:
    """
    Compute order cohort analytics from a delivered-orders CSV export.

    Runs the full pipeline on the export:
    - month-over-month delivered orders, per vertical, with pacing and QA
    - per-SKU catalogue economics
    - monthly/daily/weekly churn and reactivation per segment and category
    - cohort retention and LTV (any-category and same-category)
    - subscriber survival curves and the active-base waterfall

    The full result is kept in shared state for follow-up tools.

    Args:
        request: Input file, optional reference date, and whether to return all tables

    Returns:
        Summary of the computed tables (and the tables themselves on request)
    """
    return await _compute_order_analytics_impl(request, ctx)


async def _export_orders_workbook_impl(
    request: ExportOrdersWorkbookRequest, ctx: Context
) -> ExportOrdersWorkbookResponse:
    """Implementation of the workbook export."""
    await ctx.info(f"Loading order export {request.file_path}")
    path, buffer = _read_orders_file(request.file_path)
    output_path = _resolve_path(request.output_path)
    today = _parse_today(request.today)

    await ctx.report_progress(0.4, "Computing MoM tables...")
    result = compute_from_buffer(buffer, today=today)

    await ctx.report_progress(0.8, "Writing workbook...")
    write_orders_workbook(result, output_path, include_catalogue=request.include_catalogue)

    sheets = [MOM_SHEET, VERTICAL_SHEET]
    if request.include_catalogue:
        sheets.append(CATALOGUE_SHEET)

    logger.info(
        "workbook_exported",
        file_path=str(path),
        output_path=str(output_path),
        months=len(result.headline.mom_orders),
    )
    await ctx.info(f"Workbook written to {output_path}")

    return ExportOrdersWorkbookResponse(
        output_path=str(output_path),
        sheets=sheets,
        months=len(result.headline.mom_orders),
        catalogue_skus=len(result.catalogue.rows),
    )


@mcp.tool()
async def export_orders_workbook(
    request: ExportOrdersWorkbookRequest, ctx: Context
) -> ExportOrdersWorkbookResponse:
    """
    Export delivered-order MoM tables and the catalogue summary to XLSX.

    The workbook has a headline sheet, a per-vertical sheet and optionally a
    catalogue sheet, each with a frozen header row, an auto-filter and
    percentage/rate/currency number formats.

    Args:
        request: Input file, workbook destination and sheet options

    Returns:
        Path of the written workbook and the sheets it contains
    """
    return await _export_orders_workbook_impl(request, ctx)
