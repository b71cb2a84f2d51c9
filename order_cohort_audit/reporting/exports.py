"""Export analytics results to JSON and to a formatted XLSX workbook.

The workbook carries the headline MoM tables and, optionally, the catalogue
summary. Every sheet has a frozen header row and an auto-filter; percentage,
rate and currency columns get number formats. No values are computed here.
"""

from __future__ import annotations

import io
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any, Mapping

import pandas as pd
from openpyxl.utils import get_column_letter

from order_cohort_audit.analyses._rates import format_percentage
from order_cohort_audit.analyses.headline import MomOrdersByVerticalRow, MomOrdersRow
from order_cohort_audit.engine import OrderAnalyticsResult
from order_cohort_audit.pandas.tables import catalogue_to_dataframe, rows_to_dataframe

logger = logging.getLogger(__name__)

MOM_SHEET = "MoM Orders (Delivered)"
VERTICAL_SHEET = "MoM by Vertical (Delivered)"
CATALOGUE_SHEET = "Catalogue Summary"

PERCENT_FORMAT = "0.00%"
RATE_FORMAT = "0.000"
CURRENCY_FORMAT = '"Dh" #,##0.00'
MONTH_FORMAT = "yyyy-mm-dd"
UNITS_FORMAT = "0"

CATALOGUE_HEADERS: Mapping[str, str] = {
    "category": "Category",
    "sku": "SKU",
    "units": "Units",
    "avg_price": "Avg price",
    "revenue": "Revenue",
    "cogs_per_unit": "CoGS / unit",
    "cogs_total": "CoGS total",
    "take_rate": "Take rate",
    "margin_label": "Notes",
}

__all__ = [
    "export_orders_workbook",
    "export_result_json",
    "format_percentage",
    "workbook_bytes",
]


def export_result_json(
    result: OrderAnalyticsResult,
    output_path: str | Path,
    metadata: dict[str, Any] | None = None,
) -> Path:
    """Write the full result as JSON.

    Retention and survival values stay fractions; presentation layers that
    want ``"83.33%"`` strings should call :func:`format_percentage`.

    Parameters
    ----------
    result:
        Output of the analytics engine.
    output_path:
        Destination file; parent directories are created.
    metadata:
        Optional extra fields stored under ``"metadata"``.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "metadata": metadata or {},
        "generated_at": datetime.now(timezone.utc).isoformat(),
        **result.as_dict(),
    }
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)
    logger.info("Analytics result exported to %s", output_path)
    return output_path


def _month_as_date(frame: pd.DataFrame) -> pd.DataFrame:
    if not frame.empty:
        frame = frame.copy()
        frame["month"] = pd.to_datetime(frame["month"] + "-01", format="%Y-%m-%d")
    return frame


def _format_sheet(
    worksheet: Any,
    columns: list[str],
    formats: Mapping[str, str],
    widths: Mapping[str, int] | None = None,
) -> None:
    """Freeze the header, filter it and apply column number formats."""
    worksheet.freeze_panes = "A2"
    if columns:
        worksheet.auto_filter.ref = f"A1:{get_column_letter(len(columns))}1"
    for index, name in enumerate(columns, start=1):
        letter = get_column_letter(index)
        width = (widths or {}).get(name, max(12, len(str(name)) + 4))
        worksheet.column_dimensions[letter].width = width
        number_format = formats.get(name)
        if number_format is None:
            continue
        for row in range(2, worksheet.max_row + 1):
            cell = worksheet[f"{letter}{row}"]
            if cell.value is not None:
                cell.number_format = number_format


def _write_workbook(
    result: OrderAnalyticsResult,
    target: str | Path | IO[bytes],
    include_catalogue: bool,
) -> None:
    headline = _month_as_date(rows_to_dataframe(result.headline.mom_orders, MomOrdersRow))
    by_vertical = _month_as_date(
        rows_to_dataframe(result.headline.mom_orders_by_vertical, MomOrdersByVerticalRow)
    )

    with pd.ExcelWriter(target, engine="openpyxl") as writer:
        headline.to_excel(writer, sheet_name=MOM_SHEET, index=False)
        _format_sheet(
            writer.sheets[MOM_SHEET],
            list(headline.columns),
            {
                "month": MONTH_FORMAT,
                "orders_mom_pct": PERCENT_FORMAT,
                "ado": RATE_FORMAT,
                "ado_pacing": RATE_FORMAT,
            },
            {"month": 14},
        )

        by_vertical.to_excel(writer, sheet_name=VERTICAL_SHEET, index=False)
        _format_sheet(
            writer.sheets[VERTICAL_SHEET],
            list(by_vertical.columns),
            {
                "month": MONTH_FORMAT,
                "orders_mom_pct": PERCENT_FORMAT,
                "ado_vertical": RATE_FORMAT,
                "ado_vertical_pacing": RATE_FORMAT,
            },
            {"month": 14},
        )

        if include_catalogue:
            catalogue = catalogue_to_dataframe(result.catalogue)
            totals = result.catalogue.totals
            blank = {column: None for column in catalogue.columns}
            totals_row = dict(
                blank,
                category="Totals",
                units=totals.units,
                revenue=totals.revenue,
                cogs_total=totals.cogs,
                take_rate=totals.take_rate,
            )
            sheet = pd.concat(
                [catalogue, pd.DataFrame([blank, totals_row], columns=catalogue.columns)],
                ignore_index=True,
            ).rename(columns=CATALOGUE_HEADERS)
            sheet.to_excel(writer, sheet_name=CATALOGUE_SHEET, index=False)
            _format_sheet(
                writer.sheets[CATALOGUE_SHEET],
                list(sheet.columns),
                {
                    "Units": UNITS_FORMAT,
                    "Avg price": CURRENCY_FORMAT,
                    "Revenue": CURRENCY_FORMAT,
                    "CoGS / unit": CURRENCY_FORMAT,
                    "CoGS total": CURRENCY_FORMAT,
                    "Take rate": PERCENT_FORMAT,
                },
                {"SKU": 20, "Revenue": 16, "CoGS total": 16, "Notes": 18},
            )


def export_orders_workbook(
    result: OrderAnalyticsResult,
    output_path: str | Path,
    include_catalogue: bool = True,
) -> Path:
    """Render the MoM and catalogue tables into a multi-sheet XLSX file.

    Examples
    --------
    >>> result = compute_from_buffer(Path("orders.csv").read_bytes())
    >>> export_orders_workbook(result, "orders_mom.xlsx")
    PosixPath('orders_mom.xlsx')
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    _write_workbook(result, output_path, include_catalogue)
    logger.info("Orders workbook exported to %s", output_path)
    return output_path


def workbook_bytes(result: OrderAnalyticsResult, include_catalogue: bool = True) -> bytes:
    """Render the workbook in memory, for callers that stream it."""
    buffer = io.BytesIO()
    _write_workbook(result, buffer, include_catalogue)
    return buffer.getvalue()
