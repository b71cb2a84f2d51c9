"""Command line entry points for the order cohort analytics toolkit."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from datetime import date
from pathlib import Path

from order_cohort_audit.engine import compute_from_buffer
from order_cohort_audit.foundation.catalog import DEFAULT_CATALOG, CatalogConfig
from order_cohort_audit.reporting.exports import export_orders_workbook, export_result_json

logger = logging.getLogger(__name__)


MAX_INPUT_BYTES = 25 * 1024 * 1024  # 25 MiB cap to avoid accidental OOM


def _configure_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load_order_buffer(path: Path) -> bytes:
    resolved = path.resolve()
    size = resolved.stat().st_size
    if size > MAX_INPUT_BYTES:
        raise ValueError(
            f"Input file {resolved} is {size} bytes; exceeds limit of {MAX_INPUT_BYTES} bytes"
        )
    return resolved.read_bytes()


def _load_catalog(path: Path | None) -> CatalogConfig:
    if path is None:
        return DEFAULT_CATALOG
    with path.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)
    if not isinstance(payload, dict):
        raise ValueError(f"Catalog file {path} must contain a JSON object")
    return CatalogConfig.from_mapping(payload)


def _parse_today(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", type=Path, help="Path to the CSV order export")
    parser.add_argument(
        "--catalog",
        type=Path,
        help="Optional JSON file replacing the built-in SKU/category catalog.",
    )
    parser.add_argument(
        "--today",
        type=str,
        help="Reference date (YYYY-MM-DD) for the as-of month. Defaults to today.",
    )


def compute_orders_cli(argv: list[str] | None = None) -> int:
    """Compute every order analytics table from a CSV export and emit JSON.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, 1 when the input cannot be read)
    """
    _configure_logging()
    parser = argparse.ArgumentParser(
        description="Compute order cohort, churn and retention tables"
    )
    _common_arguments(parser)
    parser.add_argument(
        "--output",
        type=Path,
        help="Optional path for the JSON result; printed to stdout otherwise.",
    )
    args = parser.parse_args(argv)

    try:
        catalog = _load_catalog(args.catalog)
        buffer = _load_order_buffer(args.input)
        today = _parse_today(args.today)
    except (OSError, ValueError) as exc:
        logger.error("Cannot load inputs: %s", exc)
        return 1

    result = compute_from_buffer(buffer, catalog, today)
    if args.output:
        export_result_json(result, args.output, metadata={"source": str(args.input)})
    else:  # stdout fallback enables piping in shell usage.
        json.dump(result.as_dict(), fp=sys.stdout, indent=2, ensure_ascii=False)
        print()

    logger.info(
        "As of %s: %d retention rows, %d waterfall rows",
        result.as_of_month,
        len(result.retention),
        len(result.waterfall),
    )
    return 0


def export_workbook_cli(argv: list[str] | None = None) -> int:
    """Render the MoM and catalogue tables of a CSV export into an XLSX workbook.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, 1 when the input cannot be read)
    """
    _configure_logging()
    parser = argparse.ArgumentParser(description="Export delivered order MoM workbook")
    _common_arguments(parser)
    parser.add_argument(
        "--output",
        type=Path,
        required=True,
        help="Path for the XLSX workbook",
    )
    parser.add_argument(
        "--no-catalogue",
        action="store_true",
        help="Skip the catalogue summary sheet.",
    )
    args = parser.parse_args(argv)

    try:
        catalog = _load_catalog(args.catalog)
        buffer = _load_order_buffer(args.input)
        today = _parse_today(args.today)
    except (OSError, ValueError) as exc:
        logger.error("Cannot load inputs: %s", exc)
        return 1

    result = compute_from_buffer(buffer, catalog, today)
    export_orders_workbook(result, args.output, include_catalogue=not args.no_catalogue)
    logger.info(
        "Exported %d months of delivered orders to %s",
        len(result.headline.mom_orders),
        args.output,
    )
    return 0


def main() -> None:
    raise SystemExit(compute_orders_cli())


if __name__ == "__main__":  # pragma: no cover
    main()
