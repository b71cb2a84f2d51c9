"""Tests for the order analytics MCP tools

Covers the two pipeline tools and the health check:
1. compute_order_analytics
2. export_orders_workbook
3. health_check
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from openpyxl import load_workbook

from analytics.services.mcp_server.state import get_shared_state
from analytics.services.mcp_server.tools.health_check import (
    _health_check_impl as health_check,
)
from analytics.services.mcp_server.tools.orders import (
    _compute_order_analytics_impl as compute_order_analytics,
    _export_orders_workbook_impl as export_orders_workbook,
    ComputeOrderAnalyticsRequest,
    ExportOrdersWorkbookRequest,
)


def create_mock_context():
    """Create a mock FastMCP Context for testing."""
    ctx = AsyncMock()
    ctx.state = {}

    def get_state(key):
        return ctx.state.get(key)

    def set_state(key, value):
        ctx.state[key] = value

    ctx.get_state = MagicMock(side_effect=get_state)
    ctx.set_state = MagicMock(side_effect=set_state)
    ctx.info = AsyncMock()
    ctx.report_progress = AsyncMock()
    return ctx


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch, orders_csv):
    """Point the tools at a temporary data directory holding one export."""
    monkeypatch.setenv("MCP_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("ORDERS_MAX_INPUT_BYTES", raising=False)
    (tmp_path / "allorders.csv").write_text(orders_csv, encoding="utf-8")
    get_shared_state().clear()
    yield tmp_path
    get_shared_state().clear()


class TestComputeOrderAnalytics:
    @pytest.mark.asyncio
    async def test_summary_response(self):
        ctx = create_mock_context()
        response = await compute_order_analytics(
            ComputeOrderAnalyticsRequest(today="2024-09-01"), ctx
        )

        assert response.as_of_month == "2024-05"
        assert response.snapshot_month == "2024-05"
        assert response.order_count == 7
        assert response.customer_count == 5
        assert response.rows_read == 8
        assert response.dropped_rows == 1
        assert response.table_sizes["mom_orders"] == 5
        assert response.latest_month["month"] == "2024-05"
        assert response.tables is None
        ctx.info.assert_awaited()
        ctx.report_progress.assert_awaited()

    @pytest.mark.asyncio
    async def test_result_kept_in_shared_state(self, data_dir):
        ctx = create_mock_context()
        await compute_order_analytics(ComputeOrderAnalyticsRequest(today="2024-09-01"), ctx)

        state = get_shared_state()
        assert state.get("order_result").as_of_month == "2024-05"
        assert state.get("order_result_metadata") == {
            "file_path": str((data_dir / "allorders.csv").resolve()),
            "as_of_month": "2024-05",
        }

    @pytest.mark.asyncio
    async def test_include_tables(self):
        ctx = create_mock_context()
        response = await compute_order_analytics(
            ComputeOrderAnalyticsRequest(today="2024-09-01", include_tables=True), ctx
        )
        assert len(response.tables["retention"]) == response.table_sizes["retention"]

    @pytest.mark.asyncio
    async def test_path_outside_data_dir(self):
        ctx = create_mock_context()
        with pytest.raises(ValueError, match="outside allowed directory"):
            await compute_order_analytics(
                ComputeOrderAnalyticsRequest(file_path="../elsewhere.csv"), ctx
            )

    @pytest.mark.asyncio
    async def test_missing_file(self):
        ctx = create_mock_context()
        with pytest.raises(FileNotFoundError):
            await compute_order_analytics(
                ComputeOrderAnalyticsRequest(file_path="missing.csv"), ctx
            )

    @pytest.mark.asyncio
    async def test_size_cap(self, monkeypatch):
        monkeypatch.setenv("ORDERS_MAX_INPUT_BYTES", "10")
        ctx = create_mock_context()
        with pytest.raises(ValueError, match="exceeds limit"):
            await compute_order_analytics(ComputeOrderAnalyticsRequest(), ctx)

    @pytest.mark.asyncio
    async def test_bad_reference_date(self):
        ctx = create_mock_context()
        with pytest.raises(ValueError, match="ISO date"):
            await compute_order_analytics(ComputeOrderAnalyticsRequest(today="June"), ctx)


class TestExportOrdersWorkbook:
    @pytest.mark.asyncio
    async def test_writes_workbook(self, data_dir):
        ctx = create_mock_context()
        response = await export_orders_workbook(
            ExportOrdersWorkbookRequest(output_path="reports/orders.xlsx"), ctx
        )

        assert response.output_path == str((data_dir / "reports" / "orders.xlsx").resolve())
        assert response.months == 5
        assert response.catalogue_skus == 7
        assert load_workbook(response.output_path).sheetnames == response.sheets

    @pytest.mark.asyncio
    async def test_without_catalogue(self):
        ctx = create_mock_context()
        response = await export_orders_workbook(
            ExportOrdersWorkbookRequest(include_catalogue=False), ctx
        )
        assert len(response.sheets) == 2

    @pytest.mark.asyncio
    async def test_output_outside_data_dir(self):
        ctx = create_mock_context()
        with pytest.raises(ValueError, match="outside allowed directory"):
            await export_orders_workbook(
                ExportOrdersWorkbookRequest(output_path="/tmp/../orders.xlsx"), ctx
            )


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_healthy_without_result(self):
        ctx = create_mock_context()
        response = await health_check(ctx)

        assert response.status == "healthy"
        assert response.version == "1.0.0"
        assert response.data_status == {"order_result": False}
        ctx.info.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reports_cached_result(self):
        ctx = create_mock_context()
        await compute_order_analytics(ComputeOrderAnalyticsRequest(today="2024-09-01"), ctx)

        response = await health_check(ctx)
        assert response.data_status == {"order_result": True}
        assert "2024-05" in response.checks["order_result"]

    @pytest.mark.asyncio
    async def test_missing_data_dir_is_degraded(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MCP_DATA_DIR", str(tmp_path / "nowhere"))
        response = await health_check(create_mock_context())
        assert response.status == "degraded"
