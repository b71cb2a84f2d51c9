"""Health Check MCP Tool

Reports server liveness, uptime, the configured data directory and whether
an analytics result is already cached in shared state.
"""

import time
from datetime import datetime

import structlog
from fastmcp import Context
from pydantic import BaseModel, Field

from analytics.services.mcp_server.instance import VERSION, mcp
from analytics.services.mcp_server.state import get_shared_state
from analytics.services.mcp_server.tools.orders import data_dir, max_input_bytes

logger = structlog.get_logger(__name__)


class HealthCheckResponse(BaseModel):
    """Health check response with system status."""

    status: str = Field(
        description="Overall health status: 'healthy', 'degraded', or 'unhealthy'"
    )
    version: str
    timestamp: str = Field(description="ISO timestamp of health check")
    checks: dict[str, str] = Field(description="Individual component health checks")
    uptime_seconds: float
    data_status: dict[str, bool] = Field(
        description="Availability of cached analytics results"
    )


# Track server start time
_SERVER_START_TIME = time.time()


async def _health_check_impl(ctx: Context) -> HealthCheckResponse:
    """Implementation of the health check."""
    logger.info("health_check_starting")
    checks: dict[str, str] = {"mcp_server": "healthy"}
    status = "healthy"

    base = data_dir()
    if base.is_dir():
        checks["data_dir"] = f"healthy ({base})"
    else:
        checks["data_dir"] = f"missing ({base})"
        status = "degraded"
    checks["max_input_bytes"] = str(max_input_bytes())

    shared_state = get_shared_state()
    data_status = {
        "order_result": shared_state.has("order_result"),
    }
    if data_status["order_result"]:
        metadata = shared_state.get("order_result_metadata") or {}
        checks["order_result"] = f"cached (as of {metadata.get('as_of_month', 'unknown')})"
    else:
        checks["order_result"] = "no result cached (use compute_order_analytics)"

    uptime_seconds = time.time() - _SERVER_START_TIME
    logger.info(
        "health_check_complete",
        status=status,
        checks=checks,
        uptime_seconds=uptime_seconds,
    )
    await ctx.info(f"Health check: {status}")

    return HealthCheckResponse(
        status=status,
        version=VERSION,
        timestamp=datetime.now().isoformat(),
        checks=checks,
        uptime_seconds=uptime_seconds,
        data_status=data_status,
    )


@mcp.tool()
async def health_check(ctx: Context) -> HealthCheckResponse:
    """
    Check health of the MCP server and its input configuration.

    Returns:
        HealthCheckResponse with overall status and component checks

    Example:
        >>> result = await health_check()
        >>> print(result.status)  # 'healthy'
    """
    return await _health_check_impl(ctx)
