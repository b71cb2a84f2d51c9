"""
Order Cohort Analytics MCP Server

This module configures logging, wires the server lifespan and registers the
order analytics tools on the shared FastMCP instance.
"""

import logging
import os
import sys
from contextlib import asynccontextmanager

import structlog

from analytics.services.mcp_server.instance import VERSION

LOG_LEVEL = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)

# Configure structlog to write to stderr, not stdout (to avoid interfering with MCP JSON protocol)
logging.basicConfig(
    format="%(message)s",
    stream=sys.stderr,
    level=LOG_LEVEL,
)

structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(LOG_LEVEL),
    logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def app_lifespan(app):
    """Log server startup/shutdown and the effective input configuration."""
    from analytics.services.mcp_server.tools.orders import data_dir, max_input_bytes

    logger.info(
        "mcp_server_starting",
        version=VERSION,
        data_dir=str(data_dir()),
        max_input_bytes=max_input_bytes(),
    )

    yield

    logger.info("mcp_server_stopping")


# Import MCP server instance (must be imported before tools to avoid circular imports)
from analytics.services.mcp_server.instance import mcp  # noqa: E402

mcp.lifespan = app_lifespan

# These imports MUST happen before mcp.run() is called
# Each module registers its tools using the @mcp.tool() decorator
from analytics.services.mcp_server.tools import (  # noqa: E402, F401
    health_check,
    orders,
)

logger.info(
    "mcp_server_initialized",
    tools_registered=3,
    tools=["compute_order_analytics", "export_orders_workbook", "health_check"],
)


if __name__ == "__main__":
    mcp.run()
