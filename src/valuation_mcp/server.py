"""BTC valuation MCP server using FastMCP."""

import json
import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastmcp import FastMCP

from valuation_mcp import SCHEMA_VERSION, SERVER_VERSION
from valuation_mcp.data.sources import shutdown_executor
from valuation_mcp.tools import (
    add_purchase,
    delete_purchase,
    get_ledger,
    list_purchases,
    market_data,
    portfolio_summary,
    valuation_signal,
)

# Configure logging
log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, log_level, logging.INFO))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[None]:
    """Stop source fetches and the worker pool when the server exits."""
    try:
        yield
    finally:
        logger.info("Shutting down source executor")
        await shutdown_executor()


# Create FastMCP server instance
mcp = FastMCP(
    name="valuation",
    lifespan=lifespan,
)


# ============================================================================
# TOOLS
# ============================================================================


@mcp.tool
async def get_market_data() -> str:
    """
    Fetch weekly BTC, NVDA and Shiller CAPE history aligned on the BTC timeline.

    BTC comes from Binance weekly klines, NVDA from Yahoo Finance weekly bars
    (matched within 7 days), and CAPE from the multpl monthly table
    (carried forward to each week). Data is re-fetched on every call.

    Returns:
        JSON with history (date, primary_value, secondary_value, metric_value),
        current_price, latest_metric and the valuation signal
    """
    result = await market_data()
    return json.dumps(result, indent=2, default=str)


@mcp.tool
async def get_valuation_signal() -> str:
    """
    Classify the latest Shiller CAPE reading.

    BUY below 30, SELL above 40, HOLD otherwise (30 and 40 included).

    Returns:
        JSON with signal, label, metric value and thresholds
    """
    result = await valuation_signal()
    return json.dumps(result, indent=2, default=str)


@mcp.tool
async def add_purchase_record(purchase_date: str, amount: float) -> str:
    """
    Record a BTC purchase in the ledger.

    The purchase price is the weekly BTC close nearest to purchase_date.

    Args:
        purchase_date: Purchase date (YYYY-MM-DD format)
        amount: USDT amount invested (must be positive)

    Returns:
        JSON with the new record and updated portfolio summary
    """
    result = await add_purchase(purchase_date=purchase_date, amount=amount)
    return json.dumps(result, indent=2, default=str)


@mcp.tool
async def delete_purchase_record(entry_id: int) -> str:
    """
    Delete a purchase record by id. Unknown ids are ignored.

    Args:
        entry_id: Record id as returned by add_purchase_record

    Returns:
        JSON with deleted flag and remaining record count
    """
    result = delete_purchase(entry_id=entry_id)
    return json.dumps(result, indent=2, default=str)


@mcp.tool
async def list_purchase_records() -> str:
    """
    List purchase records, newest first.

    Returns:
        JSON with record count and records
    """
    result = list_purchases()
    return json.dumps(result, indent=2, default=str)


@mcp.tool
async def get_portfolio_summary() -> str:
    """
    Value the purchase ledger at the current BTC price.

    Returns:
        JSON with total invested, total BTC, current value and ROI percent
    """
    result = await portfolio_summary()
    return json.dumps(result, indent=2, default=str)


# ============================================================================
# RESOURCES
# ============================================================================


@mcp.resource("ledger://records")
def get_ledger_snapshot() -> str:
    """
    Get the persisted ledger snapshot as JSON.

    Returns:
        JSON array of purchase records in insertion order
    """
    ledger = get_ledger()
    return ledger.store.get(ledger.key) or "[]"


# ============================================================================
# ENTRY POINT
# ============================================================================


def main() -> None:
    """Run the MCP server."""
    logger.info(f"Starting Valuation MCP Server v{SERVER_VERSION} (schema v{SCHEMA_VERSION})")
    mcp.run()


if __name__ == "__main__":
    main()
