"""Valuation and ledger tools."""

from valuation_mcp.tools.ledger import (
    LedgerSnapshotError,
    PortfolioLedger,
    add_purchase,
    delete_purchase,
    get_ledger,
    list_purchases,
    portfolio_summary,
)
from valuation_mcp.tools.market_data import market_data
from valuation_mcp.tools.signal import classify, valuation_signal

__all__ = [
    "LedgerSnapshotError",
    "PortfolioLedger",
    "add_purchase",
    "classify",
    "delete_purchase",
    "get_ledger",
    "list_purchases",
    "market_data",
    "portfolio_summary",
    "valuation_signal",
]
