"""Response metadata, provenance and error envelopes."""

from datetime import datetime
from typing import Any

from valuation_mcp import SCHEMA_VERSION, SERVER_VERSION


def build_meta(tool: str, duration_ms: float | None = None) -> dict[str, Any]:
    """
    Version block attached to every tool response, successful or not.

    duration_ms covers the whole call including the pipeline run, and is
    omitted for ledger-only tools that never touch the network.
    """
    meta: dict[str, Any] = {
        "server_version": SERVER_VERSION,
        "schema_version": SCHEMA_VERSION,
        "tool": tool,
    }
    if duration_ms is not None:
        meta["duration_ms"] = round(duration_ms, 1)
    return meta


def build_provenance(
    source: str,
    as_of: datetime | str | None = None,
    **kwargs: Any,
) -> dict[str, Any]:
    """
    Describe where one series in a response came from.

    Args:
        source: Adapter that produced the series: "binance" (BTC weekly
            klines), "yfinance" (NVDA weekly bars) or "multpl" (CAPE table)
        as_of: When the adapter finished, as a datetime or ISO string
        **kwargs: Adapter details such as observations, fallback_used and
            duration_ms

    Returns:
        Provenance dict. warnings is always present so callers can tell a
        clean fetch (empty list) from a fallback (the recorded failure).
    """
    prov: dict[str, Any] = {"source": source}

    if as_of is not None:
        prov["as_of"] = as_of.isoformat() if isinstance(as_of, datetime) else as_of

    prov.update(kwargs)
    prov.setdefault("warnings", [])
    return prov


def build_error_response(
    error_type: str,
    message: str,
    tool: str = "error",
) -> dict[str, Any]:
    """
    Build standardized error response.

    Args:
        error_type: invalid_parameters, data_unavailable or ledger_unreadable
        message: Human-readable error message
        tool: Name of the failing tool

    Returns:
        Error response dict
    """
    return {
        "error": True,
        "error_type": error_type,
        "message": message,
        "meta": build_meta(tool),
    }
