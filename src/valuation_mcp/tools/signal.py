"""Valuation signal tool."""

from time import perf_counter
from typing import Any

from valuation_mcp.data.models import Signal
from valuation_mcp.data.pipeline import NoMarketDataError, run_pipeline
from valuation_mcp.utils.provenance import build_error_response, build_meta

# CAPE bands; both boundaries belong to HOLD
BUY_BELOW = 30.0
SELL_ABOVE = 40.0


def classify(metric_value: float) -> Signal:
    """Map a CAPE value to BUY (< 30), SELL (> 40) or HOLD."""
    if metric_value < BUY_BELOW:
        return Signal.BUY
    if metric_value > SELL_ABOVE:
        return Signal.SELL
    return Signal.HOLD


def signal_block(metric_value: float) -> dict[str, Any]:
    """Signal plus the inputs that produced it, for inclusion in responses."""
    signal = classify(metric_value)
    return {
        "signal": signal.value,
        "label": signal.label,
        "metric_value": metric_value,
        "thresholds": {"buy_below": BUY_BELOW, "sell_above": SELL_ABOVE},
    }


async def valuation_signal() -> dict[str, Any]:
    """
    Classify the latest CAPE reading.

    Returns:
        Dict with signal, label, metric value and thresholds
    """
    start_time = perf_counter()

    try:
        result = await run_pipeline()
    except NoMarketDataError as e:
        return build_error_response("data_unavailable", str(e), tool="valuation_signal")

    duration_ms = (perf_counter() - start_time) * 1000

    return {
        "meta": build_meta("valuation_signal", duration_ms),
        "data_provenance": {"metric": result.provenance.get("metric")},
        **signal_block(result.latest_metric_value),
    }
