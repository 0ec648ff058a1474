"""Market data tool: merged BTC / NVDA / CAPE history."""

from time import perf_counter
from typing import Any

from valuation_mcp.data.pipeline import NoMarketDataError, run_pipeline
from valuation_mcp.tools.signal import signal_block
from valuation_mcp.utils.provenance import build_error_response, build_meta


async def market_data() -> dict[str, Any]:
    """
    Run the acquisition pipeline and return the merged history.

    Every call re-runs the pipeline; nothing is cached.

    Returns:
        Dict with history, current_price, latest_metric and signal, or an
        error response if no primary price data could be fetched
    """
    start_time = perf_counter()

    try:
        result = await run_pipeline()
    except NoMarketDataError as e:
        return build_error_response("data_unavailable", str(e), tool="market_data")

    duration_ms = (perf_counter() - start_time) * 1000

    return {
        "meta": build_meta("market_data", duration_ms),
        "data_provenance": result.provenance,
        "history": [record.to_dict() for record in result.merged],
        "current_price": result.latest_primary_value,
        "latest_metric": result.latest_metric_value,
        "signal": signal_block(result.latest_metric_value),
    }
