"""Fan-out/fan-in orchestration of the three source adapters."""

import asyncio
import logging
from time import perf_counter

from valuation_mcp.data import sources
from valuation_mcp.data.models import PipelineResult
from valuation_mcp.utils.merge import merge_series

logger = logging.getLogger(__name__)


class NoMarketDataError(RuntimeError):
    """Raised when the primary price series is empty; there is no timeline to align onto."""

    def __init__(self, message: str = "No market data available"):
        super().__init__(message)


async def run_pipeline() -> PipelineResult:
    """
    Fetch all three series concurrently, then merge onto the primary timeline.

    Adapters absorb their own failures, so the gather barrier always settles.
    Only an empty primary series is fatal.

    Returns:
        PipelineResult with merged stream and latest scalars

    Raises:
        NoMarketDataError: If no primary price observations are available
    """
    start_time = perf_counter()

    (
        (primary, primary_prov),
        (secondary, secondary_prov),
        (metric, metric_prov),
    ) = await asyncio.gather(
        sources.fetch_primary_with_provenance(),
        sources.fetch_secondary_with_provenance(),
        sources.fetch_metric_with_provenance(),
    )

    if not primary:
        logger.error("Primary price series is empty; aborting pipeline")
        raise NoMarketDataError()

    merged = merge_series(primary, secondary, metric)

    latest_primary_value = merged[-1].primary_value if merged else 0.0
    latest_metric_value = metric[-1].value if metric else 0.0

    duration_ms = (perf_counter() - start_time) * 1000
    logger.info(
        f"Pipeline merged {len(merged)} records "
        f"(secondary={len(secondary)}, metric={len(metric)}) in {duration_ms:.0f}ms"
    )

    return PipelineResult(
        merged=merged,
        latest_primary_value=latest_primary_value,
        latest_metric_value=latest_metric_value,
        provenance={
            "primary": primary_prov,
            "secondary": secondary_prov,
            "metric": metric_prov,
        },
    )
