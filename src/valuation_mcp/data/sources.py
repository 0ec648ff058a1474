"""Async source adapters with bounded concurrency and local fallbacks.

Three remote series feed the pipeline:
- binance: BTC/USDT weekly klines (critical, falls back to an empty list)
- yfinance: NVDA weekly bars (optional, falls back to an empty list)
- multpl: Shiller CAPE monthly table (falls back to a fixed literal series)

Every adapter contains its own failures. Nothing here raises to the caller;
faults are logged and replaced by the source's fallback.
"""

import asyncio
import logging
import os
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime
from io import StringIO
from time import perf_counter
from typing import Any

import pandas as pd
import pytz
import requests
import yfinance as yf

from valuation_mcp.data.models import Observation, PriceObservation
from valuation_mcp.utils.ohlcv import standardize_ohlcv, to_price_observations
from valuation_mcp.utils.provenance import build_provenance
from valuation_mcp.utils.validators import FetchParams

logger = logging.getLogger(__name__)

# Bounded concurrency for blocking transport calls
_max_workers = int(os.environ.get("SOURCE_MAX_WORKERS", "3"))
_executor = ThreadPoolExecutor(max_workers=_max_workers)
_fetch_semaphore = asyncio.Semaphore(_max_workers)

# Every transport call is bounded by this timeout (seconds)
HTTP_TIMEOUT = float(os.environ.get("HTTP_TIMEOUT", "10.0"))

BINANCE_BASE_URL = os.environ.get("BINANCE_BASE_URL", "https://api.binance.com")
PRIMARY_SYMBOL = os.environ.get("PRIMARY_SYMBOL", "BTCUSDT")
PRIMARY_LIMIT = int(os.environ.get("PRIMARY_LIMIT", "500"))

SECONDARY_SYMBOL = os.environ.get("SECONDARY_SYMBOL", "NVDA")
SECONDARY_PERIOD = os.environ.get("SECONDARY_PERIOD", "5y")

METRIC_URL = os.environ.get("METRIC_URL", "https://www.multpl.com/shiller-pe/table/by-month")
METRIC_TABLE_ID = "datatable"

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
}

# Used when the CAPE table cannot be fetched or parsed, so a signal is always available
FALLBACK_METRIC: tuple[Observation, ...] = (
    Observation(date=date(2023, 1, 1), value=28.2),
    Observation(date=date(2024, 1, 1), value=32.0),
    Observation(date=date(2025, 1, 1), value=37.6),
)

_NUMBER_PATTERN = r"(-?\d+(?:\.\d+)?)"

# Shutdown coordination
shutdown_event = asyncio.Event()


class ServerShuttingDownError(Exception):
    """Raised when server is shutting down."""

    pass


class SourceFetchError(Exception):
    """Raised inside an adapter when a payload has an unexpected shape."""

    pass


@dataclass
class SourceResult:
    """Observations produced by one adapter call, with provenance."""

    observations: list[Any]
    source: str
    fallback_used: bool
    duration_ms: float
    error: str | None = None

    def to_provenance(self) -> dict[str, Any]:
        """Convert to provenance dict for data_provenance field."""
        return build_provenance(
            source=self.source,
            as_of=datetime.utcnow().isoformat() + "Z",
            observations=len(self.observations),
            fallback_used=self.fallback_used,
            duration_ms=round(self.duration_ms, 1),
            warnings=[self.error] if self.error else [],
        )


# ============================================================================
# PARSERS
# ============================================================================


def parse_klines(payload: Any) -> list[PriceObservation]:
    """
    Parse a Binance klines payload into weekly close observations.

    Each row is [open_time_ms, open, high, low, close, volume, ...]; only
    the open time and close are kept.

    Raises:
        SourceFetchError: If the payload is not a list of kline rows
    """
    if isinstance(payload, dict):
        # Binance reports errors as {"code": ..., "msg": ...}
        raise SourceFetchError(f"Binance error: {payload.get('msg', payload)}")
    if not isinstance(payload, list):
        raise SourceFetchError(f"Unexpected klines payload: {type(payload).__name__}")

    observations: list[PriceObservation] = []
    for row in payload:
        if not isinstance(row, (list, tuple)) or len(row) < 5:
            raise SourceFetchError(f"Malformed kline row: {row!r}")
        timestamp = int(row[0])
        observations.append(
            PriceObservation(
                date=datetime.fromtimestamp(timestamp / 1000, tz=pytz.UTC).date(),
                close=float(row[4]),
                timestamp=timestamp,
            )
        )
    observations.sort(key=lambda o: o.timestamp)
    return observations


def parse_secondary_frame(df: pd.DataFrame) -> list[PriceObservation]:
    """Parse a yf.download frame into weekly close observations."""
    if df is None or df.empty:
        raise SourceFetchError("No bars returned")
    return to_price_observations(standardize_ohlcv(df))


def parse_metric_table(html: str) -> list[Observation]:
    """
    Extract (date, value) pairs from the multpl monthly table.

    The header row becomes the column labels and is skipped. The table is
    newest-first; the result is ascending. Rows whose date or value do not
    parse are dropped.

    Raises:
        SourceFetchError: If the table is missing or has fewer than two columns
    """
    try:
        tables = pd.read_html(StringIO(html), attrs={"id": METRIC_TABLE_ID})
    except ValueError as e:
        raise SourceFetchError(f"CAPE table not found: {e}") from e

    table = tables[0]
    if table.shape[1] < 2:
        raise SourceFetchError(f"CAPE table has {table.shape[1]} columns, expected 2")

    dates = pd.to_datetime(
        table.iloc[:, 0].astype(str).str.strip(), errors="coerce", format="mixed"
    )
    values = pd.to_numeric(
        table.iloc[:, 1].astype(str).str.extract(_NUMBER_PATTERN, expand=False),
        errors="coerce",
    )

    observations = [
        Observation(date=d.date(), value=float(v))
        for d, v in zip(dates, values)
        if not pd.isna(d) and not pd.isna(v)
    ]
    observations.reverse()
    observations.sort(key=lambda o: o.date)
    return observations


# ============================================================================
# BLOCKING LOADERS (run in the executor)
# ============================================================================


def _load_primary() -> list[PriceObservation]:
    resp = requests.get(
        f"{BINANCE_BASE_URL}/api/v3/klines",
        params={"symbol": PRIMARY_SYMBOL, "interval": "1w", "limit": PRIMARY_LIMIT},
        timeout=HTTP_TIMEOUT,
    )
    resp.raise_for_status()
    return parse_klines(resp.json())


def _load_secondary() -> list[PriceObservation]:
    params = FetchParams(symbol=SECONDARY_SYMBOL, period=SECONDARY_PERIOD, interval="1wk")
    df = yf.download(**params.to_yf_kwargs(HTTP_TIMEOUT))
    return parse_secondary_frame(df)


def _load_metric() -> list[Observation]:
    resp = requests.get(METRIC_URL, headers=BROWSER_HEADERS, timeout=HTTP_TIMEOUT)
    resp.raise_for_status()
    return parse_metric_table(resp.text)


# ============================================================================
# ADAPTERS
# ============================================================================


async def _fetch_guarded(
    source: str,
    sync_func: Callable[[], list[Any]],
    fallback: Sequence[Any],
) -> SourceResult:
    """
    Run a blocking loader in the executor and contain every failure.

    An exception or an empty result yields the fallback. The failure is
    logged and recorded in provenance; it never propagates.
    """
    start_time = perf_counter()
    try:
        if shutdown_event.is_set():
            raise ServerShuttingDownError("Server is shutting down")
        async with _fetch_semaphore:
            loop = asyncio.get_running_loop()
            observations = await loop.run_in_executor(_executor, sync_func)
        if not observations:
            raise SourceFetchError("No observations returned")
    except Exception as e:
        error = f"{type(e).__name__}: {e}"
        logger.warning(
            f"{source}: fetch failed ({error}). "
            f"Using fallback with {len(fallback)} observations"
        )
        return SourceResult(
            observations=list(fallback),
            source=source,
            fallback_used=True,
            duration_ms=(perf_counter() - start_time) * 1000,
            error=error,
        )

    return SourceResult(
        observations=observations,
        source=source,
        fallback_used=False,
        duration_ms=(perf_counter() - start_time) * 1000,
    )


async def fetch_primary_with_provenance() -> tuple[list[PriceObservation], dict[str, Any]]:
    """Fetch BTC weekly closes. Empty on failure."""
    result = await _fetch_guarded("binance", _load_primary, ())
    return result.observations, result.to_provenance()


async def fetch_secondary_with_provenance() -> tuple[list[PriceObservation], dict[str, Any]]:
    """Fetch NVDA weekly closes. Empty on failure."""
    result = await _fetch_guarded("yfinance", _load_secondary, ())
    return result.observations, result.to_provenance()


async def fetch_metric_with_provenance() -> tuple[list[Observation], dict[str, Any]]:
    """Fetch monthly CAPE history. FALLBACK_METRIC on failure."""
    result = await _fetch_guarded("multpl", _load_metric, FALLBACK_METRIC)
    return result.observations, result.to_provenance()


async def fetch_primary() -> list[PriceObservation]:
    observations, _ = await fetch_primary_with_provenance()
    return observations


async def fetch_secondary() -> list[PriceObservation]:
    observations, _ = await fetch_secondary_with_provenance()
    return observations


async def fetch_metric() -> list[Observation]:
    observations, _ = await fetch_metric_with_provenance()
    return observations


async def shutdown_executor() -> None:
    """Cleanup on server shutdown."""
    shutdown_event.set()
    _executor.shutdown(wait=False, cancel_futures=True)
