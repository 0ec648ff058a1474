"""Pytest configuration and fixtures."""

from collections.abc import Callable, Iterator
from datetime import date, datetime, timezone

import pandas as pd
import pytest

from valuation_mcp.data.models import MergedRecord, Observation, PriceObservation
from valuation_mcp.data.store import LedgerStore

DAY_MS = 24 * 60 * 60 * 1000


def epoch_ms(day: date) -> int:
    """UTC midnight of day in epoch milliseconds."""
    return int(datetime(day.year, day.month, day.day, tzinfo=timezone.utc).timestamp() * 1000)


@pytest.fixture
def make_price() -> Callable[..., PriceObservation]:
    """Factory for PriceObservation at UTC midnight (optionally shifted by offset_ms)."""

    def _make(day: date, close: float, offset_ms: int = 0) -> PriceObservation:
        return PriceObservation(date=day, close=close, timestamp=epoch_ms(day) + offset_ms)

    return _make


@pytest.fixture
def primary_series() -> list[PriceObservation]:
    """Four weekly BTC closes (Mondays)."""
    days = [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15), date(2024, 1, 22)]
    closes = [42000.0, 46500.0, 41800.0, 39900.0]
    return [PriceObservation(date=d, close=c, timestamp=epoch_ms(d)) for d, c in zip(days, closes)]


@pytest.fixture
def secondary_series() -> list[PriceObservation]:
    """Weekly NVDA closes, missing the final week."""
    days = [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15)]
    closes = [48.2, 54.7, 59.4]
    return [PriceObservation(date=d, close=c, timestamp=epoch_ms(d)) for d, c in zip(days, closes)]


@pytest.fixture
def metric_series() -> list[Observation]:
    """Monthly CAPE readings."""
    return [
        Observation(date=date(2023, 12, 1), value=31.2),
        Observation(date=date(2024, 1, 1), value=31.9),
    ]


@pytest.fixture
def merged_history() -> list[MergedRecord]:
    """Merged stream with BTC at 50k, 60k and 70k around June 2024."""
    return [
        MergedRecord(date(2024, 5, 20), 50000.0, 920.0, 35.0),
        MergedRecord(date(2024, 6, 3), 60000.0, 1150.0, 35.0),
        MergedRecord(date(2024, 6, 17), 70000.0, 1300.0, 35.0),
    ]


@pytest.fixture
def kline_payload() -> list[list]:
    """Binance /api/v3/klines response, deliberately out of order."""
    return [
        [1704672000000, "42000.0", "47000.0", "41500.0", "46500.0", "1000.0", 1705276799999],
        [1704067200000, "42283.58", "44184.10", "40750.00", "42000.0", "900.0", 1704671999999],
    ]


@pytest.fixture
def multpl_html() -> str:
    """Shiller PE table as served by multpl (newest first, header row, one junk row)."""
    return """
    <html><body>
    <table id="datatable">
      <tr><th>Date</th><th>Value</th></tr>
      <tr><td>Mar 1, 2024</td><td>&#x2002;34.10</td></tr>
      <tr><td>Feb 1, 2024</td><td>33.00</td></tr>
      <tr><td>Jan 1, 2024</td><td>31.50</td></tr>
      <tr><td>not a date</td><td>n/a</td></tr>
    </table>
    </body></html>
    """


@pytest.fixture
def yf_weekly_df() -> pd.DataFrame:
    """yf.download output for one ticker: (Price, Ticker) MultiIndex columns."""
    columns = pd.MultiIndex.from_tuples(
        [("Close", "NVDA"), ("High", "NVDA"), ("Low", "NVDA"), ("Open", "NVDA"), ("Volume", "NVDA")],
        names=["Price", "Ticker"],
    )
    index = pd.DatetimeIndex(
        ["2024-01-01", "2024-01-08", "2024-01-15", "2024-01-22"], name="Date"
    )
    return pd.DataFrame(
        [
            [48.2, 49.0, 47.1, 47.5, 1000],
            [54.7, 55.0, 48.0, 48.5, 1200],
            [float("nan"), 60.1, 55.2, 55.0, 1100],
            [59.4, 61.0, 57.3, 58.0, 1300],
        ],
        index=index,
        columns=columns,
    )


@pytest.fixture
def ledger_store(tmp_path) -> Iterator[LedgerStore]:
    """Ledger store isolated in a temporary directory."""
    store = LedgerStore(str(tmp_path / "ledger"))
    yield store
    store.close()
