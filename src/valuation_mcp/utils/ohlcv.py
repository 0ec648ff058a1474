"""OHLCV standardization for the secondary price series."""

from datetime import datetime

import pandas as pd
import pytz

from valuation_mcp.data.models import PriceObservation

CANONICAL_COLUMNS = ["date", "open", "high", "low", "close", "volume"]


def standardize_ohlcv(df: pd.DataFrame) -> pd.DataFrame:
    """
    Standardize a yfinance bar frame to a consistent schema.

    Output columns (always, in this order): date, open, high, low, close, volume.
    Dates are formatted YYYY-MM-DD; bars are calendar-day granular here.

    Args:
        df: Raw DataFrame from yf.download

    Returns:
        Standardized DataFrame
    """
    df = df.copy()

    # yf.download returns a (field, ticker) MultiIndex even for one ticker
    if isinstance(df.columns, pd.MultiIndex):
        df.columns = df.columns.get_level_values(0)

    if "Adj Close" in df.columns:
        df = df.drop(columns=["Adj Close"])

    df.columns = [str(c).lower() for c in df.columns]
    df = df.reset_index()

    date_cols = [c for c in df.columns if str(c).lower() in ("date", "datetime", "index")]
    if date_cols:
        df = df.rename(columns={date_cols[0]: "date"})

    if "date" in df.columns and pd.api.types.is_datetime64_any_dtype(df["date"]):
        if df["date"].dt.tz is not None:
            df["date"] = df["date"].dt.tz_convert("UTC")
        df["date"] = df["date"].dt.strftime("%Y-%m-%d")

    for col in CANONICAL_COLUMNS:
        if col not in df.columns:
            df[col] = pd.NA

    return df[CANONICAL_COLUMNS]


def to_price_observations(df: pd.DataFrame) -> list[PriceObservation]:
    """
    Reduce a standardized frame to close-price observations, ascending by date.

    Rows with a missing or zero close are dropped. The timestamp is UTC
    midnight of the bar date in epoch milliseconds.
    """
    closes = pd.to_numeric(df["close"], errors="coerce")
    observations: list[PriceObservation] = []
    for raw_date, close in zip(df["date"], closes):
        if pd.isna(close) or close == 0:
            continue
        try:
            day = datetime.strptime(str(raw_date)[:10], "%Y-%m-%d").date()
        except ValueError:
            continue
        midnight = pytz.UTC.localize(datetime(day.year, day.month, day.day))
        observations.append(
            PriceObservation(
                date=day,
                close=float(close),
                timestamp=int(midnight.timestamp() * 1000),
            )
        )
    observations.sort(key=lambda o: o.timestamp)
    return observations
