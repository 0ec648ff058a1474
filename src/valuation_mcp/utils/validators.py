"""Validation utilities and parameter classes."""

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

# Allowlists accepted by yfinance for the secondary series
VALID_PERIODS = {"1y", "2y", "5y", "10y", "ytd", "max"}
VALID_INTERVALS = {"1d", "5d", "1wk", "1mo"}


class LedgerInputError(ValueError):
    """Raised when a purchase cannot be recorded. The ledger is left unchanged."""

    pass


@dataclass(frozen=True)
class FetchParams:
    """Immutable fetch parameters for the secondary price series."""

    symbol: str
    period: str = "5y"
    interval: str = "1wk"
    adjusted: bool = True

    def __post_init__(self) -> None:
        # Normalize symbol: uppercase, strip whitespace
        object.__setattr__(self, "symbol", self.symbol.upper().strip())

        period = self.period.lower().strip()
        interval = self.interval.lower().strip()

        if not self.symbol:
            raise ValueError("Symbol must not be empty")
        if period not in VALID_PERIODS:
            raise ValueError(f"Invalid period '{self.period}'. Must be one of: {VALID_PERIODS}")
        if interval not in VALID_INTERVALS:
            raise ValueError(
                f"Invalid interval '{self.interval}'. Must be one of: {VALID_INTERVALS}"
            )

        object.__setattr__(self, "period", period)
        object.__setattr__(self, "interval", interval)

    def to_yf_kwargs(self, timeout: float) -> dict[str, Any]:
        """Kwargs for yf.download()."""
        return {
            "tickers": self.symbol,
            "period": self.period,
            "interval": self.interval,
            "auto_adjust": self.adjusted,
            "progress": False,
            "timeout": timeout,
        }


def parse_purchase_date(value: date | str | None) -> date:
    """
    Parse a purchase date.

    Accepts a date/datetime or a YYYY-MM-DD string.

    Raises:
        LedgerInputError: If the date is missing or malformed
    """
    if value is None or value == "":
        raise LedgerInputError("Purchase date is required")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()
    except ValueError:
        raise LedgerInputError(
            f"Invalid purchase date format: {value}. Expected YYYY-MM-DD"
        ) from None


def parse_amount(value: float | str | None) -> float:
    """
    Parse an invested amount. Must be a finite number greater than zero.

    Raises:
        LedgerInputError: If the amount is missing, non-numeric or not positive
    """
    if value is None or value == "":
        raise LedgerInputError("Amount is required")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise LedgerInputError(f"Invalid amount: {value}") from None
    if not math.isfinite(amount) or amount <= 0:
        raise LedgerInputError(f"Amount must be a positive number, got {value}")
    return amount
