"""Domain types shared by the sources, merge engine, and ledger."""

from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class Observation:
    """A dated numeric observation from a low-cadence series."""

    date: date
    value: float


@dataclass(frozen=True)
class PriceObservation:
    """Weekly price bar reduced to its close, with epoch-ms timestamp for matching."""

    date: date
    close: float
    timestamp: int

    @property
    def value(self) -> float:
        return self.close


@dataclass(frozen=True)
class MergedRecord:
    """One aligned point on the primary timeline."""

    date: date
    primary_value: float
    secondary_value: float | None
    metric_value: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "primary_value": self.primary_value,
            "secondary_value": self.secondary_value,
            "metric_value": self.metric_value,
        }


@dataclass(frozen=True)
class PortfolioEntry:
    """A single purchase. Immutable once created; only deletion is allowed."""

    id: int
    date: date
    amount_invested: float
    price_at_purchase: float
    quantity_acquired: float

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["date"] = self.date.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PortfolioEntry":
        """
        Rebuild an entry from its stored form.

        Records written by the browser dashboard (usdtAmount, btcPriceAtBuy,
        btcAmount) are read as well.

        Raises:
            KeyError, TypeError, ValueError: If a field is missing or malformed
        """
        if "amount_invested" not in data and "usdtAmount" in data:
            data = {
                "id": data["id"],
                "date": data["date"],
                "amount_invested": data["usdtAmount"],
                "price_at_purchase": data["btcPriceAtBuy"],
                "quantity_acquired": data["btcAmount"],
            }
        return cls(
            id=int(data["id"]),
            date=date.fromisoformat(str(data["date"])),
            amount_invested=float(data["amount_invested"]),
            price_at_purchase=float(data["price_at_purchase"]),
            quantity_acquired=float(data["quantity_acquired"]),
        )


@dataclass(frozen=True)
class PortfolioSummary:
    """Aggregate position value and return."""

    total_invested: float
    total_quantity: float
    current_value: float
    roi_percent: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class Signal(str, Enum):
    """Discrete valuation recommendation."""

    BUY = "BUY"
    HOLD = "HOLD"
    SELL = "SELL"

    @property
    def label(self) -> str:
        return _SIGNAL_LABELS[self]


_SIGNAL_LABELS = {
    Signal.BUY: "BUY (抄底)",
    Signal.HOLD: "HOLD (观望)",
    Signal.SELL: "SELL (风险)",
}


@dataclass(frozen=True)
class PipelineResult:
    """Output of one pipeline invocation. Owned by the caller, never mutated."""

    merged: list[MergedRecord]
    latest_primary_value: float
    latest_metric_value: float
    provenance: dict[str, Any] = field(default_factory=dict)
