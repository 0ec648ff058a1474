"""Purchase ledger (dollar-cost averaging records) and ROI tools."""

import json
import logging
import os
import time
from collections.abc import Sequence
from datetime import date
from time import perf_counter
from typing import Any

from valuation_mcp.data.models import MergedRecord, PortfolioEntry, PortfolioSummary
from valuation_mcp.data.pipeline import NoMarketDataError, run_pipeline
from valuation_mcp.data.store import LedgerStore, ledger_store
from valuation_mcp.utils.provenance import build_error_response, build_meta
from valuation_mcp.utils.validators import LedgerInputError, parse_amount, parse_purchase_date

logger = logging.getLogger(__name__)

LEDGER_KEY = os.environ.get("LEDGER_KEY", "btc_dca_records")

_MS_PER_DAY = 24 * 60 * 60 * 1000


def resolve_purchase_price(
    purchase_date: date,
    history: Sequence[MergedRecord],
    fallback_price: float,
) -> float:
    """
    Primary price on the history record nearest to purchase_date.

    Distance is absolute milliseconds between calendar days; ties resolve to
    the first record. Falls back to fallback_price when history is empty or
    the nearest record has no usable price.
    """
    closest: MergedRecord | None = None
    closest_distance: int | None = None
    for record in history:
        distance = abs((record.date - purchase_date).days) * _MS_PER_DAY
        if closest_distance is None or distance < closest_distance:
            closest, closest_distance = record, distance

    if closest is not None and closest.primary_value > 0:
        return closest.primary_value
    return fallback_price


class LedgerSnapshotError(RuntimeError):
    """Raised on a mutation while the stored snapshot could not be fully read."""

    pass


class PortfolioLedger:
    """
    In-memory purchase collection with whole-snapshot persistence.

    The collection is read once on construction. Every mutation rewrites the
    full snapshot under a single key. If any stored record cannot be read,
    the readable ones are still served but the ledger refuses to write, so
    the stored snapshot is never replaced by a partial one.
    """

    def __init__(self, store: LedgerStore, key: str = LEDGER_KEY):
        self.store = store
        self.key = key
        self.unreadable: str | None = None
        self._entries: list[PortfolioEntry] = self._load()

    def _load(self) -> list[PortfolioEntry]:
        raw = self.store.get(self.key)
        if not raw:
            return []

        try:
            items = json.loads(raw)
        except ValueError as e:
            self._mark_unreadable(f"snapshot is not valid JSON ({e})")
            return []
        if not isinstance(items, list):
            self._mark_unreadable(f"snapshot is a {type(items).__name__}, expected a list")
            return []

        entries: list[PortfolioEntry] = []
        skipped = 0
        for item in items:
            try:
                entries.append(PortfolioEntry.from_dict(item))
            except (ValueError, KeyError, TypeError) as e:
                skipped += 1
                logger.error(f"Ledger '{self.key}': skipping unreadable record {item!r} ({e})")
        if skipped:
            self._mark_unreadable(f"{skipped} of {len(items)} stored records are unreadable")
        return entries

    def _mark_unreadable(self, reason: str) -> None:
        self.unreadable = reason
        logger.error(f"Ledger '{self.key}': {reason}; writes are disabled for this session")

    def _persist(self, entries: list[PortfolioEntry]) -> None:
        if self.unreadable:
            raise LedgerSnapshotError(
                f"Ledger '{self.key}' was not saved: {self.unreadable}. "
                "Repair or clear the stored snapshot first"
            )
        self.store.set(self.key, json.dumps([e.to_dict() for e in entries]))
        self._entries = entries

    def _next_id(self) -> int:
        now_ms = int(time.time() * 1000)
        last_id = max((e.id for e in self._entries), default=0)
        return max(now_ms, last_id + 1)

    def entries(self, newest_first: bool = False) -> list[PortfolioEntry]:
        if newest_first:
            return list(reversed(self._entries))
        return list(self._entries)

    def add(
        self,
        purchase_date: date | str,
        amount_invested: float | str,
        history: Sequence[MergedRecord],
        fallback_price: float,
    ) -> PortfolioEntry:
        """
        Record a purchase priced at the nearest history date.

        Args:
            purchase_date: Date of purchase (date or YYYY-MM-DD)
            amount_invested: Amount spent, must be positive
            history: Merged price stream to price the purchase against
            fallback_price: Price used when history cannot provide one

        Returns:
            The new entry

        Raises:
            LedgerInputError: On invalid input or when no positive price exists.
                The collection is unchanged.
            LedgerSnapshotError: If the stored snapshot could not be fully read.
                Nothing is written.
        """
        day = parse_purchase_date(purchase_date)
        amount = parse_amount(amount_invested)

        price = resolve_purchase_price(day, history, fallback_price)
        if not price or price <= 0:
            raise LedgerInputError(f"No price available for {day.isoformat()}")

        entry = PortfolioEntry(
            id=self._next_id(),
            date=day,
            amount_invested=amount,
            price_at_purchase=price,
            quantity_acquired=amount / price,
        )
        self._persist([*self._entries, entry])
        logger.info(f"Ledger: added {entry.id} ({amount} at {price} on {day.isoformat()})")
        return entry

    def delete(self, entry_id: int) -> bool:
        """
        Remove an entry by id. Returns False (and writes nothing) if absent.

        Raises:
            LedgerSnapshotError: If the stored snapshot could not be fully read
        """
        remaining = [e for e in self._entries if e.id != entry_id]
        if len(remaining) == len(self._entries):
            return False
        self._persist(remaining)
        logger.info(f"Ledger: deleted {entry_id}")
        return True

    def aggregate(self, latest_price: float) -> PortfolioSummary:
        """Totals and ROI (percent) valued at latest_price."""
        total_invested = sum(e.amount_invested for e in self._entries)
        total_quantity = sum(e.quantity_acquired for e in self._entries)
        current_value = total_quantity * latest_price
        roi_percent = (
            (current_value - total_invested) / total_invested * 100 if total_invested > 0 else 0.0
        )
        return PortfolioSummary(
            total_invested=total_invested,
            total_quantity=total_quantity,
            current_value=current_value,
            roi_percent=roi_percent,
        )


_ledger: PortfolioLedger | None = None


def get_ledger() -> PortfolioLedger:
    """Session ledger backed by the global store, loaded on first use."""
    global _ledger
    if _ledger is None:
        _ledger = PortfolioLedger(ledger_store)
    return _ledger


# ============================================================================
# TOOLS
# ============================================================================


async def add_purchase(
    purchase_date: str,
    amount: float,
    ledger: PortfolioLedger | None = None,
) -> dict[str, Any]:
    """
    Record a BTC purchase priced from the merged weekly history.

    Args:
        purchase_date: Purchase date (YYYY-MM-DD)
        amount: USDT amount invested
        ledger: Ledger to write to (default: session ledger)

    Returns:
        Dict with the new entry and updated summary
    """
    start_time = perf_counter()
    ledger = ledger or get_ledger()

    # Validate before touching the network
    try:
        parse_purchase_date(purchase_date)
        parse_amount(amount)
    except LedgerInputError as e:
        return build_error_response("invalid_parameters", str(e), tool="add_purchase")

    if ledger.unreadable:
        message = f"Ledger snapshot is damaged: {ledger.unreadable}"
        return build_error_response("ledger_unreadable", message, tool="add_purchase")

    try:
        result = await run_pipeline()
        history, latest_price = result.merged, result.latest_primary_value
    except NoMarketDataError:
        history, latest_price = [], 0.0

    try:
        entry = ledger.add(purchase_date, amount, history, latest_price)
    except LedgerInputError as e:
        return build_error_response("data_unavailable", str(e), tool="add_purchase")
    except LedgerSnapshotError as e:
        return build_error_response("ledger_unreadable", str(e), tool="add_purchase")

    duration_ms = (perf_counter() - start_time) * 1000

    return {
        "meta": build_meta("add_purchase", duration_ms),
        "entry": entry.to_dict(),
        "summary": ledger.aggregate(latest_price).to_dict(),
    }


def delete_purchase(entry_id: int, ledger: PortfolioLedger | None = None) -> dict[str, Any]:
    """
    Delete a purchase record. Unknown ids are not an error.

    Returns:
        Dict with deleted flag and remaining record count
    """
    ledger = ledger or get_ledger()
    try:
        deleted = ledger.delete(entry_id)
    except LedgerSnapshotError as e:
        return build_error_response("ledger_unreadable", str(e), tool="delete_purchase")
    return {
        "meta": build_meta("delete_purchase"),
        "entry_id": entry_id,
        "deleted": deleted,
        "records_remaining": len(ledger.entries()),
    }


def list_purchases(ledger: PortfolioLedger | None = None) -> dict[str, Any]:
    """List purchase records, newest first."""
    ledger = ledger or get_ledger()
    records = ledger.entries(newest_first=True)
    return {
        "meta": build_meta("list_purchases"),
        "count": len(records),
        "records": [r.to_dict() for r in records],
        "warnings": [ledger.unreadable] if ledger.unreadable else [],
    }


async def portfolio_summary(ledger: PortfolioLedger | None = None) -> dict[str, Any]:
    """
    Value the ledger at the current BTC price.

    Returns:
        Dict with current price, totals and ROI percent
    """
    start_time = perf_counter()
    ledger = ledger or get_ledger()

    try:
        result = await run_pipeline()
    except NoMarketDataError as e:
        return build_error_response("data_unavailable", str(e), tool="portfolio_summary")

    duration_ms = (perf_counter() - start_time) * 1000

    return {
        "meta": build_meta("portfolio_summary", duration_ms),
        "data_provenance": {"price": result.provenance.get("primary")},
        "current_price": result.latest_primary_value,
        "records": len(ledger.entries()),
        "summary": ledger.aggregate(result.latest_primary_value).to_dict(),
    }
