"""Alignment of the secondary and metric series onto the primary timeline."""

from bisect import bisect_right
from collections.abc import Sequence

from valuation_mcp.data.models import MergedRecord, Observation, PriceObservation

# Two price bars co-occur if their timestamps differ by strictly less than one week
TOLERANCE_MS = 7 * 24 * 60 * 60 * 1000

# Placeholder for "no metric resolved"; only emitted when the metric series is empty
METRIC_UNSET = 0.0


def nearest_secondary(
    target: PriceObservation,
    secondary: Sequence[PriceObservation],
    tolerance_ms: int = TOLERANCE_MS,
) -> float | None:
    """
    Close of the secondary bar nearest in time to target, within tolerance.

    Ties resolve to the first minimal candidate in sequence order.
    """
    best: PriceObservation | None = None
    best_distance: int | None = None
    for candidate in secondary:
        distance = abs(candidate.timestamp - target.timestamp)
        if best_distance is None or distance < best_distance:
            best, best_distance = candidate, distance

    if best is None or best_distance is None or best_distance >= tolerance_ms:
        return None
    return best.close


def carry_forward_metric(
    target: PriceObservation,
    metric: Sequence[Observation],
) -> float:
    """
    Latest metric value dated on or before target.

    metric must be sorted ascending by date. Targets that precede the whole
    series borrow its most recent value (look-ahead at the start of the
    timeline).
    """
    if not metric:
        return METRIC_UNSET

    dates = [m.date for m in metric]
    idx = bisect_right(dates, target.date)
    if idx == 0:
        return metric[-1].value
    return metric[idx - 1].value


def merge_series(
    primary: Sequence[PriceObservation],
    secondary: Sequence[PriceObservation],
    metric: Sequence[Observation],
) -> list[MergedRecord]:
    """
    Join secondary and metric series onto the primary timeline.

    Produces one MergedRecord per primary observation, in primary order.
    The metric series is re-sorted by date here (stable) rather than trusted.

    Args:
        primary: Authoritative timeline
        secondary: Correlated price series, may be empty
        metric: Low-cadence valuation series, may be empty

    Returns:
        Merged records
    """
    sorted_metric = sorted(metric, key=lambda m: m.date)

    return [
        MergedRecord(
            date=p.date,
            primary_value=p.close,
            secondary_value=nearest_secondary(p, secondary),
            metric_value=carry_forward_metric(p, sorted_metric),
        )
        for p in primary
    ]
