"""Tests for aligning secondary and metric series onto the primary timeline."""

import math
from datetime import date

from valuation_mcp.data.models import Observation
from valuation_mcp.utils.merge import (
    METRIC_UNSET,
    TOLERANCE_MS,
    carry_forward_metric,
    merge_series,
    nearest_secondary,
)

DAY_MS = 24 * 60 * 60 * 1000


class TestNearestSecondary:
    """Tests for nearest_secondary."""

    def test_picks_closest_within_tolerance(self, make_price) -> None:
        """T-6d is preferred over T-8d, and T-8d alone is out of range."""
        target = make_price(date(2024, 6, 10), 60000.0)
        eight = make_price(date(2024, 6, 2), 100.0)
        six = make_price(date(2024, 6, 4), 110.0)

        assert nearest_secondary(target, [eight, six]) == 110.0
        assert nearest_secondary(target, [eight]) is None

    def test_exact_week_is_outside_tolerance(self, make_price) -> None:
        """The tolerance window is strict."""
        target = make_price(date(2024, 6, 10), 60000.0)
        week_before = make_price(date(2024, 6, 3), 100.0)

        assert target.timestamp - week_before.timestamp == TOLERANCE_MS
        assert nearest_secondary(target, [week_before]) is None

    def test_just_inside_tolerance(self, make_price) -> None:
        """One millisecond under a week still matches."""
        target = make_price(date(2024, 6, 10), 60000.0)
        near = make_price(date(2024, 6, 3), 100.0, offset_ms=1)

        assert nearest_secondary(target, [near]) == 100.0

    def test_tie_resolves_to_first(self, make_price) -> None:
        """Equidistant candidates resolve in sequence order."""
        target = make_price(date(2024, 6, 10), 60000.0)
        after = make_price(date(2024, 6, 13), 120.0)
        before = make_price(date(2024, 6, 7), 90.0)

        assert nearest_secondary(target, [after, before]) == 120.0
        assert nearest_secondary(target, [before, after]) == 90.0

    def test_unordered_candidates(self, make_price) -> None:
        """Candidates need not be sorted."""
        target = make_price(date(2024, 6, 10), 60000.0)
        candidates = [
            make_price(date(2024, 6, 5), 1.0),
            make_price(date(2024, 6, 10), 2.0, offset_ms=-DAY_MS // 2),
            make_price(date(2024, 6, 4), 3.0),
        ]

        assert nearest_secondary(target, candidates) == 2.0

    def test_empty_secondary(self, make_price) -> None:
        """No candidates means no value."""
        assert nearest_secondary(make_price(date(2024, 6, 10), 1.0), []) is None


class TestCarryForwardMetric:
    """Tests for carry_forward_metric."""

    metric = [
        Observation(date=date(2024, 1, 1), value=30.0),
        Observation(date=date(2024, 3, 1), value=35.0),
    ]

    def test_carries_latest_prior_value(self, make_price) -> None:
        """Mid-February uses the January reading."""
        assert carry_forward_metric(make_price(date(2024, 2, 15), 1.0), self.metric) == 30.0

    def test_same_day_is_included(self, make_price) -> None:
        """A reading dated on the target day applies."""
        assert carry_forward_metric(make_price(date(2024, 3, 1), 1.0), self.metric) == 35.0

    def test_after_last_reading(self, make_price) -> None:
        """Values carry forward past the end of the series."""
        assert carry_forward_metric(make_price(date(2025, 1, 1), 1.0), self.metric) == 35.0

    def test_before_series_borrows_last_value(self, make_price) -> None:
        """Dates before the series use its last value."""
        single = [Observation(date=date(2024, 1, 1), value=30.0)]
        assert carry_forward_metric(make_price(date(2023, 12, 1), 1.0), single) == 30.0
        assert carry_forward_metric(make_price(date(2023, 12, 1), 1.0), self.metric) == 35.0

    def test_empty_metric_is_unset(self, make_price) -> None:
        """Without readings the placeholder is returned."""
        assert carry_forward_metric(make_price(date(2024, 1, 1), 1.0), []) == METRIC_UNSET


class TestMergeSeries:
    """Tests for merge_series."""

    def test_one_record_per_primary(
        self, primary_series, secondary_series, metric_series
    ) -> None:
        """Output follows the primary timeline exactly."""
        merged = merge_series(primary_series, secondary_series, metric_series)

        assert [r.date for r in merged] == [p.date for p in primary_series]
        assert [r.primary_value for r in merged] == [p.close for p in primary_series]

    def test_secondary_alignment(
        self, primary_series, secondary_series, metric_series
    ) -> None:
        """The final week is exactly seven days after the last NVDA bar, so it has no match."""
        merged = merge_series(primary_series, secondary_series, metric_series)

        assert [r.secondary_value for r in merged] == [48.2, 54.7, 59.4, None]

    def test_secondary_absent_when_empty(self, primary_series, metric_series) -> None:
        """Missing secondary data degrades to None everywhere."""
        merged = merge_series(primary_series, [], metric_series)

        assert all(r.secondary_value is None for r in merged)

    def test_metric_is_always_resolved(
        self, primary_series, secondary_series, metric_series
    ) -> None:
        """Every record has a real metric value when readings exist."""
        merged = merge_series(primary_series, secondary_series, metric_series)

        for record in merged:
            assert math.isfinite(record.metric_value)
            assert record.metric_value != METRIC_UNSET
        assert {r.metric_value for r in merged} == {31.9}

    def test_unsorted_metric_is_sorted(self, primary_series) -> None:
        """Metric order from upstream is not trusted."""
        metric = [
            Observation(date=date(2024, 1, 10), value=33.0),
            Observation(date=date(2023, 12, 1), value=31.0),
        ]
        merged = merge_series(primary_series, [], metric)

        assert [r.metric_value for r in merged] == [31.0, 31.0, 33.0, 33.0]

    def test_empty_primary(self, secondary_series, metric_series) -> None:
        """No primary observations, no records."""
        assert merge_series([], secondary_series, metric_series) == []
