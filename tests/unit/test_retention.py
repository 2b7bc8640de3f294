"""
Unit tests for retention-rate aggregation.

Tests:
- Empty window returns no data
- Plain rate below the weighting threshold, ease-weighted at or above it
- Half-up rounding to one decimal
- Window filtering
"""

import pytest

from recall.study.retention import (
    calculate_retention_rate,
    filter_window,
    round_half_up,
    summarize_retention,
)


class TestSummarizeRetention:
    """Tests for the retention summary."""

    def test_no_events_means_no_data(self):
        summary = summarize_retention([])

        assert summary.rate is None
        assert summary.total_reviews == 0
        assert calculate_retention_rate([]) is None

    def test_nine_events_use_plain_rate(self, make_event):
        events = [make_event(success=i < 6, ease=1.3 if i >= 6 else 2.5) for i in range(9)]

        summary = summarize_retention(events)

        assert not summary.weighted
        assert summary.rate == 66.7
        assert summary.successful_reviews == 6

    def test_ten_events_use_weighted_rate(self, make_event):
        events = [make_event(success=True, ease=2.5) for _ in range(5)]
        events += [make_event(success=False, ease=1.3) for _ in range(5)]

        summary = summarize_retention(events)

        # weights 1/2.5 for successes and 1/1.3 for failures -> 34.21%
        assert summary.weighted
        assert summary.rate == 34.2

    def test_weighted_equals_plain_for_uniform_ease(self, make_event):
        events = [make_event(success=i < 7, ease=2.5) for i in range(10)]
        assert summarize_retention(events).rate == 70.0

    def test_ease_below_floor_weighted_as_floor(self, make_event):
        low = [make_event(success=False, ease=0.5) for _ in range(5)]
        floor = [make_event(success=False, ease=1.3) for _ in range(5)]
        wins = [make_event(success=True, ease=2.5) for _ in range(5)]

        assert summarize_retention(wins + low).rate == summarize_retention(wins + floor).rate

    def test_threshold_is_configurable(self, make_event):
        events = [make_event(success=True, ease=2.5), make_event(success=False, ease=1.3)]

        assert summarize_retention(events, weighted_min_events=2).weighted
        assert summarize_retention(events, weighted_min_events=3).rate == 50.0

    def test_all_successful_is_one_hundred(self, make_event):
        events = [make_event(success=True, ease=1.5 + i / 10) for i in range(12)]
        assert summarize_retention(events).rate == 100.0

    def test_all_failed_is_zero(self, make_event):
        events = [make_event(success=False) for _ in range(3)]
        assert summarize_retention(events).rate == 0.0


class TestRounding:
    """Tests for half-up rounding."""

    def test_half_rounds_up(self):
        assert round_half_up(2.25, 1) == 2.3
        assert round_half_up(2.5, 0) == 3.0

    def test_below_half_rounds_down(self):
        assert round_half_up(66.66666, 1) == 66.7
        assert round_half_up(34.2105, 1) == 34.2


class TestFilterWindow:
    """Tests for the trailing window filter."""

    def test_boundary_is_inclusive(self, make_event, now):
        inside = make_event(days_ago=30)
        outside = make_event(days_ago=30.01)

        assert filter_window([inside, outside], now, 30) == [inside]

    def test_recent_events_kept_in_order(self, make_event, now):
        events = [make_event(days_ago=d) for d in (5, 3, 1)]
        assert filter_window(events, now, 7) == events


@pytest.mark.parametrize("successes", range(0, 11))
def test_rate_bounds(make_event, successes):
    events = [make_event(success=i < successes, ease=1.3 + i * 0.1) for i in range(10)]
    rate = summarize_retention(events).rate
    assert 0.0 <= rate <= 100.0
