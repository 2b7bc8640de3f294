"""
Unit tests for the SM-2 scheduler.

Tests:
- Interval progression 1 -> 6 -> round(interval * ease)
- Ease factor update and floor
- Failure handling (reset without ease change)
- Normalization of inconsistent stored state
"""

from datetime import timedelta

import pytest

from recall.core.models import ItemSchedulingState
from recall.study.sm2 import SM2Scheduler


@pytest.fixture
def scheduler():
    return SM2Scheduler()


class TestIntervalProgression:
    """Tests for the interval sequence on consecutive successes."""

    def test_first_success_schedules_one_day(self, scheduler, now):
        state = scheduler.calculate_next_review(ItemSchedulingState(), 5, now)

        assert state.repetition_count == 1
        assert state.interval_days == 1
        assert state.ease_factor == pytest.approx(2.6)

    def test_second_success_schedules_six_days(self, scheduler, now):
        state = ItemSchedulingState(repetition_count=1, ease_factor=2.6, interval_days=1)
        state = scheduler.calculate_next_review(state, 5, now)

        assert state.repetition_count == 2
        assert state.interval_days == 6

    def test_third_success_multiplies_by_previous_ease(self, scheduler, now):
        state = ItemSchedulingState(repetition_count=2, ease_factor=2.7, interval_days=6)
        state = scheduler.calculate_next_review(state, 5, now)

        # round(6 * 2.7) = 16, using the ease before this review
        assert state.repetition_count == 3
        assert state.interval_days == 16
        assert state.ease_factor == pytest.approx(2.8)

    def test_due_date_is_review_plus_interval(self, scheduler, now):
        state = ItemSchedulingState(repetition_count=1, ease_factor=2.5, interval_days=1)
        state = scheduler.calculate_next_review(state, 4, now)

        assert state.last_reviewed_at == now
        assert state.due_date == now + timedelta(days=6)


class TestEaseFactor:
    """Tests for the ease factor update."""

    def test_grade_four_keeps_ease(self, scheduler, now):
        state = scheduler.calculate_next_review(ItemSchedulingState(ease_factor=2.5), 4, now)
        assert state.ease_factor == pytest.approx(2.5)

    def test_grade_three_lowers_ease(self, scheduler, now):
        state = scheduler.calculate_next_review(ItemSchedulingState(ease_factor=2.5), 3, now)
        assert state.ease_factor == pytest.approx(2.36)

    def test_ease_never_drops_below_floor(self, scheduler, now):
        state = scheduler.calculate_next_review(ItemSchedulingState(ease_factor=1.35), 3, now)
        assert state.ease_factor == pytest.approx(1.3)

    def test_out_of_range_grade_is_clamped(self, scheduler, now):
        high = scheduler.calculate_next_review(ItemSchedulingState(), 9, now)
        low = scheduler.calculate_next_review(ItemSchedulingState(), -2, now)

        assert high.ease_factor == pytest.approx(2.6)
        assert low.repetition_count == 0


class TestFailure:
    """Tests for failed reviews (grade < 3)."""

    @pytest.mark.parametrize("grade", [0, 1, 2])
    def test_failure_resets_repetitions_and_interval(self, scheduler, now, grade):
        state = ItemSchedulingState(repetition_count=4, ease_factor=2.2, interval_days=30)
        state = scheduler.calculate_next_review(state, grade, now)

        assert state.repetition_count == 0
        assert state.interval_days == 1

    def test_failure_leaves_ease_unchanged(self, scheduler, now):
        state = ItemSchedulingState(repetition_count=4, ease_factor=2.2, interval_days=30)
        state = scheduler.calculate_next_review(state, 0, now)

        assert state.ease_factor == pytest.approx(2.2)

    def test_passing_grade_boundary(self, scheduler):
        assert scheduler.is_successful(3)
        assert not scheduler.is_successful(2)


class TestNormalize:
    """Tests for correcting inconsistent stored state."""

    def test_ease_below_floor_is_clamped(self, scheduler):
        state = scheduler.normalize(ItemSchedulingState(ease_factor=0.9))
        assert state.ease_factor == pytest.approx(1.3)

    def test_negative_interval_is_clamped(self, scheduler):
        state = scheduler.normalize(ItemSchedulingState(interval_days=-5))
        assert state.interval_days == 0

    def test_consistent_state_is_unchanged(self, scheduler, now):
        original = ItemSchedulingState(
            repetition_count=3, ease_factor=2.1, interval_days=12, last_reviewed_at=now
        )
        assert scheduler.normalize(original) == original
