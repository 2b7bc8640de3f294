"""
Base SM-2 Spaced Repetition Update.

SM-2 Grade Scale:
0 - Complete blackout, wrong response
1 - Incorrect, but upon seeing answer remembered
2 - Incorrect, but answer seemed easy to recall
3 - Correct, but with significant difficulty
4 - Correct, with some hesitation
5 - Correct, with perfect recall

A failed review (grade < 3) resets the repetition count and interval but
leaves the ease factor untouched. The resulting interval may later be
replaced by the forgetting curve's optimal review time.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from loguru import logger

from recall.core.clock import ensure_utc
from recall.core.models import DEFAULT_EASE_FACTOR, MIN_EASE_FACTOR, ItemSchedulingState

PASSING_GRADE = 3


@dataclass
class SM2Config:
    """Configuration for SM-2 algorithm."""

    initial_easiness: float = DEFAULT_EASE_FACTOR
    minimum_easiness: float = MIN_EASE_FACTOR
    first_interval: int = 1  # Days for first review
    second_interval: int = 6  # Days for second review


class SM2Scheduler:
    """
    Implements the SM-2 spaced repetition algorithm.

    Each item has:
    - Easiness Factor (EF): How easy the item is (2.5 default, min 1.3)
    - Interval: Days until next review
    - Repetitions: Consecutive correct recalls
    """

    def __init__(self, config: SM2Config | None = None):
        self.config = config or SM2Config()

    def is_successful(self, grade: int) -> bool:
        return grade >= PASSING_GRADE

    def normalize(self, state: ItemSchedulingState) -> ItemSchedulingState:
        """Correct upstream inconsistencies instead of failing on them."""
        ease = state.ease_factor
        interval = state.interval_days
        if ease < self.config.minimum_easiness:
            logger.warning(
                f"Ease factor {ease:.2f} below floor, clamping to {self.config.minimum_easiness}"
            )
            ease = self.config.minimum_easiness
        if interval < 0:
            logger.warning(f"Negative interval {interval}, clamping to 0")
            interval = 0
        return ItemSchedulingState(
            repetition_count=max(0, state.repetition_count),
            ease_factor=ease,
            interval_days=interval,
            last_reviewed_at=state.last_reviewed_at,
        )

    def calculate_next_review(
        self,
        state: ItemSchedulingState,
        grade: int,
        reviewed_at: datetime,
    ) -> ItemSchedulingState:
        """
        Calculate the next scheduling state from a graded review.

        Args:
            state: Current scheduling state of the item
            grade: Review quality (0-5, out-of-range values are clamped)
            reviewed_at: Instant of the review

        Returns:
            New ItemSchedulingState; its due_date is reviewed_at + interval
        """
        state = self.normalize(state)
        grade = max(0, min(5, grade))

        if not self.is_successful(grade):
            # Failed - reset to beginning, ease unchanged
            new_repetitions = 0
            new_interval = self.config.first_interval
            new_ef = state.ease_factor
        else:
            new_repetitions = state.repetition_count + 1

            if new_repetitions == 1:
                new_interval = self.config.first_interval
            elif new_repetitions == 2:
                new_interval = self.config.second_interval
            else:
                new_interval = round(state.interval_days * state.ease_factor)

            # EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
            ef_delta = 0.1 - (5 - grade) * (0.08 + (5 - grade) * 0.02)
            new_ef = max(self.config.minimum_easiness, state.ease_factor + ef_delta)

        return ItemSchedulingState(
            repetition_count=new_repetitions,
            ease_factor=new_ef,
            interval_days=max(self.config.first_interval, new_interval),
            last_reviewed_at=ensure_utc(reviewed_at),
        )
