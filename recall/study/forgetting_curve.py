"""
Forgetting Curve Model - Personal Review Timing.

Estimates, from one item's review history, how well the learner retains
it and how quickly they forget it, then derives:
1. Optimal review time - the SM-2 interval scaled by personal retention
2. Forgetting score - a priority key for ordering a review queue

Population baseline: retention 0.7, forgetting 0.3. With no history the
model returns that prior; it never fails for lack of data.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger

from recall.core.models import MIN_EASE_FACTOR, ReviewEvent
from recall.core.numeric import clamp

# =============================================================================
# CONSTANTS
# =============================================================================

BASELINE_RETENTION = 0.7
BASELINE_FORGETTING = 0.3
DEFAULT_STABILITY = 1.0

MIN_FORGETTING_RATE = 0.1
MAX_FORGETTING_RATE = 0.5
RECENT_WINDOW = 3  # Reviews compared against the lifetime success rate

MIN_REVIEW_INTERVAL = 1.0
MAX_REVIEW_INTERVAL = 180.0

MAX_FORGETTING_SCORE = 1.5


@dataclass(frozen=True)
class ForgettingCurve:
    """Personal memory parameters for one item."""

    retention_rate: float = BASELINE_RETENTION
    forgetting_rate: float = BASELINE_FORGETTING
    stability_factor: float = DEFAULT_STABILITY


@dataclass(frozen=True)
class ForgettingCurveEstimate:
    """Curve parameters plus the derived optimal review time (days)."""

    retention_rate: float
    forgetting_rate: float
    stability_factor: float
    optimal_review_time: float
    review_count: int = 0


PRIOR = ForgettingCurve()


def _success_rate(events: Sequence[ReviewEvent]) -> float:
    return sum(1 for e in events if e.was_successful) / len(events)


class ForgettingCurveModel:
    """
    Per-item forgetting curve estimator.

    The forgetting rate adapts to trend: the last three reviews are
    compared to the lifetime success rate, and the gap moves the rate
    away from the 0.3 prior (up to 0.5 when recent recall is worse, down
    to 0.1 when it is better).
    """

    def __init__(
        self,
        max_interval_days: float = MAX_REVIEW_INTERVAL,
        min_interval_days: float = MIN_REVIEW_INTERVAL,
    ):
        self.max_interval_days = max_interval_days
        self.min_interval_days = min_interval_days

    def calculate_personal_forgetting_curve(
        self, events: Sequence[ReviewEvent]
    ) -> ForgettingCurve:
        """
        Estimate retention and forgetting rates from review history.

        Args:
            events: Review events for one item, most recent last

        Returns:
            ForgettingCurve (the population prior when history is empty)
        """
        if not events:
            return PRIOR

        success_rate = _success_rate(events)

        forgetting_rate = BASELINE_FORGETTING
        if len(events) >= RECENT_WINDOW:
            recent_success_rate = _success_rate(events[-RECENT_WINDOW:])
            if recent_success_rate < success_rate:
                forgetting_rate = min(
                    MAX_FORGETTING_RATE,
                    BASELINE_FORGETTING + (success_rate - recent_success_rate),
                )
            else:
                forgetting_rate = max(
                    MIN_FORGETTING_RATE,
                    BASELINE_FORGETTING - (recent_success_rate - success_rate),
                )

        return ForgettingCurve(
            retention_rate=clamp(success_rate, 0.0, 1.0),
            forgetting_rate=forgetting_rate,
            stability_factor=DEFAULT_STABILITY,
        )

    def calculate_optimal_review_time(
        self,
        curve: ForgettingCurve,
        ease_factor: float,
        current_interval: float,
    ) -> float:
        """
        Scale the naive SM-2 interval by personal retention.

        optimal = interval * ease * (retention / 0.7) * (0.3 / forgetting) * stability,
        clamped to [1, 180] days.
        """
        if ease_factor < MIN_EASE_FACTOR:
            logger.warning(f"Ease factor {ease_factor:.2f} below floor, using {MIN_EASE_FACTOR}")
            ease_factor = MIN_EASE_FACTOR
        if current_interval < 0 or math.isnan(current_interval):
            current_interval = 0.0

        forgetting_rate = clamp(curve.forgetting_rate, MIN_FORGETTING_RATE, MAX_FORGETTING_RATE)
        retention_rate = clamp(curve.retention_rate, 0.0, 1.0)
        stability = curve.stability_factor if curve.stability_factor > 0 else DEFAULT_STABILITY

        optimal = current_interval * ease_factor
        optimal *= (
            (retention_rate / BASELINE_RETENTION)
            * (BASELINE_FORGETTING / forgetting_rate)
            * stability
        )

        return clamp(optimal, self.min_interval_days, self.max_interval_days)

    def estimate(
        self,
        events: Sequence[ReviewEvent],
        ease_factor: float,
        current_interval: float,
    ) -> ForgettingCurveEstimate:
        """Curve parameters and optimal review time in one call."""
        curve = self.calculate_personal_forgetting_curve(events)
        optimal = self.calculate_optimal_review_time(curve, ease_factor, current_interval)
        logger.debug(
            f"Forgetting curve: n={len(events)} retention={curve.retention_rate:.3f} "
            f"forgetting={curve.forgetting_rate:.3f} optimal={optimal:.2f}d"
        )
        return ForgettingCurveEstimate(
            retention_rate=curve.retention_rate,
            forgetting_rate=curve.forgetting_rate,
            stability_factor=curve.stability_factor,
            optimal_review_time=optimal,
            review_count=len(events),
        )


def calculate_forgetting_score(
    days_since_last_review: float,
    optimal_review_time: float,
    retention_rate: float,
    forgetting_rate: float,
) -> float:
    """
    Priority of reviewing an item now. Higher means review sooner.

    Timing ratio r = elapsed / optimal:
    - r < 0.5: too early, r * 0.4
    - 0.5 <= r <= 1: linear ramp from 0.2 to 1.0
    - r > 1: overdue, 1 + (1 - e^(-forgetting * (r - 1))) * 0.5, approaching 1.5

    The score is boosted by (2 - retention) for poorly retained items and
    clamped to [0, 1.5].
    """
    if math.isnan(days_since_last_review) or days_since_last_review < 0:
        days_since_last_review = 0.0
    if math.isnan(optimal_review_time) or optimal_review_time < MIN_REVIEW_INTERVAL:
        optimal_review_time = MIN_REVIEW_INTERVAL
    retention_rate = clamp(retention_rate, 0.0, 1.0)
    forgetting_rate = clamp(forgetting_rate, 0.0, MAX_FORGETTING_RATE * 2)

    timing_ratio = days_since_last_review / optimal_review_time

    if timing_ratio < 0.5:
        score = timing_ratio * 0.4
    elif timing_ratio <= 1.0:
        score = 0.2 + (timing_ratio - 0.5) * 1.6
    else:
        overdue = timing_ratio - 1.0
        forgetting_decay = math.exp(-forgetting_rate * overdue)
        score = 1.0 + (1.0 - forgetting_decay) * 0.5

    score *= 2.0 - retention_rate

    return clamp(score, 0.0, MAX_FORGETTING_SCORE)
