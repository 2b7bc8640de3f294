"""
Study Module - scheduling algorithms and the service facade.

Provides:
- SM-2 interval scheduling
- Personal forgetting curves and review priority
- Concept extraction and mastery tracking
- Retention rate
- Study streaks
- Statistics cache
"""

from recall.study.cache import StatsCache
from recall.study.forgetting_curve import (
    ForgettingCurveEstimate,
    ForgettingCurveModel,
    calculate_forgetting_score,
)
from recall.study.mastery_tracker import MasteryTracker
from recall.study.retention import RetentionSummary, calculate_retention_rate
from recall.study.service import QueueEntry, ReviewOutcome, SchedulingService
from recall.study.sm2 import SM2Scheduler
from recall.study.streaks import DisplayedStreak, StreakUpdate, apply_transition

__all__ = [
    "SchedulingService",
    "QueueEntry",
    "ReviewOutcome",
    "SM2Scheduler",
    "ForgettingCurveModel",
    "ForgettingCurveEstimate",
    "calculate_forgetting_score",
    "MasteryTracker",
    "RetentionSummary",
    "calculate_retention_rate",
    "StreakUpdate",
    "DisplayedStreak",
    "apply_transition",
    "StatsCache",
]
