"""
Core Module - Shared domain models and interfaces.

Components:
- models: ReviewEvent, Item, ConceptMastery, MasteryReport, StreakState
- clock: Explicit time sources (SystemClock, FixedClock)
- dates: Calendar-date helpers for day-granular logic
- errors: NotFoundError, InvalidDateError
- locks: Per-key mutual exclusion

Design Principle:
The algorithm modules in recall/study/ and the repositories in recall/db/
import their shared types from here rather than redefining them.
"""

from recall.core.clock import Clock, FixedClock, SystemClock
from recall.core.errors import InvalidDateError, NotFoundError, RecallError
from recall.core.models import (
    ConceptMastery,
    Deck,
    DifficultyTrend,
    Item,
    ItemSchedulingState,
    MasteryCategory,
    MasteryReport,
    ReviewEvent,
    StreakEvent,
    StreakState,
)

__all__ = [
    # Time
    "Clock",
    "SystemClock",
    "FixedClock",
    # Errors
    "RecallError",
    "NotFoundError",
    "InvalidDateError",
    # Models
    "ReviewEvent",
    "Deck",
    "Item",
    "ItemSchedulingState",
    "ConceptMastery",
    "MasteryReport",
    "MasteryCategory",
    "DifficultyTrend",
    "StreakEvent",
    "StreakState",
]
