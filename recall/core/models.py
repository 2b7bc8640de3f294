"""
Core domain models.

Canonical representations shared by the forgetting curve model, the
mastery tracker, the streak state machine, and the repositories.

Design:
- ReviewEvent: Immutable fact, the system of record for derived state
- Item / ItemSchedulingState: Per-item SM-2 state
- ConceptMastery / MasteryReport: Full-replace mastery document per user
- StreakState: Per-user study continuity record
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any

MIN_EASE_FACTOR = 1.3
DEFAULT_EASE_FACTOR = 2.5


class MasteryCategory(str, Enum):
    """Mastery categories ordered from weakest to strongest."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"

    @classmethod
    def from_level(cls, level: float) -> MasteryCategory:
        """
        Convert a 0-1 mastery level to a category.

        Thresholds: expert >= 0.95, advanced >= 0.8, intermediate >= 0.6.
        """
        if level >= 0.95:
            return cls.EXPERT
        elif level >= 0.8:
            return cls.ADVANCED
        elif level >= 0.6:
            return cls.INTERMEDIATE
        return cls.BEGINNER

    @property
    def color(self) -> str:
        """Rich color for CLI display."""
        return {
            MasteryCategory.BEGINNER: "red",
            MasteryCategory.INTERMEDIATE: "yellow",
            MasteryCategory.ADVANCED: "cyan",
            MasteryCategory.EXPERT: "green",
        }[self]


class DifficultyTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class StreakEvent(str, Enum):
    STARTED = "started"
    CONTINUED = "continued"
    BROKEN = "broken"


@dataclass(frozen=True)
class ReviewEvent:
    """A single review outcome. Created once, never mutated."""

    item_id: str
    user_id: str
    timestamp: datetime
    quality: int  # 0-5 SM-2 scale
    was_successful: bool
    ease_factor_before: float = DEFAULT_EASE_FACTOR
    response_time_ms: int | None = None


@dataclass
class Deck:
    id: str
    user_id: str
    name: str = ""


@dataclass
class ItemSchedulingState:
    """
    Mutable SM-2 scheduling state for one item.

    due_date is always last_reviewed_at + interval_days.
    """

    repetition_count: int = 0
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval_days: int = 0
    last_reviewed_at: datetime | None = None

    @property
    def due_date(self) -> datetime | None:
        if self.last_reviewed_at is None:
            return None
        return self.last_reviewed_at + timedelta(days=self.interval_days)


@dataclass
class Item:
    """A learned item (flashcard) with its current scheduling state."""

    id: str
    user_id: str
    front_text: str
    back_text: str = ""
    deck_id: str | None = None
    scheduling: ItemSchedulingState = field(default_factory=ItemSchedulingState)

    @property
    def ease_factor(self) -> float:
        return self.scheduling.ease_factor

    @property
    def interval_days(self) -> int:
        return self.scheduling.interval_days

    @property
    def repetition_count(self) -> int:
        return self.scheduling.repetition_count

    @property
    def text(self) -> str:
        return f"{self.front_text} {self.back_text}"


@dataclass
class ConceptMastery:
    """Mastery state for one keyword concept of one user."""

    concept_id: str
    mastery_level: float  # 0-1
    confidence_level: float  # 0-1
    review_count: int
    success_rate: float
    average_response_time: float  # milliseconds, 0 when none recorded
    difficulty_trend: DifficultyTrend
    mastery_category: MasteryCategory
    learning_velocity: float
    last_reviewed: datetime | None = None
    item_ids: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "concept_id": self.concept_id,
            "mastery_level": self.mastery_level,
            "confidence_level": self.confidence_level,
            "review_count": self.review_count,
            "success_rate": self.success_rate,
            "average_response_time": self.average_response_time,
            "difficulty_trend": self.difficulty_trend.value,
            "mastery_category": self.mastery_category.value,
            "learning_velocity": self.learning_velocity,
            "last_reviewed": self.last_reviewed.isoformat() if self.last_reviewed else None,
            "item_ids": list(self.item_ids),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConceptMastery:
        last_reviewed = data.get("last_reviewed")
        return cls(
            concept_id=data["concept_id"],
            mastery_level=float(data["mastery_level"]),
            confidence_level=float(data["confidence_level"]),
            review_count=int(data["review_count"]),
            success_rate=float(data["success_rate"]),
            average_response_time=float(data["average_response_time"]),
            difficulty_trend=DifficultyTrend(data["difficulty_trend"]),
            mastery_category=MasteryCategory(data["mastery_category"]),
            learning_velocity=float(data["learning_velocity"]),
            last_reviewed=datetime.fromisoformat(last_reviewed) if last_reviewed else None,
            item_ids=tuple(data.get("item_ids", ())),
        )


def empty_distribution() -> dict[str, int]:
    return {category.value: 0 for category in MasteryCategory}


@dataclass
class MasteryReport:
    """The full-replace mastery document persisted per user."""

    user_id: str
    concepts: list[ConceptMastery]
    calculated_at: datetime
    deck_id: str | None = None

    @property
    def concepts_analyzed(self) -> int:
        return len(self.concepts)

    @property
    def average_mastery(self) -> float | None:
        """Mean mastery level, or None when no concept qualified."""
        if not self.concepts:
            return None
        return sum(c.mastery_level for c in self.concepts) / len(self.concepts)

    @property
    def distribution(self) -> dict[str, int]:
        counts = empty_distribution()
        for concept in self.concepts:
            counts[concept.mastery_category.value] += 1
        return counts

    def summary(self) -> dict[str, Any]:
        return {
            "concepts_analyzed": self.concepts_analyzed,
            "average_mastery": self.average_mastery,
            "distribution": self.distribution,
        }


@dataclass(frozen=True)
class StreakState:
    """Per-user study streak record. Dates are user-local calendar dates."""

    current_streak: int = 0
    longest_streak: int = 0
    last_study_date: date | None = None
    streak_start_date: date | None = None
    total_study_days: int = 0
    milestones_reached: frozenset[int] = frozenset()
    last_milestone: int | None = None
    timezone: str | None = None
