"""
Concept Mastery Tracker.

Groups a user's items into keyword concepts and classifies each concept
from recent review events:
- Success rate and mean response time
- Trend: most recent 10 reviews against the rest
- Mastery level: success rate scaled by speed, trend, and sample size
- Confidence: consistency of outcomes (1 - variance)

Full recomputation is the source of truth. blend_mastery() is an
optional incremental layer for batches of fresh interactions and never
replaces a full recalculation.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime

from loguru import logger

from recall.core.clock import days_elapsed, ensure_utc
from recall.core.models import (
    ConceptMastery,
    DifficultyTrend,
    Item,
    MasteryCategory,
    MasteryReport,
    ReviewEvent,
)
from recall.core.numeric import clamp
from recall.study.concepts import extract_concepts

MIN_REVIEWS_FOR_MASTERY = 5
RECENT_REVIEW_WINDOW = 10
TREND_MARGIN = 0.1

# Response-time factor: 5000ms / max(avg, 1000ms), clamped to [0.5, 1.2]
REFERENCE_RESPONSE_MS = 5000.0
RESPONSE_FLOOR_MS = 1000.0
RESPONSE_FACTOR_MIN = 0.5
RESPONSE_FACTOR_MAX = 1.2

TREND_BOOST = 1.1
TREND_PENALTY = 0.9

# Reliability: 0.7 + 0.3 * min(1, reviews / 20)
RELIABILITY_BASE = 0.7
RELIABILITY_REVIEWS = 20

MAX_BLEND_WEIGHT = 0.3
BLEND_FULL_BATCH = 20


@dataclass
class ConceptGroup:
    """Items mapped to one concept and the review events of those items."""

    item_ids: list[str] = field(default_factory=list)
    events: list[ReviewEvent] = field(default_factory=list)


def _success_rate(events: Sequence[ReviewEvent]) -> float:
    if not events:
        return 0.0
    return sum(1 for e in events if e.was_successful) / len(events)


class MasteryTracker:
    """
    Computes ConceptMastery records for one user.

    Stateless: every call recomputes from the items and events given.
    """

    def __init__(self, min_reviews: int = MIN_REVIEWS_FOR_MASTERY):
        """
        Initialize tracker.

        Args:
            min_reviews: Concepts with fewer reviews are skipped (default 5)
        """
        self.min_reviews = min_reviews

    # =========================================================================
    # Grouping
    # =========================================================================

    def group_by_concept(
        self,
        items: Iterable[Item],
        events: Iterable[ReviewEvent],
        domain_hints: Iterable[str] | None = None,
    ) -> dict[str, ConceptGroup]:
        """
        Map every item to its concepts and collect the matching events.

        Events belonging to items outside `items` are ignored. Each
        concept's events are ordered oldest first.
        """
        hints = list(domain_hints) if domain_hints else None
        events_by_item: dict[str, list[ReviewEvent]] = {}
        for event in events:
            events_by_item.setdefault(event.item_id, []).append(event)

        groups: dict[str, ConceptGroup] = {}
        for item in items:
            item_events = events_by_item.get(item.id, [])
            for concept in extract_concepts(item.text, hints):
                group = groups.setdefault(concept, ConceptGroup())
                group.item_ids.append(item.id)
                group.events.extend(item_events)

        for group in groups.values():
            group.events.sort(key=lambda e: ensure_utc(e.timestamp))
        return groups

    # =========================================================================
    # Per-concept metrics
    # =========================================================================

    def calculate_trend(self, events: Sequence[ReviewEvent]) -> DifficultyTrend:
        """
        Compare the most recent 10 reviews with the older ones.

        With no older reviews the baseline rate is 0, so a concept seen
        fewer than 11 times reads as improving when more than 10% of its
        reviews succeed.
        """
        recent = events[-RECENT_REVIEW_WINDOW:]
        older = events[:-RECENT_REVIEW_WINDOW]

        recent_rate = _success_rate(recent)
        older_rate = _success_rate(older)
        if recent_rate > older_rate + TREND_MARGIN:
            return DifficultyTrend.IMPROVING
        if recent_rate < older_rate - TREND_MARGIN:
            return DifficultyTrend.DECLINING
        return DifficultyTrend.STABLE

    def average_response_time(self, events: Sequence[ReviewEvent]) -> float:
        """Mean response time (ms) over events that recorded one, else 0."""
        times = [e.response_time_ms for e in events if e.response_time_ms]
        if not times:
            return 0.0
        return sum(times) / len(times)

    def response_time_factor(self, average_response_time: float) -> float:
        """Faster answers raise mastery. An average of 0 counts as the 1000ms floor."""
        return clamp(
            REFERENCE_RESPONSE_MS / max(average_response_time, RESPONSE_FLOOR_MS),
            RESPONSE_FACTOR_MIN,
            RESPONSE_FACTOR_MAX,
        )

    def calculate_mastery_level(
        self,
        success_rate: float,
        review_count: int,
        average_response_time: float,
        trend: DifficultyTrend,
    ) -> float:
        """
        Calculate mastery level (0-1).

        Formula:
            success_rate
            x response-time factor
            x 1.1 improving / 0.9 declining
            x (0.7 + 0.3 * min(1, reviews / 20))

        Returns 0 when review_count is below the minimum sample.
        """
        if review_count < self.min_reviews:
            return 0.0

        mastery = clamp(success_rate, 0.0, 1.0)
        mastery *= self.response_time_factor(average_response_time)

        if trend == DifficultyTrend.IMPROVING:
            mastery *= TREND_BOOST
        elif trend == DifficultyTrend.DECLINING:
            mastery *= TREND_PENALTY

        reliability = min(1.0, review_count / RELIABILITY_REVIEWS)
        mastery *= RELIABILITY_BASE + (1 - RELIABILITY_BASE) * reliability

        return clamp(mastery, 0.0, 1.0)

    def calculate_confidence(self, events: Sequence[ReviewEvent], success_rate: float) -> float:
        """1 - variance of outcomes as 0/1; a single review has zero variance."""
        if len(events) <= 1:
            return 1.0
        variance = sum(
            ((1.0 if e.was_successful else 0.0) - success_rate) ** 2 for e in events
        ) / len(events)
        return clamp(1.0 - variance, 0.0, 1.0)

    def analyze_concept(
        self,
        concept_id: str,
        group: ConceptGroup,
        now: datetime,
    ) -> ConceptMastery | None:
        """
        Build the mastery record for one concept.

        Returns None when the concept has fewer than min_reviews events.
        """
        events = group.events
        review_count = len(events)
        if review_count < self.min_reviews:
            return None

        success_rate = _success_rate(events)
        avg_response = self.average_response_time(events)
        trend = self.calculate_trend(events)
        mastery_level = self.calculate_mastery_level(success_rate, review_count, avg_response, trend)
        confidence = self.calculate_confidence(events, success_rate)

        oldest = ensure_utc(events[0].timestamp)
        time_span = max(1.0, days_elapsed(oldest, now))
        learning_velocity = mastery_level / time_span

        return ConceptMastery(
            concept_id=concept_id,
            mastery_level=mastery_level,
            confidence_level=confidence,
            review_count=review_count,
            success_rate=success_rate,
            average_response_time=avg_response,
            difficulty_trend=trend,
            mastery_category=MasteryCategory.from_level(mastery_level),
            learning_velocity=learning_velocity,
            last_reviewed=ensure_utc(events[-1].timestamp),
            item_ids=tuple(dict.fromkeys(group.item_ids)),
        )

    # =========================================================================
    # Report
    # =========================================================================

    def build_report(
        self,
        user_id: str,
        items: Iterable[Item],
        events: Iterable[ReviewEvent],
        now: datetime,
        deck_id: str | None = None,
        domain_hints: Iterable[str] | None = None,
    ) -> MasteryReport:
        """
        Recompute every concept for a user.

        Args:
            user_id: Owner of the items
            items: The user's items (optionally one deck's)
            events: Review events from the trailing window
            now: Calculation instant
            deck_id: Deck scope recorded on the report
            domain_hints: Optional hints passed to concept extraction

        Returns:
            MasteryReport containing only concepts with enough reviews
        """
        groups = self.group_by_concept(items, events, domain_hints)

        concepts: list[ConceptMastery] = []
        skipped = 0
        for concept_id, group in groups.items():
            mastery = self.analyze_concept(concept_id, group, now)
            if mastery is None:
                skipped += 1
                continue
            concepts.append(mastery)

        concepts.sort(key=lambda c: (-c.mastery_level, c.concept_id))
        logger.debug(
            f"Mastery for {user_id}: {len(concepts)} concepts analyzed, "
            f"{skipped} skipped (< {self.min_reviews} reviews)"
        )
        return MasteryReport(
            user_id=user_id,
            concepts=concepts,
            calculated_at=ensure_utc(now),
            deck_id=deck_id,
        )

    # =========================================================================
    # Incremental layer
    # =========================================================================

    def blend_mastery(
        self,
        stored: ConceptMastery,
        new_events: Sequence[ReviewEvent],
    ) -> ConceptMastery:
        """
        Fold a batch of new interactions into a stored concept record.

        Uses an exponential-smoothing weight of min(0.3, n / 20) for the
        new data. The result is an approximation; the next full
        recalculation supersedes it.
        """
        if not new_events:
            return stored

        weight = min(MAX_BLEND_WEIGHT, len(new_events) / BLEND_FULL_BATCH)
        new_success = _success_rate(new_events)
        new_response = self.average_response_time(new_events)

        success_rate = (1 - weight) * stored.success_rate + weight * new_success
        if new_response > 0 and stored.average_response_time > 0:
            response = (1 - weight) * stored.average_response_time + weight * new_response
        else:
            response = stored.average_response_time or new_response
        confidence = (1 - weight) * stored.confidence_level + weight * self.calculate_confidence(
            new_events, new_success
        )
        review_count = stored.review_count + len(new_events)
        mastery_level = self.calculate_mastery_level(
            success_rate, review_count, response, stored.difficulty_trend
        )

        latest = max(ensure_utc(e.timestamp) for e in new_events)
        if stored.last_reviewed is not None:
            latest = max(latest, stored.last_reviewed)

        return replace(
            stored,
            success_rate=success_rate,
            average_response_time=response,
            confidence_level=clamp(confidence, 0.0, 1.0),
            review_count=review_count,
            mastery_level=mastery_level,
            mastery_category=MasteryCategory.from_level(mastery_level),
            last_reviewed=latest,
        )
