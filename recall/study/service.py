"""
Scheduling Service - the library-level contract of the core.

Wires the repository, the clock, and the algorithm modules together:
- Forgetting curve estimates and review-queue priority
- Review recording (SM-2 update with optional forgetting-curve override)
- Concept mastery recalculation (full replace per user)
- Retention rate over a trailing window
- Study streak recording, display projection, leaderboard, and audit

Every operation takes an explicit now/today; when omitted, the injected
clock supplies it.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Any

from loguru import logger

from recall.core.clock import Clock, SystemClock, days_elapsed, ensure_utc
from recall.core.dates import local_date_of, parse_local_date, resolve_timezone
from recall.core.errors import NotFoundError
from recall.core.models import (
    Item,
    ItemSchedulingState,
    MasteryReport,
    ReviewEvent,
    StreakState,
)
from recall.db.repository import Repository
from recall.study import cache as stats_cache
from recall.study.cache import StatsCache
from recall.study.forgetting_curve import (
    MAX_REVIEW_INTERVAL,
    ForgettingCurveEstimate,
    ForgettingCurveModel,
    calculate_forgetting_score,
)
from recall.study.mastery_tracker import MIN_REVIEWS_FOR_MASTERY, MasteryTracker
from recall.study.retention import WEIGHTED_MIN_EVENTS, RetentionSummary, summarize_retention
from recall.study.sm2 import SM2Scheduler
from recall.study.streaks import (
    DEFAULT_GRACE_DAYS,
    DisplayedStreak,
    StreakUpdate,
    apply_transition,
    derive_streak_from_dates,
    leaderboard,
    project_display,
    streak_stats,
    study_dates_from_events,
)

LEARNING_STEPS = 2  # Repetitions scheduled by SM-2 alone before the override applies


@dataclass(frozen=True)
class QueueEntry:
    """One item in a prioritized review queue."""

    item_id: str
    score: float
    optimal_review_time: float | None
    days_since_last_review: float | None
    is_new: bool = False


@dataclass(frozen=True)
class ReviewOutcome:
    """Result of recording one review."""

    event: ReviewEvent
    state: ItemSchedulingState
    sm2_interval: int
    interval_overridden: bool


def _round_days(value: float) -> int:
    return max(1, int(math.floor(value + 0.5)))


class SchedulingService:
    """
    Facade over the scheduling algorithms.

    Stateless between calls apart from the repository and the statistics
    cache; safe to share across requests.
    """

    def __init__(
        self,
        repository: Repository,
        clock: Clock | None = None,
        cache: StatsCache | None = None,
        *,
        max_interval_days: float = MAX_REVIEW_INTERVAL,
        forgetting_curve_override: bool = True,
        mastery_window_days: int = 30,
        mastery_event_limit: int = 1000,
        mastery_min_reviews: int = MIN_REVIEWS_FOR_MASTERY,
        retention_window_days: int = 30,
        retention_weighted_min_events: int = WEIGHTED_MIN_EVENTS,
        streak_grace_days: int = DEFAULT_GRACE_DAYS,
        default_timezone: str = "UTC",
        review_queue_limit: int = 20,
        cache_ttl: dict[str, int] | None = None,
    ):
        self.repository = repository
        self.clock = clock or SystemClock()
        self.cache = cache or StatsCache(self.clock)
        self.sm2 = SM2Scheduler()
        self.forgetting = ForgettingCurveModel(max_interval_days=max_interval_days)
        self.mastery = MasteryTracker(min_reviews=mastery_min_reviews)
        self.forgetting_curve_override = forgetting_curve_override
        self.mastery_window_days = mastery_window_days
        self.mastery_event_limit = mastery_event_limit
        self.retention_window_days = retention_window_days
        self.retention_weighted_min_events = retention_weighted_min_events
        self.streak_grace_days = streak_grace_days
        self.default_timezone = default_timezone
        self.review_queue_limit = review_queue_limit
        ttl = cache_ttl or {}
        self.ttl_retention = ttl.get("retention", stats_cache.TTL_RETENTION)
        self.ttl_mastery = ttl.get("mastery", stats_cache.TTL_MASTERY)
        self.ttl_streak_stats = ttl.get("streak_stats", stats_cache.TTL_STREAK_STATS)

    @classmethod
    def from_settings(
        cls,
        repository: Repository,
        settings: Any = None,
        clock: Clock | None = None,
    ) -> SchedulingService:
        """Build a service configured from config.Settings."""
        if settings is None:
            from config import get_settings

            settings = get_settings()
        cfg = settings.get_scheduling_config()
        return cls(
            repository,
            clock=clock,
            max_interval_days=cfg["forgetting"]["max_interval_days"],
            forgetting_curve_override=cfg["forgetting"]["override_sm2"],
            mastery_window_days=cfg["mastery"]["window_days"],
            mastery_event_limit=cfg["mastery"]["event_limit"],
            mastery_min_reviews=cfg["mastery"]["min_reviews"],
            retention_window_days=cfg["retention"]["window_days"],
            retention_weighted_min_events=cfg["retention"]["weighted_min_events"],
            streak_grace_days=cfg["streaks"]["grace_days"],
            default_timezone=cfg["streaks"]["default_timezone"],
            review_queue_limit=cfg["queue_limit"],
            cache_ttl=cfg["cache_ttl"],
        )

    def _now(self, now: datetime | None) -> datetime:
        return ensure_utc(now) if now is not None else self.clock.now()

    def _require_item(self, item_id: str) -> Item:
        item = self.repository.get_item(item_id)
        if item is None:
            raise NotFoundError("item", item_id)
        return item

    # =========================================================================
    # Forgetting curve
    # =========================================================================

    def compute_forgetting_curve(self, item_id: str) -> ForgettingCurveEstimate:
        """
        Personal forgetting curve and optimal review time for an item.

        Raises:
            NotFoundError: If the item does not exist
        """
        item = self._require_item(item_id)
        events = self.repository.get_item_review_events(item_id)
        return self.forgetting.estimate(events, item.ease_factor, item.interval_days)

    def _score_item(self, item: Item, now: datetime) -> QueueEntry:
        events = self.repository.get_item_review_events(item.id)
        if not events:
            return QueueEntry(
                item_id=item.id,
                score=0.0,
                optimal_review_time=None,
                days_since_last_review=None,
                is_new=True,
            )

        estimate = self.forgetting.estimate(events, item.ease_factor, item.interval_days)
        days_since = max(0.0, days_elapsed(events[-1].timestamp, now))
        score = calculate_forgetting_score(
            days_since,
            estimate.optimal_review_time,
            estimate.retention_rate,
            estimate.forgetting_rate,
        )
        return QueueEntry(
            item_id=item.id,
            score=score,
            optimal_review_time=estimate.optimal_review_time,
            days_since_last_review=days_since,
        )

    def priority_score(self, item_id: str, now: datetime | None = None) -> float:
        """
        Forgetting score of an item at `now` (0-1.5, higher = review sooner).

        Items never reviewed score 0.

        Raises:
            NotFoundError: If the item does not exist
        """
        item = self._require_item(item_id)
        return self._score_item(item, self._now(now)).score

    def build_review_queue(
        self,
        user_id: str,
        now: datetime | None = None,
        limit: int | None = None,
        deck_id: str | None = None,
    ) -> list[QueueEntry]:
        """
        Rank a user's items by forgetting score.

        Reviewed items come first, highest score first (ties: longer since
        last review first); never-reviewed items follow in stored order.
        """
        now = self._now(now)
        limit = self.review_queue_limit if limit is None else limit
        entries = [self._score_item(item, now) for item in self.repository.get_items(user_id, deck_id)]

        reviewed = sorted(
            (e for e in entries if not e.is_new),
            key=lambda e: (-e.score, -(e.days_since_last_review or 0.0), e.item_id),
        )
        new = [e for e in entries if e.is_new]
        return (reviewed + new)[: max(0, limit)]

    # =========================================================================
    # Reviews
    # =========================================================================

    def record_review(
        self,
        item_id: str,
        quality: int,
        now: datetime | None = None,
        response_time_ms: int | None = None,
    ) -> ReviewOutcome:
        """
        Record a review: append the event and update scheduling state.

        After a successful review past the learning steps, the SM-2
        interval is replaced by the personal optimal review time.

        Raises:
            NotFoundError: If the item does not exist
        """
        now = self._now(now)
        item = self._require_item(item_id)
        quality = max(0, min(5, int(quality)))
        if response_time_ms is not None and response_time_ms < 0:
            response_time_ms = None

        state = self.sm2.normalize(item.scheduling)
        event = ReviewEvent(
            item_id=item.id,
            user_id=item.user_id,
            timestamp=now,
            quality=quality,
            was_successful=self.sm2.is_successful(quality),
            ease_factor_before=state.ease_factor,
            response_time_ms=response_time_ms,
        )

        new_state = self.sm2.calculate_next_review(state, quality, now)
        sm2_interval = new_state.interval_days
        overridden = False

        if (
            self.forgetting_curve_override
            and event.was_successful
            and new_state.repetition_count > LEARNING_STEPS
        ):
            history = [*self.repository.get_item_review_events(item_id), event]
            curve = self.forgetting.calculate_personal_forgetting_curve(history)
            optimal = self.forgetting.calculate_optimal_review_time(
                curve, new_state.ease_factor, state.interval_days
            )
            new_state = replace(new_state, interval_days=_round_days(optimal))
            overridden = new_state.interval_days != sm2_interval

        self.repository.append_review_event(event)
        self.repository.save_item_state(item_id, new_state)
        self.cache.invalidate_user(item.user_id)

        logger.debug(
            f"Review {item_id}: q={quality} reps={new_state.repetition_count} "
            f"ease={new_state.ease_factor:.2f} interval={new_state.interval_days}d"
            + (f" (SM-2 {sm2_interval}d)" if overridden else "")
        )
        return ReviewOutcome(
            event=event,
            state=new_state,
            sm2_interval=sm2_interval,
            interval_overridden=overridden,
        )

    # =========================================================================
    # Mastery
    # =========================================================================

    def recalculate_mastery(
        self,
        user_id: str,
        deck_id: str | None = None,
        now: datetime | None = None,
        domain_hints: Iterable[str] | None = None,
        force_refresh: bool = False,
    ) -> MasteryReport:
        """
        Recompute concept mastery for a user and replace the stored report.

        A report computed within the mastery TTL is returned as-is unless
        force_refresh is set; recording a review drops it. Reports ordered by
        domain_hints are never cached.

        Raises:
            NotFoundError: If deck_id does not exist or belongs to another user
        """
        if deck_id is not None:
            deck = self.repository.get_deck(deck_id)
            if deck is None or deck.user_id != user_id:
                raise NotFoundError("deck", deck_id)

        key = stats_cache.mastery_key(deck_id)
        if not force_refresh and domain_hints is None:
            cached = self.cache.get(user_id, key)
            if cached is not None:
                return cached

        now = self._now(now)
        items = self.repository.get_items(user_id, deck_id)
        since = now - timedelta(days=self.mastery_window_days)
        events = self.repository.get_user_review_events(user_id, since, self.mastery_event_limit)

        report = self.mastery.build_report(
            user_id, items, events, now, deck_id=deck_id, domain_hints=domain_hints
        )
        self.repository.replace_mastery_report(report)
        if domain_hints is None:
            self.cache.set(user_id, key, report, self.ttl_mastery)
        else:
            # hint-ordered concepts never serve a plain lookup
            self.cache.invalidate(user_id, key)

        average = report.average_mastery
        logger.info(
            f"Mastery recalculated for {user_id}: {report.concepts_analyzed} concepts, "
            f"average {average:.3f}" if average is not None
            else f"Mastery recalculated for {user_id}: no qualifying concepts"
        )
        return report

    def get_concept_mastery(
        self, user_id: str, deck_id: str | None = None
    ) -> MasteryReport | None:
        """Stored mastery report, or None if absent or stored for another deck scope."""
        report = self.repository.get_mastery_report(user_id)
        if report is None:
            return None
        if deck_id is not None and report.deck_id != deck_id:
            return None
        return report

    # =========================================================================
    # Retention
    # =========================================================================

    def retention_rate(
        self,
        user_id: str,
        days: int | None = None,
        now: datetime | None = None,
        force_refresh: bool = False,
    ) -> RetentionSummary:
        """Retention over the trailing window (rate None when there is no data)."""
        days = self.retention_window_days if days is None else days
        key = stats_cache.retention_key(days)
        if not force_refresh:
            cached = self.cache.get(user_id, key)
            if cached is not None:
                return cached

        now = self._now(now)
        events = self.repository.get_user_review_events(user_id, now - timedelta(days=days))
        summary = summarize_retention(events, self.retention_weighted_min_events)
        self.cache.set(user_id, key, summary, self.ttl_retention)
        return summary

    # =========================================================================
    # Streaks
    # =========================================================================

    def _today_for(self, state: StreakState | None, timezone: str | None = None) -> date:
        tz_name = timezone or (state.timezone if state else None) or self.default_timezone
        return local_date_of(self.clock.now(), resolve_timezone(tz_name, self.default_timezone))

    def record_study_day(
        self,
        user_id: str,
        local_date: str | date,
        timezone: str | None = None,
    ) -> StreakUpdate:
        """
        Record a completed study session on a user-local date.

        Idempotent per day; concurrent calls for one user are serialized by
        the repository.

        Raises:
            InvalidDateError: If local_date is not a valid YYYY-MM-DD date
        """
        study_date = parse_local_date(local_date)
        outcome: dict[str, StreakUpdate] = {}

        def transition(current: StreakState | None) -> StreakState:
            new_state, update = apply_transition(current, study_date, timezone)
            outcome["update"] = update
            return new_state

        self.repository.update_streak_state(user_id, transition)
        update = outcome["update"]
        self.cache.invalidate(stats_cache.GLOBAL_SCOPE, stats_cache.STREAK_STATS_KEY)

        logger.info(
            f"Streak {update.event.value} for {user_id} on {study_date}: "
            f"current={update.current_streak} longest={update.longest_streak}"
        )
        if update.is_new_milestone:
            logger.info(f"User {user_id} reached a {update.milestone}-day streak milestone")
        return update

    def get_displayed_streak(self, user_id: str, today: str | date | None = None) -> DisplayedStreak:
        """Read-time streak projection; never modifies the stored record."""
        state = self.repository.get_streak_state(user_id)
        day = parse_local_date(today) if today is not None else self._today_for(state)
        return project_display(state, day, self.streak_grace_days)

    def streak_leaderboard(self, limit: int = 10, by: str = "current") -> list[dict]:
        return leaderboard(self.repository.list_streak_states(), by=by, limit=limit)

    def streak_stats(self, force_refresh: bool = False) -> dict[str, int]:
        if not force_refresh:
            cached = self.cache.get(stats_cache.GLOBAL_SCOPE, stats_cache.STREAK_STATS_KEY)
            if cached is not None:
                return cached
        stats = streak_stats(s for _, s in self.repository.list_streak_states())
        self.cache.set(
            stats_cache.GLOBAL_SCOPE, stats_cache.STREAK_STATS_KEY, stats, self.ttl_streak_stats
        )
        return stats

    def audit_streak(
        self,
        user_id: str,
        today: str | date | None = None,
        timezone: str | None = None,
        history_days: int = 400,
    ) -> dict[str, Any]:
        """
        Compare the stored streak with one derived from review history.

        Read-only: the derived values are reported, never written.
        """
        state = self.repository.get_streak_state(user_id)
        tz_name = timezone or (state.timezone if state else None) or self.default_timezone
        tz = resolve_timezone(tz_name, self.default_timezone)
        day = parse_local_date(today) if today is not None else local_date_of(self.clock.now(), tz)

        since = self.clock.now() - timedelta(days=history_days)
        events = self.repository.get_user_review_events(user_id, since)
        derived_current, derived_longest = derive_streak_from_dates(
            study_dates_from_events(events, tz), day
        )
        displayed = project_display(state, day, self.streak_grace_days)
        return {
            "user_id": user_id,
            "timezone": tz.key,
            "stored_current": displayed.current_streak,
            "stored_longest": displayed.longest_streak,
            "derived_current": derived_current,
            "derived_longest": derived_longest,
            "consistent": displayed.current_streak == derived_current,
        }
