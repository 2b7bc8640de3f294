"""
Study Streak State Machine.

Two separate pieces of logic operate on the same StreakState:

- apply_transition(): the strict write-side transition, run once per
  completed study session with the user-local study date.
- project_display(): the lenient read-side projection. A stored streak
  goes stale when the user simply stops studying, so the displayed value
  drops to 0 once the last study date is too old. The stored record is
  never corrected by this.

States: no record -> Active(1) -> Active(n+1) (continued) or Active(1)
(broken and restarted). There is no terminal state.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import date
from zoneinfo import ZoneInfo

from loguru import logger

from recall.core.dates import days_between, local_date_of, previous_day
from recall.core.models import ReviewEvent, StreakEvent, StreakState

MILESTONES: tuple[int, ...] = (7, 30, 50, 100, 200, 365)
DEFAULT_GRACE_DAYS = 1
MAX_HISTORY_SCAN_DAYS = 365


@dataclass(frozen=True)
class StreakUpdate:
    """Outcome of recording one study day."""

    current_streak: int
    longest_streak: int
    event: StreakEvent
    is_new_milestone: bool = False
    milestone: int | None = None

    def to_dict(self) -> dict:
        return {
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "event": self.event.value,
            "is_new_milestone": self.is_new_milestone,
            "milestone": self.milestone,
        }


@dataclass(frozen=True)
class DisplayedStreak:
    """Read-time view of a streak record."""

    current_streak: int
    longest_streak: int
    is_active: bool
    last_study_date: date | None = None
    streak_start_date: date | None = None
    total_study_days: int = 0
    milestones_reached: tuple[int, ...] = ()
    last_milestone: int | None = None

    def to_dict(self) -> dict:
        return {
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "is_active": self.is_active,
            "last_study_date": self.last_study_date.isoformat() if self.last_study_date else None,
            "streak_start_date": self.streak_start_date.isoformat() if self.streak_start_date else None,
            "total_study_days": self.total_study_days,
            "milestones_reached": list(self.milestones_reached),
            "last_milestone": self.last_milestone,
        }


def _new_milestones(current: int, reached: frozenset[int]) -> list[int]:
    return [m for m in MILESTONES if m <= current and m not in reached]


def apply_transition(
    state: StreakState | None,
    study_date: date,
    timezone: str | None = None,
) -> tuple[StreakState, StreakUpdate]:
    """
    Apply one study day to a streak record.

    Args:
        state: Existing record, or None for a first-time user
        study_date: User-local calendar date of the completed session
        timezone: Optional IANA timezone stored alongside the record

    Returns:
        (new_state, update). Same-day replays return the state unchanged
        with event "continued".
    """
    if state is None:
        new_state = StreakState(
            current_streak=1,
            longest_streak=1,
            last_study_date=study_date,
            streak_start_date=study_date,
            total_study_days=1,
            timezone=timezone,
        )
        return new_state, StreakUpdate(
            current_streak=1, longest_streak=1, event=StreakEvent.STARTED
        )

    last = state.last_study_date
    if last is not None and study_date <= last:
        if study_date < last:
            logger.warning(
                f"Study date {study_date} precedes last study date {last}; ignoring replay"
            )
        return state, StreakUpdate(
            current_streak=state.current_streak,
            longest_streak=state.longest_streak,
            event=StreakEvent.CONTINUED,
        )

    if last is not None and last == previous_day(study_date):
        current = state.current_streak + 1
        longest = max(state.longest_streak, current)
        start = state.streak_start_date or study_date
        event = StreakEvent.CONTINUED
    else:
        current = 1
        longest = max(state.longest_streak, current)
        start = study_date
        event = StreakEvent.BROKEN

    crossed = _new_milestones(current, state.milestones_reached)
    milestone = crossed[-1] if crossed else None

    new_state = replace(
        state,
        current_streak=current,
        longest_streak=longest,
        last_study_date=study_date,
        streak_start_date=start,
        total_study_days=state.total_study_days + 1,
        milestones_reached=state.milestones_reached | frozenset(crossed),
        last_milestone=milestone if milestone is not None else state.last_milestone,
        timezone=timezone or state.timezone,
    )
    return new_state, StreakUpdate(
        current_streak=current,
        longest_streak=longest,
        event=event,
        is_new_milestone=milestone is not None,
        milestone=milestone,
    )


def is_streak_active(
    last_study_date: date | None,
    today: date,
    grace_days: int = DEFAULT_GRACE_DAYS,
) -> bool:
    """
    Whether a streak ending on last_study_date can still be continued.

    That means studied today or yesterday, the same rule the write side
    uses to tell a continued streak from a broken one. grace_days only
    tolerates a last date up to grace_days in the future, which happens when
    the client and server disagree on the current date.
    """
    if last_study_date is None:
        return False
    gap = days_between(last_study_date, today)
    return -grace_days <= gap <= 1


def project_display(
    state: StreakState | None,
    today: date,
    grace_days: int = DEFAULT_GRACE_DAYS,
) -> DisplayedStreak:
    """Project a stored record for display without modifying it."""
    if state is None:
        return DisplayedStreak(current_streak=0, longest_streak=0, is_active=False)

    active = is_streak_active(state.last_study_date, today, grace_days)
    return DisplayedStreak(
        current_streak=state.current_streak if active else 0,
        longest_streak=state.longest_streak,
        is_active=active,
        last_study_date=state.last_study_date,
        streak_start_date=state.streak_start_date,
        total_study_days=state.total_study_days,
        milestones_reached=tuple(sorted(state.milestones_reached)),
        last_milestone=state.last_milestone,
    )


# =============================================================================
# History-derived streaks (audit)
# =============================================================================


def study_dates_from_events(events: Iterable[ReviewEvent], tz: ZoneInfo) -> set[date]:
    """User-local calendar dates on which at least one review happened."""
    return {local_date_of(e.timestamp, tz) for e in events}


def derive_streak_from_dates(dates: Iterable[date], today: date) -> tuple[int, int]:
    """
    Recompute (current, longest) streaks from a set of study dates.

    The current streak counts back from today, or from yesterday when
    today has no activity yet, and stops at the first gap.
    """
    unique = sorted(set(dates))
    if not unique:
        return 0, 0

    date_set = set(unique)
    current = 0
    yesterday = previous_day(today)
    if today in date_set or yesterday in date_set:
        cursor = today if today in date_set else yesterday
        while cursor in date_set and current < MAX_HISTORY_SCAN_DAYS:
            current += 1
            cursor = previous_day(cursor)

    longest = run = 1
    for prev, cur in zip(unique, unique[1:]):
        run = run + 1 if days_between(prev, cur) == 1 else 1
        longest = max(longest, run)

    return current, longest


# =============================================================================
# Aggregates
# =============================================================================


def leaderboard(
    states: Sequence[tuple[str, StreakState]],
    by: str = "current",
    limit: int = 10,
) -> list[dict]:
    """Top streak records by current or longest streak."""
    if by not in ("current", "longest"):
        raise ValueError(f"by must be 'current' or 'longest', got {by!r}")

    def key(entry: tuple[str, StreakState]) -> tuple[int, str]:
        user_id, s = entry
        value = s.current_streak if by == "current" else s.longest_streak
        return (-value, user_id)

    return [
        {
            "user_id": user_id,
            "current_streak": s.current_streak,
            "longest_streak": s.longest_streak,
            "total_study_days": s.total_study_days,
        }
        for user_id, s in sorted(states, key=key)[: max(0, limit)]
    ]


def streak_stats(states: Iterable[StreakState]) -> dict[str, int]:
    """Aggregate statistics across all stored streak records."""
    states = list(states)
    active = [s for s in states if s.current_streak > 0]
    total_current = sum(s.current_streak for s in active)
    return {
        "total_active_streaks": len(active),
        "average_streak_length": math.floor(total_current / len(active) + 0.5) if active else 0,
        "longest_active_streak": max((s.current_streak for s in active), default=0),
        "total_milestones_reached": sum(len(s.milestones_reached) for s in states),
    }
