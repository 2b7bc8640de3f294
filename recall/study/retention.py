"""
Retention-rate aggregation over a trailing window of review events.

Plain retention is successes / total. Once the sample is large enough,
each event is weighted by 1 / ease_factor_before so that hard items
(low ease) count more than easy ones.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from recall.core.clock import ensure_utc
from recall.core.models import MIN_EASE_FACTOR, ReviewEvent
from recall.core.numeric import clamp

WEIGHTED_MIN_EVENTS = 10


@dataclass(frozen=True)
class RetentionSummary:
    """Retention over a window. rate is None when the window is empty."""

    rate: float | None
    total_reviews: int
    successful_reviews: int
    weighted: bool


def round_half_up(value: float, digits: int = 1) -> float:
    """Round half away from zero (2.25 -> 2.3), unlike banker's round()."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def filter_window(
    events: Sequence[ReviewEvent], now: datetime, days: int
) -> list[ReviewEvent]:
    """Events at or after now - days."""
    cutoff = ensure_utc(now) - timedelta(days=days)
    return [e for e in events if ensure_utc(e.timestamp) >= cutoff]


def plain_retention(events: Sequence[ReviewEvent]) -> float:
    return sum(1 for e in events if e.was_successful) / len(events)


def weighted_retention(events: Sequence[ReviewEvent]) -> float:
    weighted_success = 0.0
    weighted_total = 0.0
    for event in events:
        weight = 1.0 / max(event.ease_factor_before, MIN_EASE_FACTOR)
        if event.was_successful:
            weighted_success += weight
        weighted_total += weight
    return weighted_success / weighted_total


def summarize_retention(
    events: Sequence[ReviewEvent],
    weighted_min_events: int = WEIGHTED_MIN_EVENTS,
) -> RetentionSummary:
    """
    Calculate the retention rate of a window of events.

    Args:
        events: All review events in the window
        weighted_min_events: Sample size at which the ease-weighted rate
            replaces the plain rate (inclusive)

    Returns:
        RetentionSummary with rate as a percentage 0-100 rounded to one
        decimal, or rate=None when there are no events
    """
    total = len(events)
    if total == 0:
        return RetentionSummary(rate=None, total_reviews=0, successful_reviews=0, weighted=False)

    successful = sum(1 for e in events if e.was_successful)
    use_weighted = total >= weighted_min_events
    raw = weighted_retention(events) if use_weighted else plain_retention(events)

    rate = clamp(round_half_up(raw * 100, 1), 0.0, 100.0)
    return RetentionSummary(
        rate=rate,
        total_reviews=total,
        successful_reviews=successful,
        weighted=use_weighted,
    )


def calculate_retention_rate(
    events: Sequence[ReviewEvent],
    weighted_min_events: int = WEIGHTED_MIN_EVENTS,
) -> float | None:
    """Retention percentage (0-100) or None when there is no data."""
    return summarize_retention(events, weighted_min_events).rate
