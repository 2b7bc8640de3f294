"""
Repository interface consumed by the scheduling core.

The core only reads items and review events, and writes back item
scheduling state, the mastery document, and streak records. Storage and
indexing are the repository's concern.

Ordering contract:
- get_item_review_events: all events of one item, oldest first
- get_user_review_events: the most recent `limit` events at or after
  `since`, returned oldest first
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from recall.core.clock import ensure_utc
from recall.core.locks import KeyedLock
from recall.core.models import (
    Deck,
    Item,
    ItemSchedulingState,
    MasteryReport,
    ReviewEvent,
    StreakState,
)

StreakTransition = Callable[[StreakState | None], StreakState]


class Repository(Protocol):
    def get_item(self, item_id: str) -> Item | None: ...

    def get_items(self, user_id: str, deck_id: str | None = None) -> list[Item]: ...

    def get_deck(self, deck_id: str) -> Deck | None: ...

    def save_item_state(self, item_id: str, state: ItemSchedulingState) -> None: ...

    def append_review_event(self, event: ReviewEvent) -> None: ...

    def get_item_review_events(self, item_id: str) -> list[ReviewEvent]: ...

    def get_user_review_events(
        self, user_id: str, since: datetime, limit: int | None = None
    ) -> list[ReviewEvent]: ...

    def get_mastery_report(self, user_id: str) -> MasteryReport | None: ...

    def replace_mastery_report(self, report: MasteryReport) -> None: ...

    def get_streak_state(self, user_id: str) -> StreakState | None: ...

    def update_streak_state(self, user_id: str, transition: StreakTransition) -> StreakState:
        """Read, transform, and write a user's streak under mutual exclusion."""
        ...

    def list_streak_states(self) -> list[tuple[str, StreakState]]: ...


def _by_time(event: ReviewEvent) -> datetime:
    return ensure_utc(event.timestamp)


class InMemoryRepository:
    """
    Dict-backed repository.

    Used by tests and by embedders that keep their own storage; the streak
    read-modify-write holds a per-user lock.
    """

    def __init__(self):
        self.decks: dict[str, Deck] = {}
        self.items: dict[str, Item] = {}
        self.events: list[ReviewEvent] = []
        self.mastery_reports: dict[str, MasteryReport] = {}
        self.streaks: dict[str, StreakState] = {}
        self._streak_locks = KeyedLock()
        self._write_lock = threading.Lock()

    # -- seeding -------------------------------------------------------------

    def add_deck(self, deck: Deck) -> Deck:
        self.decks[deck.id] = deck
        return deck

    def add_item(self, item: Item) -> Item:
        self.items[item.id] = item
        return item

    # -- reads ---------------------------------------------------------------

    def get_item(self, item_id: str) -> Item | None:
        return self.items.get(item_id)

    def get_items(self, user_id: str, deck_id: str | None = None) -> list[Item]:
        return [
            item
            for item in self.items.values()
            if item.user_id == user_id and (deck_id is None or item.deck_id == deck_id)
        ]

    def get_deck(self, deck_id: str) -> Deck | None:
        return self.decks.get(deck_id)

    def get_item_review_events(self, item_id: str) -> list[ReviewEvent]:
        return sorted((e for e in self.events if e.item_id == item_id), key=_by_time)

    def get_user_review_events(
        self, user_id: str, since: datetime, limit: int | None = None
    ) -> list[ReviewEvent]:
        since = ensure_utc(since)
        matching = sorted(
            (e for e in self.events if e.user_id == user_id and ensure_utc(e.timestamp) >= since),
            key=_by_time,
        )
        if limit is not None:
            matching = matching[-limit:] if limit > 0 else []
        return matching

    def get_mastery_report(self, user_id: str) -> MasteryReport | None:
        return self.mastery_reports.get(user_id)

    def get_streak_state(self, user_id: str) -> StreakState | None:
        return self.streaks.get(user_id)

    def list_streak_states(self) -> list[tuple[str, StreakState]]:
        return list(self.streaks.items())

    # -- writes --------------------------------------------------------------

    def save_item_state(self, item_id: str, state: ItemSchedulingState) -> None:
        item = self.items.get(item_id)
        if item is None:
            return
        item.scheduling = state

    def append_review_event(self, event: ReviewEvent) -> None:
        with self._write_lock:
            self.events.append(event)

    def replace_mastery_report(self, report: MasteryReport) -> None:
        self.mastery_reports[report.user_id] = report

    def update_streak_state(self, user_id: str, transition: StreakTransition) -> StreakState:
        with self._streak_locks.hold(user_id):
            new_state = transition(self.streaks.get(user_id))
            self.streaks[user_id] = new_state
            return new_state
