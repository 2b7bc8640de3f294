"""
SQLAlchemy-backed repository.

Works against SQLite (local, tests) and PostgreSQL. The streak update runs
as one transaction with SELECT ... FOR UPDATE; a process-local per-user
lock covers SQLite, which has no row locks.
"""

from __future__ import annotations

from datetime import datetime

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from recall.core.clock import ensure_utc
from recall.core.locks import KeyedLock
from recall.core.models import (
    ConceptMastery,
    Deck,
    Item,
    ItemSchedulingState,
    MasteryReport,
    ReviewEvent,
    StreakState,
)
from recall.db.database import get_session_factory, session_scope
from recall.db.models import (
    ConceptMasteryReportRow,
    DeckRow,
    ItemRow,
    ReviewEventRow,
    StudyStreakRow,
)
from recall.db.repository import StreakTransition


def _utc_or_none(value: datetime | None) -> datetime | None:
    return ensure_utc(value) if value is not None else None


def _item_from_row(row: ItemRow) -> Item:
    return Item(
        id=row.id,
        user_id=row.user_id,
        deck_id=row.deck_id,
        front_text=row.front_text,
        back_text=row.back_text or "",
        scheduling=ItemSchedulingState(
            repetition_count=row.repetition_count or 0,
            ease_factor=float(row.ease_factor if row.ease_factor is not None else 2.5),
            interval_days=row.interval_days or 0,
            last_reviewed_at=_utc_or_none(row.last_reviewed_at),
        ),
    )


def _event_from_row(row: ReviewEventRow) -> ReviewEvent:
    return ReviewEvent(
        item_id=row.item_id,
        user_id=row.user_id,
        timestamp=ensure_utc(row.reviewed_at),
        quality=row.quality,
        was_successful=row.was_successful,
        ease_factor_before=float(row.ease_factor_before),
        response_time_ms=row.response_time_ms,
    )


def _streak_from_row(row: StudyStreakRow) -> StreakState:
    return StreakState(
        current_streak=row.current_streak or 0,
        longest_streak=row.longest_streak or 0,
        last_study_date=row.last_study_date,
        streak_start_date=row.streak_start_date,
        total_study_days=row.total_study_days or 0,
        milestones_reached=frozenset(row.milestones_reached or []),
        last_milestone=row.last_milestone,
        timezone=row.timezone,
    )


def _apply_streak(row: StudyStreakRow, state: StreakState) -> None:
    row.current_streak = state.current_streak
    row.longest_streak = state.longest_streak
    row.last_study_date = state.last_study_date
    row.streak_start_date = state.streak_start_date
    row.total_study_days = state.total_study_days
    row.milestones_reached = sorted(state.milestones_reached)
    row.last_milestone = state.last_milestone
    row.timezone = state.timezone


class SqlRepository:
    """Repository over the scheduling tables."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None):
        self.session_factory = session_factory or get_session_factory()
        self._streak_locks = KeyedLock()

    # -- seeding -------------------------------------------------------------

    def add_deck(self, deck: Deck) -> Deck:
        with session_scope(self.session_factory) as session:
            session.merge(DeckRow(id=deck.id, user_id=deck.user_id, name=deck.name))
        return deck

    def add_item(self, item: Item) -> Item:
        s = item.scheduling
        with session_scope(self.session_factory) as session:
            session.merge(
                ItemRow(
                    id=item.id,
                    user_id=item.user_id,
                    deck_id=item.deck_id,
                    front_text=item.front_text,
                    back_text=item.back_text,
                    repetition_count=s.repetition_count,
                    ease_factor=s.ease_factor,
                    interval_days=s.interval_days,
                    last_reviewed_at=_utc_or_none(s.last_reviewed_at),
                    due_date=_utc_or_none(s.due_date),
                )
            )
        return item

    # -- reads ---------------------------------------------------------------

    def get_item(self, item_id: str) -> Item | None:
        with session_scope(self.session_factory) as session:
            row = session.get(ItemRow, item_id)
            return _item_from_row(row) if row else None

    def get_items(self, user_id: str, deck_id: str | None = None) -> list[Item]:
        stmt = select(ItemRow).where(ItemRow.user_id == user_id)
        if deck_id is not None:
            stmt = stmt.where(ItemRow.deck_id == deck_id)
        with session_scope(self.session_factory) as session:
            return [_item_from_row(row) for row in session.scalars(stmt.order_by(ItemRow.id))]

    def get_deck(self, deck_id: str) -> Deck | None:
        with session_scope(self.session_factory) as session:
            row = session.get(DeckRow, deck_id)
            return Deck(id=row.id, user_id=row.user_id, name=row.name or "") if row else None

    def get_item_review_events(self, item_id: str) -> list[ReviewEvent]:
        stmt = (
            select(ReviewEventRow)
            .where(ReviewEventRow.item_id == item_id)
            .order_by(ReviewEventRow.reviewed_at, ReviewEventRow.id)
        )
        with session_scope(self.session_factory) as session:
            return [_event_from_row(row) for row in session.scalars(stmt)]

    def get_user_review_events(
        self, user_id: str, since: datetime, limit: int | None = None
    ) -> list[ReviewEvent]:
        stmt = (
            select(ReviewEventRow)
            .where(ReviewEventRow.user_id == user_id)
            .where(ReviewEventRow.reviewed_at >= ensure_utc(since))
            .order_by(ReviewEventRow.reviewed_at.desc(), ReviewEventRow.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(max(0, limit))
        with session_scope(self.session_factory) as session:
            events = [_event_from_row(row) for row in session.scalars(stmt)]
        events.reverse()
        return events

    def get_mastery_report(self, user_id: str) -> MasteryReport | None:
        with session_scope(self.session_factory) as session:
            row = session.get(ConceptMasteryReportRow, user_id)
            if row is None:
                return None
            return MasteryReport(
                user_id=row.user_id,
                concepts=[ConceptMastery.from_dict(c) for c in row.concepts or []],
                calculated_at=ensure_utc(row.calculated_at),
                deck_id=row.deck_id,
            )

    def get_streak_state(self, user_id: str) -> StreakState | None:
        with session_scope(self.session_factory) as session:
            row = session.get(StudyStreakRow, user_id)
            return _streak_from_row(row) if row else None

    def list_streak_states(self) -> list[tuple[str, StreakState]]:
        with session_scope(self.session_factory) as session:
            rows = session.scalars(select(StudyStreakRow).order_by(StudyStreakRow.user_id))
            return [(row.user_id, _streak_from_row(row)) for row in rows]

    # -- writes --------------------------------------------------------------

    def save_item_state(self, item_id: str, state: ItemSchedulingState) -> None:
        with session_scope(self.session_factory) as session:
            row = session.get(ItemRow, item_id)
            if row is None:
                logger.warning(f"Item {item_id} not found while saving scheduling state")
                return
            row.repetition_count = state.repetition_count
            row.ease_factor = state.ease_factor
            row.interval_days = state.interval_days
            row.last_reviewed_at = _utc_or_none(state.last_reviewed_at)
            row.due_date = _utc_or_none(state.due_date)

    def append_review_event(self, event: ReviewEvent) -> None:
        with session_scope(self.session_factory) as session:
            session.add(
                ReviewEventRow(
                    item_id=event.item_id,
                    user_id=event.user_id,
                    reviewed_at=ensure_utc(event.timestamp),
                    quality=event.quality,
                    was_successful=event.was_successful,
                    response_time_ms=event.response_time_ms,
                    ease_factor_before=event.ease_factor_before,
                )
            )

    def replace_mastery_report(self, report: MasteryReport) -> None:
        with session_scope(self.session_factory) as session:
            session.execute(
                delete(ConceptMasteryReportRow).where(
                    ConceptMasteryReportRow.user_id == report.user_id
                )
            )
            session.add(
                ConceptMasteryReportRow(
                    user_id=report.user_id,
                    deck_id=report.deck_id,
                    concepts=[c.to_dict() for c in report.concepts],
                    distribution=report.distribution,
                    average_mastery=report.average_mastery,
                    total_concepts=report.concepts_analyzed,
                    calculated_at=ensure_utc(report.calculated_at),
                )
            )

    def update_streak_state(self, user_id: str, transition: StreakTransition) -> StreakState:
        with self._streak_locks.hold(user_id):
            with session_scope(self.session_factory) as session:
                row = session.scalars(
                    select(StudyStreakRow)
                    .where(StudyStreakRow.user_id == user_id)
                    .with_for_update()
                ).first()
                current = _streak_from_row(row) if row else None
                new_state = transition(current)
                if row is None:
                    row = StudyStreakRow(user_id=user_id)
                    session.add(row)
                _apply_streak(row, new_state)
                return new_state
