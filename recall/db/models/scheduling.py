"""
Scheduling table models.

Append-only review log plus the derived records the core persists:
- items: per-item SM-2 state
- review_events: immutable review outcomes (system of record)
- concept_mastery_reports: full-replace mastery document per user
- study_streaks: one continuity record per user
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class DeckRow(Base):
    """A user's deck of items."""

    __tablename__ = "decks"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())

    items: Mapped[list[ItemRow]] = relationship(back_populates="deck")


class ItemRow(Base):
    """A learned item and its current SM-2 scheduling state."""

    __tablename__ = "items"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    deck_id: Mapped[str | None] = mapped_column(
        ForeignKey("decks.id", ondelete="CASCADE"), nullable=True, index=True
    )
    front_text: Mapped[str] = mapped_column(Text, nullable=False)
    back_text: Mapped[str] = mapped_column(Text, default="")

    # SM-2 state
    repetition_count: Mapped[int] = mapped_column(Integer, default=0)
    ease_factor: Mapped[float] = mapped_column(Float, default=2.5)
    interval_days: Mapped[int] = mapped_column(Integer, default=0)
    last_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), onupdate=func.now()
    )

    deck: Mapped[DeckRow | None] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return f"<ItemRow id={self.id} ease={self.ease_factor} interval={self.interval_days}>"


class ReviewEventRow(Base):
    """Immutable review outcome. Never updated after insert."""

    __tablename__ = "review_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[str] = mapped_column(
        ForeignKey("items.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    reviewed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    quality: Mapped[int] = mapped_column(Integer, nullable=False)
    was_successful: Mapped[bool] = mapped_column(Boolean, nullable=False)
    response_time_ms: Mapped[int | None] = mapped_column(Integer)
    ease_factor_before: Mapped[float] = mapped_column(Float, nullable=False, default=2.5)

    __table_args__ = (
        Index("idx_review_events_item_time", "item_id", "reviewed_at"),
        Index("idx_review_events_user_time", "user_id", "reviewed_at"),
    )


class ConceptMasteryReportRow(Base):
    """One mastery document per user, replaced wholesale on recalculation."""

    __tablename__ = "concept_mastery_reports"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    deck_id: Mapped[str | None] = mapped_column(String(64))
    concepts: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    distribution: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    average_mastery: Mapped[float | None] = mapped_column(Float)
    total_concepts: Mapped[int] = mapped_column(Integer, default=0)
    calculated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class StudyStreakRow(Base):
    """Per-user study streak. Dates are user-local calendar dates."""

    __tablename__ = "study_streaks"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0)
    last_study_date: Mapped[date | None] = mapped_column(Date)
    streak_start_date: Mapped[date | None] = mapped_column(Date)
    total_study_days: Mapped[int] = mapped_column(Integer, default=0)
    milestones_reached: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    last_milestone: Mapped[int | None] = mapped_column(Integer)
    timezone: Mapped[str | None] = mapped_column(String(64))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_study_streaks_current", "current_streak"),
        Index("idx_study_streaks_longest", "longest_streak"),
    )
