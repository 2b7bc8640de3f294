"""
Integration tests for SqlRepository on in-memory SQLite.
"""

from datetime import date, timedelta, timezone

import pytest

from recall.core.models import (
    ConceptMastery,
    Deck,
    DifficultyTrend,
    ItemSchedulingState,
    MasteryCategory,
    MasteryReport,
    StreakState,
)
from recall.db.database import build_engine, build_session_factory, init_db
from recall.db.sql_repository import SqlRepository
from recall.study.service import SchedulingService
from recall.study.streaks import apply_transition


@pytest.fixture
def sql_repo():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield SqlRepository(build_session_factory(engine))
    engine.dispose()


def _concept(concept_id: str, level: float) -> ConceptMastery:
    return ConceptMastery(
        concept_id=concept_id,
        mastery_level=level,
        confidence_level=1.0,
        review_count=6,
        success_rate=level,
        average_response_time=0.0,
        difficulty_trend=DifficultyTrend.STABLE,
        mastery_category=MasteryCategory.from_level(level),
        learning_velocity=0.1,
        item_ids=("i1",),
    )


class TestItems:
    def test_round_trip(self, sql_repo, make_item, now):
        sql_repo.add_deck(Deck(id="deck-1", user_id="user-1", name="Networking"))
        sql_repo.add_item(
            make_item(deck_id="deck-1", repetitions=2, ease=2.36, interval=6, last_reviewed_at=now)
        )

        item = sql_repo.get_item("item-1")

        assert item.deck_id == "deck-1"
        assert item.scheduling == ItemSchedulingState(
            repetition_count=2, ease_factor=2.36, interval_days=6, last_reviewed_at=now
        )
        assert item.scheduling.last_reviewed_at.tzinfo is not None
        assert sql_repo.get_deck("deck-1").name == "Networking"

    def test_missing(self, sql_repo):
        assert sql_repo.get_item("nope") is None
        assert sql_repo.get_deck("nope") is None

    def test_items_filtered_by_user_and_deck(self, sql_repo, make_item):
        sql_repo.add_deck(Deck(id="deck-1", user_id="user-1"))
        sql_repo.add_item(make_item("a", deck_id="deck-1"))
        sql_repo.add_item(make_item("b"))
        sql_repo.add_item(make_item("c", user_id="user-2"))

        assert [i.id for i in sql_repo.get_items("user-1")] == ["a", "b"]
        assert [i.id for i in sql_repo.get_items("user-1", "deck-1")] == ["a"]

    def test_save_state(self, sql_repo, make_item, now):
        sql_repo.add_item(make_item())
        state = ItemSchedulingState(
            repetition_count=1, ease_factor=2.6, interval_days=1, last_reviewed_at=now
        )

        sql_repo.save_item_state("item-1", state)

        assert sql_repo.get_item("item-1").scheduling == state


class TestReviewEvents:
    def test_item_events_oldest_first(self, sql_repo, make_item, make_event):
        sql_repo.add_item(make_item())
        for days_ago in (1, 5, 3):
            sql_repo.append_review_event(make_event(days_ago=days_ago))

        events = sql_repo.get_item_review_events("item-1")

        assert [e.timestamp for e in events] == sorted(e.timestamp for e in events)
        assert all(e.timestamp.tzinfo is not None for e in events)

    def test_user_events_window_and_limit(self, sql_repo, make_item, make_event, now):
        sql_repo.add_item(make_item())
        for days_ago in range(10):
            sql_repo.append_review_event(make_event(days_ago=days_ago, response_ms=1000 + days_ago))

        window = sql_repo.get_user_review_events("user-1", now - timedelta(days=4.5))
        latest = sql_repo.get_user_review_events("user-1", now - timedelta(days=30), limit=3)

        assert len(window) == 5
        assert [e.response_time_ms for e in latest] == [1002, 1001, 1000]

    def test_event_fields_preserved(self, sql_repo, make_item, make_event):
        sql_repo.add_item(make_item())
        event = make_event(success=False, quality=2, ease=1.9, response_ms=3200)

        sql_repo.append_review_event(event)

        assert sql_repo.get_item_review_events("item-1") == [event]


class TestMasteryReports:
    def test_replace(self, sql_repo, now):
        sql_repo.replace_mastery_report(
            MasteryReport("user-1", [_concept("subnet", 0.9), _concept("vlans", 0.5)], now)
        )
        sql_repo.replace_mastery_report(
            MasteryReport("user-1", [_concept("ospf", 0.7)], now + timedelta(hours=1), "deck-1")
        )

        report = sql_repo.get_mastery_report("user-1")

        assert [c.concept_id for c in report.concepts] == ["ospf"]
        assert report.deck_id == "deck-1"
        assert report.calculated_at == now + timedelta(hours=1)

    def test_missing(self, sql_repo):
        assert sql_repo.get_mastery_report("user-1") is None


class TestStreaks:
    def test_create_and_update(self, sql_repo):
        created = sql_repo.update_streak_state(
            "user-1", lambda s: apply_transition(s, date(2024, 1, 10), "Europe/Berlin")[0]
        )
        updated = sql_repo.update_streak_state(
            "user-1", lambda s: apply_transition(s, date(2024, 1, 11))[0]
        )

        stored = sql_repo.get_streak_state("user-1")
        assert created.current_streak == 1
        assert updated == stored
        assert stored.current_streak == 2
        assert stored.timezone == "Europe/Berlin"

    def test_milestones_persist(self, sql_repo):
        state = StreakState(
            current_streak=6,
            longest_streak=6,
            last_study_date=date(2024, 1, 9),
            streak_start_date=date(2024, 1, 4),
            total_study_days=6,
        )
        sql_repo.update_streak_state("user-1", lambda _: state)
        sql_repo.update_streak_state(
            "user-1", lambda s: apply_transition(s, date(2024, 1, 10))[0]
        )

        stored = sql_repo.get_streak_state("user-1")
        assert stored.milestones_reached == frozenset({7})
        assert stored.last_milestone == 7

    def test_list(self, sql_repo):
        for user in ("bob", "alice"):
            sql_repo.update_streak_state(user, lambda s: apply_transition(s, date(2024, 1, 10))[0])

        assert [u for u, _ in sql_repo.list_streak_states()] == ["alice", "bob"]

    def test_failed_transition_rolls_back(self, sql_repo):
        def boom(_):
            raise RuntimeError("transition failed")

        with pytest.raises(RuntimeError):
            sql_repo.update_streak_state("user-1", boom)

        assert sql_repo.get_streak_state("user-1") is None


class TestServiceOverSql:
    def test_review_flow(self, sql_repo, clock, make_item):
        service = SchedulingService(sql_repo, clock=clock)
        sql_repo.add_item(make_item())

        for quality in (5, 5, 5):
            service.record_review("item-1", quality)
            clock.advance(days=1)

        item = sql_repo.get_item("item-1")
        assert item.repetition_count == 3
        assert len(sql_repo.get_item_review_events("item-1")) == 3
        assert service.retention_rate("user-1").rate == 100.0
        assert service.build_review_queue("user-1")[0].item_id == "item-1"

    def test_streak_flow(self, sql_repo, clock):
        service = SchedulingService(sql_repo, clock=clock)

        service.record_study_day("user-1", "2024-01-09")
        update = service.record_study_day("user-1", "2024-01-10")

        assert update.current_streak == 2
        assert service.get_displayed_streak("user-1").current_streak == 2


def test_timestamps_normalized_to_utc(sql_repo, make_item, now):
    offset = now.astimezone(timezone(timedelta(hours=5)))
    sql_repo.add_item(make_item(last_reviewed_at=offset))
    assert sql_repo.get_item("item-1").scheduling.last_reviewed_at == now
