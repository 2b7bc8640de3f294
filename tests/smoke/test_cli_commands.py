"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import pytest
from typer.testing import CliRunner

from recall.cli.main import app

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

runner = CliRunner()


@pytest.fixture
def db_args(tmp_path):
    """Global options pointing the CLI at a fresh SQLite file."""
    return ["--database-url", f"sqlite:///{tmp_path / 'recall.db'}"]


@pytest.fixture
def initialized(db_args):
    result = runner.invoke(app, [*db_args, "init-db"])
    assert result.exit_code == 0, result.output
    return db_args


def invoke(db_args, *args):
    return runner.invoke(app, [*db_args, *args])


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self):
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        assert "init-db" in result.output
        assert "streak" in result.output

    def test_streak_help(self):
        result = runner.invoke(app, ["streak", "--help"])

        assert result.exit_code == 0
        assert "leaderboard" in result.output


class TestDatabase:
    def test_init_db_is_idempotent(self, initialized):
        result = invoke(initialized, "init-db")

        assert result.exit_code == 0
        assert "Database initialized" in result.output

    def test_missing_tables_reported(self, db_args):
        result = invoke(db_args, "curve", "item-1")

        assert result.exit_code == 1
        assert "init-db" in result.output


class TestReviewCommands:
    @pytest.fixture
    def with_item(self, initialized):
        result = invoke(
            initialized, "add-item", "alice", "item-1", "Subnet masks divide networks",
            "--deck", "net",
        )
        assert result.exit_code == 0, result.output
        return initialized

    def test_review_and_curve(self, with_item):
        review = invoke(with_item, "review", "item-1", "5", "--response-ms", "2100")
        curve = invoke(with_item, "curve", "item-1")

        assert review.exit_code == 0, review.output
        assert "next review in 1 days" in review.output
        assert curve.exit_code == 0, curve.output
        assert "Optimal review" in curve.output

    def test_review_rejects_out_of_range_quality(self, with_item):
        result = invoke(with_item, "review", "item-1", "9")
        assert result.exit_code != 0

    def test_unknown_item(self, initialized):
        result = invoke(initialized, "curve", "missing")

        assert result.exit_code == 1
        assert "item not found: missing" in result.output

    def test_queue(self, with_item):
        invoke(with_item, "add-item", "alice", "item-2", "VLAN trunking")
        invoke(with_item, "review", "item-1", "4")

        result = invoke(with_item, "queue", "alice")

        assert result.exit_code == 0, result.output
        assert "item-1" in result.output
        assert "item-2" in result.output

    def test_retention(self, with_item):
        empty = invoke(with_item, "retention", "alice")
        invoke(with_item, "review", "item-1", "5")
        invoke(with_item, "review", "item-1", "1")
        result = invoke(with_item, "retention", "alice", "--days", "7")

        assert "No reviews" in empty.output
        assert result.exit_code == 0, result.output
        assert "50.0%" in result.output

    def test_mastery_without_enough_reviews(self, with_item):
        invoke(with_item, "review", "item-1", "5")

        result = invoke(with_item, "mastery", "alice", "--deck", "net")

        assert result.exit_code == 0, result.output
        assert "No concept has enough reviews" in result.output

    def test_mastery_report(self, with_item):
        for _ in range(5):
            invoke(with_item, "review", "item-1", "5")

        result = invoke(with_item, "mastery", "alice")

        assert result.exit_code == 0, result.output
        assert "Concepts analyzed: 4" in result.output

    def test_mastery_foreign_deck(self, with_item):
        result = invoke(with_item, "mastery", "bob", "--deck", "net")

        assert result.exit_code == 1
        assert "deck not found" in result.output


class TestStreakCommands:
    def test_record_and_show(self, initialized):
        invoke(initialized, "streak", "record", "alice", "2024-01-10")
        record = invoke(initialized, "streak", "record", "alice", "2024-01-11")
        show = invoke(initialized, "streak", "show", "alice", "--today", "2024-01-12")

        assert record.exit_code == 0, record.output
        assert "continued" in record.output
        assert "current 2" in record.output
        assert "Current streak: 2" in show.output

    def test_stale_streak_shows_zero(self, initialized):
        invoke(initialized, "streak", "record", "alice", "2024-01-10")

        result = invoke(initialized, "streak", "show", "alice", "--today", "2024-01-20")

        assert "Current streak: 0" in result.output
        assert "Longest streak: 1" in result.output

    def test_invalid_date(self, initialized):
        result = invoke(initialized, "streak", "record", "alice", "2024-02-30")

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_leaderboard_and_stats(self, initialized):
        invoke(initialized, "streak", "record", "alice", "2024-01-10")
        invoke(initialized, "streak", "record", "bob", "2024-01-10")

        board = invoke(initialized, "streak", "leaderboard", "--by", "longest")
        stats = invoke(initialized, "streak", "stats")

        assert board.exit_code == 0, board.output
        assert "alice" in board.output
        assert stats.exit_code == 0, stats.output
        assert "total active streaks" in stats.output

    def test_leaderboard_bad_ordering(self, initialized):
        result = invoke(initialized, "streak", "leaderboard", "--by", "total")
        assert result.exit_code == 1

    def test_audit(self, initialized):
        invoke(initialized, "streak", "record", "alice", "2024-01-10")

        result = invoke(initialized, "streak", "audit", "alice", "--today", "2024-01-10")

        assert result.exit_code == 0, result.output
        assert "derived 0" in result.output
