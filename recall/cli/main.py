"""
Typer CLI for the recall scheduling core.

Commands:
    recall init-db                      - Create the scheduling tables
    recall add-item USER ITEM TEXT      - Add (or replace) an item
    recall review ITEM QUALITY          - Record a review graded 0-5
    recall curve ITEM                   - Show an item's forgetting curve
    recall queue USER                   - Show the prioritized review queue
    recall mastery USER                 - Recalculate concept mastery
    recall retention USER               - Show the retention rate
    recall streak record USER DATE      - Record a study day
    recall streak show USER             - Show the displayed streak
    recall streak leaderboard           - Top streaks
    recall streak stats                 - Aggregate streak statistics
    recall streak audit USER            - Compare stored and derived streaks

Usage:
    recall --help
    recall --database-url sqlite:///study.db init-db
    recall streak record alice 2024-01-10 --timezone Europe/Berlin
"""

from __future__ import annotations

import sys
from collections.abc import Generator
from contextlib import contextmanager
from typing import Optional

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table
from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError

from config import get_settings
from recall.core.errors import RecallError
from recall.core.models import Deck, Item, MasteryCategory
from recall.db.database import build_engine, build_session_factory, init_db
from recall.db.sql_repository import SqlRepository
from recall.study.service import SchedulingService

app = typer.Typer(
    help="recall: spaced-repetition scheduling, concept mastery, and study streaks",
    no_args_is_help=True,
)
streak_app = typer.Typer(help="Study streaks (record, show, leaderboard)")
app.add_typer(streak_app, name="streak")

console = Console()


# ========================================
# Logging
# ========================================


def configure_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Route loguru output to stderr, plus an optional rotating file."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if log_file:
        logger.add(log_file, level="DEBUG", rotation="10 MB", retention=5)


# ========================================
# Context Builder (Dependency Injection)
# ========================================


class CLIContext:
    """
    Dependency container for CLI commands.

    The engine is created on first use so --help never touches the database.
    """

    def __init__(self, database_url: str | None = None):
        self.settings = get_settings()
        self.database_url = database_url or self.settings.database_url
        self._engine: Engine | None = None
        self._service: SchedulingService | None = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = build_engine(self.database_url)
        return self._engine

    @property
    def repository(self) -> SqlRepository:
        return self.service.repository

    @property
    def service(self) -> SchedulingService:
        if self._service is None:
            repository = SqlRepository(build_session_factory(self.engine))
            self._service = SchedulingService.from_settings(repository, self.settings)
        return self._service


@contextmanager
def _handle_errors() -> Generator[None, None, None]:
    try:
        yield
    except (RecallError, ValueError) as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)
    except SQLAlchemyError as e:
        logger.debug(f"Database error: {e}")
        rprint(f"[red]Database error:[/red] {e.__class__.__name__}")
        rprint("[yellow]Make sure the tables exist:[/yellow] recall init-db")
        raise typer.Exit(code=1)


def _fmt_days(value: float | None) -> str:
    return "-" if value is None else f"{value:.1f}"


@app.callback()
def main_callback(
    ctx: typer.Context,
    database_url: Optional[str] = typer.Option(
        None,
        "--database-url",
        help="SQLAlchemy URL (defaults to DATABASE_URL / settings)",
    ),
):
    """Spaced-repetition scheduling core."""
    ctx.obj = CLIContext(database_url)


# ========================================
# Database
# ========================================


@app.command("init-db")
def init_db_command(ctx: typer.Context) -> None:
    """
    Create the scheduling tables.

    Safe to run multiple times (idempotent).
    """
    with _handle_errors():
        init_db(ctx.obj.engine)
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# Items and Reviews
# ========================================


@app.command("add-item")
def add_item(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="Owner of the item"),
    item_id: str = typer.Argument(..., help="Item identifier"),
    front_text: str = typer.Argument(..., help="Prompt text"),
    back_text: str = typer.Option("", "--back", help="Answer text"),
    deck_id: Optional[str] = typer.Option(None, "--deck", help="Deck to file the item under"),
) -> None:
    """Add an item, creating its deck if needed."""
    repo = ctx.obj.repository
    with _handle_errors():
        if deck_id is not None:
            deck = repo.get_deck(deck_id)
            if deck is None:
                repo.add_deck(Deck(id=deck_id, user_id=user_id, name=deck_id))
            elif deck.user_id != user_id:
                rprint(f"[red]Error:[/red] deck {deck_id} belongs to another user")
                raise typer.Exit(code=1)
        repo.add_item(
            Item(
                id=item_id,
                user_id=user_id,
                front_text=front_text,
                back_text=back_text,
                deck_id=deck_id,
            )
        )
    rprint(f"[green]✓[/green] Added item {item_id}")


@app.command("review")
def review(
    ctx: typer.Context,
    item_id: str = typer.Argument(..., help="Item identifier"),
    quality: int = typer.Argument(..., min=0, max=5, help="Recall quality 0-5"),
    response_ms: Optional[int] = typer.Option(None, "--response-ms", help="Response time in ms"),
) -> None:
    """Record a review and show the next interval."""
    with _handle_errors():
        outcome = ctx.obj.service.record_review(item_id, quality, response_time_ms=response_ms)

    state = outcome.state
    verdict = "[green]pass[/green]" if outcome.event.was_successful else "[red]fail[/red]"
    rprint(f"{verdict} {item_id}: next review in {state.interval_days} days (ease {state.ease_factor:.2f})")
    if outcome.interval_overridden:
        rprint(f"  [dim]SM-2 suggested {outcome.sm2_interval} days; personal curve applied[/dim]")


@app.command("curve")
def curve(
    ctx: typer.Context,
    item_id: str = typer.Argument(..., help="Item identifier"),
) -> None:
    """Show the personal forgetting curve of an item."""
    with _handle_errors():
        estimate = ctx.obj.service.compute_forgetting_curve(item_id)

    table = Table(title=f"Forgetting Curve: {item_id}", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Reviews", str(estimate.review_count))
    table.add_row("Retention rate", f"{estimate.retention_rate:.3f}")
    table.add_row("Forgetting rate", f"{estimate.forgetting_rate:.3f}")
    table.add_row("Stability", f"{estimate.stability_factor:.2f}")
    table.add_row("Optimal review (days)", f"{estimate.optimal_review_time:.2f}")
    console.print(table)


@app.command("queue")
def queue(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="User identifier"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Maximum items"),
    deck_id: Optional[str] = typer.Option(None, "--deck", help="Restrict to a deck"),
) -> None:
    """Show items ranked by forgetting score."""
    with _handle_errors():
        entries = ctx.obj.service.build_review_queue(user_id, limit=limit, deck_id=deck_id)

    if not entries:
        rprint(f"[yellow]No items for {user_id}[/yellow]")
        return

    table = Table(title=f"Review Queue: {user_id}")
    table.add_column("#", justify="right")
    table.add_column("Item", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Since", justify="right")
    table.add_column("Optimal", justify="right")
    for rank, entry in enumerate(entries, start=1):
        score = "[green]new[/green]" if entry.is_new else f"{entry.score:.3f}"
        table.add_row(
            str(rank),
            entry.item_id,
            score,
            _fmt_days(entry.days_since_last_review),
            _fmt_days(entry.optimal_review_time),
        )
    console.print(table)


# ========================================
# Statistics
# ========================================


@app.command("mastery")
def mastery(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="User identifier"),
    deck_id: Optional[str] = typer.Option(None, "--deck", help="Restrict to a deck"),
    refresh: bool = typer.Option(False, "--refresh", help="Bypass the statistics cache"),
) -> None:
    """Recalculate and show concept mastery."""
    with _handle_errors():
        report = ctx.obj.service.recalculate_mastery(user_id, deck_id=deck_id, force_refresh=refresh)

    if report.average_mastery is None:
        rprint(f"[yellow]No concept has enough reviews yet for {user_id}[/yellow]")
        return

    rprint(
        f"Concepts analyzed: {report.concepts_analyzed} | "
        f"average mastery {report.average_mastery:.3f}"
    )
    table = Table(title="Concept Mastery")
    table.add_column("Concept", style="cyan")
    table.add_column("Mastery", justify="right")
    table.add_column("Reviews", justify="right")
    table.add_column("Trend")
    table.add_column("Category")
    for concept in report.concepts:
        color = concept.mastery_category.color
        table.add_row(
            concept.concept_id,
            f"{concept.mastery_level:.3f}",
            str(concept.review_count),
            concept.difficulty_trend.value,
            f"[{color}]{concept.mastery_category.value}[/{color}]",
        )
    console.print(table)

    dist = report.distribution
    rprint(
        " | ".join(
            f"{category.value}: {dist.get(category.value, 0)}" for category in MasteryCategory
        )
    )


@app.command("retention")
def retention(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="User identifier"),
    days: Optional[int] = typer.Option(None, "--days", "-d", help="Trailing window in days"),
    refresh: bool = typer.Option(False, "--refresh", help="Bypass the statistics cache"),
) -> None:
    """Show the retention rate over a trailing window."""
    service = ctx.obj.service
    window = service.retention_window_days if days is None else days
    with _handle_errors():
        summary = service.retention_rate(user_id, days=window, force_refresh=refresh)

    if summary.rate is None:
        rprint(f"[yellow]No reviews in the last {window} days[/yellow]")
        return
    method = "ease-weighted" if summary.weighted else "plain"
    rprint(
        f"Retention ({window}d): [bold]{summary.rate:.1f}%[/bold] "
        f"({summary.successful_reviews}/{summary.total_reviews} reviews, {method})"
    )


# ========================================
# Streaks
# ========================================


@streak_app.command("record")
def streak_record(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="User identifier"),
    study_date: str = typer.Argument(..., help="User-local date, YYYY-MM-DD"),
    timezone: Optional[str] = typer.Option(None, "--timezone", "--tz", help="IANA timezone"),
) -> None:
    """Record a completed study session."""
    with _handle_errors():
        update = ctx.obj.service.record_study_day(user_id, study_date, timezone)

    rprint(
        f"Streak {update.event.value}: current {update.current_streak}, "
        f"longest {update.longest_streak}"
    )
    if update.is_new_milestone:
        rprint(f"[green]Milestone reached: {update.milestone} days![/green]")


@streak_app.command("show")
def streak_show(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="User identifier"),
    today: Optional[str] = typer.Option(None, "--today", help="User-local date, YYYY-MM-DD"),
) -> None:
    """Show the displayed streak (stale streaks read as 0)."""
    with _handle_errors():
        shown = ctx.obj.service.get_displayed_streak(user_id, today)

    status = "[green]active[/green]" if shown.is_active else "[dim]inactive[/dim]"
    rprint(f"Current streak: {shown.current_streak} ({status})")
    rprint(f"Longest streak: {shown.longest_streak}")
    rprint(f"Total study days: {shown.total_study_days}")
    if shown.milestones_reached:
        rprint(f"Milestones: {', '.join(str(m) for m in shown.milestones_reached)}")


@streak_app.command("leaderboard")
def streak_leaderboard(
    ctx: typer.Context,
    by: str = typer.Option("current", "--by", help="current or longest"),
    limit: int = typer.Option(10, "--limit", "-n", help="Number of entries"),
) -> None:
    """Show the top streaks."""
    with _handle_errors():
        entries = ctx.obj.service.streak_leaderboard(limit=limit, by=by)

    table = Table(title=f"Streak Leaderboard ({by})")
    table.add_column("#", justify="right")
    table.add_column("User", style="cyan")
    table.add_column("Current", justify="right")
    table.add_column("Longest", justify="right")
    for rank, entry in enumerate(entries, start=1):
        table.add_row(
            str(rank),
            entry["user_id"],
            str(entry["current_streak"]),
            str(entry["longest_streak"]),
        )
    console.print(table)


@streak_app.command("stats")
def streak_stats(
    ctx: typer.Context,
    refresh: bool = typer.Option(False, "--refresh", help="Bypass the statistics cache"),
) -> None:
    """Show aggregate streak statistics."""
    with _handle_errors():
        stats = ctx.obj.service.streak_stats(force_refresh=refresh)

    table = Table(title="Streak Statistics", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in stats.items():
        table.add_row(key.replace("_", " "), str(value))
    console.print(table)


@streak_app.command("audit")
def streak_audit(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="User identifier"),
    today: Optional[str] = typer.Option(None, "--today", help="User-local date, YYYY-MM-DD"),
    timezone: Optional[str] = typer.Option(None, "--timezone", "--tz", help="IANA timezone"),
) -> None:
    """Compare the stored streak with one derived from review history."""
    with _handle_errors():
        audit = ctx.obj.service.audit_streak(user_id, today=today, timezone=timezone)

    marker = "[green][OK][/green]" if audit["consistent"] else "[red][!][/red]"
    rprint(
        f"{marker} stored {audit['stored_current']} (longest {audit['stored_longest']}) | "
        f"derived {audit['derived_current']} (longest {audit['derived_longest']})"
    )


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)
    app()


if __name__ == "__main__":
    main()
