"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from recall.core.clock import FixedClock  # noqa: E402
from recall.core.models import Item, ItemSchedulingState, ReviewEvent  # noqa: E402
from recall.db.repository import InMemoryRepository  # noqa: E402
from recall.study.service import SchedulingService  # noqa: E402

T0 = datetime(2024, 1, 10, 12, 0, tzinfo=UTC)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (service and database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def now():
    """Reference instant shared by the time-dependent tests."""
    return T0


@pytest.fixture
def clock():
    """Deterministic clock starting at the reference instant."""
    return FixedClock(T0)


@pytest.fixture
def repo():
    """Empty in-memory repository."""
    return InMemoryRepository()


@pytest.fixture
def service(repo, clock):
    """Scheduling service over the in-memory repository."""
    return SchedulingService(repo, clock=clock)


@pytest.fixture
def make_event():
    """
    Factory for review events.

    days_ago is measured from the reference instant; quality defaults to
    5 for successes and 1 for failures.
    """

    def _make(
        success: bool = True,
        item_id: str = "item-1",
        user_id: str = "user-1",
        days_ago: float = 0.0,
        ease: float = 2.5,
        response_ms: int | None = None,
        quality: int | None = None,
    ) -> ReviewEvent:
        return ReviewEvent(
            item_id=item_id,
            user_id=user_id,
            timestamp=T0 - timedelta(days=days_ago),
            quality=quality if quality is not None else (5 if success else 1),
            was_successful=success,
            ease_factor_before=ease,
            response_time_ms=response_ms,
        )

    return _make


@pytest.fixture
def make_item():
    """Factory for items with optional scheduling state."""

    def _make(
        item_id: str = "item-1",
        user_id: str = "user-1",
        front: str = "What does a subnet mask divide?",
        back: str = "The network portion from the host portion",
        deck_id: str | None = None,
        repetitions: int = 0,
        ease: float = 2.5,
        interval: int = 0,
        last_reviewed_at: datetime | None = None,
    ) -> Item:
        return Item(
            id=item_id,
            user_id=user_id,
            front_text=front,
            back_text=back,
            deck_id=deck_id,
            scheduling=ItemSchedulingState(
                repetition_count=repetitions,
                ease_factor=ease,
                interval_days=interval,
                last_reviewed_at=last_reviewed_at,
            ),
        )

    return _make
