"""
Persistence for the scheduling core.

- models: SQLAlchemy tables (items, review_events, mastery reports, streaks)
- database: Engine and transactional session helpers
- repository: Repository protocol and the in-memory implementation
- sql_repository: SQLAlchemy implementation
"""

from recall.db.repository import InMemoryRepository, Repository

__all__ = ["Repository", "InMemoryRepository"]
