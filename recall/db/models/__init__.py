# SQLAlchemy models
from .base import Base
from .scheduling import (
    ConceptMasteryReportRow,
    DeckRow,
    ItemRow,
    ReviewEventRow,
    StudyStreakRow,
)

__all__ = [
    # Base
    "Base",
    # Scheduling
    "DeckRow",
    "ItemRow",
    "ReviewEventRow",
    "ConceptMasteryReportRow",
    "StudyStreakRow",
]
