"""
Error taxonomy for the scheduling core.

Only missing references and malformed caller input raise. Insufficient
data degrades to documented defaults, and upstream data inconsistencies
are clamped and logged instead of raised.
"""

from __future__ import annotations


class RecallError(Exception):
    """Base class for all scheduling core errors."""


class NotFoundError(RecallError):
    """Raised when a referenced item, deck, or user record is absent."""

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class InvalidDateError(RecallError, ValueError):
    """Raised when a calendar date is not a valid YYYY-MM-DD string."""
