"""
TTL cache for per-user statistics.

An optimization only: entries expire at their TTL, carry a version stamp
so a format change invalidates them, and every cached service call
accepts force_refresh to bypass them.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from loguru import logger

from recall.core.clock import Clock, SystemClock

CACHE_VERSION = 1

# Default TTLs (seconds)
TTL_RETENTION = 15 * 60
TTL_MASTERY = 10 * 60
TTL_STREAK_STATS = 5 * 60

GLOBAL_SCOPE = "__global__"


def retention_key(days: int) -> str:
    return f"retention_rate_{days}d"


def mastery_key(deck_id: str | None) -> str:
    return f"concept_mastery_{deck_id or 'all'}"


STREAK_STATS_KEY = "streak_stats"


@dataclass
class CacheEntry:
    value: Any
    computed_at: datetime
    expires_at: datetime
    version: int = CACHE_VERSION


class StatsCache:
    """In-process TTL cache keyed by (user, key)."""

    def __init__(self, clock: Clock | None = None):
        self.clock = clock or SystemClock()
        self._entries: dict[tuple[str, str], CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str, key: str) -> Any | None:
        """Cached value, or None if missing, expired, or from an older version."""
        now = self.clock.now()
        with self._lock:
            entry = self._entries.get((user_id, key))
        if entry is None:
            return None
        if entry.expires_at <= now or entry.version != CACHE_VERSION:
            return None
        return entry.value

    def set(self, user_id: str, key: str, value: Any, ttl_seconds: float) -> None:
        now = self.clock.now()
        with self._lock:
            self._entries[(user_id, key)] = CacheEntry(
                value=value,
                computed_at=now,
                expires_at=now + timedelta(seconds=ttl_seconds),
            )

    def invalidate(self, user_id: str, key: str) -> None:
        with self._lock:
            self._entries.pop((user_id, key), None)

    def invalidate_user(self, user_id: str) -> int:
        """Drop every entry for a user. Returns the number removed."""
        with self._lock:
            keys = [k for k in self._entries if k[0] == user_id]
            for k in keys:
                del self._entries[k]
        if keys:
            logger.debug(f"Invalidated {len(keys)} cache entries for {user_id}")
        return len(keys)

    def purge_expired(self) -> int:
        """Remove expired entries. Returns the number removed."""
        now = self.clock.now()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.expires_at <= now]
            for k in expired:
                del self._entries[k]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
