"""
Configuration settings for the recall scheduling core.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///recall_state.db",
        description="SQLAlchemy connection string (SQLite or PostgreSQL)",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file path (rotated at 10 MB)",
    )

    # ========================================
    # Forgetting Curve
    # ========================================
    max_review_interval_days: float = Field(
        default=180.0,
        description="Upper clamp for the optimal review time",
    )
    forgetting_curve_override: bool = Field(
        default=True,
        description="Replace the SM-2 interval with the personal optimal review time",
    )

    # ========================================
    # Mastery Tracking
    # ========================================
    mastery_window_days: int = Field(
        default=30,
        description="Trailing window of review events used for concept mastery",
    )
    mastery_event_limit: int = Field(
        default=1000,
        description="Maximum number of events read for one recalculation",
    )
    mastery_min_reviews: int = Field(
        default=5,
        description="Concepts with fewer reviews are skipped",
    )

    # ========================================
    # Retention
    # ========================================
    retention_window_days: int = Field(
        default=30,
        description="Default trailing window for the retention rate",
    )
    retention_weighted_min_events: int = Field(
        default=10,
        description="Minimum sample size before ease-weighted retention is used",
    )

    # ========================================
    # Streaks
    # ========================================
    streak_grace_days: int = Field(
        default=1,
        description="Tolerance (days) for a last study date ahead of today on the displayed streak",
    )
    default_timezone: str = Field(
        default="UTC",
        description="IANA timezone used when deriving study days from review timestamps",
    )

    # ========================================
    # Review Queue
    # ========================================
    review_queue_limit: int = Field(
        default=20,
        description="Default number of items returned by the review queue",
    )

    # ========================================
    # Statistics Cache (seconds)
    # ========================================
    cache_ttl_retention: int = Field(default=900, description="Retention rate TTL")
    cache_ttl_mastery: int = Field(default=600, description="Concept mastery report TTL")
    cache_ttl_streak_stats: int = Field(default=300, description="Streak statistics TTL")

    def get_scheduling_config(self) -> dict[str, Any]:
        """Get algorithm configuration as a dictionary."""
        return {
            "forgetting": {
                "max_interval_days": self.max_review_interval_days,
                "override_sm2": self.forgetting_curve_override,
            },
            "mastery": {
                "window_days": self.mastery_window_days,
                "event_limit": self.mastery_event_limit,
                "min_reviews": self.mastery_min_reviews,
            },
            "retention": {
                "window_days": self.retention_window_days,
                "weighted_min_events": self.retention_weighted_min_events,
            },
            "streaks": {
                "grace_days": self.streak_grace_days,
                "default_timezone": self.default_timezone,
            },
            "queue_limit": self.review_queue_limit,
            "cache_ttl": {
                "retention": self.cache_ttl_retention,
                "mastery": self.cache_ttl_mastery,
                "streak_stats": self.cache_ttl_streak_stats,
            },
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
