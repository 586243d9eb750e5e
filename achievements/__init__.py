from __future__ import annotations  # Re-export achievements public API

from .achievements import (  # noqa: F401
    ACHIEVEMENT_TYPES,
    THRESHOLDS,
    AchievementType,
    UserAggregates,
    evaluate_completed_session,
    grant_new_achievements,
    next_streak,
    qualifying_achievements,
    record_completion,
)

__all__ = [
    "ACHIEVEMENT_TYPES",
    "THRESHOLDS",
    "AchievementType",
    "UserAggregates",
    "evaluate_completed_session",
    "grant_new_achievements",
    "next_streak",
    "qualifying_achievements",
    "record_completion",
]
