from __future__ import annotations  # Re-export time_phase public API

from .time_phase import (  # noqa: F401
    SUPPORTED_DURATIONS,
    TIME_CONFIG,
    DurationTier,
    Phase,
    elapsed_seconds,
    is_hard_end,
    remaining_seconds,
    tier_for,
    time_phase,
)

__all__ = [
    "SUPPORTED_DURATIONS",
    "TIME_CONFIG",
    "DurationTier",
    "Phase",
    "elapsed_seconds",
    "is_hard_end",
    "remaining_seconds",
    "tier_for",
    "time_phase",
]
