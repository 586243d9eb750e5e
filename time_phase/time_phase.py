from __future__ import annotations  # Time budget phases for a live interview

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel

Phase = Literal["early", "mid", "wrap-up", "hard-end"]


class DurationTier(BaseModel):  # Pacing thresholds for one session length
    minutes: int
    target_questions: int
    wrap_up_at: int
    hard_end_at: int

    @property
    def total_seconds(self) -> int:
        return self.minutes * 60


TIME_CONFIG: Dict[int, DurationTier] = {
    5: DurationTier(minutes=5, target_questions=4, wrap_up_at=280, hard_end_at=297),
    10: DurationTier(minutes=10, target_questions=6, wrap_up_at=570, hard_end_at=597),
    15: DurationTier(minutes=15, target_questions=8, wrap_up_at=870, hard_end_at=897),
    20: DurationTier(minutes=20, target_questions=10, wrap_up_at=1170, hard_end_at=1197),
}

SUPPORTED_DURATIONS = tuple(sorted(TIME_CONFIG))


def tier_for(duration: int) -> DurationTier:  # Look up the tier or refuse unknown lengths
    tier = TIME_CONFIG.get(duration)
    if tier is None:
        raise ValueError(f"Unsupported interview duration {duration!r}; expected one of {SUPPORTED_DURATIONS}")
    return tier


def _duration_of(config: Any) -> int:
    return int(config if isinstance(config, int) else config.duration)


def time_phase(config: Any, elapsed: float) -> Phase:
    """Map elapsed seconds to a phase; ``config`` is a session config or a bare duration."""

    tier = tier_for(_duration_of(config))
    if elapsed >= tier.hard_end_at:
        return "hard-end"
    if elapsed >= tier.wrap_up_at:
        return "wrap-up"
    if elapsed >= tier.total_seconds * 0.5:
        return "mid"
    return "early"


def is_hard_end(config: Any, elapsed: float) -> bool:
    return time_phase(config, elapsed) == "hard-end"


def elapsed_seconds(
    now: float,
    start: float,
    paused_accumulated: float,
    pause_started_at: Optional[float] = None,
) -> float:
    """Elapsed active time, net of completed and in-progress pauses, never negative."""

    paused = paused_accumulated
    if pause_started_at is not None:
        paused += now - pause_started_at
    return max(0.0, now - start - paused)


def remaining_seconds(config: Any, elapsed: float) -> float:
    return max(0.0, tier_for(_duration_of(config)).total_seconds - elapsed)
