from __future__ import annotations  # Practice streak and achievement grants

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel

from storage.achievements import grant_achievement
from storage.feedback import best_feedback_score
from storage.interviews import count_completed_interviews
from storage.users import StreakRecord, get_user, update_streak


logger = logging.getLogger(__name__)


class AchievementType(BaseModel):  # Catalogue entry shown to the user
    id: str
    title: str
    description: str
    icon: str


ACHIEVEMENT_TYPES: Dict[str, AchievementType] = {
    item.id: item
    for item in (
        AchievementType(id="first_interview", title="First Steps", description="Completed your first mock interview", icon="trophy"),
        AchievementType(id="five_interviews", title="Getting Serious", description="Completed 5 mock interviews", icon="fire"),
        AchievementType(id="ten_interviews", title="Interview Pro", description="Completed 10 mock interviews", icon="star"),
        AchievementType(id="score_70", title="Good Performance", description="Scored 70+ in an interview", icon="medal"),
        AchievementType(id="score_85", title="Excellent", description="Scored 85+ in an interview", icon="gem"),
        AchievementType(id="score_95", title="Near Perfect", description="Scored 95+ in an interview", icon="crown"),
        AchievementType(id="streak_3", title="Consistent", description="Practiced 3 days in a row", icon="flame"),
        AchievementType(id="streak_7", title="Dedicated", description="Practiced 7 days in a row", icon="rocket"),
        AchievementType(id="streak_30", title="Unstoppable", description="Practiced 30 days in a row", icon="lightning"),
    )
}


class UserAggregates(BaseModel):  # Up-to-date totals the thresholds are checked against
    completed_count: int = 0
    best_score: Optional[float] = None
    current_streak: int = 0


THRESHOLDS: List[Tuple[str, Callable[[UserAggregates], bool]]] = [
    ("first_interview", lambda agg: agg.completed_count >= 1),
    ("five_interviews", lambda agg: agg.completed_count >= 5),
    ("ten_interviews", lambda agg: agg.completed_count >= 10),
    ("score_70", lambda agg: agg.best_score is not None and agg.best_score >= 70),
    ("score_85", lambda agg: agg.best_score is not None and agg.best_score >= 85),
    ("score_95", lambda agg: agg.best_score is not None and agg.best_score >= 95),
    ("streak_3", lambda agg: agg.current_streak >= 3),
    ("streak_7", lambda agg: agg.current_streak >= 7),
    ("streak_30", lambda agg: agg.current_streak >= 30),
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _calendar_gap(last: str, now: datetime) -> int:
    previous = datetime.fromisoformat(last)
    if previous.tzinfo is None:
        previous = previous.replace(tzinfo=timezone.utc)
    if now.tzinfo is not None:
        previous = previous.astimezone(now.tzinfo)
    else:
        previous = previous.replace(tzinfo=None)
    return (now.date() - previous.date()).days


def next_streak(streak: StreakRecord, now: datetime) -> StreakRecord:
    """Advance a streak for an interview completed at ``now``.

    Same calendar day leaves the streak untouched; the next day extends it;
    any larger gap, or no prior interview, restarts it at 1.
    """

    if streak.last_interview_date:
        gap = _calendar_gap(streak.last_interview_date, now)
        if gap <= 0:
            return streak
        current = streak.current + 1 if gap == 1 else 1
    else:
        current = 1
    return StreakRecord(
        current=current,
        longest=max(streak.longest, current),
        last_interview_date=now.isoformat(),
    )


def record_completion(user_id: str, *, now: Optional[datetime] = None) -> StreakRecord:  # Persist the streak update
    user = get_user(user_id)
    if user is None:
        raise KeyError(f"Unknown user '{user_id}'")
    updated = next_streak(user.streak, now or _utcnow())
    if updated != user.streak:
        update_streak(user_id, updated)
    return updated


def qualifying_achievements(aggregates: UserAggregates) -> List[AchievementType]:
    return [ACHIEVEMENT_TYPES[key] for key, predicate in THRESHOLDS if predicate(aggregates)]


def grant_new_achievements(user_id: str, aggregates: UserAggregates) -> List[AchievementType]:
    """Insert every qualifying grant; report only the ones created by this call."""

    granted: List[AchievementType] = []
    for achievement in qualifying_achievements(aggregates):
        if grant_achievement(user_id, achievement.id):
            granted.append(achievement)
    return granted


def evaluate_completed_session(user_id: str, *, now: Optional[datetime] = None) -> List[AchievementType]:
    """Update the streak, then grant any newly earned achievements."""

    streak = record_completion(user_id, now=now)
    aggregates = UserAggregates(
        completed_count=count_completed_interviews(user_id),
        best_score=best_feedback_score(user_id),
        current_streak=streak.current,
    )
    granted = grant_new_achievements(user_id, aggregates)
    if granted:
        logger.info("Granted achievements user=%s ids=%s", user_id, [item.id for item in granted])
    return granted
