"""Persistence helpers for achievement grants."""
from __future__ import annotations

from typing import List

from pydantic import BaseModel

from .sqlite import get_conn, utc_now


class AchievementRow(BaseModel):
    user_id: str
    achievement_type: str
    unlocked_at: str


def grant_achievement(user_id: str, achievement_type: str) -> bool:
    """Insert the grant unless it already exists; True only when a row was created."""

    with get_conn() as conn:
        cur = conn.execute(
            """INSERT OR IGNORE INTO achievements (user_id, achievement_type, unlocked_at)
               VALUES (?, ?, ?)""",
            (user_id, achievement_type, utc_now()),
        )
        return cur.rowcount == 1


def list_achievements(user_id: str) -> List[AchievementRow]:
    with get_conn() as conn:
        rows = conn.execute(
            """SELECT user_id, achievement_type, unlocked_at
               FROM achievements
               WHERE user_id = ?
               ORDER BY unlocked_at ASC, id ASC""",
            (user_id,),
        ).fetchall()
    return [
        AchievementRow(
            user_id=row["user_id"],
            achievement_type=row["achievement_type"],
            unlocked_at=row["unlocked_at"],
        )
        for row in rows
    ]
