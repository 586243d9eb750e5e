"""Persistence helpers for users and their practice streak."""
from __future__ import annotations

import json
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from .sqlite import get_conn, utc_now


class StreakRecord(BaseModel):
    current: int = Field(default=0, ge=0)
    longest: int = Field(default=0, ge=0)
    last_interview_date: Optional[str] = None


class UserRecord(BaseModel):
    user_id: str
    name: str
    email: str
    streak: StreakRecord = Field(default_factory=StreakRecord)
    last_interview_config: Optional[Dict[str, Any]] = None
    created_at: str


def _row_to_user(row) -> UserRecord:
    config = row["last_interview_config"]
    return UserRecord(
        user_id=row["user_id"],
        name=row["name"],
        email=row["email"],
        streak=StreakRecord(
            current=row["streak_current"],
            longest=row["streak_longest"],
            last_interview_date=row["streak_last_date"],
        ),
        last_interview_config=json.loads(config) if config else None,
        created_at=row["created_at"],
    )


def create_user(*, name: str, email: str, user_id: Optional[str] = None) -> UserRecord:
    """Insert a user row and return the stored record."""

    record = UserRecord(
        user_id=user_id or uuid4().hex,
        name=name,
        email=email.strip().lower(),
        created_at=utc_now(),
    )
    with get_conn() as conn:
        conn.execute(
            """INSERT INTO users (user_id, name, email, created_at)
               VALUES (?, ?, ?, ?)""",
            (record.user_id, record.name, record.email, record.created_at),
        )
    return record


def get_user(user_id: str) -> Optional[UserRecord]:
    with get_conn() as conn:
        row = conn.execute("SELECT * FROM users WHERE user_id = ?", (user_id,)).fetchone()
    return _row_to_user(row) if row else None


def save_last_interview_config(user_id: str, config: Dict[str, Any]) -> None:
    """Remember the most recent interview setup for prefilling the next one."""

    with get_conn() as conn:
        conn.execute(
            "UPDATE users SET last_interview_config = ? WHERE user_id = ?",
            (json.dumps(config), user_id),
        )


def update_streak(user_id: str, streak: StreakRecord) -> None:
    with get_conn() as conn:
        cur = conn.execute(
            """UPDATE users
               SET streak_current = ?, streak_longest = ?, streak_last_date = ?
               WHERE user_id = ?""",
            (streak.current, streak.longest, streak.last_interview_date, user_id),
        )
        if cur.rowcount == 0:
            raise KeyError(f"Unknown user '{user_id}'")
