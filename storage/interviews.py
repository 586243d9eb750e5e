"""Persistence helpers for interview records."""
from __future__ import annotations

import json
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from .sqlite import get_conn, utc_now

InterviewStatus = Literal["in-progress", "completed", "abandoned"]


class InterviewRecord(BaseModel):
    interview_id: str
    user_id: str
    status: InterviewStatus
    config: Dict[str, Any]
    transcript: List[Dict[str, Any]] = Field(default_factory=list)
    questions_asked: int = 0
    started_at: str
    ended_at: Optional[str] = None
    actual_duration: float = 0.0


class InterviewUpdatePayload(BaseModel):
    status: InterviewStatus
    transcript: List[Dict[str, Any]]
    questions_asked: int = Field(ge=0)
    actual_duration: float = Field(ge=0.0)


def _row_to_interview(row) -> InterviewRecord:
    return InterviewRecord(
        interview_id=row["interview_id"],
        user_id=row["user_id"],
        status=row["status"],
        config=json.loads(row["config_json"]),
        transcript=json.loads(row["transcript_json"]),
        questions_asked=row["questions_asked"],
        started_at=row["started_at"],
        ended_at=row["ended_at"],
        actual_duration=row["actual_duration"],
    )


def create_interview(*, user_id: str, config: Dict[str, Any]) -> InterviewRecord:
    """Insert an in-progress interview record."""

    record = InterviewRecord(
        interview_id=uuid4().hex,
        user_id=user_id,
        status="in-progress",
        config=config,
        started_at=utc_now(),
    )
    with get_conn() as conn:
        conn.execute(
            """INSERT INTO interviews
               (interview_id, user_id, status, config_json, transcript_json, questions_asked, started_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                record.interview_id,
                record.user_id,
                record.status,
                json.dumps(record.config),
                "[]",
                0,
                record.started_at,
            ),
        )
    return record


def update_interview(interview_id: str, **data: Any) -> None:
    """Write a terminal snapshot (status, transcript, counters, end time)."""

    payload = InterviewUpdatePayload(**data)
    with get_conn() as conn:
        cur = conn.execute(
            """UPDATE interviews
               SET status = ?, transcript_json = ?, questions_asked = ?, actual_duration = ?, ended_at = ?
               WHERE interview_id = ?""",
            (
                payload.status,
                json.dumps(payload.transcript),
                payload.questions_asked,
                payload.actual_duration,
                utc_now(),
                interview_id,
            ),
        )
        if cur.rowcount == 0:
            raise KeyError(f"Unknown interview '{interview_id}'")


def get_interview(interview_id: str, *, user_id: Optional[str] = None) -> Optional[InterviewRecord]:
    query = "SELECT * FROM interviews WHERE interview_id = ?"
    params: list[Any] = [interview_id]
    if user_id is not None:
        query += " AND user_id = ?"
        params.append(user_id)
    with get_conn() as conn:
        row = conn.execute(query, params).fetchone()
    return _row_to_interview(row) if row else None


def list_interviews(
    user_id: str,
    *,
    status: Optional[InterviewStatus] = None,
    limit: int = 20,
) -> List[InterviewRecord]:
    query = "SELECT * FROM interviews WHERE user_id = ?"
    params: list[Any] = [user_id]
    if status is not None:
        query += " AND status = ?"
        params.append(status)
    query += " ORDER BY started_at DESC, rowid DESC LIMIT ?"
    params.append(limit)
    with get_conn() as conn:
        rows = conn.execute(query, params).fetchall()
    return [_row_to_interview(row) for row in rows]


def count_completed_interviews(user_id: str) -> int:
    with get_conn() as conn:
        row = conn.execute(
            "SELECT COUNT(*) FROM interviews WHERE user_id = ? AND status = 'completed'",
            (user_id,),
        ).fetchone()
    return int(row[0])
