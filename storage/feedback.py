"""Persistence helpers for interview feedback."""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from .sqlite import get_conn, utc_now


class FeedbackPayload(BaseModel):
    interview_id: str
    user_id: str
    overall_score: float = Field(ge=0.0, le=100.0)
    grade: str
    category_scores: Dict[str, float]
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    question_feedback: List[Dict[str, Any]] = Field(default_factory=list)
    overall_feedback: str = ""


class FeedbackRow(FeedbackPayload):
    feedback_id: str
    created_at: str


def _row_to_feedback(row) -> FeedbackRow:
    return FeedbackRow(
        feedback_id=row["feedback_id"],
        interview_id=row["interview_id"],
        user_id=row["user_id"],
        overall_score=row["overall_score"],
        grade=row["grade"],
        category_scores=json.loads(row["category_scores_json"]),
        strengths=json.loads(row["strengths_json"]),
        improvements=json.loads(row["improvements_json"]),
        question_feedback=json.loads(row["question_feedback_json"]),
        overall_feedback=row["overall_feedback"],
        created_at=row["created_at"],
    )


def insert_feedback(**data: Any) -> FeedbackRow:
    """Insert the single feedback row for an interview.

    Raises ``sqlite3.IntegrityError`` when the interview already has feedback.
    """

    payload = FeedbackPayload(**data)
    row = FeedbackRow(feedback_id=uuid4().hex, created_at=utc_now(), **payload.model_dump())
    with get_conn() as conn:
        conn.execute(
            """INSERT INTO feedback
               (feedback_id, interview_id, user_id, overall_score, grade, category_scores_json,
                strengths_json, improvements_json, question_feedback_json, overall_feedback, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                row.feedback_id,
                row.interview_id,
                row.user_id,
                row.overall_score,
                row.grade,
                json.dumps(row.category_scores),
                json.dumps(row.strengths),
                json.dumps(row.improvements),
                json.dumps(row.question_feedback),
                row.overall_feedback,
                row.created_at,
            ),
        )
    return row


def get_feedback(interview_id: str, *, user_id: Optional[str] = None) -> Optional[FeedbackRow]:
    query = "SELECT * FROM feedback WHERE interview_id = ?"
    params: list[Any] = [interview_id]
    if user_id is not None:
        query += " AND user_id = ?"
        params.append(user_id)
    with get_conn() as conn:
        row = conn.execute(query, params).fetchone()
    return _row_to_feedback(row) if row else None


def best_feedback_score(user_id: str) -> Optional[float]:
    """Highest overall score the user has ever received."""

    with get_conn() as conn:
        row = conn.execute(
            "SELECT MAX(overall_score) FROM feedback WHERE user_id = ?",
            (user_id,),
        ).fetchone()
    return None if row[0] is None else float(row[0])
