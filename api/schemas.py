"""Pydantic schemas for the interview API."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Frame(BaseModel):
    event: str
    data: Optional[Dict[str, Any]] = None


class HealthResp(BaseModel):
    status: str = "ok"
    live_sessions: int = 0


class InterviewSummary(BaseModel):
    interview_id: str
    status: str
    role: str
    type: str
    duration: int
    questions_asked: int
    actual_duration: float
    started_at: str
    ended_at: Optional[str] = None


class FeedbackResp(BaseModel):
    feedback_id: str
    interview_id: str
    overall_score: float
    grade: str
    category_scores: Dict[str, float]
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    question_feedback: List[Dict[str, Any]] = Field(default_factory=list)
    overall_feedback: str = ""
    created_at: str


class InterviewDetail(InterviewSummary):
    config: Dict[str, Any]
    transcript: List[Dict[str, Any]] = Field(default_factory=list)
    feedback: Optional[FeedbackResp] = None


class AchievementResp(BaseModel):
    id: str
    title: str
    description: str
    icon: str
    unlocked_at: str
