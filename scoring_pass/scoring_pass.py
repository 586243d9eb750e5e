from __future__ import annotations  # Post-session transcript scoring

import logging
import math
from pathlib import Path
from textwrap import dedent
from typing import Any, Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from config import SCORING_ROUTE_KEY, LlmRoute, load_route
from live_session.models import SessionConfig, TranscriptEntry
from llm_gateway import HttpClient, LlmOutputError, call


logger = logging.getLogger(__name__)

Grade = Literal["A+", "A", "B+", "B", "C+", "C", "D", "F"]
VALID_GRADES: tuple[str, ...] = ("A+", "A", "B+", "B", "C+", "C", "D", "F")
DEFAULT_GRADE: Grade = "C"
NEUTRAL_SCORE = 50.0

SCORING_OPTIONS: Dict[str, Any] = {"temperature": 0.3, "max_tokens": 3000}


def clamp_score(value: Any, default: float = NEUTRAL_SCORE) -> float:
    """Coerce to a finite number in [0, 100]; unusable input becomes ``default``."""

    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return min(100.0, max(0.0, number))


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _text_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class CategoryScores(_CamelModel):  # Five category scores, each in [0, 100]
    communication: float = NEUTRAL_SCORE
    technical_accuracy: float = NEUTRAL_SCORE
    confidence: float = NEUTRAL_SCORE
    clarity: float = NEUTRAL_SCORE
    relevance: float = NEUTRAL_SCORE

    @field_validator("*", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> float:
        return clamp_score(value)


class QuestionFeedback(_CamelModel):  # Per-question evaluation
    question: str = ""
    user_answer: str = ""
    score: float = 0.0
    feedback: str = ""
    ideal_answer: str = ""

    @field_validator("score", mode="before")
    @classmethod
    def _clamp_score(cls, value: Any) -> float:
        return clamp_score(value, default=0.0)

    @field_validator("question", "user_answer", "feedback", "ideal_answer", mode="before")
    @classmethod
    def _default_text(cls, value: Any) -> str:
        return _text(value)


class Feedback(_CamelModel):  # Structured evaluation of a completed interview
    overall_score: float = NEUTRAL_SCORE
    grade: Grade = DEFAULT_GRADE
    category_scores: CategoryScores = Field(default_factory=CategoryScores)
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    question_feedback: List[QuestionFeedback] = Field(default_factory=list)
    overall_feedback: str = ""

    @field_validator("overall_score", mode="before")
    @classmethod
    def _clamp_overall(cls, value: Any) -> float:
        return clamp_score(value)

    @field_validator("grade", mode="before")
    @classmethod
    def _coerce_grade(cls, value: Any) -> str:
        if isinstance(value, str) and value.strip().upper() in VALID_GRADES:
            return value.strip().upper()
        return DEFAULT_GRADE

    @field_validator("category_scores", mode="before")
    @classmethod
    def _coerce_categories(cls, value: Any) -> Dict[str, Any]:
        return value if isinstance(value, dict) else {}

    @field_validator("strengths", "improvements", mode="before")
    @classmethod
    def _coerce_lists(cls, value: Any) -> List[str]:
        return _text_list(value)

    @field_validator("question_feedback", mode="before")
    @classmethod
    def _coerce_question_feedback(cls, value: Any) -> List[Dict[str, Any]]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]

    @field_validator("overall_feedback", mode="before")
    @classmethod
    def _coerce_narrative(cls, value: Any) -> str:
        return _text(value)

    def as_client_payload(self) -> Dict[str, Any]:  # camelCase dict for the client
        return self.model_dump(by_alias=True)


def fallback_feedback() -> Feedback:
    """Low-confidence record used when the scorer's output is unusable."""

    return Feedback(
        overall_score=NEUTRAL_SCORE,
        grade="C",
        category_scores=CategoryScores(),
        strengths=["Completed the interview"],
        improvements=["Could not generate detailed feedback"],
        question_feedback=[],
        overall_feedback="Detailed feedback could not be generated for this interview. Please try again.",
    )


def format_transcript(transcript: Sequence[TranscriptEntry]) -> str:
    return "\n".join(
        f"{'Interviewer' if entry.speaker == 'ai' else 'Candidate'}: {entry.text}" for entry in transcript
    )


def _build_task(config: SessionConfig, transcript: Sequence[TranscriptEntry]) -> str:  # Compose scoring prompt
    return dedent(
        f"""
        You are an expert interview evaluator. Analyze the following {config.type} interview transcript for a {config.role} position ({config.difficulty} difficulty, {config.experience_level} level).

        TRANSCRIPT:
        {{transcript}}

        Provide a detailed, honest evaluation. Be specific with examples from the transcript. Reference actual things the candidate said.

        Respond with ONLY a JSON object (no markdown, no code fences, no extra text) with these fields:
        - overallScore: number 0-100.
        - grade: one of A+, A, B+, B, C+, C, D, F.
        - categoryScores: object with communication, technicalAccuracy, confidence, clarity, relevance (each 0-100).
        - strengths: array of three short strings.
        - improvements: array of three short strings.
        - questionFeedback: array of objects with question, userAnswer (summary), score (0-100), feedback, idealAnswer.
        - overallFeedback: 2-3 paragraph summary with specific examples from the transcript.

        SCORING GUIDE:
        - A+ (95-100): Exceptional across all areas
        - A (85-94): Excellent with minor gaps
        - B+ (75-84): Good with room for improvement
        - B (65-74): Satisfactory but notable weaknesses
        - C+ (55-64): Below average, significant improvements needed
        - C (45-54): Poor performance in multiple areas
        - D (30-44): Very weak
        - F (0-29): Failed to demonstrate competency
        """
    ).strip().replace("{transcript}", format_transcript(transcript))


def score_transcript(
    config: SessionConfig,
    transcript: Sequence[TranscriptEntry],
    *,
    route: LlmRoute,
    client: Optional[HttpClient] = None,
) -> Feedback:
    """Score a finished interview.

    Unparseable output yields :func:`fallback_feedback`; transport and status
    failures propagate as ``LlmGatewayError`` so the caller can degrade.
    """

    task = _build_task(config, transcript)
    try:
        return call(task, Feedback, cfg=route, client=client, options=dict(SCORING_OPTIONS))
    except LlmOutputError:
        logger.warning("Scoring output unusable; using fallback feedback")
        return fallback_feedback()


def score_with_config(
    config: SessionConfig,
    transcript: Sequence[TranscriptEntry],
    *,
    config_path: Path,
) -> Feedback:  # Convenience helper using app config
    route = load_route(config_path, SCORING_ROUTE_KEY)
    return score_transcript(config, transcript, route=route)
