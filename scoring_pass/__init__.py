from __future__ import annotations  # Re-export scoring_pass public API

from .scoring_pass import (  # noqa: F401
    VALID_GRADES,
    CategoryScores,
    Feedback,
    QuestionFeedback,
    clamp_score,
    fallback_feedback,
    format_transcript,
    score_transcript,
    score_with_config,
)

__all__ = [
    "VALID_GRADES",
    "CategoryScores",
    "Feedback",
    "QuestionFeedback",
    "clamp_score",
    "fallback_feedback",
    "format_transcript",
    "score_transcript",
    "score_with_config",
]
