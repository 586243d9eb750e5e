from __future__ import annotations  # Session configuration and transcript models

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

InterviewType = Literal["technical", "behavioral", "hr", "system-design", "mixed"]
Difficulty = Literal["easy", "medium", "hard", "expert"]
ExperienceLevel = Literal["fresher", "junior", "mid", "senior"]
InterviewStyle = Literal["friendly", "neutral", "challenging"]
CompanyStyle = Literal["faang", "startup", "corporate", "general"]
Mode = Literal["practice", "assessment"]
Speaker = Literal["ai", "user"]


class SessionConfig(BaseModel):  # Immutable interview parameters sent by the client
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    role: str = Field(min_length=1, max_length=120)
    type: InterviewType
    difficulty: Difficulty
    experience_level: ExperienceLevel
    duration: Literal[5, 10, 15, 20]
    focus_areas: List[str] = Field(default_factory=list, max_length=5)
    interview_style: InterviewStyle = "neutral"
    company_style: CompanyStyle = "general"
    mode: Mode = "assessment"
    resume_text: str = ""
    job_description: str = ""

    @field_validator("role")
    @classmethod
    def _strip_role(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("role must not be blank")
        return value

    @field_validator("focus_areas")
    @classmethod
    def _clean_focus_areas(cls, value: List[str]) -> List[str]:
        return [item.strip() for item in value if item and item.strip()]


class TranscriptEntry(BaseModel):  # One finalized turn
    speaker: Speaker
    text: str
    timestamp: float = Field(ge=0.0)


class TimeState(BaseModel):  # Clock snapshot handed to the dialogue policy
    elapsed: float = Field(ge=0.0)
    questions_asked: int = Field(default=0, ge=0)
