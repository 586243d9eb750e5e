"""Application settings and configuration management."""
from __future__ import annotations

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    DB_PATH: str = Field(default="data/interview.db")
    CONFIG_PATH: str = Field(default="app_config.json")

    TICK_SECONDS: float = Field(default=1.0, gt=0.0)
    GENERATION_TIMEOUT_S: float = Field(default=30.0, gt=0.0)
    SCORING_TIMEOUT_S: float = Field(default=60.0, gt=0.0)
    CONTEXT_CHAR_LIMIT: int = Field(default=600, ge=0)

    JWT_SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 120

    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["http://localhost:5173"])

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True)


settings = Settings()
