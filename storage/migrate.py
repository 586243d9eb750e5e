"""SQLite schema migrations."""
from __future__ import annotations

import os
import sqlite3
from typing import Iterable

SCHEMA: Iterable[str] = [
    """
CREATE TABLE IF NOT EXISTS users (
  user_id TEXT PRIMARY KEY,
  name TEXT NOT NULL,
  email TEXT NOT NULL UNIQUE,
  streak_current INTEGER NOT NULL DEFAULT 0,
  streak_longest INTEGER NOT NULL DEFAULT 0,
  streak_last_date TEXT,
  last_interview_config TEXT,
  created_at TEXT NOT NULL
);
""",
    """
CREATE TABLE IF NOT EXISTS interviews (
  interview_id TEXT PRIMARY KEY,
  user_id TEXT NOT NULL,
  status TEXT NOT NULL,
  config_json TEXT NOT NULL,
  transcript_json TEXT NOT NULL DEFAULT '[]',
  questions_asked INTEGER NOT NULL DEFAULT 0,
  started_at TEXT NOT NULL,
  ended_at TEXT,
  actual_duration REAL NOT NULL DEFAULT 0,
  FOREIGN KEY(user_id) REFERENCES users(user_id)
);
""",
    """
CREATE INDEX IF NOT EXISTS idx_interviews_user ON interviews(user_id, started_at);
""",
    """
CREATE TABLE IF NOT EXISTS feedback (
  feedback_id TEXT PRIMARY KEY,
  interview_id TEXT NOT NULL UNIQUE,
  user_id TEXT NOT NULL,
  overall_score REAL NOT NULL,
  grade TEXT NOT NULL,
  category_scores_json TEXT NOT NULL,
  strengths_json TEXT NOT NULL,
  improvements_json TEXT NOT NULL,
  question_feedback_json TEXT NOT NULL,
  overall_feedback TEXT NOT NULL,
  created_at TEXT NOT NULL,
  FOREIGN KEY(interview_id) REFERENCES interviews(interview_id) ON DELETE CASCADE
);
""",
    """
CREATE TABLE IF NOT EXISTS achievements (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  user_id TEXT NOT NULL,
  achievement_type TEXT NOT NULL,
  unlocked_at TEXT NOT NULL,
  UNIQUE(user_id, achievement_type)
);
""",
]


def migrate(db_path: str = "data/interview.db") -> None:
    """Apply schema migrations to the SQLite database."""

    directory = os.path.dirname(db_path) or "."
    os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        cur = conn.cursor()
        for stmt in SCHEMA:
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()


if __name__ == "__main__":
    from config.settings import settings

    migrate(settings.DB_PATH)
