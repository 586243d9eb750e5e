"""Lightweight CLI helpers for inspecting stored interviews and grants."""
from __future__ import annotations

import argparse
import sqlite3

from config.settings import settings


def tail_interviews(limit: int = 20) -> None:
    conn = sqlite3.connect(settings.DB_PATH)
    try:
        cursor = conn.cursor()
        cursor.execute(
            """
            SELECT i.started_at, i.interview_id, i.user_id, i.status, i.questions_asked,
                   i.actual_duration, f.overall_score, f.grade
            FROM interviews i
            LEFT JOIN feedback f ON f.interview_id = i.interview_id
            ORDER BY i.started_at DESC
            LIMIT ?
            """,
            (limit,),
        )
        for row in cursor.fetchall():
            ts, interview_id, user_id, status, asked, duration, score, grade = row
            result = f"{score:.0f}/{grade}" if score is not None else "-"
            print(
                f"[{ts}] {interview_id} user={user_id} status={status} questions={asked} "
                f"duration={duration:.0f}s feedback={result}"
            )
    finally:
        conn.close()


def tail_achievements(limit: int = 20) -> None:
    conn = sqlite3.connect(settings.DB_PATH)
    try:
        cursor = conn.cursor()
        cursor.execute(
            """
            SELECT unlocked_at, user_id, achievement_type
            FROM achievements
            ORDER BY id DESC
            LIMIT ?
            """,
            (limit,),
        )
        for ts, user_id, achievement_type in cursor.fetchall():
            print(f"[{ts}] {user_id} unlocked {achievement_type}")
    finally:
        conn.close()


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--tail-interviews", type=int, help="Show the latest interview records")
    parser.add_argument("--tail-achievements", type=int, help="Show the latest achievement grants")
    args = parser.parse_args()

    if args.tail_interviews:
        tail_interviews(args.tail_interviews)
    if args.tail_achievements:
        tail_achievements(args.tail_achievements)


if __name__ == "__main__":
    main()
