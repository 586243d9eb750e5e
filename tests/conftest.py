import os
import sys
import tempfile
from pathlib import Path

import pytest

os.environ.setdefault("ENABLE_FILE_LOGS", "0")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from storage.migrate import migrate
from config.settings import settings
from storage.users import create_user


@pytest.fixture(autouse=True)
def tmp_db(monkeypatch):
    td = tempfile.TemporaryDirectory()
    db_path = os.path.join(td.name, "test.db")
    monkeypatch.setattr(settings, "DB_PATH", db_path, raising=False)
    migrate(db_path)
    try:
        yield db_path
    finally:
        td.cleanup()


@pytest.fixture
def user():
    return create_user(name="Ada Candidate", email="ada@example.com")


@pytest.fixture
def session_config():
    from live_session import SessionConfig

    return SessionConfig.model_validate(
        {
            "role": "Backend Engineer",
            "type": "technical",
            "difficulty": "medium",
            "experienceLevel": "mid",
            "duration": 5,
            "focusAreas": ["APIs", "Databases"],
        }
    )
