from __future__ import annotations

import asyncio
import threading
from typing import Any, Dict, List, Optional

import live_session.manager as manager_mod
from live_session import SessionManager, events
from scoring_pass import Feedback
from storage.interviews import get_interview, list_interviews

VALID = {
    "role": "Data Engineer",
    "type": "behavioral",
    "difficulty": "easy",
    "experienceLevel": "junior",
    "duration": 10,
}


class RecordingSink:
    def __init__(self) -> None:
        self.events: List[tuple[str, Optional[Dict[str, Any]]]] = []

    async def emit(self, event: str, data: Optional[Dict[str, Any]] = None) -> None:
        self.events.append((event, data))


async def _generate(config, transcript, time_state) -> str:
    return "Hello! What are you working on?"


async def _score(config, transcript) -> Feedback:
    return Feedback(overall_score=55)


def _manager() -> SessionManager:
    return SessionManager(generate=_generate, score=_score, tick_seconds=None)


def test_invalid_config_is_rejected_with_field_names(user) -> None:
    manager = _manager()
    sink = RecordingSink()
    bad = dict(VALID, duration=7, role="  ")
    result = asyncio.run(manager.start("c1", user_id=user.user_id, raw_config=bad, sink=sink))

    assert result is None
    assert "c1" not in manager
    assert list_interviews(user.user_id) == []
    event, data = sink.events[0]
    assert event == events.INTERVIEW_ERROR
    assert "duration" in data["message"]
    assert "role" in data["message"]


def test_start_registers_and_ignores_duplicates(user) -> None:
    manager = _manager()
    sink = RecordingSink()

    async def scenario():
        first = await manager.start("c1", user_id=user.user_id, raw_config=VALID, sink=sink)
        second = await manager.start("c1", user_id=user.user_id, raw_config=VALID, sink=sink)
        return first, second

    first, second = asyncio.run(scenario())
    assert first is not None and second is None
    assert len(manager) == 1
    assert manager.get("c1") is first
    assert first.config.experience_level == "junior"
    assert [name for name, _ in sink.events].count(events.INTERVIEW_STARTED) == 1
    assert len(list_interviews(user.user_id)) == 1


def test_finished_sessions_leave_the_registry(user) -> None:
    manager = _manager()
    sink = RecordingSink()

    async def scenario():
        session = await manager.start("c1", user_id=user.user_id, raw_config=VALID, sink=sink)
        await session.end()

    asyncio.run(scenario())
    assert "c1" not in manager
    assert len(manager) == 0


def test_disconnect_abandons_live_session(user) -> None:
    manager = _manager()
    sink = RecordingSink()

    async def scenario():
        session = await manager.start("c1", user_id=user.user_id, raw_config=VALID, sink=sink)
        await manager.disconnect("c1")
        await manager.disconnect("c1")
        return session

    session = asyncio.run(scenario())
    assert get_interview(session.session_id).status == "abandoned"
    assert "c1" not in manager


def test_open_failure_is_reported(monkeypatch, user) -> None:
    def broken(cls, **kwargs):
        raise RuntimeError("database locked")

    monkeypatch.setattr(manager_mod.InterviewSession, "open", classmethod(broken))
    manager = _manager()
    sink = RecordingSink()
    asyncio.run(manager.start("c1", user_id=user.user_id, raw_config=VALID, sink=sink))
    assert sink.events == [(events.INTERVIEW_ERROR, {"message": "Failed to start interview"})]
    assert len(manager) == 0


def test_disconnect_while_opening_abandons_new_record(monkeypatch, user) -> None:
    entered = threading.Event()
    release = threading.Event()
    real_open = manager_mod.InterviewSession.open

    def blocking(cls, **kwargs):
        entered.set()
        release.wait(5)
        return real_open(**kwargs)

    monkeypatch.setattr(manager_mod.InterviewSession, "open", classmethod(blocking))
    manager = _manager()
    sink = RecordingSink()

    async def scenario():
        starting = asyncio.create_task(manager.start("c1", user_id=user.user_id, raw_config=VALID, sink=sink))
        while not entered.is_set():
            await asyncio.sleep(0.01)
        await manager.disconnect("c1")
        release.set()
        return await starting

    assert asyncio.run(scenario()) is None
    assert "c1" not in manager
    assert sink.events == []
    [record] = list_interviews(user.user_id)
    assert record.status == "abandoned"
