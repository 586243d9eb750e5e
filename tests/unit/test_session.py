"""Behaviour of the live interview state machine with scripted collaborators."""
from __future__ import annotations

import asyncio
import threading
from typing import Any, Dict, List, Optional

import pytest

import live_session.session as session_mod
from live_session import InterviewSession, events, is_closing_statement
from scoring_pass import Feedback
from storage.feedback import get_feedback
from storage.interviews import get_interview
from storage.users import get_user

CLOSING = "I think that's a great place to wrap up. Thank you for your time, we'll have your feedback ready shortly."


class RecordingSink:
    def __init__(self) -> None:
        self.events: List[tuple[str, Optional[Dict[str, Any]]]] = []

    async def emit(self, event: str, data: Optional[Dict[str, Any]] = None) -> None:
        self.events.append((event, data))

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def last(self, name: str) -> Optional[Dict[str, Any]]:
        for event, data in reversed(self.events):
            if event == name:
                return data
        raise AssertionError(f"{name} was never emitted")

    def count(self, name: str) -> int:
        return self.names().count(name)


class Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _scripted(*replies: str):
    queue = list(replies)

    async def generate(config, transcript, time_state) -> str:
        return queue.pop(0) if queue else "Could you expand on that?"

    return generate


async def _score(config, transcript) -> Feedback:
    return Feedback(overall_score=82, grade="B+", strengths=["Clear examples"], overall_feedback="Strong.")


def _open(user, config, **overrides) -> tuple[InterviewSession, RecordingSink, Clock]:
    sink = RecordingSink()
    clock = Clock()
    kwargs: Dict[str, Any] = dict(
        sink=sink,
        generate=_scripted("Hi, I'm Sam. Tell me about yourself?", "Interesting. Why that design?"),
        score=_score,
        clock=clock,
        tick_seconds=None,
    )
    kwargs.update(overrides)
    session = InterviewSession.open(user_id=user.user_id, config=config, **kwargs)
    return session, sink, clock


def test_start_greets_and_hands_over(user, session_config) -> None:
    session, sink, _ = _open(user, session_config)
    asyncio.run(session.start())

    assert sink.names() == [
        events.INTERVIEW_STARTED,
        events.AI_THINKING,
        events.AI_RESPONSE_TEXT,
        events.AI_SPEAKING,
        events.YOUR_TURN,
    ]
    assert sink.events[0][1] == {"interviewId": session.session_id}
    assert sink.last(events.AI_SPEAKING)["noSpeak"] is False
    assert [entry.speaker for entry in session.transcript] == ["ai"]
    assert session.questions_asked == 1
    assert get_interview(session.session_id).status == "in-progress"
    assert get_user(user.user_id).last_interview_config["role"] == "Backend Engineer"


def test_start_is_only_valid_once(user, session_config) -> None:
    session, sink, _ = _open(user, session_config)

    async def scenario() -> None:
        await session.start()
        await session.start()

    asyncio.run(scenario())
    assert sink.count(events.INTERVIEW_STARTED) == 1
    assert len(session.transcript) == 1


def test_empty_user_turn_returns_control(user, session_config) -> None:
    session, sink, _ = _open(user, session_config)

    async def scenario() -> None:
        await session.start()
        sink.events.clear()
        await session.finish_user_turn("   ")

    asyncio.run(scenario())
    assert len(session.transcript) == 1
    assert sink.names() == [events.YOUR_TURN]


def test_user_turn_is_echoed_then_answered(user, session_config) -> None:
    session, sink, clock = _open(user, session_config)

    async def scenario() -> None:
        await session.start()
        clock.now = 12.0
        sink.events.clear()
        await session.finish_user_turn("I design payment APIs.")

    asyncio.run(scenario())
    assert sink.names()[:2] == [events.USER_TRANSCRIPT_FINAL, events.AI_THINKING]
    assert sink.events[0][1] == {"text": "I design payment APIs."}
    assert [entry.speaker for entry in session.transcript] == ["ai", "user", "ai"]
    assert session.transcript[1].timestamp == 12.0
    assert session.questions_asked == 2


def test_at_most_one_ai_turn_in_flight(user, session_config) -> None:
    gate = asyncio.Event()
    calls: List[int] = []

    async def generate(config, transcript, time_state) -> str:
        calls.append(1)
        await gate.wait()
        return "What did you build last?"

    session, sink, _ = _open(user, session_config, generate=generate)

    async def scenario() -> None:
        first = asyncio.create_task(session.ai_turn())
        await asyncio.sleep(0)
        assert session.is_ai_speaking
        assert await session.ai_turn() is False
        gate.set()
        assert await first is True

    asyncio.run(scenario())
    assert len(calls) == 1
    assert sink.count(events.AI_RESPONSE_TEXT) == 1
    assert not session.is_ai_speaking


def test_concurrent_user_turn_is_dropped(user, session_config) -> None:
    gate = asyncio.Event()

    async def generate(config, transcript, time_state) -> str:
        if transcript:
            await gate.wait()
        return "Go on?"

    session, sink, _ = _open(user, session_config, generate=generate)

    async def scenario() -> None:
        await session.start()
        first = asyncio.create_task(session.finish_user_turn("first answer"))
        await asyncio.sleep(0)
        await session.finish_user_turn("second answer")
        gate.set()
        await first

    asyncio.run(scenario())
    assert [entry.text for entry in session.transcript if entry.speaker == "user"] == ["first answer"]


def test_answer_during_greeting_is_answered_after_it(user, session_config) -> None:
    gate = asyncio.Event()
    histories: List[List[str]] = []

    async def generate(config, transcript, time_state) -> str:
        histories.append([entry.speaker for entry in transcript])
        if not transcript:
            await gate.wait()
            return "Hello, tell me about yourself?"
        return "Why backend work in particular?"

    session, sink, _ = _open(user, session_config, generate=generate)

    async def scenario() -> None:
        greeting = asyncio.create_task(session.start())
        await asyncio.sleep(0)
        assert session.is_ai_speaking
        await session.finish_user_turn("I am a backend engineer.")
        assert session.transcript == []
        assert session.pending_user_text == "I am a backend engineer."
        gate.set()
        await greeting

    asyncio.run(scenario())
    assert [(entry.speaker, entry.text) for entry in session.transcript] == [
        ("ai", "Hello, tell me about yourself?"),
        ("user", "I am a backend engineer."),
        ("ai", "Why backend work in particular?"),
    ]
    assert histories == [[], ["ai", "user"]]
    assert session.pending_user_text == ""
    names = sink.names()
    assert names.index(events.USER_TRANSCRIPT_FINAL) > names.index(events.AI_RESPONSE_TEXT)
    assert names.count(events.YOUR_TURN) == 1
    assert names[-1] == events.YOUR_TURN


def test_generation_failure_keeps_transcript(user, session_config) -> None:
    async def generate(config, transcript, time_state) -> str:
        raise RuntimeError("upstream down")

    session, sink, _ = _open(user, session_config, generate=generate)
    asyncio.run(session.start())

    assert session.transcript == []
    assert sink.names()[-2:] == [events.INTERVIEW_ERROR, events.YOUR_TURN]
    assert sink.last(events.INTERVIEW_ERROR) == {"message": "AI processing error. Please try again."}
    assert not session.is_ai_speaking


def test_generation_timeout_is_a_failure(user, session_config) -> None:
    async def generate(config, transcript, time_state) -> str:
        await asyncio.sleep(5)
        return "too late?"

    session, sink, _ = _open(user, session_config, generate=generate, generation_timeout=0.01)
    asyncio.run(session.start())

    assert session.transcript == []
    assert sink.count(events.INTERVIEW_ERROR) == 1


def test_end_twice_persists_once(monkeypatch, user, session_config) -> None:
    writes: List[str] = []
    original = session_mod.update_interview

    def counting(interview_id: str, **data: Any) -> None:
        writes.append(data["status"])
        original(interview_id, **data)

    monkeypatch.setattr(session_mod, "update_interview", counting)
    session, sink, clock = _open(user, session_config)

    async def scenario() -> None:
        await session.start()
        clock.now = 40.0
        await session.finish_user_turn("I led the migration.")
        results = await asyncio.gather(session.end(), session.end())
        assert sorted(results) == [False, True]
        assert await session.end() is False

    asyncio.run(scenario())
    assert writes == ["completed"]
    assert sink.count(events.INTERVIEW_COMPLETE) == 1
    assert sink.count(events.GENERATING_FEEDBACK) == 1

    complete = sink.last(events.INTERVIEW_COMPLETE)
    assert complete["interviewId"] == session.session_id
    assert complete["feedbackId"] is not None
    assert complete["feedback"]["overallScore"] == 82.0
    assert [item["id"] for item in complete["newAchievements"]] == ["first_interview", "score_70"]

    stored = get_interview(session.session_id)
    assert stored.status == "completed"
    assert stored.actual_duration == 40.0
    assert len(stored.transcript) == 3
    assert get_feedback(session.session_id).feedback_id == complete["feedbackId"]
    assert session.state == "terminated"


def test_hard_end_forces_one_closing_turn(user, session_config) -> None:
    session, sink, clock = _open(
        user,
        session_config,
        generate=_scripted("Welcome! Tell me about yourself?", "Why did you choose Go?", CLOSING),
    )

    async def scenario() -> None:
        await session.start()
        clock.now = 100.0
        await session.finish_user_turn("I write Go services.")
        clock.now = 298.0
        sink.events.clear()
        await session.tick()
        await session.tick()

    asyncio.run(scenario())
    assert session.is_ending
    assert sink.names()[0] == events.TIME_UPDATE
    assert sink.events[0][1] == {"elapsed": 298, "total": 300, "remaining": 2}
    assert sink.count(events.AI_SPEAKING) == 1
    assert sink.last(events.AI_SPEAKING) == {"text": CLOSING, "noSpeak": True}
    assert sink.names()[-3:] == [events.INTERVIEW_ENDING, events.GENERATING_FEEDBACK, events.INTERVIEW_COMPLETE]
    assert sink.last(events.INTERVIEW_COMPLETE)["feedbackId"] is not None
    assert sink.count(events.TIME_UPDATE) == 1
    assert get_interview(session.session_id).status == "completed"


def test_hard_end_waits_for_turn_in_flight(user, session_config) -> None:
    session, sink, clock = _open(user, session_config)

    async def scenario() -> None:
        await session.start()
        clock.now = 298.0
        session.is_processing_user_turn = True
        await session.tick()

    asyncio.run(scenario())
    assert not session.is_ending
    assert sink.count(events.TIME_UPDATE) == 1
    assert sink.count(events.INTERVIEW_ENDING) == 0


def test_forced_turn_finishes_even_when_generation_fails(user, session_config) -> None:
    replies = iter(["Hello, what do you do?"])

    async def generate(config, transcript, time_state) -> str:
        try:
            return next(replies)
        except StopIteration:
            raise RuntimeError("no more replies") from None

    session, sink, clock = _open(user, session_config, generate=generate)

    async def scenario() -> None:
        await session.start()
        clock.now = 299.0
        await session.tick()

    asyncio.run(scenario())
    assert sink.count(events.INTERVIEW_ERROR) == 0
    assert sink.count(events.INTERVIEW_COMPLETE) == 1
    assert sink.last(events.INTERVIEW_COMPLETE)["feedbackId"] is None


def test_tick_reports_time_and_skips_while_paused(user, session_config) -> None:
    session, sink, clock = _open(user, session_config)

    async def scenario() -> None:
        await session.start()
        clock.now = 30.4
        await session.tick()
        await session.pause()
        await session.tick()

    asyncio.run(scenario())
    assert sink.count(events.TIME_UPDATE) == 1
    assert sink.last(events.TIME_UPDATE) == {"elapsed": 30, "total": 300, "remaining": 269}


def test_pause_freezes_elapsed(user, session_config) -> None:
    session, sink, clock = _open(user, session_config)
    readings: List[float] = []

    async def scenario() -> None:
        await session.start()
        clock.now = 10.0
        await session.pause()
        await session.pause()
        clock.now = 50.0
        readings.append(session.elapsed())
        await session.resume()
        await session.resume()
        readings.append(session.elapsed())
        clock.now = 60.0
        readings.append(session.elapsed())

    asyncio.run(scenario())
    assert readings == [10.0, 10.0, 20.0]
    assert sink.count(events.INTERVIEW_PAUSED) == 1
    assert sink.count(events.INTERVIEW_RESUMED) == 1


def test_text_sent_while_paused_is_handled_on_resume(user, session_config) -> None:
    session, sink, _ = _open(user, session_config)

    async def scenario() -> None:
        await session.start()
        await session.pause()
        await session.finish_user_turn("Answer given while paused")
        assert len(session.transcript) == 1
        await session.resume()

    asyncio.run(scenario())
    assert [entry.speaker for entry in session.transcript] == ["ai", "user", "ai"]
    assert session.pending_user_text == ""


def test_abandon_persists_without_scoring(user, session_config) -> None:
    scored: List[int] = []

    async def score(config, transcript) -> Feedback:
        scored.append(1)
        return Feedback()

    session, sink, clock = _open(user, session_config, score=score)

    async def scenario() -> None:
        await session.start()
        await session.finish_user_turn("Partial answer")
        clock.now = 75.0
        assert await session.abandon() is True
        assert await session.abandon() is False
        assert await session.ai_turn() is False
        await session.finish_user_turn("late")

    asyncio.run(scenario())
    stored = get_interview(session.session_id)
    assert stored.status == "abandoned"
    assert len(stored.transcript) == 3
    assert stored.actual_duration == 75.0
    assert scored == []
    assert get_feedback(session.session_id) is None
    assert sink.count(events.INTERVIEW_COMPLETE) == 0
    assert session.state == "terminated"


def test_disconnect_during_scoring_keeps_completed_record(user, session_config) -> None:
    gate = asyncio.Event()

    async def score(config, transcript) -> Feedback:
        await gate.wait()
        return Feedback(overall_score=60, grade="C+")

    session, sink, _ = _open(user, session_config, score=score)

    async def scenario() -> None:
        await session.start()
        await session.finish_user_turn("Answer")
        ending = asyncio.create_task(session.end())
        await asyncio.sleep(0)
        assert await session.abandon() is False
        gate.set()
        await ending

    asyncio.run(scenario())
    assert get_interview(session.session_id).status == "completed"
    assert sink.last(events.INTERVIEW_COMPLETE)["feedbackId"] is not None


def test_reply_arriving_after_end_is_dropped(user, session_config) -> None:
    gate = asyncio.Event()

    async def generate(config, transcript, time_state) -> str:
        await gate.wait()
        return "Another question?"

    session, sink, _ = _open(user, session_config, generate=generate)

    async def scenario() -> None:
        turn = asyncio.create_task(session.ai_turn())
        await asyncio.sleep(0)
        await session.end()
        gate.set()
        await turn

    asyncio.run(scenario())
    assert session.transcript == []
    assert sink.count(events.AI_RESPONSE_TEXT) == 0
    assert sink.names()[-1] == events.INTERVIEW_COMPLETE


def test_short_transcript_skips_scoring(user, session_config) -> None:
    session, sink, _ = _open(user, session_config)

    async def scenario() -> None:
        await session.start()
        await session.end()

    asyncio.run(scenario())
    assert sink.count(events.GENERATING_FEEDBACK) == 0
    complete = sink.last(events.INTERVIEW_COMPLETE)
    assert complete == {
        "interviewId": session.session_id,
        "feedbackId": None,
        "feedback": None,
        "newAchievements": [],
    }


def test_scoring_failure_completes_without_feedback(user, session_config) -> None:
    async def score(config, transcript) -> Feedback:
        raise RuntimeError("scorer unavailable")

    session, sink, _ = _open(user, session_config, score=score)

    async def scenario() -> None:
        await session.start()
        await session.finish_user_turn("Answer")
        await session.end()

    asyncio.run(scenario())
    assert sink.last(events.INTERVIEW_COMPLETE)["feedbackId"] is None
    assert get_interview(session.session_id).status == "completed"
    assert get_feedback(session.session_id) is None


def test_persistence_failure_still_completes(monkeypatch, user, session_config) -> None:
    def broken(interview_id: str, **data: Any) -> None:
        raise RuntimeError("disk full")

    monkeypatch.setattr(session_mod, "update_interview", broken)
    session, sink, _ = _open(user, session_config)

    async def scenario() -> None:
        await session.start()
        await session.finish_user_turn("Answer")
        await session.end()

    asyncio.run(scenario())
    assert sink.last(events.INTERVIEW_COMPLETE)["feedbackId"] is None
    assert sink.count(events.GENERATING_FEEDBACK) == 0


def test_evaluator_failure_keeps_feedback(user, session_config) -> None:
    def evaluate(user_id: str):
        raise RuntimeError("streak store offline")

    session, sink, _ = _open(user, session_config, evaluate=evaluate)

    async def scenario() -> None:
        await session.start()
        await session.finish_user_turn("Answer")
        await session.end()

    asyncio.run(scenario())
    complete = sink.last(events.INTERVIEW_COMPLETE)
    assert complete["feedbackId"] is not None
    assert complete["newAchievements"] == []


def test_terminal_writes_run_off_the_event_loop(monkeypatch, user, session_config) -> None:
    threads: Dict[str, int] = {}
    real_update = session_mod.update_interview

    def update(interview_id: str, **data: Any):
        threads["update"] = threading.get_ident()
        return real_update(interview_id, **data)

    def evaluate(user_id: str):
        threads["evaluate"] = threading.get_ident()
        return []

    monkeypatch.setattr(session_mod, "update_interview", update)
    session, sink, _ = _open(user, session_config, evaluate=evaluate)

    async def scenario() -> int:
        await session.start()
        await session.finish_user_turn("Answer")
        await session.end()
        return threading.get_ident()

    loop_thread = asyncio.run(scenario())
    assert threads["update"] != loop_thread
    assert threads["evaluate"] != loop_thread
    assert get_interview(session.session_id).status == "completed"
    assert sink.last(events.INTERVIEW_COMPLETE)["feedbackId"] is not None


def test_background_ticker_stops_when_session_closes(user, session_config) -> None:
    session, sink, _ = _open(user, session_config, tick_seconds=0.01)

    async def scenario() -> None:
        await session.start()
        await asyncio.sleep(0.05)
        await session.end()
        await asyncio.sleep(0.03)

    asyncio.run(scenario())
    assert sink.count(events.TIME_UPDATE) >= 1
    assert session._ticker is None
    assert sink.names()[-1] == events.INTERVIEW_COMPLETE


@pytest.mark.parametrize(
    ("text", "ending", "expected"),
    [
        (CLOSING, True, True),
        (CLOSING, False, False),
        ("That brings us to the end of our time together.", True, True),
        ("What would you change about that design?", True, False),
    ],
)
def test_closing_statement_detection(text: str, ending: bool, expected: bool) -> None:
    assert is_closing_statement(text, ending=ending) is expected
