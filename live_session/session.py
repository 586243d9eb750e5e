"""Per-connection interview session state machine."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Protocol, Sequence

from achievements import AchievementType, evaluate_completed_session
from observability import log_event, span
from storage.feedback import insert_feedback
from storage.interviews import create_interview, update_interview
from storage.users import save_last_interview_config
from time_phase import elapsed_seconds, is_hard_end, remaining_seconds, tier_for, time_phase

from . import events
from .events import EventSink
from .models import SessionConfig, Speaker, TimeState, TranscriptEntry


logger = logging.getLogger(__name__)

SessionState = Literal["created", "active", "ending", "terminated"]

CLOSING_PHRASES: tuple[str, ...] = (
    "concludes our interview",
    "that wraps up",
    "end of our interview",
    "great place to wrap up",
    "that brings us to the end",
    "feedback ready",
    "feedback will be",
    "pleasure interviewing you",
    "wrap things up",
)

AI_ERROR_MESSAGE = "AI processing error. Please try again."


class ScoredFeedback(Protocol):  # What the scoring collaborator hands back
    def model_dump(self) -> Dict[str, Any]: ...

    def as_client_payload(self) -> Dict[str, Any]: ...


DialogueFn = Callable[[SessionConfig, List[TranscriptEntry], TimeState], Awaitable[str]]
ScoringFn = Callable[[SessionConfig, List[TranscriptEntry]], Awaitable[ScoredFeedback]]
EvaluatorFn = Callable[[str], List[AchievementType]]


def is_closing_statement(text: str, *, ending: bool) -> bool:
    """Heuristic check for an interviewer turn that closes the interview.

    Only consulted once the session is already ending.
    """

    if not ending:
        return False
    lowered = text.lower()
    return any(phrase in lowered for phrase in CLOSING_PHRASES)


class InterviewSession:
    """Live state for one interview connection.

    All mutation happens on the event loop in response to inbound events and
    the periodic tick. ``is_ai_speaking``, ``is_processing_user_turn`` and
    ``is_ending`` are re-entrancy gates for events that arrive while a
    generation call is suspended. ``closed`` latches once terminal
    persistence has begun so it runs exactly once.
    """

    def __init__(
        self,
        *,
        session_id: str,
        user_id: str,
        config: SessionConfig,
        sink: EventSink,
        generate: DialogueFn,
        score: ScoringFn,
        evaluate: EvaluatorFn = evaluate_completed_session,
        clock: Callable[[], float] = time.monotonic,
        tick_seconds: Optional[float] = None,
        generation_timeout: float = 30.0,
        scoring_timeout: float = 60.0,
        on_closed: Optional[Callable[[], None]] = None,
    ) -> None:
        self.session_id = session_id
        self.user_id = user_id
        self.config = config
        self.sink = sink
        self.transcript: List[TranscriptEntry] = []
        self.questions_asked = 0
        self.state: SessionState = "created"

        self.start_time: Optional[float] = None
        self.paused_time = 0.0
        self.pause_started_at: Optional[float] = None

        self.paused = False
        self.is_ai_speaking = False
        self.is_processing_user_turn = False
        self.is_ending = False
        self.closed = False
        self.pending_user_text = ""

        self._generate = generate
        self._score = score
        self._evaluate = evaluate
        self._clock = clock
        self.tick_seconds = tick_seconds
        self.generation_timeout = generation_timeout
        self.scoring_timeout = scoring_timeout
        self._on_closed = on_closed
        self._ticker: Optional[asyncio.Task] = None

    @classmethod
    def open(cls, *, user_id: str, config: SessionConfig, **kwargs: Any) -> "InterviewSession":
        """Create the in-progress interview record and a session bound to it."""

        stored_config = config.model_dump(by_alias=True)
        record = create_interview(user_id=user_id, config=stored_config)
        save_last_interview_config(user_id, stored_config)
        return cls(session_id=record.interview_id, user_id=user_id, config=config, **kwargs)

    # clock -----------------------------------------------------------------

    def elapsed(self) -> float:
        if self.start_time is None:
            return 0.0
        return elapsed_seconds(self._clock(), self.start_time, self.paused_time, self.pause_started_at)

    def time_state(self) -> TimeState:
        return TimeState(elapsed=self.elapsed(), questions_asked=self.questions_asked)

    def _append(self, speaker: Speaker, text: str) -> TranscriptEntry:
        entry = TranscriptEntry(speaker=speaker, text=text, timestamp=self.elapsed())
        self.transcript.append(entry)
        return entry

    # lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        if self.state != "created":
            logger.debug("Ignoring start for session %s in state %s", self.session_id, self.state)
            return
        self.state = "active"
        self.start_time = self._clock()
        self._start_ticker()
        log_event(
            "session_started",
            self.session_id,
            status="in-progress",
            phase=time_phase(self.config, 0.0),
        )
        await self.sink.emit(events.INTERVIEW_STARTED, {"interviewId": self.session_id})
        await self.ai_turn()

    def _start_ticker(self) -> None:
        if self.tick_seconds is None:
            return
        self._ticker = asyncio.get_running_loop().create_task(self._run_ticker())

    async def _run_ticker(self) -> None:
        while not self.closed:
            await asyncio.sleep(self.tick_seconds)
            try:
                await self.tick()
            except Exception:  # noqa: BLE001
                logger.exception("Tick failed for session %s", self.session_id)

    def _stop_ticker(self) -> None:
        task, self._ticker = self._ticker, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def tick(self) -> None:
        """Push a time update and force the closing turn once time is up."""

        if self.paused or self.is_ending or self.state != "active":
            return
        elapsed = self.elapsed()
        total = tier_for(self.config.duration).total_seconds
        await self.sink.emit(
            events.TIME_UPDATE,
            {
                "elapsed": int(elapsed),
                "total": total,
                "remaining": int(remaining_seconds(self.config, elapsed)),
            },
        )
        if (
            is_hard_end(self.config, elapsed)
            and not self.is_ai_speaking
            and not self.is_processing_user_turn
            and not self.is_ending
        ):
            self.is_ending = True
            log_event("hard_end", self.session_id, phase="hard-end", elapsed=int(elapsed))
            await self.ai_turn(forced=True)

    # turns -----------------------------------------------------------------

    async def _request_reply(self) -> Optional[str]:  # None means the generation call failed
        try:
            with span(self.session_id, "dialogue"):
                text = await asyncio.wait_for(
                    self._generate(self.config, list(self.transcript), self.time_state()),
                    timeout=self.generation_timeout,
                )
        except asyncio.TimeoutError:
            logger.error("Dialogue generation timed out for session %s", self.session_id)
            return None
        except Exception:  # noqa: BLE001
            logger.exception("Dialogue generation failed for session %s", self.session_id)
            return None
        return (text or "").strip()

    async def ai_turn(self, *, forced: bool = False) -> bool:
        """Run one interviewer turn; returns False when rejected as re-entrant.

        A forced turn is the hard-end closing statement and always
        terminates the session afterwards, whatever the generation outcome.
        """

        if self.is_ai_speaking or self.closed:
            logger.debug("Rejected AI turn for session %s", self.session_id)
            return False
        self.is_ai_speaking = True
        terminate = forced
        failed = False
        try:
            await self.sink.emit(events.AI_THINKING)
            text = await self._request_reply()
            failed = text is None
            if text and not self.closed:
                self._append("ai", text)
                if "?" in text:
                    self.questions_asked += 1
                await self.sink.emit(events.AI_RESPONSE_TEXT, {"text": text})
                no_speak = forced or is_closing_statement(text, ending=self.is_ending) or self.is_ending
                await self.sink.emit(events.AI_SPEAKING, {"text": text, "noSpeak": no_speak})
                terminate = no_speak
                log_event("ai_turn", self.session_id, speaker="ai", elapsed=int(self.elapsed()))
            elif text and self.closed:
                logger.info("Dropping AI turn that finished after session %s closed", self.session_id)
                return True
        finally:
            self.is_ai_speaking = False

        if self.closed:
            return True
        if terminate:
            self.is_ending = True
            await self.sink.emit(events.INTERVIEW_ENDING)
            await self._finalize("completed")
            return True
        if failed:
            await self.sink.emit(events.INTERVIEW_ERROR, {"message": AI_ERROR_MESSAGE})
        if self.pending_user_text and not self.paused:
            staged, self.pending_user_text = self.pending_user_text, ""
            await self.finish_user_turn(staged)
            return True
        await self.sink.emit(events.YOUR_TURN)
        return True

    async def finish_user_turn(self, text: Optional[str]) -> None:
        """Accept a finalized candidate utterance and answer it.

        Text that arrives while an interviewer turn is still being generated
        is held back and answered once that turn hands control over.
        """

        if self.closed or self.is_ending:
            return
        if self.is_processing_user_turn:
            logger.debug("Dropped concurrent user turn for session %s", self.session_id)
            return
        final_text = (text or "").strip()
        if self.is_ai_speaking:
            if final_text:
                self.pending_user_text = final_text
            return
        if not final_text:
            await self.sink.emit(events.YOUR_TURN)
            return
        if self.paused:
            self.pending_user_text = final_text
            return

        self.is_processing_user_turn = True
        try:
            self._append("user", final_text)
            log_event("user_turn", self.session_id, speaker="user", elapsed=int(self.elapsed()))
            await self.sink.emit(events.USER_TRANSCRIPT_FINAL, {"text": final_text})
            await self.ai_turn()
        finally:
            self.is_processing_user_turn = False

    # pause -----------------------------------------------------------------

    async def pause(self) -> None:
        if self.closed or self.paused:
            return
        self.paused = True
        self.pause_started_at = self._clock()
        log_event("paused", self.session_id, elapsed=int(self.elapsed()))
        await self.sink.emit(events.INTERVIEW_PAUSED)

    async def resume(self) -> None:
        if self.closed or not self.paused:
            return
        if self.pause_started_at is not None:
            self.paused_time += max(0.0, self._clock() - self.pause_started_at)
        self.pause_started_at = None
        self.paused = False
        log_event("resumed", self.session_id, elapsed=int(self.elapsed()))
        await self.sink.emit(events.INTERVIEW_RESUMED)
        if self.pending_user_text:
            staged, self.pending_user_text = self.pending_user_text, ""
            await self.finish_user_turn(staged)

    # termination -----------------------------------------------------------

    async def end(self, status: str = "completed") -> bool:
        """Explicit end request; only the first caller proceeds."""

        if self.is_ending:
            return False
        self.is_ending = True
        await self._finalize(status)
        return True

    def _snapshot(self) -> List[Dict[str, Any]]:
        return [entry.model_dump() for entry in self.transcript]

    async def _persist(self, status: str) -> None:  # SQLite writes run in a worker thread
        await asyncio.to_thread(
            update_interview,
            self.session_id,
            status=status,
            transcript=self._snapshot(),
            questions_asked=self.questions_asked,
            actual_duration=self.elapsed(),
        )

    async def _finalize(self, status: str) -> None:
        if self.closed:
            return
        self.closed = True
        self.state = "ending"
        self._stop_ticker()
        try:
            try:
                await self._persist(status)
            except Exception:  # noqa: BLE001
                logger.exception("Failed to persist final interview %s", self.session_id)
                await self._complete(None, None, [])
                return
            log_event("session_ended", self.session_id, status=status, elapsed=int(self.elapsed()))
            if status == "completed" and len(self.transcript) > 1:
                await self._score_and_complete()
            else:
                await self._complete(None, None, [])
        finally:
            self._close()

    async def _score_and_complete(self) -> None:
        await self.sink.emit(events.GENERATING_FEEDBACK)
        try:
            with span(self.session_id, "scoring"):
                feedback = await asyncio.wait_for(
                    self._score(self.config, list(self.transcript)),
                    timeout=self.scoring_timeout,
                )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Scoring pass failed for interview %s", self.session_id)
            log_event("scoring_failed", self.session_id, reason=type(exc).__name__)
            await self._complete(None, None, [])
            return
        try:
            row = await asyncio.to_thread(
                insert_feedback,
                interview_id=self.session_id,
                user_id=self.user_id,
                **feedback.model_dump(),
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to store feedback for interview %s", self.session_id)
            log_event("scoring_failed", self.session_id, reason=type(exc).__name__)
            await self._complete(None, None, [])
            return
        try:
            granted = await asyncio.to_thread(self._evaluate, self.user_id)
        except Exception:  # noqa: BLE001
            logger.exception("Achievement evaluation failed for user %s", self.user_id)
            granted = []
        await self._complete(row.feedback_id, feedback.as_client_payload(), granted)

    async def _complete(
        self,
        feedback_id: Optional[str],
        feedback: Optional[Dict[str, Any]],
        granted: Sequence[AchievementType],
    ) -> None:
        await self.sink.emit(
            events.INTERVIEW_COMPLETE,
            {
                "interviewId": self.session_id,
                "feedbackId": feedback_id,
                "feedback": feedback,
                "newAchievements": [item.model_dump() for item in granted],
            },
        )

    async def abandon(self) -> bool:
        """Persist an abnormal disconnect; no scoring. False if already closing."""

        if self.closed:
            return False
        self.closed = True
        self.is_ending = True
        self.state = "ending"
        self._stop_ticker()
        try:
            await self._persist("abandoned")
            log_event("session_abandoned", self.session_id, status="abandoned", elapsed=int(self.elapsed()))
        except Exception:  # noqa: BLE001
            logger.exception("Failed to save abandoned interview %s", self.session_id)
        finally:
            self._close()
        return True

    def _close(self) -> None:
        self.state = "terminated"
        if self._on_closed is not None:
            self._on_closed()
