from __future__ import annotations  # Registry of live sessions keyed by connection

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional, Set

from pydantic import ValidationError

from achievements import evaluate_completed_session

from . import events
from .events import EventSink
from .models import SessionConfig
from .session import DialogueFn, EvaluatorFn, InterviewSession, ScoringFn


logger = logging.getLogger(__name__)


def _invalid_fields(exc: ValidationError) -> str:
    names = []
    for error in exc.errors():
        name = ".".join(str(part) for part in error.get("loc", ())) or "config"
        if name not in names:
            names.append(name)
    return ", ".join(names)


class SessionManager:
    """Owns the single live session bound to each connection."""

    def __init__(
        self,
        *,
        generate: DialogueFn,
        score: ScoringFn,
        evaluate: EvaluatorFn = evaluate_completed_session,
        clock: Callable[[], float] = time.monotonic,
        tick_seconds: Optional[float] = 1.0,
        generation_timeout: float = 30.0,
        scoring_timeout: float = 60.0,
    ) -> None:
        self._generate = generate
        self._score = score
        self._evaluate = evaluate
        self._clock = clock
        self._tick_seconds = tick_seconds
        self._generation_timeout = generation_timeout
        self._scoring_timeout = scoring_timeout
        self._sessions: Dict[str, InterviewSession] = {}
        self._opening: Set[str] = set()
        self._dropped: Set[str] = set()

    def get(self, connection_id: str) -> Optional[InterviewSession]:
        return self._sessions.get(connection_id)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def discard(self, connection_id: str) -> None:
        self._sessions.pop(connection_id, None)

    async def start(
        self,
        connection_id: str,
        *,
        user_id: str,
        raw_config: Any,
        sink: EventSink,
    ) -> Optional[InterviewSession]:
        """Validate the client config, open the interview and run its first turn.

        Returns ``None`` when the request is rejected; the reason has already
        been reported to the client as ``interview-error``.
        """

        if connection_id in self._sessions or connection_id in self._opening:
            logger.warning("Ignoring duplicate start on connection %s", connection_id)
            return None
        try:
            config = SessionConfig.model_validate(raw_config or {})
        except ValidationError as exc:
            fields = _invalid_fields(exc)
            logger.info("Rejected interview config on %s: %s", connection_id, fields)
            await sink.emit(events.INTERVIEW_ERROR, {"message": f"Invalid interview configuration: {fields}"})
            return None

        self._opening.add(connection_id)
        try:
            session = await asyncio.to_thread(
                InterviewSession.open,
                user_id=user_id,
                config=config,
                sink=sink,
                generate=self._generate,
                score=self._score,
                evaluate=self._evaluate,
                clock=self._clock,
                tick_seconds=self._tick_seconds,
                generation_timeout=self._generation_timeout,
                scoring_timeout=self._scoring_timeout,
                on_closed=lambda: self.discard(connection_id),
            )
        except Exception:  # noqa: BLE001
            logger.exception("Failed to open interview for user %s", user_id)
            self._dropped.discard(connection_id)
            await sink.emit(events.INTERVIEW_ERROR, {"message": "Failed to start interview"})
            return None
        finally:
            self._opening.discard(connection_id)

        if connection_id in self._dropped:  # socket went away while the record was being created
            self._dropped.discard(connection_id)
            await session.abandon()
            return None
        self._sessions[connection_id] = session
        await session.start()
        return session

    async def disconnect(self, connection_id: str) -> None:
        """Abandon whatever session the dropped connection still owns."""

        session = self._sessions.pop(connection_id, None)
        if session is None:
            if connection_id in self._opening:
                self._dropped.add(connection_id)
            return
        await session.abandon()
