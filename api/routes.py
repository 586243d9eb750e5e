"""FastAPI routes: the live interview socket plus read-only history endpoints."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Query, Request, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from achievements import ACHIEVEMENT_TYPES
from api.auth import get_current_user, resolve_user, socket_token
from api.schemas import AchievementResp, FeedbackResp, Frame, HealthResp, InterviewDetail, InterviewSummary
from live_session import SessionManager, events
from storage.achievements import list_achievements
from storage.feedback import FeedbackRow, get_feedback
from storage.interviews import InterviewRecord, InterviewStatus, get_interview, list_interviews
from storage.users import UserRecord


logger = logging.getLogger(__name__)

router = APIRouter()


class WebSocketSink:  # Pushes session events to one socket in the {event, data} envelope
    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket

    async def emit(self, event: str, data: Optional[Dict[str, Any]] = None) -> None:
        try:
            await self.websocket.send_json({"event": event, "data": data if data is not None else {}})
        except (WebSocketDisconnect, RuntimeError) as exc:
            logger.debug("Dropped %s for closed socket: %s", event, exc)


def _manager(request: Request) -> SessionManager:
    return request.app.state.sessions


async def _dispatch(
    manager: SessionManager,
    connection_id: str,
    user: UserRecord,
    frame: Frame,
    sink: WebSocketSink,
) -> None:
    if frame.event == events.START_INTERVIEW:
        await manager.start(connection_id, user_id=user.user_id, raw_config=frame.data or {}, sink=sink)
        return

    session = manager.get(connection_id)
    if session is None:
        logger.debug("No live session for %s on %s", frame.event, connection_id)
        return
    if frame.event == events.STOP_SPEAKING:
        await session.finish_user_turn((frame.data or {}).get("transcript"))
    elif frame.event == events.PAUSE_INTERVIEW:
        await session.pause()
    elif frame.event == events.RESUME_INTERVIEW:
        await session.resume()
    elif frame.event == events.END_INTERVIEW:
        await session.end("completed")
    else:
        logger.debug("Ignoring unknown event %s", frame.event)


async def _run_dispatch(*args: Any) -> None:
    try:
        await _dispatch(*args)
    except Exception:  # noqa: BLE001
        logger.exception("Unhandled error while dispatching interview event")


@router.websocket("/ws/interview")
async def interview_socket(websocket: WebSocket) -> None:
    user = resolve_user(socket_token(websocket))
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    manager: SessionManager = websocket.app.state.sessions
    connection_id = uuid4().hex
    sink = WebSocketSink(websocket)
    pending: Set[asyncio.Task] = set()
    logger.info("Interview socket connected user=%s connection=%s", user.user_id, connection_id)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = Frame.model_validate_json(raw)
            except ValidationError:
                logger.debug("Ignoring malformed frame on %s", connection_id)
                continue
            task = asyncio.create_task(_run_dispatch(manager, connection_id, user, frame, sink))
            pending.add(task)
            task.add_done_callback(pending.discard)
    except WebSocketDisconnect:
        logger.info("Interview socket closed connection=%s", connection_id)
    finally:
        await manager.disconnect(connection_id)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


@router.get("/api/health", response_model=HealthResp)
def health(request: Request) -> HealthResp:
    return HealthResp(status="ok", live_sessions=len(_manager(request)))


def _summary(record: InterviewRecord) -> Dict[str, Any]:
    config = record.config
    return {
        "interview_id": record.interview_id,
        "status": record.status,
        "role": config.get("role", ""),
        "type": config.get("type", ""),
        "duration": int(config.get("duration", 0)),
        "questions_asked": record.questions_asked,
        "actual_duration": record.actual_duration,
        "started_at": record.started_at,
        "ended_at": record.ended_at,
    }


def _feedback(row: FeedbackRow) -> FeedbackResp:
    return FeedbackResp(**row.model_dump(exclude={"user_id"}))


@router.get("/api/interviews", response_model=List[InterviewSummary])
def interviews(
    status_filter: Optional[InterviewStatus] = Query(default=None, alias="status"),
    limit: int = 20,
    user: UserRecord = Depends(get_current_user),
) -> List[InterviewSummary]:
    records = list_interviews(user.user_id, status=status_filter, limit=max(1, min(limit, 100)))
    return [InterviewSummary(**_summary(record)) for record in records]


@router.get("/api/interviews/{interview_id}", response_model=InterviewDetail)
def interview_detail(interview_id: str, user: UserRecord = Depends(get_current_user)) -> InterviewDetail:
    record = get_interview(interview_id, user_id=user.user_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Interview not found")
    row = get_feedback(interview_id, user_id=user.user_id)
    return InterviewDetail(
        **_summary(record),
        config=record.config,
        transcript=record.transcript,
        feedback=_feedback(row) if row else None,
    )


@router.get("/api/interviews/{interview_id}/feedback", response_model=FeedbackResp)
def interview_feedback(interview_id: str, user: UserRecord = Depends(get_current_user)) -> FeedbackResp:
    row = get_feedback(interview_id, user_id=user.user_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Feedback not found")
    return _feedback(row)


@router.get("/api/achievements", response_model=List[AchievementResp])
def achievements(user: UserRecord = Depends(get_current_user)) -> List[AchievementResp]:
    granted = []
    for row in list_achievements(user.user_id):
        entry = ACHIEVEMENT_TYPES.get(row.achievement_type)
        if entry is None:
            continue
        granted.append(AchievementResp(**entry.model_dump(), unlocked_at=row.unlocked_at))
    return granted
