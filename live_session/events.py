"""Inbound and outbound event names for the interview channel."""
from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

# client -> server
START_INTERVIEW = "start-interview"
STOP_SPEAKING = "stop-speaking"
PAUSE_INTERVIEW = "pause-interview"
RESUME_INTERVIEW = "resume-interview"
END_INTERVIEW = "end-interview"

# server -> client
INTERVIEW_STARTED = "interview-started"
AI_THINKING = "ai-thinking"
AI_RESPONSE_TEXT = "ai-response-text"
AI_SPEAKING = "ai-speaking"
YOUR_TURN = "your-turn"
USER_TRANSCRIPT_FINAL = "user-transcript-final"
TIME_UPDATE = "time-update"
INTERVIEW_PAUSED = "interview-paused"
INTERVIEW_RESUMED = "interview-resumed"
INTERVIEW_ENDING = "interview-ending"
GENERATING_FEEDBACK = "generating-feedback"
INTERVIEW_COMPLETE = "interview-complete"
INTERVIEW_ERROR = "interview-error"


class EventSink(Protocol):  # Anything that can push an event to the connected client
    async def emit(self, event: str, data: Optional[Dict[str, Any]] = None) -> None: ...
