"""Live interview session package."""
from . import events  # noqa: F401
from .events import EventSink  # noqa: F401
from .manager import SessionManager  # noqa: F401
from .models import SessionConfig, TimeState, TranscriptEntry  # noqa: F401
from .session import CLOSING_PHRASES, InterviewSession, is_closing_statement  # noqa: F401

__all__ = [
    "CLOSING_PHRASES",
    "EventSink",
    "InterviewSession",
    "SessionConfig",
    "SessionManager",
    "TimeState",
    "TranscriptEntry",
    "events",
    "is_closing_statement",
]
