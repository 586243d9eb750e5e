from __future__ import annotations  # FastAPI server hosting live mock interviews

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.collaborators import LlmCollaborators
from api.routes import router
from config.settings import settings
from live_session import SessionManager
from observability import configure_logging
from storage.migrate import migrate


logger = logging.getLogger(__name__)

ROOT = Path(__file__).resolve().parent


def _config_path() -> Path:
    path = Path(settings.CONFIG_PATH)
    return path if path.is_absolute() else ROOT / path


def build_session_manager(*, tick_seconds: Optional[float] = None) -> SessionManager:  # Wire LLM collaborators
    collaborators = LlmCollaborators(_config_path())
    return SessionManager(
        generate=collaborators.generate,
        score=collaborators.score,
        tick_seconds=settings.TICK_SECONDS if tick_seconds is None else tick_seconds,
        generation_timeout=settings.GENERATION_TIMEOUT_S,
        scoring_timeout=settings.SCORING_TIMEOUT_S,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging()
    migrate(settings.DB_PATH)
    if getattr(app.state, "sessions", None) is None:
        app.state.sessions = build_session_manager()
    logger.info("Interview server ready db=%s", settings.DB_PATH)
    yield
    logger.info("Interview server stopping with %d live sessions", len(app.state.sessions))


def create_app(sessions: Optional[SessionManager] = None) -> FastAPI:
    application = FastAPI(title="Live Interview API", lifespan=lifespan)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.state.sessions = sessions
    application.include_router(router)
    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api_server:app", host="0.0.0.0", port=8000)
