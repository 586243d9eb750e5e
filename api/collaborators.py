from __future__ import annotations  # Async adapters around the blocking LLM collaborators

import asyncio
from pathlib import Path
from typing import List

from config import DIALOGUE_ROUTE_KEY, SCORING_ROUTE_KEY, load_route
from dialogue_policy import generate_reply
from live_session import SessionConfig, TimeState, TranscriptEntry
from scoring_pass import Feedback, score_transcript


class LlmCollaborators:  # Binds routes from app config once, runs calls off the event loop
    def __init__(self, config_path: Path) -> None:
        self.dialogue_route = load_route(config_path, DIALOGUE_ROUTE_KEY)
        self.scoring_route = load_route(config_path, SCORING_ROUTE_KEY)

    async def generate(
        self,
        config: SessionConfig,
        transcript: List[TranscriptEntry],
        time_state: TimeState,
    ) -> str:
        return await asyncio.to_thread(
            generate_reply, config, transcript, time_state, route=self.dialogue_route
        )

    async def score(self, config: SessionConfig, transcript: List[TranscriptEntry]) -> Feedback:
        return await asyncio.to_thread(score_transcript, config, transcript, route=self.scoring_route)
