from __future__ import annotations  # Re-export dialogue_policy public API

from .dialogue_policy import (  # noqa: F401
    COMPANY_TONES,
    IMMUTABLE_RULES,
    OPENING_CUE,
    STYLE_TONES,
    build_messages,
    build_system_prompt,
    generate_reply,
    persona_tone,
    reply_with_config,
    time_directive,
)

__all__ = [
    "COMPANY_TONES",
    "IMMUTABLE_RULES",
    "OPENING_CUE",
    "STYLE_TONES",
    "build_messages",
    "build_system_prompt",
    "generate_reply",
    "persona_tone",
    "reply_with_config",
    "time_directive",
]
