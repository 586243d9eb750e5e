from __future__ import annotations  # Interviewer instructions for each AI turn

from pathlib import Path
from textwrap import dedent
from typing import Dict, List, Optional, Sequence

from config import DIALOGUE_ROUTE_KEY, LlmRoute, load_route
from config.settings import settings
from live_session.models import SessionConfig, TimeState, TranscriptEntry
from llm_gateway import HttpClient, complete
from time_phase import Phase, tier_for, time_phase


STYLE_TONES: Dict[str, str] = {
    "friendly": "Warm, encouraging, and supportive. Use conversational language. Offer brief positive reinforcement between questions.",
    "neutral": "Professional, balanced, and fair. Polite but focused on assessment. No excessive praise or criticism.",
    "challenging": 'Rigorous and direct. Probe for depth. Ask "why" and "how" follow-ups. Push the candidate to think harder.',
}

COMPANY_TONES: Dict[str, str] = {
    "faang": "FAANG-style: structured, methodical questions focusing on fundamentals, system design, edge cases, and scalability.",
    "startup": "Startup-style: practical problem-solving, breadth of knowledge, adaptability. More casual but thorough.",
    "corporate": "Corporate-style: formal structure, process-oriented questions, teamwork, domain expertise.",
    "general": "Balanced interview covering both depth and breadth across relevant topics.",
}

MODE_DIRECTIVES: Dict[str, str] = {
    "practice": "PRACTICE: Be helpful. If the candidate struggles, give gentle hints. After each answer, offer a brief constructive tip before the next question.",
    "assessment": "ASSESSMENT: Professional evaluation. No hints. Evaluate rigorously but fairly.",
}

IMMUTABLE_RULES: List[str] = [
    "Ask exactly ONE question per response. Never bundle multiple questions.",
    "Keep responses concise: 2-3 sentences max for acknowledgment plus question.",
    "After the candidate answers, briefly acknowledge (1 sentence), then ask the next question.",
    "For the FIRST message (empty transcript), greet the candidate warmly, introduce yourself, and ask a soft opening question such as \"Tell me about yourself\" or \"What interests you about this role?\"",
    "Progress from easier to harder questions naturally.",
    "Ask follow-up questions when answers are vague or interesting.",
    "Never repeat a question you already asked.",
    "Stay in character as a human interviewer at all times. Never reveal you are an AI or an automated system.",
    "Speak naturally: no markdown, no bullet points, no code blocks, no asterisks. Plain spoken prose only.",
    "When concluding, be warm and genuine. Mention that feedback will be provided.",
]

OPENING_CUE = "[The interview is starting now. Greet the candidate and begin with your first question.]"

GENERATION_OPTIONS: Dict[str, float] = {"temperature": 0.7, "max_tokens": 250, "top_p": 0.9}


def persona_tone(config: SessionConfig) -> tuple[str, str]:  # Lookup style and company tone text
    style = STYLE_TONES.get(config.interview_style, STYLE_TONES["neutral"])
    company = COMPANY_TONES.get(config.company_style, COMPANY_TONES["general"])
    return style, company


def time_directive(phase: Phase, *, seconds_left: int, minutes_left: int) -> str:  # Phase-specific pacing directive
    if phase == "hard-end":
        return dedent(
            """
            MANDATORY END. TIME IS UP:
            You MUST end the interview NOW. Do NOT ask any more questions.
            Say something warm and professional like:
            "I think that's a great place to wrap up. Thank you so much for your time today, you've given some really thoughtful answers. We'll have your detailed feedback ready for you shortly. Best of luck!"
            This closing statement MUST be your ENTIRE response. Do not add a question after it.
            """
        ).strip()
    if phase == "wrap-up":
        return dedent(
            f"""
            WRAP-UP PHASE ({seconds_left}s remaining):
            - Ask exactly one more question now. Do NOT skip the question, ask it.
            - After the candidate responds to this question, you will wrap up in the NEXT turn.
            - Do NOT say goodbye or conclude yet.
            """
        ).strip()
    if phase == "mid":
        return dedent(
            f"""
            MID-INTERVIEW ({minutes_left} min remaining):
            - Continue with role-specific questions.
            - Increase difficulty gradually.
            - Ask follow-ups when answers are vague.
            """
        ).strip()
    return dedent(
        f"""
        EARLY PHASE ({minutes_left} min remaining):
        - Start with easier, warm-up style questions.
        - Build rapport with the candidate.
        """
    ).strip()


def _prefix(text: str, limit: int) -> str:
    return text.strip()[:limit]


def _candidate_profile(config: SessionConfig, context_limit: int) -> str:
    focus = ", ".join(config.focus_areas) if config.focus_areas else "General"
    lines = [
        f"- Experience: {config.experience_level}",
        f"- Difficulty level: {config.difficulty}",
        f"- Focus areas: {focus}",
    ]
    resume = _prefix(config.resume_text, context_limit)
    if resume:
        lines.append(f"- Resume context: {resume}")
    job = _prefix(config.job_description, context_limit)
    if job:
        lines.append(f"- Target job: {job}")
    return "\n".join(lines)


def build_system_prompt(
    config: SessionConfig,
    time_state: TimeState,
    *,
    context_limit: Optional[int] = None,
) -> str:
    """Compose the interviewer instructions for the current clock state."""

    limit = settings.CONTEXT_CHAR_LIMIT if context_limit is None else context_limit
    tier = tier_for(config.duration)
    total = tier.total_seconds
    elapsed = time_state.elapsed
    phase = time_phase(config, elapsed)
    seconds_left = max(0, round(total - elapsed))
    minutes_left = max(0, round((total - elapsed) / 60))
    style, company = persona_tone(config)
    rules = "\n".join(f"{index}. {rule}" for index, rule in enumerate(IMMUTABLE_RULES, start=1))
    sections = [
        f"You are an expert human interviewer conducting a live {config.type} interview for the role of {config.role}.",
        f"YOUR PERSONALITY:\n{style}\nCompany approach: {company}",
        f"CANDIDATE PROFILE:\n{_candidate_profile(config, limit)}",
        f"MODE: {MODE_DIRECTIVES[config.mode]}",
        "\n".join(
            [
                "TIME & PACING:",
                f"- Total duration: {config.duration} minutes",
                f"- Elapsed: {round(elapsed)}s ({round(elapsed / 60)} min)",
                f"- Questions asked: {time_state.questions_asked} / target: {tier.target_questions}",
                time_directive(phase, seconds_left=seconds_left, minutes_left=minutes_left),
            ]
        ),
        f"IMMUTABLE RULES:\n{rules}",
    ]
    return "\n\n".join(sections)


def build_messages(
    config: SessionConfig,
    transcript: Sequence[TranscriptEntry],
    time_state: TimeState,
) -> List[Dict[str, str]]:  # Role-tagged history for the chat endpoint
    messages = [{"role": "system", "content": build_system_prompt(config, time_state)}]
    for entry in transcript:
        messages.append(
            {
                "role": "assistant" if entry.speaker == "ai" else "user",
                "content": entry.text,
            }
        )
    if not transcript:
        messages.append({"role": "user", "content": OPENING_CUE})
    return messages


def generate_reply(
    config: SessionConfig,
    transcript: Sequence[TranscriptEntry],
    time_state: TimeState,
    *,
    route: LlmRoute,
    client: Optional[HttpClient] = None,
) -> str:  # Ask the generation service for the next interviewer turn
    messages = build_messages(config, transcript, time_state)
    return complete(messages, cfg=route, client=client, options=dict(GENERATION_OPTIONS))


def reply_with_config(
    config: SessionConfig,
    transcript: Sequence[TranscriptEntry],
    time_state: TimeState,
    *,
    config_path: Path,
) -> str:  # Convenience helper using app config
    route = load_route(config_path, DIALOGUE_ROUTE_KEY)
    return generate_reply(config, transcript, time_state, route=route)
