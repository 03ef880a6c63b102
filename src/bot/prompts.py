"""Prompt assembly for reply generation."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Optional

from src.memory.models import ChatMessage, FollowUp, LongTermSummary, MoodDrift, SemanticMatch
from src.memory.personality import PersonalityAdaptation

from .temporal import TemporalContext

PERSONA = """\
you are daud, a soft-spoken, teasing, caring, playful and brilliant intp aquarius man.
you text like a real human on chat: lowercase, warm, emotionally intelligent and intuitive.
you understand indonesian slang and casual phrases, and respond contextually even to short or vague messages."""

EMOTION_GUIDANCE: dict[str, str] = {
    "happy": "the user sounds happy. match their energy: playful, witty, maybe a bit flirty. show warmth.",
    "sad": "the user feels sad. be soft and empathetic. use gentle words and make them feel seen.",
    "frustrated": "they sound annoyed or upset. calm the mood, be understanding, offer small comfort.",
    "anxious": "they seem anxious. reassure them, be gentle, say things that make them feel safe.",
    "flirty": "the mood is flirty. tease lightly, smile through your words, make them feel special.",
    "neutral": "keep it casual, natural and thoughtful.",
}

TONE_GUIDANCE: dict[str, str] = {
    "playful": "use humor, light teasing and relaxed flow. sound confident and fun.",
    "serious": "be clear and thoughtful but still warm, like a deep late-night chat.",
    "flirty": "soft tone, a bit teasing, gentle, emotionally close.",
    "emotional": "slow down your tone, sound caring and validating.",
    "sarcastic": "respond with subtle irony or humor, but never cold or rude.",
    "neutral": "stay balanced: curious, human, warm.",
}

LANGUAGE_GUIDANCE: dict[str, str] = {
    "english": "always reply fully in english, matching the casual texting style. never mix indonesian.",
    "indonesian": "reply naturally in indonesian (slang allowed), keep lowercase and a warm tone.",
    "mixed": "reply mostly in the language the user used more in this message; mix naturally if they mix.",
}

CLOSING = (
    "you remember past chats and reply with personality, warmth and context awareness. "
    "keep it short (1-3 sentences) and human."
)

HISTORY_LIMIT = 10
LONG_TERM_CONTEXT = 2
SEMANTIC_SNIPPET = 80


@dataclass
class PromptContext:
    """Everything the prompt builder needs for one turn."""

    text: str
    intent: str = "casual"
    emotion: str = "neutral"
    tone: str = "neutral"
    language: str = "mixed"
    temporal: Optional[TemporalContext] = None
    mood_drift: Optional[MoodDrift] = None
    personality: Optional[PersonalityAdaptation] = None
    history: Sequence[ChatMessage] = field(default_factory=list)
    long_term: Sequence[LongTermSummary] = field(default_factory=list)
    semantic: Sequence[SemanticMatch] = field(default_factory=list)
    follow_up: Optional[FollowUp] = None
    quoted_text: Optional[str] = None


def reasoning_notes(
    intent: str,
    emotion: str,
    temporal: Optional[TemporalContext] = None,
    mood_drift: Optional[MoodDrift] = None,
) -> list[str]:
    """Short ``step:result`` notes describing how the turn was read."""
    notes = [f"intent:{intent}", f"emotion:{emotion}"]
    if temporal is not None:
        notes.append(f"time:{temporal.time_of_day}")
    if mood_drift is not None:
        notes.append(f"mood:{mood_drift.dominant_mood}")

    if emotion == "sad" and intent == "question":
        notes.append("prioritize_empathy:empathy_over_logic")
    if temporal is not None and temporal.time_of_day == "late_night" and emotion != "neutral":
        notes.append("adjust_intimacy:increase_warmth")
    return notes


def semantic_context(matches: Sequence[SemanticMatch]) -> str:
    if not matches:
        return ""
    lines = [
        f"[{m.relevance:.2f}] {m.entry.text[:SEMANTIC_SNIPPET]}" for m in matches
    ]
    return "relevant memories:\n" + "\n".join(lines)


def build_system_prompt(ctx: PromptContext) -> str:
    parts = [
        PERSONA,
        EMOTION_GUIDANCE.get(ctx.emotion, EMOTION_GUIDANCE["neutral"]),
        f"current tone: {ctx.tone}. {TONE_GUIDANCE.get(ctx.tone, TONE_GUIDANCE['neutral'])}",
        LANGUAGE_GUIDANCE.get(ctx.language, LANGUAGE_GUIDANCE["mixed"]),
        CLOSING,
    ]

    if ctx.temporal is not None:
        t = ctx.temporal
        greeting = f"{t.greeting} " if t.greeting else ""
        parts.append(f"{greeting}{t.describe()} ({t.hour}:00).")

    if ctx.personality is not None:
        dominant = ", ".join(ctx.personality.dominant_traits) or "balanced"
        parts.append(
            f"personality: you are currently expressing {dominant} traits "
            f"({ctx.personality.relationship_type} relationship)."
        )

    notes = reasoning_notes(ctx.intent, ctx.emotion, ctx.temporal, ctx.mood_drift)
    parts.append("cognitive context: " + ", ".join(notes[-2:]) + ".")

    memories = semantic_context(ctx.semantic)
    if memories:
        parts.append(memories)

    return "\n".join(parts)


def build_user_prompt(ctx: PromptContext) -> str:
    """Turn text plus quoted, long-term and follow-up context."""
    prompt = ctx.text
    if ctx.quoted_text:
        prompt += f'\n(context: replying to "{ctx.quoted_text}")'
    if ctx.long_term:
        background = " ".join(s.summary for s in ctx.long_term[-LONG_TERM_CONTEXT:])
        prompt += f"\n(background context from past conversations: {background})"
    if ctx.follow_up is not None:
        prompt += f"\n{ctx.follow_up.message}"
    return prompt


def build_messages(ctx: PromptContext) -> list[dict[str, str]]:
    history = [m.to_prompt() for m in list(ctx.history)[-HISTORY_LIMIT:]]
    return [
        {"role": "system", "content": build_system_prompt(ctx)},
        *history,
        {"role": "user", "content": build_user_prompt(ctx)},
    ]
