"""Emotion, emotional-event and conversational tone detection.

Every detector is a pure first-match scan over an ordered table of
``(label, pattern)`` pairs. The tables are module constants so they can be
swapped or extended without touching the scan logic.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Optional

EMOTION_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    (
        "happy",
        re.compile(
            r"😂|😄|😊|\b(haha|hehe|lol|happy|excited|love|amazing|great|good|nice"
            r"|thanks|thank you|senang|bahagia)\b",
            re.I,
        ),
    ),
    (
        "sad",
        re.compile(
            r"😭|😢|\b(sad|cry|crying|hurt|pain|miss|lonely|depressed|tired|exhausted"
            r"|lost|broke up|died|fired|sedih|nangis)\b",
            re.I,
        ),
    ),
    (
        "frustrated",
        re.compile(
            r"\b(angry|mad|hate|annoyed|frustrated|ugh|wtf|damn|shit|kesel|marah)\b",
            re.I,
        ),
    ),
    (
        "anxious",
        re.compile(
            r"\b(worried|anxious|scared|nervous|stress|stressed|afraid|help|please"
            r"|takut|cemas)\b",
            re.I,
        ),
    ),
    (
        "flirty",
        re.compile(
            r"😘|❤️|💕|\b(baby|babe|cutie|handsome|beautiful|miss you|love you"
            r"|sayang|cantik|ganteng)\b",
            re.I,
        ),
    ),
]

DEFAULT_EMOTION = "neutral"


@dataclass(frozen=True)
class EmotionalEventMatch:
    """A message significant enough to remember as an emotional event."""

    type: str  # distress | celebration | vulnerability | intimate | conflict
    intensity: str  # high | medium
    trigger: str


# (required emotion or None, pattern, match)
EVENT_PATTERNS: list[tuple[Optional[str], re.Pattern[str], EmotionalEventMatch]] = [
    (
        "sad",
        re.compile(
            r"\b(broke up|breakup|lost|died|death|fired|rejected|failed|nightmare"
            r"|terrible day)\b",
            re.I,
        ),
        EmotionalEventMatch("distress", "high", "major life event"),
    ),
    (
        "happy",
        re.compile(
            r"\b(got the job|promoted|passed|won|accepted|good news|amazing news"
            r"|birthday|anniversary)\b",
            re.I,
        ),
        EmotionalEventMatch("celebration", "high", "major achievement"),
    ),
    (
        None,
        re.compile(
            r"(i never told anyone|can i tell you something|i'm scared"
            r"|i don't know what to do|i feel lost)",
            re.I,
        ),
        EmotionalEventMatch("vulnerability", "high", "deep sharing"),
    ),
    (
        None,
        re.compile(
            r"(i love you|you mean everything|you're special|i care about you"
            r"|thinking about you)",
            re.I,
        ),
        EmotionalEventMatch("intimate", "high", "emotional bonding"),
    ),
    (
        None,
        re.compile(
            r"(why did you|you hurt me|i'm disappointed|we need to talk"
            r"|i'm upset with you)",
            re.I,
        ),
        EmotionalEventMatch("conflict", "medium", "relationship tension"),
    ),
]

TONE_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    (
        "playful",
        re.compile(
            r"\b(haha|hehe|lol|wkwk\w*|anjay|gabut|ngantuk|lucu|teasing|main|game"
            r"|nakal|gemes|cute)\b",
            re.I,
        ),
    ),
    (
        "serious",
        re.compile(
            r"\b(kenapa|gimana|menurutmu|jelaskan|tolong|serius|capek|masalah|penting"
            r"|pusing|kerja|deadline|proyek)\b",
            re.I,
        ),
    ),
    (
        "flirty",
        re.compile(
            r"😘|💕|❤️|\b(sayang|babe|cantik|ganteng|manis|rindu|kangen|love you|cium)\b",
            re.I,
        ),
    ),
    (
        "emotional",
        re.compile(
            r"\b(sedih|nangis|kecewa|hurt|tired|sendirian|bingung|stress|depres\w*)\b",
            re.I,
        ),
    ),
    (
        "sarcastic",
        re.compile(
            r"\b(yha|ok lah|yaudah|whatever|sure|fine|terserah|iyain aja)\b",
            re.I,
        ),
    ),
]

DEFAULT_TONE = "neutral"


def detect_emotion(text: str) -> str:
    for emotion, pattern in EMOTION_PATTERNS:
        if pattern.search(text):
            return emotion
    return DEFAULT_EMOTION


def detect_emotional_event(text: str, emotion: str) -> Optional[EmotionalEventMatch]:
    """Return the event a message represents, or None.

    Distress and celebration additionally require the matching emotion.
    """
    for required_emotion, pattern, match in EVENT_PATTERNS:
        if required_emotion is not None and emotion != required_emotion:
            continue
        if pattern.search(text):
            return match
    return None


def detect_tone(history: Sequence[Any], latest: str) -> str:
    """Infer the conversation tone from recent messages plus the latest one.

    ``history`` items may be chat messages (anything with ``content``) or
    plain strings.
    """
    contents = [getattr(message, "content", message) for message in history]
    combined = " ".join([*(str(c) for c in contents), latest])
    for tone, pattern in TONE_PATTERNS:
        if pattern.search(combined):
            return tone
    return DEFAULT_TONE
