"""Pure lexical classifiers: intent, emotion, tone, language, events."""

from .emotion import (
    EmotionalEventMatch,
    detect_emotion,
    detect_emotional_event,
    detect_tone,
)
from .intent import detect_intent, is_trivial
from .language import detect_language

__all__ = [
    "EmotionalEventMatch",
    "detect_emotion",
    "detect_emotional_event",
    "detect_intent",
    "detect_language",
    "detect_tone",
    "is_trivial",
]
