"""Tests for the lexical classifier bank."""

import re

import pytest

from src.classifiers import (
    EmotionalEventMatch,
    detect_emotion,
    detect_emotional_event,
    detect_intent,
    detect_language,
    detect_tone,
    is_trivial,
)
from src.classifiers import emotion as emotion_module
from src.memory.models import ChatMessage


class TestDetectIntent:
    """Intent labels by first-match priority."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("what time is it", "question"),
            ("kamu lagi apa?", "question"),
            ("tell me a story", "command"),
            ("tolong bantu aku", "command"),
            ("i feel great today", "emotional"),
            ("my python code has a bug", "technical"),
            ("haha nice", "smalltalk"),
            ("just got home", "casual"),
        ],
    )
    def test_labels(self, text, expected):
        assert detect_intent(text) == expected

    def test_question_beats_command(self):
        """Earlier groups win even when later ones also match."""
        assert detect_intent("can you help me find it?") == "question"

    def test_empty_text_is_casual(self):
        assert detect_intent("") == "casual"


class TestDetectEmotion:
    """Emotion labels."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("haha that was amazing", "happy"),
            ("I lost my job today", "sad"),
            ("ugh this is so annoying, I'm frustrated", "frustrated"),
            ("I'm really worried about tomorrow", "anxious"),
            ("hey babe 😘", "flirty"),
            ("the bus is late", "neutral"),
        ],
    )
    def test_labels(self, text, expected):
        assert detect_emotion(text) == expected

    def test_case_insensitive(self):
        assert detect_emotion("SO SAD") == "sad"

    def test_word_boundaries(self):
        """Substrings inside other words do not trigger a label."""
        assert detect_emotion("the madrid match") == "neutral"


class TestDetectEmotionalEvent:
    """Emotional event detection."""

    def test_distress_requires_sad(self):
        event = detect_emotional_event("I lost my job today", "sad")
        assert event == EmotionalEventMatch("distress", "high", "major life event")

    def test_distress_keywords_without_sad_emotion(self):
        """The same words under another emotion are not distress."""
        assert detect_emotional_event("I lost my keys lol", "happy") is None

    def test_celebration(self):
        event = detect_emotional_event("I got promoted!", "happy")
        assert event is not None
        assert event.type == "celebration"

    def test_vulnerability_any_emotion(self):
        event = detect_emotional_event("can I tell you something", "neutral")
        assert event is not None
        assert event.type == "vulnerability"

    def test_conflict_is_medium(self):
        event = detect_emotional_event("we need to talk", "neutral")
        assert event is not None
        assert event.intensity == "medium"

    def test_no_event(self):
        assert detect_emotional_event("what's for dinner", "neutral") is None


class TestDetectTone:
    """Tone over history plus latest message."""

    def test_history_contributes(self):
        history = [ChatMessage(role="user", content="wkwk lucu banget")]
        assert detect_tone(history, "ok") == "playful"

    def test_accepts_strings(self):
        assert detect_tone(["deadline besok"], "pusing") == "serious"

    def test_first_match_wins(self):
        """Playful is checked before flirty."""
        assert detect_tone([], "haha sayang") == "playful"

    def test_neutral_default(self):
        assert detect_tone([], "the weather is mild") == "neutral"


class TestDetectLanguage:
    """Language detection."""

    def test_english(self):
        assert detect_language("I think you should tell them today") == "english"

    def test_indonesian(self):
        assert detect_language("aku capek banget hari ini") == "indonesian"

    def test_strong_indonesian_breaks_tie(self):
        assert detect_language("ok nih") == "indonesian"

    def test_mixed_when_nothing_matches(self):
        assert detect_language("12345") == "mixed"


class TestIsTrivial:
    """Acknowledgement-only messages."""

    @pytest.mark.parametrize("text", ["ok", "OK", "hmm", "  ya ", "iya", "k", "okay!"])
    def test_trivial(self, text):
        assert is_trivial(text)

    @pytest.mark.parametrize("text", ["ok but why", "yes please", "hello there"])
    def test_not_trivial(self, text):
        assert not is_trivial(text)


class TestReplaceableTables:
    """Pattern tables are plain module data."""

    def test_patch_emotion_table(self, monkeypatch):
        monkeypatch.setattr(
            emotion_module,
            "EMOTION_PATTERNS",
            [("happy", re.compile(r"\bpizza\b", re.I))],
        )
        assert emotion_module.detect_emotion("pizza time") == "happy"
        assert emotion_module.detect_emotion("I am sad") == "neutral"
