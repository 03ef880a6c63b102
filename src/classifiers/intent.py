"""Intent detection and trivial-message checks."""

import re

# Ordered: the first group that matches wins.
INTENT_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    (
        "question",
        re.compile(
            r"\?|\b(apa|what|why|how|when|where|who|gimana|kenapa|kapan|dimana|siapa)\b",
            re.I,
        ),
    ),
    (
        "command",
        re.compile(
            r"\b(tell me|make|find|show|help|tolong|bantu|cariin|buatin)\b",
            re.I,
        ),
    ),
    (
        "emotional",
        re.compile(
            r"\b(i feel|i'm|im|aku|feeling|sedih|senang|marah|kecewa|excited"
            r"|love|hate|miss|rindu)\b",
            re.I,
        ),
    ),
    (
        "technical",
        re.compile(
            r"\b(code|function|bug|error|programming|javascript|python|html|css"
            r"|api|database|script)\b",
            re.I,
        ),
    ),
    (
        "smalltalk",
        re.compile(r"\b(haha|lol|wkwk\w*|hehe|hmm|ok|ya|iya|nice|cool)\b", re.I),
    ),
]

DEFAULT_INTENT = "casual"

TRIVIAL_PATTERN = re.compile(
    r"^(ok|okay|oke|okey|hmm+|hm|ya|iya|yep|sure|fine|k|haha|hehe|wkwk\w*|lol)[.!]*$",
    re.I,
)


def detect_intent(text: str) -> str:
    """Classify a message as question, command, emotional, technical,
    smalltalk or casual."""
    for intent, pattern in INTENT_PATTERNS:
        if pattern.search(text):
            return intent
    return DEFAULT_INTENT


def is_trivial(text: str) -> bool:
    """True for acknowledgement-only messages like "ok" or "hmm"."""
    return bool(TRIVIAL_PATTERN.match(text.strip()))
