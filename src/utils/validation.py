"""Heuristics for rejecting unusable model output."""

import re

_REPEATED_CHAR = re.compile(r"(.)\1{4,}")
_VOWEL = re.compile(r"[aeiou]", re.I)
_PUNCTUATION = re.compile(r"[^\w\s]")


def is_gibberish(text: str | None) -> bool:
    """True when text looks like noise rather than a sentence."""
    if not text or not isinstance(text, str):
        return True

    trimmed = text.strip()
    if len(trimmed) < 3:
        return True
    if _REPEATED_CHAR.search(trimmed):
        return True
    if len(trimmed) > 20 and not _VOWEL.search(trimmed):
        return True
    # Too much punctuation
    return len(_PUNCTUATION.findall(trimmed)) > len(trimmed) * 0.5


def is_valid_message(text: str | None) -> bool:
    if not text or not isinstance(text, str):
        return False
    trimmed = text.strip()
    return bool(trimmed) and not is_gibberish(trimmed)
