"""Mood drift: a recency-weighted polarity average over recent moods."""

from collections import Counter
from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Optional

from .models import MoodDrift, MoodEntry

MOOD_POLARITY: dict[str, float] = {
    "happy": 1.0,
    "excited": 1.0,
    "flirty": 0.5,
    "neutral": 0.0,
    "anxious": -0.8,
    "sad": -1.0,
    "frustrated": -1.0,
}

TREND_THRESHOLD = 0.3


def calculate_mood_drift(
    history: Sequence[MoodEntry],
    now: datetime,
    window_hours: float = 24.0,
) -> MoodDrift:
    """Summarize the moods recorded within the last ``window_hours``.

    Entries are weighted linearly by position: with N entries in the window
    the oldest gets 1/N and the newest 1.0. The score is the weighted mean
    polarity, so it always lies in [-1, 1].
    """
    cutoff = now - timedelta(hours=window_hours)
    window = sorted(
        (entry for entry in history if entry.timestamp >= cutoff),
        key=lambda entry: entry.timestamp,
    )
    if not window:
        return MoodDrift()

    n = len(window)
    weighted = 0.0
    total_weight = 0.0
    for index, entry in enumerate(window):
        weight = (index + 1) / n
        weighted += MOOD_POLARITY.get(entry.emotion, 0.0) * weight
        total_weight += weight
    score = weighted / total_weight

    if score > TREND_THRESHOLD:
        trend = "positive"
    elif score < -TREND_THRESHOLD:
        trend = "negative"
    else:
        trend = "stable"

    dominant = Counter(entry.emotion for entry in window).most_common(1)[0][0]
    return MoodDrift(score=score, trend=trend, dominant_mood=dominant)


def tone_for_drift(drift: MoodDrift) -> Optional[str]:
    """Tone the conversation should shift to, if the drift calls for one."""
    if drift.dominant_mood == "sad" and drift.score < -0.5:
        return "emotional"
    if drift.dominant_mood == "happy" and drift.score > 0.5:
        return "playful"
    if drift.dominant_mood == "flirty":
        return "flirty"
    return None
