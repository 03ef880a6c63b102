"""Local time-of-day context for prompts and routing."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

# (start hour inclusive, end hour exclusive, label, mood); anything else is late_night
TIME_BANDS: list[tuple[int, int, str, str]] = [
    (5, 10, "early_morning", "fresh, energetic"),
    (10, 12, "late_morning", "productive, focused"),
    (12, 17, "afternoon", "calm, steady"),
    (17, 20, "early_evening", "relaxed, social"),
    (20, 23, "evening", "cozy, reflective"),
]
LATE_NIGHT_MOOD = "intimate, thoughtful"


@dataclass(frozen=True)
class TemporalContext:
    time_of_day: str
    hour: int
    is_weekend: bool
    day_name: str
    greeting: str
    mood: str

    def describe(self) -> str:
        week = "weekend" if self.is_weekend else "weekday"
        return f"it's {self.day_name} {self.time_of_day.replace('_', ' ')} ({week}), the vibe is {self.mood}"


def get_temporal_context(
    now: Optional[datetime] = None,
    tz: str = "Asia/Jakarta",
) -> TemporalContext:
    """Classify ``now`` (default: current time) in the given timezone."""
    zone = ZoneInfo(tz)
    local = now.astimezone(zone) if now is not None else datetime.now(zone)
    hour = local.hour

    time_of_day, mood = "late_night", LATE_NIGHT_MOOD
    for start, end, label, band_mood in TIME_BANDS:
        if start <= hour < end:
            time_of_day, mood = label, band_mood
            break

    greeting = ""
    if time_of_day == "early_morning":
        greeting = "good morning! ☀️" if hour < 7 else "morning! ☀️"
    elif hour >= 23:
        greeting = "late night vibes 🌙"

    return TemporalContext(
        time_of_day=time_of_day,
        hour=hour,
        is_weekend=local.weekday() >= 5,
        day_name=local.strftime("%A"),
        greeting=greeting,
        mood=mood,
    )
