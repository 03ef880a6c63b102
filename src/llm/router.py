"""Score-based model router.

Every role starts at a small base score and accumulates boosts from the
turn's intent, emotion, time of day and mood drift. The strictly highest
score wins; ties go to the role listed first in ``ROLES``.
"""

from dataclasses import dataclass, field
from typing import Optional

import structlog

from src.bot.temporal import TemporalContext
from src.config.settings import Settings
from src.memory.models import MoodDrift

logger = structlog.get_logger()

ROLES = ("factual", "emotional", "creative", "coding", "summarization")
BASE_SCORE = 0.1

INTENT_BOOSTS: dict[str, dict[str, float]] = {
    "question": {"factual": 0.7},
    "command": {"factual": 0.7},
    "emotional": {"emotional": 0.8},
    "technical": {"coding": 0.9},
    "smalltalk": {"creative": 0.6},
}
DEFAULT_INTENT_BOOST: dict[str, float] = {"emotional": 0.5}

EMOTION_BOOSTS: dict[str, dict[str, float]] = {
    "sad": {"emotional": 0.4},
    "anxious": {"emotional": 0.4},
    "frustrated": {"emotional": 0.4},
    "flirty": {"creative": 0.5, "emotional": 0.3},
    "happy": {"creative": 0.3},
    "excited": {"creative": 0.3},
}

LATE_NIGHT_BOOST = {"emotional": 0.2}
WEEKEND_BOOST = {"creative": 0.1}

NEGATIVE_DRIFT = -0.5
POSITIVE_DRIFT = 0.5
NEGATIVE_DRIFT_BOOST = {"emotional": 0.3}
POSITIVE_DRIFT_BOOST = {"creative": 0.2}


@dataclass
class ModelSelection:
    """Result of model routing."""

    role: str
    model: str
    confidence: float  # winning score
    scores: dict[str, float] = field(default_factory=dict)


class ModelRouter:
    """Pick the generation model for a turn."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._role_models = settings.role_models

    def score(
        self,
        intent: str,
        emotion: str,
        temporal: Optional[TemporalContext] = None,
        mood_drift: Optional[MoodDrift] = None,
    ) -> dict[str, float]:
        """Raw per-role scores, in ``ROLES`` order."""
        scores = {role: BASE_SCORE for role in ROLES}

        def boost(deltas: dict[str, float]) -> None:
            for role, delta in deltas.items():
                scores[role] += delta

        boost(INTENT_BOOSTS.get(intent, DEFAULT_INTENT_BOOST))
        boost(EMOTION_BOOSTS.get(emotion, {}))

        if temporal is not None:
            if temporal.time_of_day == "late_night":
                boost(LATE_NIGHT_BOOST)
            if temporal.is_weekend:
                boost(WEEKEND_BOOST)

        if mood_drift is not None:
            if mood_drift.score < NEGATIVE_DRIFT:
                boost(NEGATIVE_DRIFT_BOOST)
            elif mood_drift.score > POSITIVE_DRIFT:
                boost(POSITIVE_DRIFT_BOOST)

        # Rounded so equal sums reached in different orders compare equal
        return {role: round(value, 6) for role, value in scores.items()}

    def select_model(
        self,
        intent: str,
        emotion: str,
        temporal: Optional[TemporalContext] = None,
        mood_drift: Optional[MoodDrift] = None,
    ) -> ModelSelection:
        scores = self.score(intent, emotion, temporal, mood_drift)

        best_role = ROLES[0]
        for role in ROLES[1:]:
            if scores[role] > scores[best_role]:
                best_role = role

        selection = ModelSelection(
            role=best_role,
            model=self._role_models[best_role],
            confidence=scores[best_role],
            scores=scores,
        )
        logger.debug(
            "Model selected",
            role=selection.role,
            model=selection.model,
            confidence=selection.confidence,
        )
        return selection

    def fallback_chain(self, model: str) -> list[str]:
        """Configured fallbacks to try after ``model``, without repeats."""
        chain: list[str] = []
        for candidate in self._settings.fallback_models:
            if candidate != model and candidate not in chain:
                chain.append(candidate)
        return chain
