"""Persona adaptation: per-turn trait shaping and relationship detection.

A sender's stored ``PersonalityProfile`` drifts slowly toward what each turn
calls for. Per turn the profile is nudged by conversation domain, blended
with the relationship persona, then tweaked for the detected emotion and
intent.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

import structlog

from .models import TRAIT_NAMES, PersonalityProfile, RelationshipState

logger = structlog.get_logger()

TRAIT_FLOOR = 0.1
DOMINANT_TRAIT_THRESHOLD = 0.7
PERSONA_INFLUENCE = 0.3

# (pattern, {trait: delta})
DOMAIN_ADJUSTMENTS: list[tuple[re.Pattern[str], dict[str, float]]] = [
    (
        re.compile(r"\b(work|project|deadline|job|career|business|meeting|task)", re.I),
        {"logic": 0.1, "empathy": 0.05, "playfulness": -0.05},
    ),
    (
        re.compile(r"\b(love|relationship|family|friend|feel|heart|miss|care|emotion)", re.I),
        {"empathy": 0.15, "flirtiness": 0.1, "logic": -0.05},
    ),
    (
        re.compile(
            r"\b(game|fun|joke|laugh|dream|art|music|creative|play|adventure)", re.I
        ),
        {"playfulness": 0.1, "humor": 0.1, "curiosity": 0.05},
    ),
    (
        re.compile(
            r"\b(learn|study|book|idea|think|understand|explain|knowledge|question)", re.I
        ),
        {"curiosity": 0.15, "logic": 0.1},
    ),
]

# Checked in order; on equal scores the earlier persona wins.
RELATIONSHIP_PERSONAS: list[tuple[str, re.Pattern[str], dict[str, float]]] = [
    (
        "romantic",
        re.compile(
            r"❤️|💕|😘|\b(love|babe|sayang|miss|rindu|cute|handsome|beautiful|kiss|hug)",
            re.I,
        ),
        {"flirtiness": 0.9, "empathy": 0.9, "playfulness": 0.8, "humor": 0.7},
    ),
    (
        "friend",
        re.compile(
            r"\b(friend|buddy|bro|sis|hang out|chill|fun|game|movie|laugh|joke)", re.I
        ),
        {"playfulness": 0.9, "humor": 0.9, "curiosity": 0.8, "empathy": 0.7},
    ),
    (
        "counselor",
        re.compile(
            r"\b(problem|advice|help|sad|depressed|stress|worry|anxious|hurt|pain)", re.I
        ),
        {"empathy": 1.0, "logic": 0.8, "curiosity": 0.7, "humor": 0.3},
    ),
    (
        "mentor",
        re.compile(
            r"\b(learn|teach|explain|understand|study|work|career|goal|improve)", re.I
        ),
        {"logic": 0.9, "curiosity": 0.9, "empathy": 0.7, "humor": 0.6},
    ),
    (
        "companion",
        re.compile(
            r"\b(daily|routine|chat|talk|share|boring|random|anything|everything)", re.I
        ),
        {"curiosity": 0.8, "empathy": 0.8, "humor": 0.7, "playfulness": 0.7},
    ),
]

DEFAULT_RELATIONSHIP = "companion"

EMOTION_ADJUSTMENTS: dict[str, dict[str, float]] = {
    "sad": {"empathy": 0.1, "humor": -0.2},
    "flirty": {"flirtiness": 0.1, "playfulness": 0.1},
    "frustrated": {"empathy": 0.15, "logic": 0.1},
}

INTENT_ADJUSTMENTS: dict[str, dict[str, float]] = {
    "question": {"logic": 0.1, "curiosity": 0.1},
}


@dataclass
class PersonalityAdaptation:
    """Traits to express on this turn."""

    traits: dict[str, float]
    relationship_type: str = DEFAULT_RELATIONSHIP
    dominant_traits: list[str] = field(default_factory=list)

    @property
    def confidence(self) -> float:
        if not self.traits:
            return 0.0
        return sum(self.traits.values()) / len(self.traits)


def _apply(traits: dict[str, float], deltas: dict[str, float]) -> None:
    for name, delta in deltas.items():
        traits[name] = max(TRAIT_FLOOR, min(1.0, traits.get(name, 0.5) + delta))


def adjust_traits_for_domain(text: str, traits: dict[str, float]) -> dict[str, float]:
    """Shift traits toward the topics the message touches."""
    adjusted = dict(traits)
    for pattern, deltas in DOMAIN_ADJUSTMENTS:
        if pattern.search(text):
            _apply(adjusted, deltas)
    return adjusted


def determine_relationship(texts: Iterable[str], now: datetime) -> RelationshipState:
    """Score each persona by keyword occurrences in recent messages.

    Confidence is ``min(1, score / 10)``; with no keyword at all the
    relationship falls back to companion.
    """
    combined = " ".join(texts)
    best_type, best_score = DEFAULT_RELATIONSHIP, 0
    for persona, pattern, _ in RELATIONSHIP_PERSONAS:
        score = len(pattern.findall(combined))
        if score > best_score:
            best_type, best_score = persona, score

    traits = next(t for name, _, t in RELATIONSHIP_PERSONAS if name == best_type)
    state = RelationshipState(
        type=best_type,
        traits=dict(traits),
        confidence=min(1.0, best_score / 10),
        updated_at=now,
    )
    logger.debug(
        "Relationship persona determined",
        relationship=state.type,
        score=best_score,
    )
    return state


def is_relationship_stale(
    state: Optional[RelationshipState],
    now: datetime,
    stale_days: float = 7.0,
) -> bool:
    if state is None:
        return True
    return now - state.updated_at > timedelta(days=stale_days)


def blend_traits(
    base: dict[str, float],
    persona: dict[str, float],
    influence: float = PERSONA_INFLUENCE,
) -> dict[str, float]:
    """Mix persona traits into ``base``; traits the persona lacks are kept."""
    return {
        name: value * (1 - influence) + persona.get(name, value) * influence
        for name, value in base.items()
    }


def adapt_personality(
    profile: PersonalityProfile,
    relationship: RelationshipState,
    emotion: str,
    intent: str,
    text: str,
) -> PersonalityAdaptation:
    """Traits to express for one turn, derived from the stored profile."""
    traits = adjust_traits_for_domain(text, profile.traits())
    traits = blend_traits(traits, relationship.traits)
    _apply(traits, EMOTION_ADJUSTMENTS.get(emotion, {}))
    _apply(traits, INTENT_ADJUSTMENTS.get(intent, {}))

    dominant = [
        name for name in TRAIT_NAMES if traits.get(name, 0.0) > DOMINANT_TRAIT_THRESHOLD
    ]
    return PersonalityAdaptation(
        traits=traits,
        relationship_type=relationship.type,
        dominant_traits=dominant,
    )


def evolve_profile(
    profile: PersonalityProfile,
    target: dict[str, float],
    rate: float = 0.1,
) -> PersonalityProfile:
    """Exponential moving step of the stored profile toward ``target``."""
    current = profile.traits()
    return PersonalityProfile(
        **{
            name: current[name] * (1 - rate) + target.get(name, current[name]) * rate
            for name in TRAIT_NAMES
        }
    )
