"""Memory data models.

Persisted records are pydantic models so every load is schema-validated;
derived, never-persisted views are plain dataclasses.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from src.storage.base import MemoryKind


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps from older files are taken as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


Timestamp = Annotated[datetime, AfterValidator(_as_utc)]

Language = Literal["english", "indonesian", "mixed"]
EventType = Literal["distress", "celebration", "vulnerability", "intimate", "conflict"]
RelationshipType = Literal["romantic", "friend", "counselor", "mentor", "companion"]

TRAIT_NAMES = ("curiosity", "empathy", "humor", "flirtiness", "logic", "playfulness")


class ChatMessage(BaseModel):
    """One entry in the short-term ring buffer."""

    role: Literal["user", "assistant"]
    content: str

    def to_prompt(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class LongTermSummary(BaseModel):
    """Compressed summary of older conversation. Never mutated."""

    model_config = ConfigDict(frozen=True)

    summary: str
    timestamp: Timestamp = Field(default_factory=utcnow)


class EmotionalEvent(BaseModel):
    """A remembered emotional milestone."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    emotion: str
    type: EventType
    intensity: Literal["high", "medium"] = "high"
    trigger: str = ""
    snippet: str = ""
    timestamp: Timestamp = Field(default_factory=utcnow)
    followed_up: bool = False


class SemanticMemoryEntry(BaseModel):
    """Embedded user message for similarity recall.

    ``weight`` is fixed when the entry is written.
    """

    model_config = ConfigDict(frozen=True)

    text: str
    embedding: list[float] = Field(default_factory=list)
    emotion: str = "neutral"
    context: dict[str, Any] = Field(default_factory=dict)
    weight: float = 0.5
    timestamp: Timestamp = Field(default_factory=utcnow)


class MoodEntry(BaseModel):
    emotion: str
    intensity: float = 0.5
    timestamp: Timestamp = Field(default_factory=utcnow)


class ResponseQuality(BaseModel):
    """Self-reflection on one exchange."""

    user_message: str
    reply: str
    emotion: str = "neutral"
    intent: str = "casual"
    reflection: str = ""
    score: float = 0.4
    timestamp: Timestamp = Field(default_factory=utcnow)


class ToneState(BaseModel):
    tone: str = "neutral"
    updated_at: Timestamp = Field(default_factory=utcnow)


class LanguagePreference(BaseModel):
    language: Language = "mixed"
    updated_at: Timestamp = Field(default_factory=utcnow)


class PersonalityProfile(BaseModel):
    """Bot persona traits for one sender, each in [0, 1]."""

    curiosity: float = 0.8
    empathy: float = 0.9
    humor: float = 0.6
    flirtiness: float = 0.7
    logic: float = 0.8
    playfulness: float = 0.7

    @field_validator(*TRAIT_NAMES)
    @classmethod
    def _clamp(cls, value: float) -> float:
        return max(0.0, min(1.0, float(value)))

    def traits(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in TRAIT_NAMES}


class RelationshipState(BaseModel):
    """Inferred relationship persona and its blended traits."""

    type: RelationshipType = "companion"
    traits: dict[str, float] = Field(default_factory=dict)
    confidence: float = 0.0
    updated_at: Timestamp = Field(default_factory=utcnow)


# Validation schema for every persisted kind
KIND_MODELS: dict[MemoryKind, type[BaseModel]] = {
    MemoryKind.CHAT: ChatMessage,
    MemoryKind.COMPRESSION_BACKLOG: ChatMessage,
    MemoryKind.LONG_TERM: LongTermSummary,
    MemoryKind.EMOTIONAL_EVENTS: EmotionalEvent,
    MemoryKind.SEMANTIC: SemanticMemoryEntry,
    MemoryKind.MOOD: MoodEntry,
    MemoryKind.RESPONSE_QUALITY: ResponseQuality,
    MemoryKind.TONE: ToneState,
    MemoryKind.LANGUAGE: LanguagePreference,
    MemoryKind.PERSONALITY: PersonalityProfile,
    MemoryKind.RELATIONSHIP: RelationshipState,
}


@dataclass
class MoodDrift:
    """Recency-weighted mood over the recent window."""

    score: float = 0.0
    trend: str = "stable"  # positive | negative | stable
    dominant_mood: str = "neutral"


@dataclass
class SemanticMatch:
    entry: SemanticMemoryEntry
    similarity: float
    relevance: float


@dataclass
class FollowUp:
    """An earlier emotional event worth checking in about."""

    kind: str  # check_in | celebrate | support
    message: str
    event: EmotionalEvent


@dataclass
class RecallResult:
    """Read-only memory context gathered for one turn."""

    history: list[ChatMessage]
    long_term: list[LongTermSummary]
    semantic: list[SemanticMatch]
    follow_up: Optional[FollowUp]
    query_embedding: Optional[list[float]] = None
