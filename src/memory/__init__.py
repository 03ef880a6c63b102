"""Multi-tier conversation memory: short-term, long-term, emotional, semantic."""

from .embedding_cache import EmbeddingCache
from .manager import MemoryManager
from .models import (
    ChatMessage,
    EmotionalEvent,
    FollowUp,
    LongTermSummary,
    MoodDrift,
    RecallResult,
    SemanticMemoryEntry,
)
from .summarizer import ConversationSummarizer

__all__ = [
    "ChatMessage",
    "ConversationSummarizer",
    "EmbeddingCache",
    "EmotionalEvent",
    "FollowUp",
    "LongTermSummary",
    "MemoryManager",
    "MoodDrift",
    "RecallResult",
    "SemanticMemoryEntry",
]
