"""Vector similarity and semantic recall ranking."""

import math
from collections.abc import Iterable, Sequence
from typing import Optional

from .models import SemanticMatch, SemanticMemoryEntry

# Emotional weight fixed on every semantic entry at write time
SEMANTIC_WEIGHTS: dict[str, float] = {
    "sad": 1.0,
    "anxious": 0.9,
    "frustrated": 0.9,
    "flirty": 0.8,
}
DEFAULT_SEMANTIC_WEIGHT = 0.5


def semantic_weight(emotion: str) -> float:
    return SEMANTIC_WEIGHTS.get(emotion, DEFAULT_SEMANTIC_WEIGHT)


def cosine_similarity(
    a: Optional[Sequence[float]],
    b: Optional[Sequence[float]],
) -> float:
    """Cosine of the angle between two vectors.

    Returns 0.0 when either vector is missing or empty, when the lengths
    differ, or when either norm is zero.
    """
    if not a or not b or len(a) != len(b):
        return 0.0

    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


def rank_semantic_matches(
    query: Sequence[float],
    entries: Iterable[SemanticMemoryEntry],
    threshold: float,
    limit: int,
) -> list[SemanticMatch]:
    """Entries at or above ``threshold`` similarity, best relevance first."""
    matches: list[SemanticMatch] = []
    for entry in entries:
        similarity = cosine_similarity(query, entry.embedding)
        if similarity >= threshold:
            matches.append(
                SemanticMatch(
                    entry=entry,
                    similarity=similarity,
                    relevance=similarity * entry.weight,
                )
            )

    # sorted() is stable, so equal relevance keeps insertion order
    matches = sorted(matches, key=lambda m: m.relevance, reverse=True)
    return matches[:limit]
