"""Bounded cache in front of the embedding endpoint."""

import hashlib
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from typing import Optional

import structlog

logger = structlog.get_logger()

EmbedFn = Callable[[str], Awaitable[list[float]]]


def cache_key(text: str) -> str:
    normalized = " ".join(text.lower().split())
    return hashlib.sha256(normalized.encode()).hexdigest()[:16]


class EmbeddingCache:
    """Process-lifetime embedding cache.

    Keys are a short hash of the whitespace- and case-normalized text. When
    the cache is full the oldest inserted entry is evicted. Lookups never
    raise: a failing embedding call is logged and reported as ``None``.
    """

    def __init__(self, embed: EmbedFn, max_size: int = 1000) -> None:
        self._embed = embed
        self._max_size = max_size
        self._entries: OrderedDict[str, list[float]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, text: str) -> Optional[list[float]]:
        """Return the embedding for ``text``, computing it on a miss."""
        if not text or not text.strip():
            return None

        key = cache_key(text)
        cached = self._entries.get(key)
        if cached is not None:
            self.hits += 1
            return cached

        self.misses += 1
        try:
            vector = await self._embed(text)
        except Exception as exc:
            logger.warning("Embedding failed", error=str(exc))
            return None

        if not vector:
            logger.warning("Embedding endpoint returned an empty vector")
            return None

        self._entries[key] = vector
        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)
        return vector

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0
