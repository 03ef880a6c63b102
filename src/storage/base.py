"""Persistence contract shared by every storage backend.

Backends store plain JSON-compatible dicts keyed by (sender, kind). List
kinds are ordered oldest-first and capped on append; singleton kinds hold
one value per sender. Validation of the records is the memory layer's job.
"""

from contextlib import AbstractAsyncContextManager
from enum import Enum
from typing import Any, Optional, Protocol, runtime_checkable


class MemoryKind(str, Enum):
    """Every kind of per-sender memory the engine persists."""

    CHAT = "chat"
    LONG_TERM = "long_term"
    EMOTIONAL_EVENTS = "emotional_events"
    SEMANTIC = "semantic"
    MOOD = "mood"
    RESPONSE_QUALITY = "response_quality"
    COMPRESSION_BACKLOG = "compression_backlog"
    TONE = "tone"
    LANGUAGE = "language"
    PERSONALITY = "personality"
    RELATIONSHIP = "relationship"

    @property
    def is_singleton(self) -> bool:
        return self in SINGLETON_KINDS


SINGLETON_KINDS = frozenset(
    {
        MemoryKind.TONE,
        MemoryKind.LANGUAGE,
        MemoryKind.PERSONALITY,
        MemoryKind.RELATIONSHIP,
    }
)

LIST_KINDS = tuple(kind for kind in MemoryKind if kind not in SINGLETON_KINDS)


def trim_oldest(records: list[Any], cap: Optional[int]) -> list[Any]:
    """Keep only the newest ``cap`` records (FIFO eviction)."""
    if cap is None or len(records) <= cap:
        return records
    return records[len(records) - cap :]


@runtime_checkable
class MemoryStore(Protocol):
    """Protocol every persistence backend implements."""

    async def initialize(self) -> None:
        """Open the backend and load or create its schema.

        Raises:
            CorruptedStoreError: If existing data was unreadable. The backend
                quarantines it first and is left usable and empty.
        """
        ...

    async def list_senders(self) -> list[str]:
        """Return every sender with at least one stored record."""
        ...

    async def append(
        self,
        sender: str,
        kind: MemoryKind,
        record: dict[str, Any],
        cap: Optional[int] = None,
    ) -> None:
        """Append a record, then evict oldest-first down to ``cap``."""
        ...

    async def get_recent(
        self,
        sender: str,
        kind: MemoryKind,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """Return the newest ``limit`` records in chronological order."""
        ...

    async def replace(
        self,
        sender: str,
        kind: MemoryKind,
        records: list[dict[str, Any]],
    ) -> None:
        """Overwrite a list kind with ``records``."""
        ...

    async def set_singleton(
        self,
        sender: str,
        kind: MemoryKind,
        value: dict[str, Any],
    ) -> None:
        """Store the single value for a singleton kind."""
        ...

    async def get_singleton(
        self,
        sender: str,
        kind: MemoryKind,
    ) -> Optional[dict[str, Any]]:
        """Return the singleton value, or None if never set."""
        ...

    async def delete_sender(self, sender: str) -> None:
        """Remove every record belonging to a sender."""
        ...

    def batch(self) -> AbstractAsyncContextManager[None]:
        """Group mutations so the backend may persist them together.

        Reads inside the block see every earlier mutation. Leaving the block
        may raise ``StorageError`` if the grouped write fails.
        """
        ...

    async def close(self) -> None:
        """Flush and release backend resources."""
        ...
