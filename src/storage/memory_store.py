"""Process-local backend, used for tests and ephemeral runs."""

import copy
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Optional

from .base import MemoryKind, trim_oldest


class InMemoryStore:
    """Dict-backed store. Nothing survives the process."""

    def __init__(self) -> None:
        self._lists: dict[str, dict[MemoryKind, list[dict[str, Any]]]] = defaultdict(dict)
        self._singletons: dict[str, dict[MemoryKind, dict[str, Any]]] = defaultdict(dict)

    async def initialize(self) -> None:
        return None

    async def list_senders(self) -> list[str]:
        senders = {s for s, kinds in self._lists.items() if kinds}
        senders.update(s for s, kinds in self._singletons.items() if kinds)
        return sorted(senders)

    async def append(
        self,
        sender: str,
        kind: MemoryKind,
        record: dict[str, Any],
        cap: Optional[int] = None,
    ) -> None:
        records = self._lists[sender].setdefault(kind, [])
        records.append(copy.deepcopy(record))
        self._lists[sender][kind] = trim_oldest(records, cap)

    async def get_recent(
        self,
        sender: str,
        kind: MemoryKind,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        records = self._lists.get(sender, {}).get(kind, [])
        return copy.deepcopy(trim_oldest(records, limit))

    async def replace(
        self,
        sender: str,
        kind: MemoryKind,
        records: list[dict[str, Any]],
    ) -> None:
        self._lists[sender][kind] = copy.deepcopy(list(records))

    async def set_singleton(
        self,
        sender: str,
        kind: MemoryKind,
        value: dict[str, Any],
    ) -> None:
        self._singletons[sender][kind] = copy.deepcopy(value)

    async def get_singleton(
        self,
        sender: str,
        kind: MemoryKind,
    ) -> Optional[dict[str, Any]]:
        value = self._singletons.get(sender, {}).get(kind)
        return copy.deepcopy(value) if value is not None else None

    async def delete_sender(self, sender: str) -> None:
        self._lists.pop(sender, None)
        self._singletons.pop(sender, None)

    @asynccontextmanager
    async def batch(self) -> AsyncIterator[None]:
        yield

    async def close(self) -> None:
        return None
