"""Flat JSON file backend.

The whole document lives in memory and is rewritten atomically (temp file +
rename) after every mutation, or once per ``batch()`` block. Layout::

    {"version": 1, "senders": {"<sender>": {"<kind>": [...] | {...}}}}
"""

import asyncio
import json
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import structlog

from src.exceptions import CorruptedStoreError, StorageError

from .base import MemoryKind, trim_oldest

logger = structlog.get_logger()

FORMAT_VERSION = 1


class JsonFileStore:
    """Single-file JSON persistence."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._data: dict[str, dict[str, Any]] = {}
        self._write_lock = asyncio.Lock()
        self._batch_depth = 0
        self._dirty = False

    async def initialize(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self._data = {}
            logger.info("Memory file not found, starting empty", path=str(self.path))
            return

        try:
            raw = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
            document = json.loads(raw) if raw.strip() else {}
            senders = document.get("senders", {}) if isinstance(document, dict) else None
            if not isinstance(senders, dict):
                raise ValueError("missing 'senders' mapping")
        except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as exc:
            backup = self._quarantine()
            self._data = {}
            raise CorruptedStoreError(
                f"Memory file {self.path} is unreadable: {exc}",
                backup_path=str(backup),
            ) from exc

        self._data = {
            sender: kinds for sender, kinds in senders.items() if isinstance(kinds, dict)
        }
        logger.info(
            "Memory file loaded", path=str(self.path), senders=len(self._data)
        )

    async def list_senders(self) -> list[str]:
        return [sender for sender, kinds in self._data.items() if kinds]

    async def append(
        self,
        sender: str,
        kind: MemoryKind,
        record: dict[str, Any],
        cap: Optional[int] = None,
    ) -> None:
        bucket = self._data.setdefault(sender, {})
        records = list(bucket.get(kind.value) or [])
        records.append(record)
        bucket[kind.value] = trim_oldest(records, cap)
        await self._changed()

    async def get_recent(
        self,
        sender: str,
        kind: MemoryKind,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        records = list(self._data.get(sender, {}).get(kind.value) or [])
        return trim_oldest(records, limit)

    async def replace(
        self,
        sender: str,
        kind: MemoryKind,
        records: list[dict[str, Any]],
    ) -> None:
        self._data.setdefault(sender, {})[kind.value] = list(records)
        await self._changed()

    async def set_singleton(
        self,
        sender: str,
        kind: MemoryKind,
        value: dict[str, Any],
    ) -> None:
        self._data.setdefault(sender, {})[kind.value] = dict(value)
        await self._changed()

    async def get_singleton(
        self,
        sender: str,
        kind: MemoryKind,
    ) -> Optional[dict[str, Any]]:
        value = self._data.get(sender, {}).get(kind.value)
        return dict(value) if isinstance(value, dict) else None

    async def delete_sender(self, sender: str) -> None:
        if self._data.pop(sender, None) is not None:
            await self._changed()

    async def close(self) -> None:
        await self._write()

    @asynccontextmanager
    async def batch(self) -> AsyncIterator[None]:
        """Coalesce every mutation inside the block into one file write."""
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
        if self._batch_depth == 0 and self._dirty:
            await self._write()

    async def _changed(self) -> None:
        if self._batch_depth:
            self._dirty = True
            return
        await self._write()

    def _quarantine(self) -> Path:
        """Move an unreadable file aside so a fresh one can be written."""
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
        backup = self.path.with_name(f"{self.path.name}.corrupted.{stamp}")
        os.replace(self.path, backup)
        logger.error(
            "Corrupted memory file quarantined",
            path=str(self.path),
            backup=str(backup),
        )
        return backup

    async def _write(self) -> None:
        document = {"version": FORMAT_VERSION, "senders": self._data}
        try:
            payload = json.dumps(document, ensure_ascii=False, indent=2)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Memory is not JSON serializable: {exc}") from exc

        async with self._write_lock:
            try:
                await asyncio.to_thread(self._write_atomic, payload)
            except OSError as exc:
                self._dirty = True
                raise StorageError(f"Failed to write {self.path}: {exc}") from exc
        self._dirty = False

    def _write_atomic(self, payload: str) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(payload, encoding="utf-8")
        os.replace(tmp, self.path)
