"""SQLite backend using aiosqlite.

Each list record is one row ordered by its autoincrement id; singletons
live in a separate table keyed by (sender, kind). Payloads are JSON text.
"""

import json
import os
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import aiosqlite
import structlog

from src.exceptions import CorruptedStoreError, StorageError

from .base import MemoryKind

logger = structlog.get_logger()

SCHEMA = """
CREATE TABLE IF NOT EXISTS memory_records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    sender TEXT NOT NULL,
    kind TEXT NOT NULL,
    payload TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_memory_records_sender_kind
    ON memory_records (sender, kind, id);

CREATE TABLE IF NOT EXISTS memory_singletons (
    sender TEXT NOT NULL,
    kind TEXT NOT NULL,
    payload TEXT NOT NULL,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (sender, kind)
);
"""


class SQLiteStore:
    """Row-per-record persistence in a local SQLite database."""

    def __init__(self, database_path: str | Path) -> None:
        self.database_path = Path(database_path)
        self._conn: Optional[aiosqlite.Connection] = None

    async def initialize(self) -> None:
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            await self._open()
        except sqlite3.DatabaseError as exc:
            await self._close_connection()
            backup = self._quarantine()
            await self._open()
            raise CorruptedStoreError(
                f"Database {self.database_path} is unreadable: {exc}",
                backup_path=str(backup),
            ) from exc
        logger.info("SQLite memory store ready", path=str(self.database_path))

    async def list_senders(self) -> list[str]:
        conn = self._connection()
        cursor = await conn.execute(
            """SELECT sender FROM memory_records
            UNION SELECT sender FROM memory_singletons
            ORDER BY sender"""
        )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def append(
        self,
        sender: str,
        kind: MemoryKind,
        record: dict[str, Any],
        cap: Optional[int] = None,
    ) -> None:
        conn = self._connection()
        try:
            await conn.execute(
                "INSERT INTO memory_records (sender, kind, payload) VALUES (?, ?, ?)",
                (sender, kind.value, _dumps(record)),
            )
            if cap is not None:
                await conn.execute(
                    """DELETE FROM memory_records
                    WHERE sender = ? AND kind = ? AND id NOT IN (
                        SELECT id FROM memory_records
                        WHERE sender = ? AND kind = ?
                        ORDER BY id DESC LIMIT ?
                    )""",
                    (sender, kind.value, sender, kind.value, cap),
                )
            await conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to append {kind.value}: {exc}") from exc

    async def get_recent(
        self,
        sender: str,
        kind: MemoryKind,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        conn = self._connection()
        # LIMIT -1 means no limit in SQLite
        cursor = await conn.execute(
            """SELECT payload FROM memory_records
            WHERE sender = ? AND kind = ?
            ORDER BY id DESC LIMIT ?""",
            (sender, kind.value, -1 if limit is None else limit),
        )
        rows = await cursor.fetchall()
        return [json.loads(row[0]) for row in reversed(rows)]

    async def replace(
        self,
        sender: str,
        kind: MemoryKind,
        records: list[dict[str, Any]],
    ) -> None:
        conn = self._connection()
        try:
            await conn.execute(
                "DELETE FROM memory_records WHERE sender = ? AND kind = ?",
                (sender, kind.value),
            )
            await conn.executemany(
                "INSERT INTO memory_records (sender, kind, payload) VALUES (?, ?, ?)",
                [(sender, kind.value, _dumps(record)) for record in records],
            )
            await conn.commit()
        except sqlite3.Error as exc:
            await conn.rollback()
            raise StorageError(f"Failed to replace {kind.value}: {exc}") from exc

    async def set_singleton(
        self,
        sender: str,
        kind: MemoryKind,
        value: dict[str, Any],
    ) -> None:
        conn = self._connection()
        try:
            await conn.execute(
                """INSERT INTO memory_singletons (sender, kind, payload, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(sender, kind) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = excluded.updated_at""",
                (sender, kind.value, _dumps(value), datetime.now(timezone.utc).isoformat()),
            )
            await conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to store {kind.value}: {exc}") from exc

    async def get_singleton(
        self,
        sender: str,
        kind: MemoryKind,
    ) -> Optional[dict[str, Any]]:
        conn = self._connection()
        cursor = await conn.execute(
            "SELECT payload FROM memory_singletons WHERE sender = ? AND kind = ?",
            (sender, kind.value),
        )
        row = await cursor.fetchone()
        return json.loads(row[0]) if row else None

    async def delete_sender(self, sender: str) -> None:
        conn = self._connection()
        await conn.execute("DELETE FROM memory_records WHERE sender = ?", (sender,))
        await conn.execute("DELETE FROM memory_singletons WHERE sender = ?", (sender,))
        await conn.commit()

    @asynccontextmanager
    async def batch(self) -> AsyncIterator[None]:
        # Rows are written incrementally and committed per call
        yield

    async def close(self) -> None:
        await self._close_connection()

    async def _open(self) -> None:
        self._conn = await aiosqlite.connect(self.database_path)
        await self._conn.executescript(SCHEMA)
        await self._conn.commit()

    async def _close_connection(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StorageError("SQLite store used before initialize()")
        return self._conn

    def _quarantine(self) -> Path:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
        backup = self.database_path.with_name(
            f"{self.database_path.name}.corrupted.{stamp}"
        )
        os.replace(self.database_path, backup)
        logger.error(
            "Corrupted memory database quarantined",
            path=str(self.database_path),
            backup=str(backup),
        )
        return backup


def _dumps(value: dict[str, Any]) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise StorageError(f"Record is not JSON serializable: {exc}") from exc
