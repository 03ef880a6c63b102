"""Corrupted files are quarantined and the store restarts empty."""

import pytest

from src.config.settings import Settings
from src.exceptions import CorruptedStoreError
from src.storage.base import MemoryKind
from src.storage.factory import create_store
from src.storage.json_store import JsonFileStore
from src.storage.memory_store import InMemoryStore
from src.storage.sqlite_store import SQLiteStore


class TestJsonCorruption:
    """JSON backend quarantine."""

    async def test_invalid_json_is_quarantined(self, tmp_path):
        """Garbage is moved aside and the store is usable afterwards."""
        path = tmp_path / "memory.json"
        path.write_text("{not json", encoding="utf-8")

        store = JsonFileStore(path)
        with pytest.raises(CorruptedStoreError) as exc_info:
            await store.initialize()

        backups = list(tmp_path.glob("memory.json.corrupted.*"))
        assert len(backups) == 1
        assert exc_info.value.backup_path == str(backups[0])
        assert backups[0].read_text(encoding="utf-8") == "{not json"

        assert await store.list_senders() == []
        await store.append("alice", MemoryKind.CHAT, {"role": "user", "content": "hi"})
        assert path.exists()

    async def test_wrong_shape_is_quarantined(self, tmp_path):
        """Valid JSON without a senders mapping counts as corrupted."""
        path = tmp_path / "memory.json"
        path.write_text('{"senders": []}', encoding="utf-8")

        with pytest.raises(CorruptedStoreError):
            await JsonFileStore(path).initialize()

    async def test_empty_file_is_accepted(self, tmp_path):
        path = tmp_path / "memory.json"
        path.write_text("", encoding="utf-8")

        store = JsonFileStore(path)
        await store.initialize()
        assert await store.list_senders() == []


class TestSQLiteCorruption:
    """SQLite backend quarantine."""

    async def test_non_database_file_is_quarantined(self, tmp_path):
        path = tmp_path / "memory.db"
        path.write_bytes(b"this is definitely not a sqlite database" * 100)

        store = SQLiteStore(path)
        with pytest.raises(CorruptedStoreError):
            await store.initialize()

        assert len(list(tmp_path.glob("memory.db.corrupted.*"))) == 1
        await store.append("alice", MemoryKind.CHAT, {"role": "user", "content": "hi"})
        assert len(await store.get_recent("alice", MemoryKind.CHAT)) == 1
        await store.close()


class TestCreateStore:
    """Backend selection from settings."""

    def test_json(self, tmp_path):
        settings = Settings(storage_backend="json", memory_file=str(tmp_path / "m.json"))
        assert isinstance(create_store(settings), JsonFileStore)

    def test_sqlite(self, tmp_path):
        settings = Settings(storage_backend="SQLite", database_path=str(tmp_path / "m.db"))
        assert isinstance(create_store(settings), SQLiteStore)

    def test_memory(self):
        assert isinstance(create_store(Settings(storage_backend="memory")), InMemoryStore)
