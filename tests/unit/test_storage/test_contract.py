"""Persistence contract shared by every storage backend."""

import pytest

from src.storage.base import MemoryKind
from src.storage.json_store import JsonFileStore
from src.storage.memory_store import InMemoryStore
from src.storage.sqlite_store import SQLiteStore


@pytest.fixture(params=["json", "sqlite", "memory"])
async def store(request, tmp_path):
    """Create an initialized store for each backend."""
    if request.param == "json":
        backend = JsonFileStore(tmp_path / "memory.json")
    elif request.param == "sqlite":
        backend = SQLiteStore(tmp_path / "memory.db")
    else:
        backend = InMemoryStore()
    await backend.initialize()
    yield backend
    await backend.close()


def _msg(n: int) -> dict:
    return {"role": "user", "content": f"message {n}"}


class TestListRecords:
    """Append, cap and read behaviour for list kinds."""

    async def test_append_and_get_recent_in_order(self, store):
        """Records come back oldest-first."""
        for i in range(3):
            await store.append("alice", MemoryKind.CHAT, _msg(i))

        records = await store.get_recent("alice", MemoryKind.CHAT)
        assert [r["content"] for r in records] == [
            "message 0",
            "message 1",
            "message 2",
        ]

    async def test_append_evicts_oldest_beyond_cap(self, store):
        """Only the newest `cap` records survive."""
        for i in range(12):
            await store.append("alice", MemoryKind.CHAT, _msg(i), cap=10)

        records = await store.get_recent("alice", MemoryKind.CHAT)
        assert len(records) == 10
        assert records[0]["content"] == "message 2"
        assert records[-1]["content"] == "message 11"

    async def test_get_recent_limit_returns_newest(self, store):
        """A limit keeps the newest entries, still chronological."""
        for i in range(5):
            await store.append("alice", MemoryKind.MOOD, {"emotion": "happy", "n": i})

        records = await store.get_recent("alice", MemoryKind.MOOD, limit=2)
        assert [r["n"] for r in records] == [3, 4]

    async def test_unknown_sender_returns_empty(self, store):
        """Reading an unseen sender is not an error."""
        assert await store.get_recent("nobody", MemoryKind.CHAT) == []

    async def test_replace_overwrites_list(self, store):
        """replace() discards the previous contents."""
        await store.append("alice", MemoryKind.EMOTIONAL_EVENTS, {"id": "a"})
        await store.replace(
            "alice",
            MemoryKind.EMOTIONAL_EVENTS,
            [{"id": "b"}, {"id": "c"}],
        )

        records = await store.get_recent("alice", MemoryKind.EMOTIONAL_EVENTS)
        assert [r["id"] for r in records] == ["b", "c"]

    async def test_replace_with_empty_list(self, store):
        """Replacing with nothing clears the kind."""
        await store.append("alice", MemoryKind.CHAT, _msg(1))
        await store.replace("alice", MemoryKind.CHAT, [])
        assert await store.get_recent("alice", MemoryKind.CHAT) == []

    async def test_kinds_are_isolated(self, store):
        """Writes to one kind never leak into another."""
        await store.append("alice", MemoryKind.CHAT, _msg(1))
        assert await store.get_recent("alice", MemoryKind.LONG_TERM) == []


class TestSingletons:
    """Single-value kinds."""

    async def test_set_and_get(self, store):
        await store.set_singleton("alice", MemoryKind.TONE, {"tone": "playful"})
        value = await store.get_singleton("alice", MemoryKind.TONE)
        assert value == {"tone": "playful"}

    async def test_overwrite(self, store):
        """Setting again replaces the value."""
        await store.set_singleton("alice", MemoryKind.LANGUAGE, {"language": "english"})
        await store.set_singleton("alice", MemoryKind.LANGUAGE, {"language": "mixed"})
        value = await store.get_singleton("alice", MemoryKind.LANGUAGE)
        assert value == {"language": "mixed"}

    async def test_missing_returns_none(self, store):
        assert await store.get_singleton("alice", MemoryKind.PERSONALITY) is None


class TestSenders:
    """Sender enumeration and deletion."""

    async def test_list_senders(self, store):
        """Senders with list or singleton data are listed."""
        await store.append("alice", MemoryKind.CHAT, _msg(1))
        await store.set_singleton("bob", MemoryKind.TONE, {"tone": "neutral"})

        assert sorted(await store.list_senders()) == ["alice", "bob"]

    async def test_senders_are_isolated(self, store):
        """One sender's records are invisible to another."""
        await store.append("alice", MemoryKind.CHAT, _msg(1))
        assert await store.get_recent("bob", MemoryKind.CHAT) == []

    async def test_delete_sender(self, store):
        """delete_sender removes every kind for that sender only."""
        await store.append("alice", MemoryKind.CHAT, _msg(1))
        await store.set_singleton("alice", MemoryKind.TONE, {"tone": "flirty"})
        await store.append("bob", MemoryKind.CHAT, _msg(2))

        await store.delete_sender("alice")

        assert await store.get_recent("alice", MemoryKind.CHAT) == []
        assert await store.get_singleton("alice", MemoryKind.TONE) is None
        assert await store.list_senders() == ["bob"]


class TestDurability:
    """File-backed stores survive a reopen."""

    async def test_json_reopen(self, tmp_path):
        path = tmp_path / "memory.json"
        first = JsonFileStore(path)
        await first.initialize()
        await first.append("alice", MemoryKind.CHAT, _msg(1))
        await first.set_singleton("alice", MemoryKind.TONE, {"tone": "serious"})
        await first.close()

        second = JsonFileStore(path)
        await second.initialize()
        assert (await second.get_recent("alice", MemoryKind.CHAT))[0]["content"] == "message 1"
        assert await second.get_singleton("alice", MemoryKind.TONE) == {"tone": "serious"}

    async def test_sqlite_reopen(self, tmp_path):
        path = tmp_path / "memory.db"
        first = SQLiteStore(path)
        await first.initialize()
        await first.append("alice", MemoryKind.SEMANTIC, {"text": "hi", "embedding": [0.1]})
        await first.close()

        second = SQLiteStore(path)
        await second.initialize()
        records = await second.get_recent("alice", MemoryKind.SEMANTIC)
        await second.close()
        assert records == [{"text": "hi", "embedding": [0.1]}]


class TestBatch:
    """Grouped mutations."""

    async def test_reads_see_writes_inside_batch(self, store):
        async with store.batch():
            await store.append("alice", MemoryKind.CHAT, _msg(1))
            await store.set_singleton("alice", MemoryKind.TONE, {"tone": "playful"})
            assert len(await store.get_recent("alice", MemoryKind.CHAT)) == 1
            assert await store.get_singleton("alice", MemoryKind.TONE) == {"tone": "playful"}

        assert await store.list_senders() == ["alice"]

    async def test_json_batch_writes_file_once(self, tmp_path, monkeypatch):
        store = JsonFileStore(tmp_path / "memory.json")
        await store.initialize()
        writes = []
        original = store._write_atomic
        monkeypatch.setattr(store, "_write_atomic", lambda p: (writes.append(p), original(p)))

        async with store.batch():
            for n in range(5):
                await store.append("alice", MemoryKind.CHAT, _msg(n))
            await store.set_singleton("alice", MemoryKind.TONE, {"tone": "serious"})
            assert writes == []

        assert len(writes) == 1
        await store.append("alice", MemoryKind.CHAT, _msg(6))
        assert len(writes) == 2

    async def test_json_empty_batch_skips_write(self, tmp_path, monkeypatch):
        store = JsonFileStore(tmp_path / "memory.json")
        await store.initialize()
        writes = []
        monkeypatch.setattr(store, "_write_atomic", writes.append)

        async with store.batch():
            await store.get_recent("alice", MemoryKind.CHAT)

        assert writes == []
