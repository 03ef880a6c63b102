"""Shared fixtures for memory tests."""

import pytest

from src.config.settings import Settings
from src.memory.manager import MemoryManager
from src.storage.memory_store import InMemoryStore


@pytest.fixture
def settings():
    return Settings(
        storage_backend="memory",
        memory_save_debounce=0.01,
        _env_file=None,
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
async def manager(store, settings, clock):
    """Initialized manager without an embedding cache."""
    mgr = MemoryManager(store, settings, clock=clock)
    await mgr.initialize()
    yield mgr
    await mgr.close()
