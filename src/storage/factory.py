"""Storage backend factory."""

import structlog

from src.config.settings import Settings
from src.exceptions import ConfigurationError

from .base import MemoryStore
from .json_store import JsonFileStore
from .memory_store import InMemoryStore
from .sqlite_store import SQLiteStore

logger = structlog.get_logger()


def create_store(settings: Settings) -> MemoryStore:
    """Create the configured persistence backend."""
    backend = settings.storage_backend

    if backend == "json":
        store: MemoryStore = JsonFileStore(settings.memory_file)
    elif backend == "sqlite":
        store = SQLiteStore(settings.database_path)
    elif backend == "memory":
        store = InMemoryStore()
    else:
        raise ConfigurationError(f"Unknown storage backend: {backend}")

    logger.info("Memory store created", backend=backend)
    return store
