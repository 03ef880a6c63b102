"""Persistence backends for conversation memory."""

from .base import LIST_KINDS, SINGLETON_KINDS, MemoryKind, MemoryStore
from .factory import create_store
from .json_store import JsonFileStore
from .memory_store import InMemoryStore
from .sqlite_store import SQLiteStore

__all__ = [
    "LIST_KINDS",
    "SINGLETON_KINDS",
    "InMemoryStore",
    "JsonFileStore",
    "MemoryKind",
    "MemoryStore",
    "SQLiteStore",
    "create_store",
]
