"""
Local persistence for lesson progress and test attempts.

Components:
- backends: async key-value storage (memory, JSON files, SQLite)
- local_store: LocalProgressStore with degrade-to-empty read semantics
"""

from .backends import JsonFileStorage, KeyValueStorage, MemoryStorage, SqliteStorage
from .local_store import LocalProgressStore, StoreStats

__all__ = [
    "KeyValueStorage",
    "MemoryStorage",
    "JsonFileStorage",
    "SqliteStorage",
    "LocalProgressStore",
    "StoreStats",
]
