"""
Key-value storage backends for the local progress store.

All backends expose the same async protocol and store JSON-compatible
values. Failures are raised as StorageReadError / StorageWriteError so the
store can apply its degrade-to-empty policy in one place.

Backends:
- MemoryStorage: process-local dict (tests, ephemeral sessions)
- JsonFileStorage: one JSON file per key under a data directory
- SqliteStorage: single kv_store table through SQLAlchemy
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote, unquote

from loguru import logger
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from progression.core.errors import StorageReadError, StorageWriteError


class KeyValueStorage(Protocol):
    """Async key-value persistence."""

    async def get_item(self, key: str) -> Any | None:
        """Return the decoded value for key, or None when absent."""
        ...

    async def set_item(self, key: str, value: Any) -> None:
        """Persist value under key, replacing any previous value."""
        ...

    async def remove_items(self, keys: list[str]) -> None:
        """Remove keys; missing keys are ignored."""
        ...

    async def get_all_keys(self) -> list[str]:
        """List every stored key."""
        ...


def _encode(key: str, value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError) as e:
        raise StorageWriteError(f"Value for {key!r} is not JSON serializable: {e}") from e


def _decode(key: str, raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise StorageReadError(f"Corrupt value for {key!r}: {e}") from e


# =============================================================================
# Memory
# =============================================================================


class MemoryStorage:
    """In-memory storage that still round-trips values through JSON."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    async def get_item(self, key: str) -> Any | None:
        raw = self._items.get(key)
        return None if raw is None else _decode(key, raw)

    async def set_item(self, key: str, value: Any) -> None:
        self._items[key] = _encode(key, value)

    async def remove_items(self, keys: list[str]) -> None:
        for key in keys:
            self._items.pop(key, None)

    async def get_all_keys(self) -> list[str]:
        return list(self._items)


# =============================================================================
# JSON Files
# =============================================================================


class JsonFileStorage:
    """
    Stores each key as ``<quoted-key>.json`` in a directory.

    Writes go to a temporary file that replaces the target, so a crash
    mid-write leaves the previous value intact.
    """

    SUFFIX = ".json"

    def __init__(self, directory: Path):
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}{self.SUFFIX}"

    def _read(self, key: str) -> Any | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageReadError(f"Cannot read {path}: {e}") from e
        return _decode(key, raw)

    def _write(self, key: str, value: Any) -> None:
        raw = _encode(key, value)
        path = self._path(key)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        except OSError as e:
            raise StorageWriteError(f"Cannot write {path}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(raw)
            os.replace(tmp_name, path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise StorageWriteError(f"Cannot write {path}: {e}") from e

    def _remove(self, keys: list[str]) -> None:
        for key in keys:
            try:
                self._path(key).unlink(missing_ok=True)
            except OSError as e:
                raise StorageWriteError(f"Cannot remove {key!r}: {e}") from e

    def _keys(self) -> list[str]:
        try:
            return [unquote(p.name[: -len(self.SUFFIX)]) for p in self.directory.glob(f"*{self.SUFFIX}")]
        except OSError as e:
            raise StorageReadError(f"Cannot list {self.directory}: {e}") from e

    async def get_item(self, key: str) -> Any | None:
        return await asyncio.to_thread(self._read, key)

    async def set_item(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._write, key, value)

    async def remove_items(self, keys: list[str]) -> None:
        await asyncio.to_thread(self._remove, keys)

    async def get_all_keys(self) -> list[str]:
        return await asyncio.to_thread(self._keys)


# =============================================================================
# SQLite
# =============================================================================


class SqliteStorage:
    """Key-value table in a SQLite database, accessed through SQLAlchemy."""

    def __init__(self, db_path: Path, echo: bool = False):
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine: Engine = create_engine(
            f"sqlite:///{db_path}",
            echo=echo,
            connect_args={"check_same_thread": False},
        )
        self._init_schema()
        logger.debug(f"SqliteStorage initialized at {self.db_path}")

    def _init_schema(self) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    text("""
                        CREATE TABLE IF NOT EXISTS kv_store (
                            key TEXT PRIMARY KEY,
                            value TEXT NOT NULL
                        )
                    """)
                )
        except SQLAlchemyError as e:
            raise StorageWriteError(f"Cannot initialize {self.db_path}: {e}") from e

    def _read(self, key: str) -> Any | None:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    text("SELECT value FROM kv_store WHERE key = :key"),
                    {"key": key},
                ).fetchone()
        except SQLAlchemyError as e:
            raise StorageReadError(f"Cannot read {key!r}: {e}") from e
        return None if row is None else _decode(key, row[0])

    def _write(self, key: str, value: Any) -> None:
        raw = _encode(key, value)
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    text("""
                        INSERT INTO kv_store (key, value) VALUES (:key, :value)
                        ON CONFLICT(key) DO UPDATE SET value = excluded.value
                    """),
                    {"key": key, "value": raw},
                )
        except SQLAlchemyError as e:
            raise StorageWriteError(f"Cannot write {key!r}: {e}") from e

    def _remove(self, keys: list[str]) -> None:
        try:
            with self.engine.begin() as conn:
                for key in keys:
                    conn.execute(text("DELETE FROM kv_store WHERE key = :key"), {"key": key})
        except SQLAlchemyError as e:
            raise StorageWriteError(f"Cannot remove keys: {e}") from e

    def _keys(self) -> list[str]:
        try:
            with self.engine.connect() as conn:
                return [row[0] for row in conn.execute(text("SELECT key FROM kv_store")).fetchall()]
        except SQLAlchemyError as e:
            raise StorageReadError(f"Cannot list keys: {e}") from e

    async def get_item(self, key: str) -> Any | None:
        return await asyncio.to_thread(self._read, key)

    async def set_item(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._write, key, value)

    async def remove_items(self, keys: list[str]) -> None:
        await asyncio.to_thread(self._remove, keys)

    async def get_all_keys(self) -> list[str]:
        return await asyncio.to_thread(self._keys)

    def close(self) -> None:
        self.engine.dispose()
