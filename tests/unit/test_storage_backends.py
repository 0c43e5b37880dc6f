"""
Tests for the key-value storage backends.

Every backend must behave the same through the async protocol; the
on-disk ones additionally survive re-opening and report corrupt data as
StorageReadError.
"""

import pytest

from progression.core.errors import StorageReadError, StorageWriteError
from progression.store.backends import JsonFileStorage, MemoryStorage, SqliteStorage
from progression.store.local_store import LocalProgressStore


@pytest.fixture(params=["memory", "json", "sqlite"])
def backend(request, tmp_path):
    if request.param == "memory":
        yield MemoryStorage()
    elif request.param == "json":
        yield JsonFileStorage(tmp_path / "store")
    else:
        storage = SqliteStorage(tmp_path / "progress.db")
        yield storage
        storage.close()


class TestBackendProtocol:
    """Shared behaviour of all backends."""

    @pytest.mark.asyncio
    async def test_missing_key_is_none(self, backend):
        assert await backend.get_item("nope") is None

    @pytest.mark.asyncio
    async def test_set_then_get(self, backend):
        value = {"version": 1, "records": [{"lesson_id": 1, "status": "completed"}]}

        await backend.set_item("progression:lesson_progress:u1", value)

        assert await backend.get_item("progression:lesson_progress:u1") == value

    @pytest.mark.asyncio
    async def test_set_replaces_value(self, backend):
        await backend.set_item("k", {"n": 1})
        await backend.set_item("k", {"n": 2})

        assert await backend.get_item("k") == {"n": 2}
        assert await backend.get_all_keys() == ["k"]

    @pytest.mark.asyncio
    async def test_remove_items_ignores_missing(self, backend):
        await backend.set_item("a", 1)
        await backend.set_item("b", 2)

        await backend.remove_items(["a", "missing"])

        assert await backend.get_item("a") is None
        assert sorted(await backend.get_all_keys()) == ["b"]

    @pytest.mark.asyncio
    async def test_keys_with_separators(self, backend):
        """Keys contain ':' and user ids may contain '/'."""
        key = "progression:lesson_progress:team/alice"

        await backend.set_item(key, [])

        assert await backend.get_all_keys() == [key]

    @pytest.mark.asyncio
    async def test_unserializable_value(self, backend):
        with pytest.raises(StorageWriteError):
            await backend.set_item("k", {"when": object()})


class TestJsonFileStorage:
    """File-per-key storage on disk."""

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path):
        await JsonFileStorage(tmp_path).set_item("k", {"n": 1})

        assert await JsonFileStorage(tmp_path).get_item("k") == {"n": 1}

    @pytest.mark.asyncio
    async def test_corrupt_file_raises_read_error(self, tmp_path):
        storage = JsonFileStorage(tmp_path)
        await storage.set_item("k", {"n": 1})
        [path] = list(tmp_path.glob("*.json"))
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(StorageReadError):
            await storage.get_item("k")

    @pytest.mark.asyncio
    async def test_invalid_utf8_raises_read_error(self, tmp_path):
        storage = JsonFileStorage(tmp_path)
        await storage.set_item("progression:lesson_progress:u1", {"n": 1})
        [path] = list(tmp_path.glob("*.json"))
        path.write_bytes(b"\xff\xfe\x00garbage")

        with pytest.raises(StorageReadError):
            await storage.get_item("progression:lesson_progress:u1")

    @pytest.mark.asyncio
    async def test_invalid_utf8_reads_as_no_progress(self, tmp_path):
        storage = JsonFileStorage(tmp_path)
        store = LocalProgressStore(storage)
        (tmp_path / "progression%3Alesson_progress%3Au1.json").write_bytes(b"\xff\xfe\x00garbage")

        assert await store.get_lesson_progress("u1") == []

    @pytest.mark.asyncio
    async def test_failed_replace_removes_temp_file(self, tmp_path, monkeypatch):
        storage = JsonFileStorage(tmp_path)
        await storage.set_item("k", {"n": 1})

        def fail_replace(src, dst):
            raise OSError("read-only file system")

        monkeypatch.setattr("progression.store.backends.os.replace", fail_replace)

        with pytest.raises(StorageWriteError):
            await storage.set_item("k", {"n": 2})

        assert list(tmp_path.glob("*.tmp")) == []
        monkeypatch.undo()
        assert await storage.get_item("k") == {"n": 1}

    @pytest.mark.asyncio
    async def test_no_temp_files_left_behind(self, tmp_path):
        storage = JsonFileStorage(tmp_path)

        await storage.set_item("k", {"n": 1})
        await storage.set_item("k", {"n": 2})

        assert list(tmp_path.glob("*.tmp")) == []


class TestSqliteStorage:
    """kv_store table through SQLAlchemy."""

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path):
        db_path = tmp_path / "nested" / "progress.db"
        first = SqliteStorage(db_path)
        await first.set_item("k", {"n": 1})
        first.close()

        second = SqliteStorage(db_path)
        try:
            assert await second.get_item("k") == {"n": 1}
        finally:
            second.close()
