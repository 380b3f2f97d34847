"""Tests for the key-value stores and the JSON storage layer."""
import pytest

from lumen_notes.exceptions import ErrorCode, StorageError
from lumen_notes.models.db_models import init_db
from lumen_notes.storage.kv_store import (
    InMemoryKeyValueStore,
    JsonStorage,
    SqliteKeyValueStore,
    create_store,
)
from tests.fakes import FailingStore


@pytest.fixture
def sqlite_store(tmp_path):
    store = SqliteKeyValueStore(db_url=f"sqlite:///{tmp_path / 'kv.db'}")
    yield store
    store.engine.dispose()


class TestInMemoryStore:

    @pytest.mark.anyio
    async def test_set_get_remove(self):
        store = InMemoryKeyValueStore()
        assert await store.get("missing") is None
        await store.set("a", "1")
        assert await store.get("a") == "1"
        await store.remove("a")
        await store.remove("a")
        assert await store.keys() == []


class TestSqliteStore:

    @pytest.mark.anyio
    async def test_set_get_overwrite(self, sqlite_store):
        await sqlite_store.set("notes", "[]")
        await sqlite_store.set("notes", "[1]")
        assert await sqlite_store.get("notes") == "[1]"
        assert await sqlite_store.keys() == ["notes"]

    @pytest.mark.anyio
    async def test_remove_missing_key_is_not_an_error(self, sqlite_store):
        await sqlite_store.remove("nothing")
        assert await sqlite_store.get("nothing") is None

    @pytest.mark.anyio
    async def test_data_survives_a_new_store_on_same_file(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'durable.db'}"
        first = SqliteKeyValueStore(db_url=url)
        await first.set("settings", '{"theme": "dark"}')
        await first.close()

        second = SqliteKeyValueStore(engine=init_db(url))
        assert await second.get("settings") == '{"theme": "dark"}'
        await second.close()


class TestJsonStorage:

    @pytest.mark.anyio
    async def test_round_trip(self):
        storage = JsonStorage(InMemoryKeyValueStore())
        await storage.set_item("k", {"a": [1, 2], "b": "ü"})
        assert await storage.get_item("k") == {"a": [1, 2], "b": "ü"}
        assert await storage.get_item("other") is None

    @pytest.mark.anyio
    async def test_corrupt_json_raises_read_error(self):
        storage = JsonStorage(InMemoryKeyValueStore({"k": "{not json"}))
        with pytest.raises(StorageError) as exc_info:
            await storage.get_item("k")
        assert exc_info.value.code == ErrorCode.STORAGE_READ_FAILED

    @pytest.mark.anyio
    async def test_backend_write_failure_raises_write_error(self):
        store = FailingStore()
        store.fail_on("set")
        storage = JsonStorage(store)
        with pytest.raises(StorageError) as exc_info:
            await storage.set_item("k", 1)
        assert exc_info.value.code == ErrorCode.STORAGE_WRITE_FAILED
        assert exc_info.value.message == "Failed to store data"

    @pytest.mark.anyio
    async def test_unexpected_backend_error_is_wrapped(self):
        store = FailingStore()
        store.fail_on("get", "keys", error=RuntimeError)
        storage = JsonStorage(store)
        with pytest.raises(StorageError) as exc_info:
            await storage.get_item("k")
        assert exc_info.value.code == ErrorCode.STORAGE_READ_FAILED
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        with pytest.raises(StorageError):
            await storage.keys()

    @pytest.mark.anyio
    async def test_unserializable_value_raises_write_error(self):
        storage = JsonStorage(InMemoryKeyValueStore())
        with pytest.raises(StorageError) as exc_info:
            await storage.set_item("k", object())
        assert exc_info.value.code == ErrorCode.STORAGE_WRITE_FAILED

    @pytest.mark.anyio
    async def test_backend_remove_failure(self):
        store = FailingStore()
        store.fail_on("remove")
        with pytest.raises(StorageError) as exc_info:
            await JsonStorage(store).remove_item("k")
        assert exc_info.value.code == ErrorCode.STORAGE_DELETE_FAILED


def test_create_store_backends():
    assert isinstance(create_store("memory"), InMemoryKeyValueStore)
    with pytest.raises(ValueError):
        create_store("redis")
