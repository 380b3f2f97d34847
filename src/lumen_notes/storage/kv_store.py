"""Durable key-value stores and the JSON layer on top of them."""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import anyio.lowlevel
import anyio.to_thread
from sqlalchemy import delete, select
from sqlalchemy.engine import Engine

from lumen_notes.exceptions import ErrorCode, StorageError
from lumen_notes.models.db_models import DBEntry, get_session_factory, init_db

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Async, string-keyed, string-valued durable store."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the value stored under ``key`` or None."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete ``key``; a missing key is not an error."""

    @abstractmethod
    async def keys(self) -> List[str]:
        """List every stored key."""

    async def close(self) -> None:
        """Release any resources held by the store."""


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store for tests and ephemeral sessions.

    Every call yields to the event loop once, so concurrent tasks interleave
    at the same points they would against a real backend.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        await anyio.lowlevel.checkpoint()
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        await anyio.lowlevel.checkpoint()
        self._data[key] = value

    async def remove(self, key: str) -> None:
        await anyio.lowlevel.checkpoint()
        self._data.pop(key, None)

    async def keys(self) -> List[str]:
        await anyio.lowlevel.checkpoint()
        return list(self._data)


class SqliteKeyValueStore(KeyValueStore):
    """SQLite-backed store.

    Each call runs in a worker thread as its own transaction.
    """

    def __init__(self, engine: Optional[Engine] = None, db_url: Optional[str] = None):
        """Initialize the store.

        Args:
            engine: Pre-configured SQLAlchemy engine. The schema is created
                on it if missing.
            db_url: Database URL used when no engine is given. Defaults to
                the configured database path.
        """
        if engine is None:
            engine = init_db(db_url)
        else:
            DBEntry.metadata.create_all(engine)
        self.engine = engine
        self.session_factory = get_session_factory(engine)

    def _get_sync(self, key: str) -> Optional[str]:
        with self.session_factory() as session:
            entry = session.get(DBEntry, key)
            return entry.value if entry is not None else None

    def _set_sync(self, key: str, value: str) -> None:
        with self.session_factory() as session:
            session.merge(DBEntry(key=key, value=value))
            session.commit()

    def _remove_sync(self, key: str) -> None:
        with self.session_factory() as session:
            session.execute(delete(DBEntry).where(DBEntry.key == key))
            session.commit()

    def _keys_sync(self) -> List[str]:
        with self.session_factory() as session:
            return list(session.scalars(select(DBEntry.key)).all())

    async def get(self, key: str) -> Optional[str]:
        return await anyio.to_thread.run_sync(self._get_sync, key)

    async def set(self, key: str, value: str) -> None:
        await anyio.to_thread.run_sync(self._set_sync, key, value)

    async def remove(self, key: str) -> None:
        await anyio.to_thread.run_sync(self._remove_sync, key)

    async def keys(self) -> List[str]:
        return await anyio.to_thread.run_sync(self._keys_sync)

    async def close(self) -> None:
        self.engine.dispose()


class JsonStorage:
    """JSON-encoding wrapper that turns any backend failure into StorageError."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def get_item(self, key: str) -> Any:
        """Read and decode ``key``; returns None when nothing is stored."""
        try:
            raw = await self.store.get(key)
        except Exception as e:
            logger.error(f"Storage read error for key {key}: {e}")
            raise StorageError(
                "Failed to read data",
                operation="get",
                key=key,
                code=ErrorCode.STORAGE_READ_FAILED,
                original_error=e,
            ) from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt JSON stored under key {key}: {e}")
            raise StorageError(
                "Failed to read data",
                operation="decode",
                key=key,
                code=ErrorCode.STORAGE_READ_FAILED,
                original_error=e,
            ) from e

    async def set_item(self, key: str, value: Any) -> None:
        """Encode ``value`` as JSON and store it under ``key``."""
        try:
            payload = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StorageError(
                "Failed to store data",
                operation="encode",
                key=key,
                code=ErrorCode.STORAGE_WRITE_FAILED,
                original_error=e,
            ) from e
        try:
            await self.store.set(key, payload)
        except Exception as e:
            logger.error(f"Storage write error for key {key}: {e}")
            raise StorageError(
                "Failed to store data",
                operation="set",
                key=key,
                code=ErrorCode.STORAGE_WRITE_FAILED,
                original_error=e,
            ) from e

    async def remove_item(self, key: str) -> None:
        try:
            await self.store.remove(key)
        except Exception as e:
            logger.error(f"Storage remove error for key {key}: {e}")
            raise StorageError(
                "Failed to remove data",
                operation="remove",
                key=key,
                code=ErrorCode.STORAGE_DELETE_FAILED,
                original_error=e,
            ) from e

    async def keys(self) -> List[str]:
        try:
            return await self.store.keys()
        except Exception as e:
            raise StorageError(
                "Failed to get keys",
                operation="keys",
                code=ErrorCode.STORAGE_READ_FAILED,
                original_error=e,
            ) from e


def create_store(backend: str, engine: Optional[Engine] = None) -> KeyValueStore:
    """Build the key-value store named by the ``storage_backend`` setting."""
    if backend == "memory":
        return InMemoryKeyValueStore()
    if backend == "sqlite":
        return SqliteKeyValueStore(engine=engine)
    raise ValueError(f"Unknown storage backend: {backend}")
