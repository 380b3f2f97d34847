"""Storage layer for the Lumen Notes engine."""

from lumen_notes.storage.kv_store import (
    InMemoryKeyValueStore,
    JsonStorage,
    KeyValueStore,
    SqliteKeyValueStore,
)
from lumen_notes.storage.note_repository import NoteRepository

__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "SqliteKeyValueStore",
    "JsonStorage",
    "NoteRepository",
]
