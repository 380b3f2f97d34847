"""Repository for note storage and retrieval.

The repository is the only component that writes the note collection.
Every mutation loads the whole collection, changes it, and writes it back
under a single key. There is no locking: two mutations interleaving
between their load and save lose one of the changes.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from lumen_notes.config import NotesConfig, config as default_config
from lumen_notes.exceptions import (
    CapacityExceededError,
    ErrorCode,
    NoteNotFoundError,
    StorageError,
    ValidationError,
)
from lumen_notes.models.schema import (
    Note,
    NoteCreate,
    NoteUpdate,
    generate_id,
    utc_now,
)
from lumen_notes.storage import keys
from lumen_notes.storage.kv_store import JsonStorage, KeyValueStore
from lumen_notes.validation import validate_and_sanitize_note

logger = logging.getLogger(__name__)

COPY_SUFFIX = " (Copy)"


class NoteRepository:
    """Owns the canonical note collection in the key-value store."""

    def __init__(
        self,
        storage: Union[JsonStorage, KeyValueStore],
        cfg: Optional[NotesConfig] = None,
    ):
        """Initialize the repository.

        Args:
            storage: JSON storage, or a raw key-value store to wrap.
            cfg: Limits to enforce. Defaults to the global config.
        """
        if isinstance(storage, KeyValueStore):
            storage = JsonStorage(storage)
        self.storage = storage
        self.config = cfg or default_config

    # =========================================================================
    # Persistence
    # =========================================================================

    @staticmethod
    def _parse_notes(raw: Any) -> List[Note]:
        if not isinstance(raw, list):
            raise StorageError(
                "Stored notes are not a list",
                operation="load",
                key=keys.NOTES,
                code=ErrorCode.STORAGE_READ_FAILED,
            )
        try:
            return [Note.model_validate(item) for item in raw]
        except PydanticValidationError as e:
            raise StorageError(
                "Stored notes are malformed",
                operation="load",
                key=keys.NOTES,
                code=ErrorCode.STORAGE_READ_FAILED,
                original_error=e,
            ) from e

    async def load_all(self) -> List[Note]:
        """Read the full collection; an empty store yields an empty list."""
        raw = await self.storage.get_item(keys.NOTES)
        if raw is None:
            return []
        return self._parse_notes(raw)

    async def save_all(self, notes: List[Note]) -> None:
        """Persist the full collection, then refresh the search index."""
        await self.storage.set_item(keys.NOTES, [note.to_storage() for note in notes])
        await self._update_index(notes)

    async def _update_index(self, notes: List[Note]) -> None:
        """Best-effort refresh of the lower-cased notes index."""
        try:
            await self.storage.set_item(
                keys.NOTES_INDEX, [note.to_index_entry() for note in notes]
            )
        except Exception as e:
            logger.warning(f"Failed to update notes index: {e}")

    async def clear_all(self) -> None:
        """Remove the whole collection and its index."""
        await self.storage.remove_item(keys.NOTES)
        try:
            await self.storage.remove_item(keys.NOTES_INDEX)
        except StorageError as e:
            logger.warning(f"Failed to remove notes index: {e}")
        logger.info("Cleared all notes")

    # =========================================================================
    # Reads
    # =========================================================================

    async def get(self, note_id: str) -> Optional[Note]:
        """Get a note by id, including soft-deleted notes."""
        notes = await self.load_all()
        return next((note for note in notes if note.id == note_id), None)

    async def count(self) -> int:
        """Number of stored notes, soft-deleted ones included."""
        return len(await self.load_all())

    # =========================================================================
    # Mutations
    # =========================================================================

    @staticmethod
    def _new_id(existing: List[Note]) -> str:
        taken = {note.id for note in existing}
        note_id = generate_id()
        while note_id in taken:
            note_id = generate_id()
        return note_id

    async def create(self, note_input: NoteCreate) -> Tuple[Note, List[str]]:
        """Create a note.

        Returns:
            The stored note and any non-blocking validation warnings.

        Raises:
            ValidationError: If the input violates a field constraint.
            CapacityExceededError: If the collection is already full.
            StorageError: If the store cannot be read or written.
        """
        sanitized, validation = validate_and_sanitize_note(note_input, self.config)
        if not validation.is_valid:
            raise ValidationError(validation.errors, validation.warnings)

        existing = await self.load_all()
        if len(existing) >= self.config.max_notes:
            raise CapacityExceededError(self.config.max_notes)

        now = utc_now()
        note = Note(
            id=self._new_id(existing),
            title=sanitized.title,
            content=sanitized.content or "",
            created_at=now,
            updated_at=now,
            category=sanitized.category or None,
            tags=list(sanitized.tags),
            color=sanitized.color or None,
        )

        await self.save_all([note, *existing])
        logger.info(f"Created note {note.id}")
        return note, validation.warnings

    async def update(self, note_update: NoteUpdate) -> Tuple[Note, List[str]]:
        """Apply the supplied fields of ``note_update`` to a stored note.

        Raises:
            ValidationError: If a supplied field violates a constraint.
            NoteNotFoundError: If no note has the given id.
            StorageError: If the store cannot be read or written.
        """
        sanitized, validation = validate_and_sanitize_note(note_update, self.config)
        if not validation.is_valid:
            raise ValidationError(validation.errors, validation.warnings)

        notes = await self.load_all()
        index = next(
            (i for i, note in enumerate(notes) if note.id == note_update.id), None
        )
        if index is None:
            raise NoteNotFoundError(note_update.id)

        changes: Dict[str, Any] = sanitized.changes()
        for name in ("category", "color"):
            if name in changes and not changes[name]:
                changes[name] = None
        for name in ("content", "tags", "is_pinned", "is_favorite", "is_deleted"):
            # Explicit None for a non-optional field means "leave unchanged"
            if name in changes and changes[name] is None:
                del changes[name]
        changes["updated_at"] = max(utc_now(), notes[index].created_at)

        updated = notes[index].model_copy(update=changes)
        notes[index] = updated
        await self.save_all(notes)
        logger.debug(f"Updated note {updated.id} ({', '.join(sorted(changes))})")
        return updated, validation.warnings

    async def soft_delete(self, note_id: str) -> None:
        """Flag a note as deleted; it stays addressable by id."""
        await self.update(NoteUpdate(id=note_id, is_deleted=True))
        logger.info(f"Soft-deleted note {note_id}")

    async def restore(self, note_id: str) -> Note:
        """Clear the deleted flag of a note."""
        note, _ = await self.update(NoteUpdate(id=note_id, is_deleted=False))
        logger.info(f"Restored note {note_id}")
        return note

    async def permanently_delete(self, note_id: str) -> None:
        """Remove a note from the collection; absent ids are a no-op write."""
        notes = await self.load_all()
        remaining = [note for note in notes if note.id != note_id]
        await self.save_all(remaining)
        if len(remaining) != len(notes):
            logger.info(f"Permanently deleted note {note_id}")

    async def _require(self, note_id: str) -> Note:
        note = await self.get(note_id)
        if note is None:
            raise NoteNotFoundError(note_id)
        return note

    async def toggle_pin(self, note_id: str) -> Note:
        note = await self._require(note_id)
        updated, _ = await self.update(NoteUpdate(id=note_id, is_pinned=not note.is_pinned))
        return updated

    async def toggle_favorite(self, note_id: str) -> Note:
        note = await self._require(note_id)
        updated, _ = await self.update(
            NoteUpdate(id=note_id, is_favorite=not note.is_favorite)
        )
        return updated

    async def duplicate(self, note_id: str) -> Tuple[Note, List[str]]:
        """Create a copy of a note with a fresh id and ``" (Copy)"`` title.

        The copy is never pinned, favorited or deleted.
        """
        original = await self._require(note_id)
        return await self.create(
            NoteCreate(
                title=f"{original.title}{COPY_SUFFIX}",
                content=original.content,
                category=original.category,
                tags=list(original.tags),
                color=original.color,
            )
        )
