"""Service facade for note operations.

Every public coroutine returns an ``ActionResult``; expected failures are
reported through ``ActionResult.error`` instead of being raised. The service
also holds the live collection and the view derived from the current query,
recomputed after each successful mutation.
"""

import logging
from typing import Any, Awaitable, Callable, List, Optional

from lumen_notes.exceptions import NotesError, ValidationError
from lumen_notes.models.schema import (
    ActionResult,
    Note,
    NoteCreate,
    NotesQuery,
    NoteStats,
    NoteUpdate,
    SearchResult,
)
from lumen_notes.observability import timed_operation
from lumen_notes.services import query_service
from lumen_notes.services.search_service import SearchService
from lumen_notes.storage.note_repository import NoteRepository

logger = logging.getLogger(__name__)

# Wire alias (and field name) -> field name
_QUERY_FIELDS = {
    **{name: name for name in NotesQuery.model_fields},
    **{info.alias: name for name, info in NotesQuery.model_fields.items() if info.alias},
}


class NotesService:
    """Uniform-result facade over the repository, query and search engines."""

    def __init__(
        self,
        repository: NoteRepository,
        search_service: Optional[SearchService] = None,
    ):
        self.repository = repository
        self.search_service = search_service or SearchService()
        self.notes: List[Note] = []
        self.query = NotesQuery()
        self.view: List[Note] = []
        self._loaded = False

    # =========================================================================
    # Internal helpers
    # =========================================================================

    async def _execute(
        self,
        operation: str,
        action: Callable[[], Awaitable[ActionResult]],
        **context: Any,
    ) -> ActionResult:
        with timed_operation(operation, **context) as op:
            try:
                return await action()
            except ValidationError as e:
                op["error"] = e.message
                logger.info(f"{operation} rejected: {e.message}")
                return ActionResult.fail(e.message, e.warnings)
            except NotesError as e:
                op["error"] = e.message
                logger.warning(f"{operation} failed: {e}")
                return ActionResult.fail(e.message)
            except Exception as e:
                op["error"] = str(e)
                logger.error(f"Unexpected error in {operation}: {e}", exc_info=True)
                return ActionResult.fail(str(e))

    async def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.notes = await self.repository.load_all()
            self._loaded = True
            self._refresh_view()

    def _refresh_view(self) -> None:
        self.view = query_service.query_notes(self.notes, self.query)

    def _apply(self, note: Note) -> None:
        """Replace the note with the same id in the live collection, or prepend it."""
        for index, existing in enumerate(self.notes):
            if existing.id == note.id:
                self.notes[index] = note
                break
        else:
            self.notes.insert(0, note)
        self._refresh_view()

    def _discard(self, note_id: str) -> None:
        self.notes = [note for note in self.notes if note.id != note_id]
        self._refresh_view()

    # =========================================================================
    # Collection state
    # =========================================================================

    async def load_notes(self) -> ActionResult[List[Note]]:
        """(Re)load the collection from storage."""
        async def action():
            self.notes = await self.repository.load_all()
            self._loaded = True
            self._refresh_view()
            return ActionResult.ok(list(self.notes))

        return await self._execute("load_notes", action)

    async def set_filters(self, **options: Any) -> ActionResult[List[Note]]:
        """Merge ``options`` into the current query and return the new view."""
        async def action():
            await self._ensure_loaded()
            merged = self.query.model_dump()
            for key, value in options.items():
                merged[_QUERY_FIELDS.get(key, key)] = value
            try:
                self.query = NotesQuery.model_validate(merged)
            except ValueError as e:
                raise ValidationError([str(e)]) from e
            self._refresh_view()
            return ActionResult.ok(list(self.view))

        return await self._execute("set_filters", action, **options)

    async def clear_filters(self) -> ActionResult[List[Note]]:
        async def action():
            await self._ensure_loaded()
            self.query = NotesQuery()
            self._refresh_view()
            return ActionResult.ok(list(self.view))

        return await self._execute("clear_filters", action)

    # =========================================================================
    # Note CRUD
    # =========================================================================

    async def get_note(self, note_id: str) -> ActionResult[Note]:
        async def action():
            note = await self.repository.get(note_id)
            if note is None:
                return ActionResult.fail("Note not found")
            return ActionResult.ok(note)

        return await self._execute("get_note", action, note_id=note_id)

    async def create_note(self, note_input: NoteCreate) -> ActionResult[Note]:
        """Create a note; warnings from validation are passed through."""
        async def action():
            await self._ensure_loaded()
            note, warnings = await self.repository.create(note_input)
            self._apply(note)
            return ActionResult.ok(note, warnings)

        return await self._execute("create_note", action)

    async def update_note(self, note_update: NoteUpdate) -> ActionResult[Note]:
        async def action():
            await self._ensure_loaded()
            note, warnings = await self.repository.update(note_update)
            self._apply(note)
            return ActionResult.ok(note, warnings)

        return await self._execute("update_note", action, note_id=note_update.id)

    async def delete_note(self, note_id: str) -> ActionResult[None]:
        """Soft-delete a note."""
        async def action():
            await self._ensure_loaded()
            await self.repository.soft_delete(note_id)
            note = await self.repository.get(note_id)
            if note is not None:
                self._apply(note)
            return ActionResult.ok()

        return await self._execute("delete_note", action, note_id=note_id)

    async def restore_note(self, note_id: str) -> ActionResult[Note]:
        async def action():
            await self._ensure_loaded()
            note = await self.repository.restore(note_id)
            self._apply(note)
            return ActionResult.ok(note)

        return await self._execute("restore_note", action, note_id=note_id)

    async def permanently_delete_note(self, note_id: str) -> ActionResult[None]:
        """Remove a note for good; unknown ids succeed without change."""
        async def action():
            await self._ensure_loaded()
            await self.repository.permanently_delete(note_id)
            self._discard(note_id)
            return ActionResult.ok()

        return await self._execute("permanently_delete_note", action, note_id=note_id)

    async def toggle_pin(self, note_id: str) -> ActionResult[Note]:
        async def action():
            await self._ensure_loaded()
            note = await self.repository.toggle_pin(note_id)
            self._apply(note)
            return ActionResult.ok(note)

        return await self._execute("toggle_pin", action, note_id=note_id)

    async def toggle_favorite(self, note_id: str) -> ActionResult[Note]:
        async def action():
            await self._ensure_loaded()
            note = await self.repository.toggle_favorite(note_id)
            self._apply(note)
            return ActionResult.ok(note)

        return await self._execute("toggle_favorite", action, note_id=note_id)

    async def duplicate_note(self, note_id: str) -> ActionResult[Note]:
        async def action():
            await self._ensure_loaded()
            note, warnings = await self.repository.duplicate(note_id)
            self._apply(note)
            return ActionResult.ok(note, warnings)

        return await self._execute("duplicate_note", action, note_id=note_id)

    async def clear_all(self) -> ActionResult[None]:
        async def action():
            await self.repository.clear_all()
            self.notes = []
            self._loaded = True
            self._refresh_view()
            return ActionResult.ok()

        return await self._execute("clear_all", action)

    # =========================================================================
    # Queries
    # =========================================================================

    async def query_notes(self, options: Optional[NotesQuery] = None) -> ActionResult[List[Note]]:
        """Derive a view without changing the current filters."""
        async def action():
            await self._ensure_loaded()
            return ActionResult.ok(query_service.query_notes(self.notes, options))

        return await self._execute("query_notes", action)

    async def search(self, term: str) -> ActionResult[List[SearchResult]]:
        """Rank the active notes by relevance for ``term``."""
        async def action():
            await self._ensure_loaded()
            active = [note for note in self.notes if not note.is_deleted]
            with timed_operation("search_notes", term=term) as op:
                results = self.search_service.search(active, term)
                op["result_count"] = len(results)
            return ActionResult.ok(results)

        return await self._execute("search", action)

    async def suggest(self, partial: str) -> ActionResult[List[str]]:
        async def action():
            await self._ensure_loaded()
            active = [note for note in self.notes if not note.is_deleted]
            return ActionResult.ok(self.search_service.suggest(active, partial))

        return await self._execute("suggest", action)

    async def list_categories(self) -> ActionResult[List[str]]:
        async def action():
            await self._ensure_loaded()
            return ActionResult.ok(query_service.list_categories(self.notes))

        return await self._execute("list_categories", action)

    async def list_tags(self) -> ActionResult[List[str]]:
        async def action():
            await self._ensure_loaded()
            return ActionResult.ok(query_service.list_tags(self.notes))

        return await self._execute("list_tags", action)

    async def stats(self) -> ActionResult[NoteStats]:
        async def action():
            await self._ensure_loaded()
            return ActionResult.ok(query_service.compute_stats(self.notes))

        return await self._execute("stats", action)
