"""MCP server exposing the notes engine as tools."""

import atexit
import json
import logging
import uuid
from typing import Any, Dict, List, Optional

import anyio
from mcp.server.fastmcp import FastMCP

from lumen_notes.backup import BackupManager
from lumen_notes.config import NotesConfig, config as default_config
from lumen_notes.exceptions import NotesError
from lumen_notes.models.schema import ActionResult, NoteCreate, NotesQuery, NoteUpdate
from lumen_notes.observability import metrics
from lumen_notes.services.notes_service import NotesService
from lumen_notes.services.search_service import SearchService
from lumen_notes.services.settings_service import SettingsService
from lumen_notes.storage.kv_store import JsonStorage, KeyValueStore, create_store
from lumen_notes.storage.note_repository import NoteRepository
from lumen_notes.validation import validate_search_term

logger = logging.getLogger(__name__)


def _split_tags(tags: Optional[str]) -> Optional[List[str]]:
    """Comma-separated tags to a list; None stays None."""
    if tags is None:
        return None
    return [t.strip() for t in tags.split(",") if t.strip()]


def render(result: ActionResult) -> str:
    """Render an ActionResult as the JSON text returned by every tool."""
    return json.dumps(result.to_dict(), indent=2, ensure_ascii=False)


class NotesMcpServer:
    """MCP server for Lumen Notes."""

    def __init__(self, store: Optional[KeyValueStore] = None, cfg: Optional[NotesConfig] = None):
        """Initialize the MCP server.

        Args:
            store: Pre-configured key-value store. Defaults to the backend
                named by ``cfg.storage_backend``.
            cfg: Configuration. Defaults to the global config.
        """
        self.config = cfg or default_config
        self.mcp = FastMCP(self.config.server_name)
        self.store = store or create_store(self.config.storage_backend)
        storage = JsonStorage(self.store)

        self.repository = NoteRepository(storage, self.config)
        self.settings_service = SettingsService(storage)
        self.notes_service = NotesService(self.repository, SearchService())
        self.backup_manager = BackupManager(
            storage,
            repository=self.repository,
            settings_service=self.settings_service,
            cfg=self.config,
        )
        atexit.register(self._shutdown)
        self._register_tools()
        logger.info("Lumen Notes MCP server initialized")

    def _shutdown(self) -> None:
        """Release the store and log a metrics summary on exit."""
        try:
            anyio.run(self.store.close)
        except RuntimeError as e:
            logger.debug(f"Store not closed on shutdown: {e}")
        summary = metrics.get_summary()
        if summary["total_operations"]:
            logger.info(f"Session metrics: {summary}")

    def format_error_response(self, error: Exception) -> str:
        """Render an unexpected exception as a failed ActionResult.

        Domain errors keep their message; anything else gets a generic
        message with a reference id that also appears in the log.
        """
        error_id = str(uuid.uuid4())[:8]

        if isinstance(error, NotesError):
            logger.error(
                f"[{error.code.name}] [{error_id}]: {error.message}",
                extra={"error_details": error.details},
            )
            return render(ActionResult.fail(error.message))
        elif isinstance(error, ValueError):
            logger.error(f"Validation error [{error_id}]: {str(error)}")
            return render(ActionResult.fail(f"Invalid input (ref: {error_id})"))
        else:
            logger.error(f"Unexpected error [{error_id}]: {str(error)}", exc_info=True)
            return render(ActionResult.fail(f"An unexpected error occurred (ref: {error_id})"))

    def _register_tools(self) -> None:
        """Register MCP tools."""
        notes = self.notes_service
        backups = self.backup_manager

        @self.mcp.tool(name="notes_create")
        async def notes_create(
            title: str,
            content: str = "",
            category: Optional[str] = None,
            tags: Optional[str] = None,
            color: Optional[str] = None,
        ) -> str:
            """Create a new note.
            Args:
                title: The title of the note
                content: The body of the note
                category: Optional category name
                tags: Comma-separated list of tags (optional)
                color: Optional hex color such as #FFAA00
            """
            try:
                note_input = NoteCreate(
                    title=title,
                    content=content,
                    category=category,
                    tags=_split_tags(tags) or [],
                    color=color,
                )
                return render(await notes.create_note(note_input))
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_get")
        async def notes_get(note_id: str) -> str:
            """Retrieve a note by ID, including soft-deleted notes."""
            try:
                return render(await notes.get_note(note_id))
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_update")
        async def notes_update(
            note_id: str,
            title: Optional[str] = None,
            content: Optional[str] = None,
            category: Optional[str] = None,
            tags: Optional[str] = None,
            color: Optional[str] = None,
        ) -> str:
            """Update fields of an existing note; omitted fields stay unchanged.
            Args:
                note_id: The ID of the note to update
                title: New title (optional)
                content: New content (optional)
                category: New category; an empty string clears it
                tags: Comma-separated replacement tags; an empty string clears them
                color: New hex color; an empty string clears it
            """
            try:
                fields: Dict[str, Any] = {"id": note_id}
                for name, value in (
                    ("title", title),
                    ("content", content),
                    ("category", category),
                    ("color", color),
                ):
                    if value is not None:
                        fields[name] = value
                if tags is not None:
                    fields["tags"] = _split_tags(tags)
                return render(await notes.update_note(NoteUpdate(**fields)))
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_delete")
        async def notes_delete(note_id: str) -> str:
            """Move a note to the trash (soft delete); it can be restored."""
            try:
                return render(await notes.delete_note(note_id))
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_restore")
        async def notes_restore(note_id: str) -> str:
            """Restore a soft-deleted note."""
            try:
                return render(await notes.restore_note(note_id))
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_purge")
        async def notes_purge(note_id: str) -> str:
            """Permanently delete a note. Backups are not affected."""
            try:
                return render(await notes.permanently_delete_note(note_id))
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_toggle_pin")
        async def notes_toggle_pin(note_id: str) -> str:
            """Pin or unpin a note."""
            try:
                return render(await notes.toggle_pin(note_id))
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_toggle_favorite")
        async def notes_toggle_favorite(note_id: str) -> str:
            """Mark or unmark a note as favorite."""
            try:
                return render(await notes.toggle_favorite(note_id))
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_duplicate")
        async def notes_duplicate(note_id: str) -> str:
            """Copy a note; the copy's title ends with " (Copy)"."""
            try:
                return render(await notes.duplicate_note(note_id))
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_list")
        async def notes_list(
            search_term: Optional[str] = None,
            category: Optional[str] = None,
            tags: Optional[str] = None,
            is_pinned: Optional[bool] = None,
            include_deleted: bool = False,
            sort_by: str = "updatedAt",
            sort_order: str = "desc",
            limit: Optional[int] = None,
            offset: Optional[int] = None,
        ) -> str:
            """List notes with filtering, sorting and pagination.
            Args:
                search_term: Case-insensitive text to look for in title, content, tags, category
                category: Exact category to match
                tags: Comma-separated tags; notes with any of them match
                is_pinned: Only pinned (true) or unpinned (false) notes
                include_deleted: Include soft-deleted notes
                sort_by: createdAt, updatedAt or title
                sort_order: asc or desc
                limit: Maximum number of notes to return
                offset: Number of notes to skip
            """
            try:
                options = NotesQuery(
                    search_term=search_term,
                    category=category,
                    tags=_split_tags(tags),
                    is_pinned=is_pinned,
                    include_deleted=include_deleted,
                    sort_by=sort_by,
                    sort_order=sort_order,
                    limit=limit,
                    offset=offset,
                )
                return render(await notes.query_notes(options))
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_search")
        async def notes_search(term: str, limit: int = 20) -> str:
            """Search active notes ranked by relevance, with match highlights.
            Args:
                term: Text to search for (2 to 100 characters)
                limit: Maximum number of results to return
            """
            try:
                check = validate_search_term(term.strip())
                if not check.is_valid:
                    return render(ActionResult.fail("; ".join(check.errors)))
                result = await notes.search(term)
                if result.success:
                    result.data = result.data[:limit]
                return render(result)
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_suggest")
        async def notes_suggest(partial: str) -> str:
            """Suggest completions from title words, categories and tags."""
            try:
                return render(await notes.suggest(partial))
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_categories")
        async def notes_categories() -> str:
            """List the categories in use by active notes."""
            try:
                return render(await notes.list_categories())
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_tags")
        async def notes_tags() -> str:
            """List the tags in use by active notes."""
            try:
                return render(await notes.list_tags())
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_stats")
        async def notes_stats() -> str:
            """Get statistics about the note collection."""
            try:
                return render(await notes.stats())
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="backup_create")
        async def backup_create() -> str:
            """Create a manual backup of all notes and settings."""
            try:
                return render(await backups.create_backup("manual"))
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="backup_list")
        async def backup_list() -> str:
            """List available backups, newest first."""
            try:
                return render(await backups.list_backups())
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="backup_restore")
        async def backup_restore(backup_id: str) -> str:
            """Replace all notes and settings with the contents of a backup."""
            try:
                result = await backups.restore_backup(backup_id)
                if result.success:
                    await notes.load_notes()
                return render(result)
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="backup_delete")
        async def backup_delete(backup_id: str) -> str:
            """Delete a backup."""
            try:
                return render(await backups.delete_backup(backup_id))
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="backup_export")
        async def backup_export(backup_id: str) -> str:
            """Export a backup as a JSON document."""
            try:
                return render(await backups.export_backup(backup_id))
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="backup_import")
        async def backup_import(backup_json: str) -> str:
            """Import a previously exported backup JSON document as a new backup."""
            try:
                return render(await backups.import_backup(backup_json))
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="backup_status")
        async def backup_status(run_auto_backup: bool = False) -> str:
            """Backup statistics and whether an automatic backup is due.
            Args:
                run_auto_backup: Create an automatic backup when one is due
            """
            try:
                if run_auto_backup:
                    auto = await backups.auto_backup_if_needed()
                    if not auto.success:
                        return render(auto)
                result = await backups.backup_stats()
                if result.success:
                    result.data["needsAutoBackup"] = await backups.needs_auto_backup()
                return render(result)
            except Exception as e:
                return self.format_error_response(e)

    def run(self) -> None:
        """Run the MCP server."""
        self.mcp.run()
