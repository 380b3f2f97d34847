# tests/test_mcp_server.py
"""Tests for the MCP server implementation."""
import json
from unittest.mock import MagicMock, patch

import pytest

from lumen_notes.exceptions import StorageError
from lumen_notes.server.mcp_server import NotesMcpServer
from lumen_notes.storage.kv_store import InMemoryKeyValueStore


class TestMcpServer:
    """Tests for the NotesMcpServer class."""

    @pytest.fixture(autouse=True)
    def server(self, test_config):
        """Build a server whose FastMCP instance records registered tools."""
        self.registered_tools = {}
        self.mock_mcp = MagicMock()

        def mock_tool_decorator(*args, **kwargs):
            def tool_wrapper(func):
                self.registered_tools[kwargs.get("name")] = func
                return func
            return tool_wrapper
        self.mock_mcp.tool = mock_tool_decorator

        with patch("lumen_notes.server.mcp_server.FastMCP", return_value=self.mock_mcp), \
                patch("lumen_notes.server.mcp_server.atexit"):
            self.server = NotesMcpServer(store=InMemoryKeyValueStore(), cfg=test_config)
        yield self.server

    async def call(self, name, **kwargs):
        return json.loads(await self.registered_tools[name](**kwargs))

    def test_all_tools_registered(self):
        assert set(self.registered_tools) == {
            "notes_create", "notes_get", "notes_update", "notes_delete",
            "notes_restore", "notes_purge", "notes_toggle_pin",
            "notes_toggle_favorite", "notes_duplicate", "notes_list",
            "notes_search", "notes_suggest", "notes_categories", "notes_tags",
            "notes_stats", "backup_create", "backup_list", "backup_restore",
            "backup_delete", "backup_export", "backup_import", "backup_status",
        }

    @pytest.mark.anyio
    async def test_create_and_get(self):
        created = await self.call("notes_create", title="Groceries", tags="home, urgent")
        assert created["success"] is True
        assert created["data"]["tags"] == ["home", "urgent"]
        assert created["data"]["isPinned"] is False

        fetched = await self.call("notes_get", note_id=created["data"]["id"])
        assert fetched["data"]["title"] == "Groceries"

    @pytest.mark.anyio
    async def test_create_validation_error(self):
        result = await self.call("notes_create", title="  ")
        assert result == {"success": False, "error": "Note title is required"}

    @pytest.mark.anyio
    async def test_update_only_touches_given_fields(self):
        created = await self.call("notes_create", title="Plan", category="Work", content="x")
        note_id = created["data"]["id"]
        updated = await self.call("notes_update", note_id=note_id, content="y", category="")
        assert updated["data"]["title"] == "Plan"
        assert updated["data"]["content"] == "y"
        assert updated["data"]["category"] is None

    @pytest.mark.anyio
    async def test_delete_restore_purge(self):
        note_id = (await self.call("notes_create", title="Bin"))["data"]["id"]
        assert (await self.call("notes_delete", note_id=note_id))["success"]
        listed = await self.call("notes_list")
        assert listed["data"] == []
        with_deleted = await self.call("notes_list", include_deleted=True)
        assert [n["id"] for n in with_deleted["data"]] == [note_id]

        assert (await self.call("notes_restore", note_id=note_id))["data"]["isDeleted"] is False
        assert (await self.call("notes_purge", note_id=note_id))["success"]
        assert (await self.call("notes_get", note_id=note_id))["error"] == "Note not found"

    @pytest.mark.anyio
    async def test_list_sorting(self):
        for title in ("Alpha", "Gamma", "Beta"):
            await self.call("notes_create", title=title)
        listed = await self.call("notes_list", sort_by="title", sort_order="asc")
        assert [n["title"] for n in listed["data"]] == ["Alpha", "Beta", "Gamma"]

    @pytest.mark.anyio
    async def test_list_invalid_sort_field(self):
        result = await self.call("notes_list", sort_by="color")
        assert result["success"] is False
        assert result["error"].startswith("Invalid input")

    @pytest.mark.anyio
    async def test_search_and_suggest(self):
        await self.call("notes_create", title="Coffee beans", tags="coffee")
        result = await self.call("notes_search", term="coffee")
        assert result["data"][0]["score"] == 135
        assert {h["field"] for h in result["data"][0]["highlights"]} == {"title", "tags[0]"}
        assert (await self.call("notes_suggest", partial="cof"))["data"] == ["Coffee", "coffee"]

    @pytest.mark.anyio
    async def test_search_term_too_short(self):
        result = await self.call("notes_search", term="c")
        assert result["success"] is False
        assert "at least 2" in result["error"]

    @pytest.mark.anyio
    async def test_toggles_duplicate_and_listings(self):
        note_id = (await self.call("notes_create", title="Doc", category="Work", tags="a"))["data"]["id"]
        assert (await self.call("notes_toggle_pin", note_id=note_id))["data"]["isPinned"]
        assert (await self.call("notes_toggle_favorite", note_id=note_id))["data"]["isFavorite"]
        copy = await self.call("notes_duplicate", note_id=note_id)
        assert copy["data"]["title"] == "Doc (Copy)"
        assert (await self.call("notes_categories"))["data"] == ["Work"]
        assert (await self.call("notes_tags"))["data"] == ["a"]
        stats = (await self.call("notes_stats"))["data"]
        assert stats["total"] == 2
        assert stats["pinned"] == 1

    @pytest.mark.anyio
    async def test_backup_tools(self):
        await self.call("notes_create", title="Saved")
        created = await self.call("backup_create")
        backup_id = created["data"]["id"]
        assert created["data"]["notesCount"] == 1

        exported = await self.call("backup_export", backup_id=backup_id)
        imported = await self.call("backup_import", backup_json=exported["data"])
        assert imported["data"]["id"].startswith("backup_imported_")
        assert len((await self.call("backup_list"))["data"]) == 2

        await self.call("notes_create", title="Later")
        assert (await self.call("backup_restore", backup_id=backup_id))["success"]
        assert [n["title"] for n in (await self.call("notes_list"))["data"]] == ["Saved"]

        assert (await self.call("backup_delete", backup_id=backup_id))["success"]
        status = await self.call("backup_status")
        assert status["data"]["totalBackups"] == 1
        assert status["data"]["needsAutoBackup"] is False

    @pytest.mark.anyio
    async def test_backup_status_runs_auto_backup(self):
        status = await self.call("backup_status", run_auto_backup=True)
        assert status["data"]["totalBackups"] == 1
        assert status["data"]["needsAutoBackup"] is False

    @pytest.mark.anyio
    async def test_unexpected_error_is_formatted(self):
        self.server.notes_service.stats = MagicMock(side_effect=RuntimeError("boom"))
        result = await self.call("notes_stats")
        assert result["success"] is False
        assert result["error"].startswith("An unexpected error occurred (ref: ")

    def test_format_domain_error(self):
        rendered = json.loads(self.server.format_error_response(StorageError("Failed to read data")))
        assert rendered == {"success": False, "error": "Failed to read data"}

    def test_run_delegates_to_fastmcp(self):
        self.server.run()
        self.mock_mcp.run.assert_called_once()
