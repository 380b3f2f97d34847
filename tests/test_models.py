# tests/test_models.py
"""Tests for the data models used by the Lumen Notes engine."""
import datetime
import re

import pytest
from pydantic import ValidationError

from lumen_notes.models.schema import (
    ActionResult,
    AppSettings,
    BackupMetadata,
    Note,
    NoteCreate,
    NotesQuery,
    NoteUpdate,
    generate_id,
)


class TestNoteModel:
    """Tests for the Note model."""

    def test_note_defaults(self):
        note = Note(title="Test Note")
        assert note.content == ""
        assert note.is_pinned is False
        assert note.is_favorite is False
        assert note.is_deleted is False
        assert note.category is None
        assert note.tags == []
        assert note.created_at.tzinfo is not None

    def test_note_is_immutable(self):
        note = Note(title="Frozen")
        with pytest.raises(ValidationError):
            note.title = "Changed"

    def test_storage_shape_is_camel_case(self):
        note = Note(title="Shape", tags=["a"], is_pinned=True)
        stored = note.to_storage()
        assert stored["isPinned"] is True
        assert "createdAt" in stored and "updatedAt" in stored
        assert "is_pinned" not in stored
        assert isinstance(stored["createdAt"], str)

    def test_parse_stored_note(self):
        note = Note(title="Round", content="body", category="Work", tags=["x", "y"])
        parsed = Note.model_validate(note.to_storage())
        assert parsed == note

    def test_legacy_note_without_favorite_flag(self):
        legacy = {
            "id": "note_1_abc",
            "title": "Old",
            "content": "",
            "createdAt": "2024-01-01T10:00:00Z",
            "updatedAt": "2024-01-01T10:00:00Z",
            "isPinned": False,
            "tags": [],
            "isDeleted": False,
        }
        note = Note.model_validate(legacy)
        assert note.is_favorite is False

    def test_naive_timestamps_are_treated_as_utc(self):
        note = Note.model_validate({
            "title": "Naive",
            "createdAt": "2024-03-01T08:00:00",
            "updatedAt": "2024-03-01T08:00:00",
        })
        assert note.created_at.tzinfo == datetime.timezone.utc
        assert note.created_at.hour == 8

    def test_index_entry_is_lower_cased(self):
        note = Note(title="Hello World", content="BODY", category="Work", tags=["TagA"])
        entry = note.to_index_entry()
        assert entry["title"] == "hello world"
        assert entry["content"] == "body"
        assert entry["category"] == "work"
        assert entry["tags"] == ["taga"]
        assert entry["isDeleted"] is False


class TestIdGeneration:

    def test_note_id_format(self):
        assert re.match(r"^note_\d{13}_[0-9a-z]{9}$", generate_id())

    def test_custom_prefix(self):
        assert generate_id("backup").startswith("backup_")

    def test_ids_differ(self):
        ids = {generate_id() for _ in range(200)}
        assert len(ids) == 200


class TestInputModels:

    def test_note_update_changes_only_supplied_fields(self):
        update = NoteUpdate(id="n1", title="New", category=None)
        assert update.changes() == {"title": "New", "category": None}

    def test_note_update_accepts_camel_case(self):
        update = NoteUpdate.model_validate({"id": "n1", "isPinned": True})
        assert update.changes() == {"is_pinned": True}

    def test_note_create_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            NoteCreate(title="x", is_pinned=True)

    def test_query_defaults(self):
        query = NotesQuery()
        assert query.sort_by == "updatedAt"
        assert query.sort_order == "desc"
        assert query.include_deleted is False
        assert not query.is_paginated

    def test_query_rejects_negative_limit(self):
        with pytest.raises(ValidationError):
            NotesQuery(limit=-1)

    def test_query_rejects_unknown_sort_field(self):
        with pytest.raises(ValidationError):
            NotesQuery(sort_by="color")


class TestSettingsAndBackupModels:

    def test_default_settings(self):
        settings = AppSettings()
        assert settings.theme == "auto"
        assert settings.default_view_mode == "list"
        assert settings.auto_save.enabled is True
        assert settings.backup.auto_backup is True
        assert settings.backup.keep_count == 7
        assert settings.default_sort.field == "updatedAt"

    def test_settings_storage_shape(self):
        stored = AppSettings().to_storage()
        assert stored["autoSave"]["intervalMs"] == 3000
        assert stored["backup"]["keepCount"] == 7

    def test_backup_metadata_parses_stored_entry(self):
        entry = BackupMetadata.model_validate({
            "id": "backup_1_x",
            "timestamp": "2024-05-01T00:00:00Z",
            "notesCount": 3,
            "size": 120,
            "source": "auto",
        })
        assert entry.notes_count == 3
        assert entry.to_storage()["notesCount"] == 3


class TestActionResult:

    def test_ok_result(self):
        result = ActionResult.ok(Note(title="A"), ["careful"])
        data = result.to_dict()
        assert data["success"] is True
        assert data["data"]["title"] == "A"
        assert data["warnings"] == ["careful"]
        assert "error" not in data

    def test_fail_result(self):
        data = ActionResult.fail("Note not found").to_dict()
        assert data == {"success": False, "error": "Note not found"}

    def test_nested_values_are_serialized(self):
        when = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)
        data = ActionResult.ok({"lastBackup": when, "notes": [Note(title="x")]}).to_dict()
        assert data["data"]["lastBackup"] == when.isoformat()
        assert data["data"]["notes"][0]["title"] == "x"
