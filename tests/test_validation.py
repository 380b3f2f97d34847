"""Tests for note input validation and sanitization."""
import pytest

from lumen_notes.config import NotesConfig
from lumen_notes.models.schema import NoteCreate, NoteUpdate
from lumen_notes.validation import (
    is_valid_color,
    sanitize_string,
    validate_and_sanitize_note,
    validate_note,
    validate_search_term,
)


@pytest.fixture
def cfg():
    return NotesConfig(max_note_length=100, max_title_length=20, max_tags_per_note=3)


class TestSanitize:

    def test_removes_script_blocks(self):
        assert sanitize_string("a<script>alert(1)</script>b") == "ab"

    def test_removes_html_tags_and_trims(self):
        assert sanitize_string("  <b>bold</b> text  ") == "bold text"

    def test_sanitized_copy_keeps_presence(self):
        update = NoteUpdate(id="n1", content="<i>x</i>")
        sanitized, result = validate_and_sanitize_note(update)
        assert sanitized.content == "x"
        assert sanitized.changes() == {"content": "x"}
        assert result.is_valid


class TestTitle:

    def test_blank_title_is_rejected(self, cfg):
        result = validate_note(NoteCreate(title="   "), cfg)
        assert not result.is_valid
        assert "Note title is required" in result.errors

    def test_title_made_blank_by_sanitizing_is_rejected(self, cfg):
        _, result = validate_and_sanitize_note(NoteCreate(title="<p></p>"), cfg)
        assert "Note title is required" in result.errors

    def test_title_too_long(self, cfg):
        result = validate_note(NoteCreate(title="x" * 21), cfg)
        assert result.errors == ["Title exceeds 20 characters"]

    def test_update_without_title_skips_title_rules(self, cfg):
        assert validate_note(NoteUpdate(id="n1", content="body"), cfg).is_valid

    def test_update_with_explicit_empty_title(self, cfg):
        result = validate_note(NoteUpdate(id="n1", title=""), cfg)
        assert "Note title is required" in result.errors


class TestContent:

    def test_content_limit(self, cfg):
        result = validate_note(NoteCreate(title="t", content="x" * 101), cfg)
        assert "Note content exceeds 100 characters" in result.errors

    def test_long_content_warns(self, cfg):
        result = validate_note(NoteCreate(title="t", content="x" * 90), cfg)
        assert result.is_valid
        assert result.warnings == ["Note content is getting quite long"]


class TestCategoryAndTags:

    def test_category_charset(self, cfg):
        result = validate_note(NoteCreate(title="t", category="work!"), cfg)
        assert "Category name contains invalid characters" in result.errors

    def test_category_with_spaces_hyphens_underscores(self, cfg):
        assert validate_note(NoteCreate(title="t", category="my work-2_b"), cfg).is_valid

    def test_too_many_tags(self, cfg):
        result = validate_note(NoteCreate(title="t", tags=["a", "b", "c", "d"]), cfg)
        assert "Maximum of 3 tags per note" in result.errors

    def test_empty_tag(self, cfg):
        result = validate_note(NoteCreate(title="t", tags=["ok", " "]), cfg)
        assert "Tag 2 cannot be empty" in result.errors

    def test_invalid_tag_characters(self, cfg):
        result = validate_note(NoteCreate(title="t", tags=["c#"]), cfg)
        assert 'Tag "c#" contains invalid characters' in result.errors

    def test_tag_too_long(self):
        result = validate_note(NoteCreate(title="t", tags=["x" * 51]))
        assert not result.is_valid

    def test_duplicate_tags_warn_case_insensitively(self, cfg):
        result = validate_note(NoteCreate(title="t", tags=["Work", "work"]), cfg)
        assert result.is_valid
        assert result.warnings == ["Some tags are duplicates"]


class TestColor:

    @pytest.mark.parametrize("color", ["#fff", "#A1B2C3"])
    def test_valid_colors(self, color):
        assert is_valid_color(color)

    @pytest.mark.parametrize("color", ["fff", "#ffff", "#ggg", "red"])
    def test_invalid_colors(self, color):
        assert not is_valid_color(color)

    def test_invalid_color_is_an_error(self, cfg):
        result = validate_note(NoteCreate(title="t", color="blue"), cfg)
        assert result.errors == ["Invalid color format"]

    def test_empty_color_on_update_is_allowed(self, cfg):
        assert validate_note(NoteUpdate(id="n1", color=""), cfg).is_valid


class TestSearchTerm:

    def test_bounds(self):
        assert not validate_search_term("a").is_valid
        assert validate_search_term("ab").is_valid
        assert not validate_search_term("x" * 101).is_valid
