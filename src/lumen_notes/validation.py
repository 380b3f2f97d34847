"""Validation and sanitization of note input.

Rules only apply to fields present in the input, so a partial update is
checked against exactly the fields it changes.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, TypeVar, Union

from lumen_notes.config import NotesConfig, config as default_config
from lumen_notes.models.schema import NoteCreate, NoteUpdate

SCRIPT_TAG_PATTERN = re.compile(
    r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE
)
HTML_TAG_PATTERN = re.compile(r"<[^>]*>")
HEX_COLOR_PATTERN = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")
# Letters, digits, hyphen, underscore and whitespace
LABEL_PATTERN = re.compile(r"^[a-zA-Z0-9\-_\s]+$")

# Fraction of the content limit above which a warning is emitted
CONTENT_WARNING_RATIO = 0.8

SEARCH_MIN_LENGTH = 2
SEARCH_MAX_LENGTH = 100

NoteInput = TypeVar("NoteInput", NoteCreate, NoteUpdate)


@dataclass
class ValidationResult:
    """Outcome of validating a note input."""

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def is_valid_color(color: str) -> bool:
    """Check for a ``#RGB`` or ``#RRGGBB`` hex color."""
    return bool(HEX_COLOR_PATTERN.match(color))


def sanitize_string(value: str) -> str:
    """Strip script blocks, HTML tags and surrounding whitespace."""
    value = SCRIPT_TAG_PATTERN.sub("", value)
    value = HTML_TAG_PATTERN.sub("", value)
    return value.strip()


def _present(note_input: Union[NoteCreate, NoteUpdate], name: str) -> bool:
    return name in note_input.model_fields_set or (
        isinstance(note_input, NoteCreate) and name == "title"
    )


def validate_note(
    note_input: Union[NoteCreate, NoteUpdate],
    cfg: Optional[NotesConfig] = None,
) -> ValidationResult:
    """Validate the supplied fields of a create or update input.

    Args:
        note_input: The input to check. For updates only the fields that
            were explicitly set are considered.
        cfg: Limits to enforce. Defaults to the global config.

    Returns:
        ValidationResult with blocking errors and non-blocking warnings.
    """
    cfg = cfg or default_config
    result = ValidationResult()

    if _present(note_input, "title"):
        title = note_input.title
        if title is None or not title.strip():
            result.errors.append("Note title is required")
        elif len(title) > cfg.max_title_length:
            result.errors.append(f"Title exceeds {cfg.max_title_length} characters")

    if _present(note_input, "content") and note_input.content is not None:
        content = note_input.content
        if len(content) > cfg.max_note_length:
            result.errors.append(
                f"Note content exceeds {cfg.max_note_length} characters"
            )
        if len(content) > cfg.max_note_length * CONTENT_WARNING_RATIO:
            result.warnings.append("Note content is getting quite long")

    if _present(note_input, "category") and note_input.category:
        category = note_input.category
        if len(category) > cfg.max_category_length:
            result.errors.append(
                f"Category name cannot exceed {cfg.max_category_length} characters"
            )
        elif not LABEL_PATTERN.match(category):
            result.errors.append("Category name contains invalid characters")

    if _present(note_input, "tags") and note_input.tags is not None:
        tags = note_input.tags
        if len(tags) > cfg.max_tags_per_note:
            result.errors.append(f"Maximum of {cfg.max_tags_per_note} tags per note")

        for index, tag in enumerate(tags):
            if not tag or not tag.strip():
                result.errors.append(f"Tag {index + 1} cannot be empty")
            elif len(tag) > cfg.max_tag_length:
                result.errors.append(
                    f'Tag "{tag}" exceeds maximum length of {cfg.max_tag_length} characters'
                )
            elif not LABEL_PATTERN.match(tag):
                result.errors.append(f'Tag "{tag}" contains invalid characters')

        if len({tag.lower() for tag in tags}) != len(tags):
            result.warnings.append("Some tags are duplicates")

    if _present(note_input, "color") and note_input.color:
        if not is_valid_color(note_input.color):
            result.errors.append("Invalid color format")

    return result


def sanitize_note(note_input: NoteInput) -> NoteInput:
    """Return a copy of the input with its text fields sanitized."""
    updates = {}
    if _present(note_input, "title") and note_input.title is not None:
        updates["title"] = sanitize_string(note_input.title)
    if _present(note_input, "content") and note_input.content is not None:
        updates["content"] = sanitize_string(note_input.content)
    if _present(note_input, "category") and note_input.category:
        updates["category"] = sanitize_string(note_input.category)
    if _present(note_input, "tags") and note_input.tags is not None:
        updates["tags"] = [sanitize_string(tag) for tag in note_input.tags]

    if not updates:
        return note_input
    # model_copy keeps model_fields_set, so presence is preserved
    return note_input.model_copy(update=updates)


def validate_and_sanitize_note(
    note_input: NoteInput,
    cfg: Optional[NotesConfig] = None,
) -> Tuple[NoteInput, ValidationResult]:
    """Sanitize the input, then validate the sanitized copy."""
    sanitized = sanitize_note(note_input)
    return sanitized, validate_note(sanitized, cfg)


def validate_search_term(search_term: str) -> ValidationResult:
    """Check that a search term is within the accepted length bounds."""
    result = ValidationResult()
    if len(search_term) < SEARCH_MIN_LENGTH:
        result.errors.append(
            f"Search term must be at least {SEARCH_MIN_LENGTH} characters long"
        )
    if len(search_term) > SEARCH_MAX_LENGTH:
        result.errors.append(
            f"Search term cannot exceed {SEARCH_MAX_LENGTH} characters"
        )
    return result
