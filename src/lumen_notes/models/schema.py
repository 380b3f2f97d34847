"""Data models for the Lumen Notes engine.

Models use snake_case attributes in Python and camelCase keys on the wire,
so persisted JSON reads ``createdAt``, ``isPinned`` and so on.
"""

import datetime
import secrets
import string
from dataclasses import dataclass, field
from datetime import timezone
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

_ID_ALPHABET = string.digits + string.ascii_lowercase

SortField = Literal["createdAt", "updatedAt", "title"]
SortOrder = Literal["asc", "desc"]
BackupSource = Literal["manual", "auto"]

T = TypeVar("T")


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(dt_value: datetime.datetime) -> datetime.datetime:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC.

    Stored timestamps written by older builds may lack an offset; they are
    assumed to be UTC.
    """
    if dt_value is None:
        return utc_now()
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


def generate_id(prefix: str = "note") -> str:
    """Generate an identifier of the form ``<prefix>_<epoch-ms>_<suffix>``.

    The suffix is 9 random base-36 characters, so two ids minted in the
    same millisecond still differ. Callers that need a hard uniqueness
    guarantee against an existing collection check membership themselves.
    """
    millis = int(utc_now().timestamp() * 1000)
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{prefix}_{millis}_{suffix}"


CAMEL_CONFIG = {
    "alias_generator": to_camel,
    "populate_by_name": True,
}


class Note(BaseModel):
    """A note in the collection.

    Instances are immutable; the repository derives changed copies with
    ``model_copy(update=...)``.
    """

    id: str = Field(default_factory=generate_id, description="Unique ID of the note")
    title: str = Field(..., description="Title of the note")
    content: str = Field(default="", description="Body of the note")
    created_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the note was created (UTC)"
    )
    updated_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the note was last updated (UTC)"
    )
    is_pinned: bool = Field(default=False)
    # Notes written before favourites existed have no such key
    is_favorite: bool = Field(default=False)
    category: Optional[str] = Field(default=None)
    tags: List[str] = Field(default_factory=list)
    color: Optional[str] = Field(default=None, description="Hex color")
    is_deleted: bool = Field(default=False, description="Soft-delete flag")

    model_config = {**CAMEL_CONFIG, "extra": "ignore", "frozen": True}

    @field_validator("created_at", "updated_at")
    @classmethod
    def validate_timestamps(cls, v: datetime.datetime) -> datetime.datetime:
        return ensure_timezone_aware(v)

    def to_storage(self) -> Dict[str, Any]:
        """Serialize to the persisted JSON shape (camelCase, ISO-8601)."""
        return self.model_dump(mode="json", by_alias=True)

    def to_index_entry(self) -> Dict[str, Any]:
        """Lower-cased copy of the searchable fields for the notes index."""
        return {
            "id": self.id,
            "title": self.title.lower(),
            "content": self.content.lower(),
            "category": (self.category or "").lower(),
            "tags": [tag.lower() for tag in self.tags],
            "isDeleted": self.is_deleted,
        }


class NoteCreate(BaseModel):
    """Input for creating a note."""

    title: str
    content: str = ""
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    color: Optional[str] = None

    model_config = {**CAMEL_CONFIG, "extra": "forbid"}


class NoteUpdate(BaseModel):
    """Partial update for an existing note.

    Only fields that were explicitly supplied are applied and validated;
    ``None`` for ``category`` or ``color`` clears the field.
    """

    id: str
    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    color: Optional[str] = None
    is_pinned: Optional[bool] = None
    is_favorite: Optional[bool] = None
    is_deleted: Optional[bool] = None

    model_config = {**CAMEL_CONFIG, "extra": "forbid"}

    def changes(self) -> Dict[str, Any]:
        """Return the explicitly supplied fields, excluding ``id``."""
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if name != "id"
        }


class NotesQuery(BaseModel):
    """Filter, sort and pagination options for deriving a view of notes."""

    search_term: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    is_pinned: Optional[bool] = None
    include_deleted: bool = False
    sort_by: SortField = "updatedAt"
    sort_order: SortOrder = "desc"
    limit: Optional[int] = Field(default=None, ge=0)
    offset: Optional[int] = Field(default=None, ge=0)

    model_config = {**CAMEL_CONFIG, "extra": "forbid"}

    @property
    def is_paginated(self) -> bool:
        return bool(self.offset) or self.limit is not None


class NoteStats(BaseModel):
    """Aggregate statistics over the active notes."""

    total: int
    pinned: int
    favorites: int
    deleted: int
    categories: int
    tags: int
    average_length: float
    last_modified: Optional[datetime.datetime] = None

    model_config = CAMEL_CONFIG


class MatchSpan(BaseModel):
    """One occurrence of a search term inside a field."""

    start: int
    end: int
    matched_text: str

    model_config = CAMEL_CONFIG


class FieldHighlight(BaseModel):
    """All occurrences of a search term in one field of a note."""

    field: str
    matches: List[MatchSpan]

    model_config = CAMEL_CONFIG


class SearchResult(BaseModel):
    """A note ranked by relevance with its highlighted matches."""

    note: Note
    score: int
    highlights: List[FieldHighlight] = Field(default_factory=list)

    model_config = CAMEL_CONFIG


class AutoSaveSettings(BaseModel):
    enabled: bool = True
    interval_ms: int = 3000

    model_config = CAMEL_CONFIG


class DefaultSortSettings(BaseModel):
    field: SortField = "updatedAt"
    order: SortOrder = "desc"

    model_config = CAMEL_CONFIG


class BackupSettings(BaseModel):
    auto_backup: bool = True
    frequency: Literal["daily", "weekly", "monthly"] = "daily"
    keep_count: int = 7

    model_config = CAMEL_CONFIG


class PrivacySettings(BaseModel):
    require_auth: bool = False
    # minutes
    lock_timeout: int = 15

    model_config = CAMEL_CONFIG


class AppSettings(BaseModel):
    """User-facing application settings, snapshotted by every backup."""

    theme: Literal["light", "dark", "auto"] = "auto"
    default_view_mode: Literal["list", "grid"] = "list"
    auto_save: AutoSaveSettings = Field(default_factory=AutoSaveSettings)
    font_size: Literal["small", "medium", "large"] = "medium"
    haptic_feedback: bool = True
    show_note_previews: bool = True
    preview_lines: int = 3
    date_format: Literal["relative", "absolute"] = "relative"
    default_sort: DefaultSortSettings = Field(default_factory=DefaultSortSettings)
    backup: BackupSettings = Field(default_factory=BackupSettings)
    privacy: PrivacySettings = Field(default_factory=PrivacySettings)

    model_config = {**CAMEL_CONFIG, "extra": "ignore"}

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class BackupSummary(BaseModel):
    """Counts captured alongside a backup record."""

    notes_count: int
    categories_count: int
    tags_count: int
    source: BackupSource = "manual"

    model_config = CAMEL_CONFIG


class BackupRecord(BaseModel):
    """A point-in-time capture of the notes and settings.

    Records are written once and never modified afterwards.
    """

    id: str
    version: str
    timestamp: datetime.datetime
    notes: List[Note]
    settings: AppSettings
    metadata: BackupSummary

    model_config = {**CAMEL_CONFIG, "extra": "ignore", "frozen": True}

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v: datetime.datetime) -> datetime.datetime:
        return ensure_timezone_aware(v)

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class BackupMetadata(BaseModel):
    """Entry in the backup index."""

    id: str
    timestamp: datetime.datetime
    notes_count: int
    size: int
    source: BackupSource = "manual"

    model_config = {**CAMEL_CONFIG, "extra": "ignore"}

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v: datetime.datetime) -> datetime.datetime:
        return ensure_timezone_aware(v)

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


@dataclass
class ActionResult(Generic[T]):
    """Uniform result of every engine operation.

    Attributes:
        success: Whether the operation succeeded.
        data: Operation payload on success.
        error: Human-readable error message on failure.
        warnings: Non-blocking validation warnings.
    """

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def ok(cls, data: Optional[T] = None, warnings: Optional[List[str]] = None) -> "ActionResult[T]":
        return cls(success=True, data=data, warnings=list(warnings or []))

    @classmethod
    def fail(cls, error: str, warnings: Optional[List[str]] = None) -> "ActionResult[T]":
        return cls(success=False, error=error, warnings=list(warnings or []))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        result: Dict[str, Any] = {"success": self.success}
        if self.data is not None:
            result["data"] = _to_jsonable(self.data)
        if self.error is not None:
            result["error"] = self.error
        if self.warnings:
            result["warnings"] = list(self.warnings)
        return result


def _to_jsonable(value: Any) -> Any:
    """Recursively convert models and datetimes into JSON-compatible values."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, datetime.datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    return value
