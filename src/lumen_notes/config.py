"""Configuration module for the Lumen Notes engine."""

import logging
import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from lumen_notes import __version__

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config: survives reinstalls, lives alongside the data
_USER_ENV = Path.home() / ".lumen-notes" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back to ``default``."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class NotesConfig(BaseModel):
    """Configuration for the notes engine.

    The limits here are consumed as-is by the repository, the validators
    and the backup manager; none of those components carry their own
    defaults.
    """

    # Base directory for relative paths
    base_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("LUMEN_NOTES_BASE_DIR", "."))
    )
    # SQLite file backing the key-value store
    database_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("LUMEN_NOTES_DATABASE_PATH", "data/lumen_notes.db")
        )
    )
    # "sqlite" for durable storage, "memory" for an ephemeral session
    storage_backend: Literal["sqlite", "memory"] = Field(
        default_factory=lambda: os.getenv("LUMEN_NOTES_STORAGE", "sqlite").lower()
    )
    app_version: str = Field(default=__version__)
    server_name: str = Field(
        default_factory=lambda: os.getenv("LUMEN_NOTES_SERVER_NAME", "lumen-notes")
    )

    # Note limits
    max_notes: int = Field(
        default_factory=lambda: _env_int("LUMEN_NOTES_MAX_NOTES", 10_000)
    )
    max_note_length: int = Field(
        default_factory=lambda: _env_int("LUMEN_NOTES_MAX_NOTE_LENGTH", 100_000)
    )
    max_title_length: int = Field(
        default_factory=lambda: _env_int("LUMEN_NOTES_MAX_TITLE_LENGTH", 200)
    )
    max_tags_per_note: int = Field(
        default_factory=lambda: _env_int("LUMEN_NOTES_MAX_TAGS_PER_NOTE", 10)
    )
    max_tag_length: int = Field(
        default_factory=lambda: _env_int("LUMEN_NOTES_MAX_TAG_LENGTH", 50)
    )
    max_category_length: int = Field(
        default_factory=lambda: _env_int("LUMEN_NOTES_MAX_CATEGORY_LENGTH", 50)
    )

    # Backup policy
    # Seconds between automatic backups (24 hours)
    auto_backup_interval: int = Field(
        default_factory=lambda: _env_int(
            "LUMEN_NOTES_AUTO_BACKUP_INTERVAL", 24 * 60 * 60
        )
    )
    max_backup_files: int = Field(
        default_factory=lambda: _env_int("LUMEN_NOTES_MAX_BACKUP_FILES", 5)
    )

    @model_validator(mode="after")
    def _validate_limits(self) -> "NotesConfig":
        """Reject limits that would make every write fail."""
        for name in (
            "max_notes",
            "max_note_length",
            "max_title_length",
            "max_tags_per_note",
            "max_tag_length",
            "max_category_length",
            "max_backup_files",
        ):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1")
        if self.auto_backup_interval < 0:
            raise ValueError("auto_backup_interval must be >= 0")
        return self

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_db_url(self) -> str:
        """Get the database URL for SQLite."""
        db_path = self.get_absolute_path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{db_path}"


# Create a global config instance
config = NotesConfig()
