"""Custom exceptions for the Lumen Notes engine.

Provides a structured exception hierarchy with error codes and
machine-readable error information for better error handling.
"""
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Note errors (1xxx)
    NOTE_NOT_FOUND = 1001
    NOTE_VALIDATION_FAILED = 1002
    NOTE_CAPACITY_EXCEEDED = 1006

    # Backup errors (2xxx)
    BACKUP_NOT_FOUND = 2001
    BACKUP_INVALID_FORMAT = 2002

    # Storage errors (4xxx)
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    STORAGE_DELETE_FAILED = 4003

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001


class NotesError(Exception):
    """Base exception for all notes engine errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class NoteNotFoundError(NotesError):
    """Raised when a note cannot be found."""

    def __init__(self, note_id: str, message: Optional[str] = None):
        super().__init__(
            message or "Note not found",
            code=ErrorCode.NOTE_NOT_FOUND,
            details={"note_id": note_id},
        )
        self.note_id = note_id


class ValidationError(NotesError):
    """Raised when note input fails validation.

    Carries every violated constraint, not just the first one, so callers
    can render the full list.
    """

    def __init__(
        self,
        errors: List[str],
        warnings: Optional[List[str]] = None,
        code: ErrorCode = ErrorCode.NOTE_VALIDATION_FAILED,
    ):
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        super().__init__("; ".join(self.errors), code=code)


class CapacityExceededError(NotesError):
    """Raised when a note cannot be created because the store is full."""

    def __init__(self, max_notes: int):
        super().__init__(
            f"Maximum of {max_notes} notes allowed",
            code=ErrorCode.NOTE_CAPACITY_EXCEEDED,
            details={"max_notes": max_notes},
        )
        self.max_notes = max_notes


class StorageError(NotesError):
    """Raised for storage/persistence errors."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        key: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if key:
            details["key"] = key
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.key = key
        self.original_error = original_error


class BackupNotFoundError(NotesError):
    """Raised when a backup record is absent from storage."""

    def __init__(self, backup_id: str):
        super().__init__(
            "Backup not found",
            code=ErrorCode.BACKUP_NOT_FOUND,
            details={"backup_id": backup_id},
        )
        self.backup_id = backup_id


class InvalidBackupFormatError(NotesError):
    """Raised when an imported backup fails structural validation."""

    def __init__(self, reason: Optional[str] = None):
        details = {"reason": reason} if reason else {}
        super().__init__(
            "Invalid backup format",
            code=ErrorCode.BACKUP_INVALID_FORMAT,
            details=details,
        )
        self.reason = reason
