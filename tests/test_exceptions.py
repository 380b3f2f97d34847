"""Tests for the error hierarchy."""
from lumen_notes.exceptions import (
    BackupNotFoundError,
    CapacityExceededError,
    ErrorCode,
    InvalidBackupFormatError,
    NoteNotFoundError,
    NotesError,
    StorageError,
    ValidationError,
)


def test_every_error_code_has_a_raiser():
    raised = {
        NotesError("x").code,
        NoteNotFoundError("n1").code,
        ValidationError(["bad"]).code,
        CapacityExceededError(5).code,
        BackupNotFoundError("b1").code,
        InvalidBackupFormatError().code,
        StorageError("Failed to read data").code,
        StorageError("Failed to store data", code=ErrorCode.STORAGE_WRITE_FAILED).code,
        StorageError("Failed to remove data", code=ErrorCode.STORAGE_DELETE_FAILED).code,
    }
    assert raised == set(ErrorCode)


def test_to_dict_carries_message_and_details():
    data = StorageError("Failed to read data", operation="get", key="notes").to_dict()
    assert data["error"] == "StorageError"
    assert data["message"] == "Failed to read data"
    assert data["details"] == {"operation": "get", "key": "notes"}
    assert data["code_name"] == "STORAGE_READ_FAILED"


def test_str_includes_code_and_details():
    error = BackupNotFoundError("backup_1")
    assert str(error) == "[BACKUP_NOT_FOUND] Backup not found (backup_id=backup_1)"
    assert error.message == "Backup not found"
