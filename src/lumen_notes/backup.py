"""Backup and restore of the note collection and settings.

Backups live in the same key-value store as the data they capture:
- ``backup_data_<id>`` holds one immutable record (notes, settings, counts)
- ``backup_data_list`` is the index of records, newest first
- ``last_backup`` is the time of the most recent backup

Rotation keeps at most ``max_backup_files`` records.
"""
import json
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from lumen_notes.config import NotesConfig, config as default_config
from lumen_notes.exceptions import (
    BackupNotFoundError,
    ErrorCode,
    InvalidBackupFormatError,
    NotesError,
    StorageError,
)
from lumen_notes.models.schema import (
    ActionResult,
    BackupMetadata,
    BackupRecord,
    BackupSource,
    BackupSummary,
    Note,
    ensure_timezone_aware,
    generate_id,
    utc_now,
)
from lumen_notes.observability import timed_operation
from lumen_notes.services.settings_service import SettingsService
from lumen_notes.storage import keys
from lumen_notes.storage.kv_store import JsonStorage, KeyValueStore
from lumen_notes.storage.note_repository import NoteRepository

logger = logging.getLogger(__name__)

IMPORTED_PREFIX = "backup_imported"

_TIMESTAMP = TypeAdapter(datetime)


def summarize(notes: List[Note], source: BackupSource) -> BackupSummary:
    """Counts stored alongside a backup record."""
    return BackupSummary(
        notes_count=len(notes),
        categories_count=len({note.category for note in notes if note.category}),
        tags_count=len({tag for note in notes for tag in note.tags}),
        source=source,
    )


def check_backup_structure(data: Any) -> None:
    """Structural check of an imported backup document.

    Raises:
        InvalidBackupFormatError: Naming the first missing or mistyped part.
    """
    if not isinstance(data, dict):
        raise InvalidBackupFormatError("backup must be a JSON object")
    if not isinstance(data.get("version"), str):
        raise InvalidBackupFormatError("version must be a string")
    if not data.get("timestamp"):
        raise InvalidBackupFormatError("timestamp is missing")
    if not isinstance(data.get("notes"), list):
        raise InvalidBackupFormatError("notes must be a list")
    if data.get("settings") is None:
        raise InvalidBackupFormatError("settings are missing")
    metadata = data.get("metadata")
    notes_count = metadata.get("notesCount") if isinstance(metadata, dict) else None
    if isinstance(notes_count, bool) or not isinstance(notes_count, (int, float)):
        raise InvalidBackupFormatError("metadata.notesCount must be a number")


class BackupManager:
    """Creates, lists, restores, exports and imports backup records."""

    def __init__(
        self,
        storage: Union[JsonStorage, KeyValueStore],
        repository: Optional[NoteRepository] = None,
        settings_service: Optional[SettingsService] = None,
        cfg: Optional[NotesConfig] = None,
    ):
        """Initialize the backup manager.

        Args:
            storage: Store holding notes, settings and backup records.
            repository: Note repository over the same store.
            settings_service: Settings service over the same store.
            cfg: Version, retention and auto-backup interval. Defaults to
                the global config.
        """
        if isinstance(storage, KeyValueStore):
            storage = JsonStorage(storage)
        self.storage = storage
        self.config = cfg or default_config
        self.repository = repository or NoteRepository(storage, self.config)
        self.settings_service = settings_service or SettingsService(storage)

    # =========================================================================
    # Index helpers
    # =========================================================================

    async def _read_index(self) -> List[BackupMetadata]:
        raw = await self.storage.get_item(keys.BACKUP_LIST)
        if raw is None:
            return []
        try:
            entries = [BackupMetadata.model_validate(item) for item in raw]
        except (TypeError, PydanticValidationError) as e:
            raise StorageError(
                "Backup index is malformed",
                operation="load",
                key=keys.BACKUP_LIST,
                code=ErrorCode.STORAGE_READ_FAILED,
                original_error=e,
            ) from e
        return sorted(entries, key=lambda entry: entry.timestamp, reverse=True)

    async def _write_index(self, entries: List[BackupMetadata]) -> None:
        await self.storage.set_item(
            keys.BACKUP_LIST, [entry.to_storage() for entry in entries]
        )

    async def _store_record(self, record: BackupRecord, size: int) -> BackupMetadata:
        """Write a record, then prepend its entry to the index.

        The record is removed again if the index cannot be written, so the
        index never misses a stored record.
        """
        entry = BackupMetadata(
            id=record.id,
            timestamp=record.timestamp,
            notes_count=len(record.notes),
            size=size,
            source=record.metadata.source,
        )
        key = keys.backup_key(record.id)
        await self.storage.set_item(key, record.to_storage())
        try:
            index = await self._read_index()
            await self._write_index([entry, *index])
        except NotesError:
            try:
                await self.storage.remove_item(key)
            except NotesError as cleanup_error:
                logger.warning(f"Failed to remove orphaned backup {record.id}: {cleanup_error}")
            raise
        return entry

    async def _load_record(self, backup_id: str) -> BackupRecord:
        raw = await self.storage.get_item(keys.backup_key(backup_id))
        if raw is None:
            raise BackupNotFoundError(backup_id)
        try:
            return BackupRecord.model_validate(raw)
        except PydanticValidationError as e:
            raise InvalidBackupFormatError(f"stored backup {backup_id} is malformed") from e

    async def _rotate_backups(self) -> int:
        """Delete the oldest records beyond the retention limit.

        Failures are logged and never propagate.

        Returns:
            Number of backups removed.
        """
        removed = 0
        try:
            index = await self._read_index()
            for entry in index[self.config.max_backup_files:]:
                await self._delete(entry.id)
                removed += 1
                logger.debug(f"Removed old backup (count limit): {entry.id}")
        except NotesError as e:
            logger.warning(f"Backup rotation failed: {e}")

        if removed > 0:
            logger.info(f"Rotated {removed} old backup(s)")
        return removed

    async def _delete(self, backup_id: str) -> None:
        await self.storage.remove_item(keys.backup_key(backup_id))
        index = await self._read_index()
        remaining = [entry for entry in index if entry.id != backup_id]
        if len(remaining) != len(index):
            await self._write_index(remaining)

    # =========================================================================
    # Public operations
    # =========================================================================

    async def create_backup(self, source: BackupSource = "manual") -> ActionResult[BackupMetadata]:
        """Snapshot the current notes and settings.

        Args:
            source: ``"manual"`` or ``"auto"``.

        Returns:
            ActionResult with the new index entry.
        """
        with timed_operation("create_backup", source=source) as op:
            try:
                notes = await self.repository.load_all()
                settings = await self.settings_service.load()
                timestamp = utc_now()
                record = BackupRecord(
                    id=generate_id("backup"),
                    version=self.config.app_version,
                    timestamp=timestamp,
                    notes=notes,
                    settings=settings,
                    metadata=summarize(notes, source),
                )
                size = len(json.dumps(record.to_storage(), ensure_ascii=False))
                entry = await self._store_record(record, size)
                await self.storage.set_item(keys.LAST_BACKUP, timestamp.isoformat())
            except NotesError as e:
                op["error"] = e.message
                logger.error(f"Backup creation failed: {e}")
                return ActionResult.fail(e.message)

            op["notes_count"] = entry.notes_count
            logger.info(f"Backup created: {entry.id} ({entry.notes_count} notes, {entry.size} bytes)")
            await self._rotate_backups()
            return ActionResult.ok(entry)

    async def restore_backup(self, backup_id: str) -> ActionResult[None]:
        """Overwrite the current notes and settings with a backup's contents."""
        with timed_operation("restore_backup", backup_id=backup_id) as op:
            try:
                record = await self._load_record(backup_id)
                # Not atomic: notes are replaced before settings are written.
                await self.repository.save_all(list(record.notes))
                await self.settings_service.save(record.settings)
            except NotesError as e:
                op["error"] = e.message
                logger.error(f"Restore from backup {backup_id} failed: {e}")
                return ActionResult.fail(e.message)

            logger.info(f"Restored {len(record.notes)} notes from backup {backup_id}")
            return ActionResult.ok()

    async def list_backups(self) -> ActionResult[List[BackupMetadata]]:
        """Index entries, newest first."""
        try:
            return ActionResult.ok(await self._read_index())
        except NotesError as e:
            logger.error(f"Failed to list backups: {e}")
            return ActionResult.fail(e.message)

    async def delete_backup(self, backup_id: str) -> ActionResult[None]:
        """Remove a record and its index entry; unknown ids succeed."""
        try:
            await self._delete(backup_id)
        except NotesError as e:
            logger.error(f"Failed to delete backup {backup_id}: {e}")
            return ActionResult.fail(e.message)
        logger.info(f"Deleted backup {backup_id}")
        return ActionResult.ok()

    async def export_backup(self, backup_id: str) -> ActionResult[str]:
        """Render a stored record as pretty-printed JSON."""
        try:
            record = await self._load_record(backup_id)
        except NotesError as e:
            return ActionResult.fail(e.message)
        return ActionResult.ok(json.dumps(record.to_storage(), indent=2, ensure_ascii=False))

    async def import_backup(self, backup_json: str) -> ActionResult[BackupMetadata]:
        """Store an exported backup document as a new record.

        The document gets a fresh id and timestamp. Nothing is written when
        it fails to parse or validate.
        """
        with timed_operation("import_backup", size=len(backup_json or "")) as op:
            try:
                try:
                    data = json.loads(backup_json)
                except (TypeError, json.JSONDecodeError) as e:
                    raise InvalidBackupFormatError("not valid JSON") from e
                check_backup_structure(data)

                timestamp = utc_now()
                try:
                    notes = [Note.model_validate(item) for item in data["notes"]]
                    record = BackupRecord(
                        id=generate_id(IMPORTED_PREFIX),
                        version=data["version"],
                        timestamp=timestamp,
                        notes=notes,
                        settings=data["settings"],
                        metadata=summarize(notes, "manual"),
                    )
                except PydanticValidationError as e:
                    raise InvalidBackupFormatError("notes or settings are malformed") from e

                entry = await self._store_record(record, len(backup_json))
            except NotesError as e:
                op["error"] = e.message
                logger.warning(f"Backup import failed: {e}")
                return ActionResult.fail(e.message)

            logger.info(f"Imported backup {entry.id} ({entry.notes_count} notes)")
            await self._rotate_backups()
            return ActionResult.ok(entry)

    async def _last_backup_time(self) -> Optional[datetime]:
        raw = await self.storage.get_item(keys.LAST_BACKUP)
        if not raw:
            return None
        return ensure_timezone_aware(_TIMESTAMP.validate_python(raw))

    async def needs_auto_backup(self) -> bool:
        """Whether no backup exists yet or the last one is older than the interval.

        Any failure while checking answers False.
        """
        try:
            last = await self._last_backup_time()
        except (NotesError, PydanticValidationError) as e:
            logger.error(f"Failed to check backup status: {e}")
            return False
        if last is None:
            return True
        return utc_now() - last >= timedelta(seconds=self.config.auto_backup_interval)

    async def auto_backup_if_needed(self) -> ActionResult[Optional[BackupMetadata]]:
        """Create an ``auto`` backup when due and enabled in the settings.

        Succeeds with no data when no backup was needed.
        """
        try:
            settings = await self.settings_service.load()
        except NotesError as e:
            return ActionResult.fail(e.message)
        if not settings.backup.auto_backup or not await self.needs_auto_backup():
            return ActionResult.ok(None)
        return await self.create_backup("auto")

    async def backup_stats(self) -> ActionResult[Dict[str, Any]]:
        """Totals over the index plus the auto-backup setting."""
        try:
            index = await self._read_index()
            last = await self._last_backup_time()
            settings = await self.settings_service.load()
        except NotesError as e:
            logger.error(f"Failed to get backup stats: {e}")
            return ActionResult.fail(e.message)
        except PydanticValidationError as e:
            logger.error(f"Stored last backup time is malformed: {e}")
            return ActionResult.fail("Failed to get backup stats")

        return ActionResult.ok({
            "totalBackups": len(index),
            "totalSize": sum(entry.size for entry in index),
            "lastBackup": last,
            "autoBackupEnabled": settings.backup.auto_backup,
        })
