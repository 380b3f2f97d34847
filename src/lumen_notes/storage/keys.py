"""Keys of the persisted state layout."""

NOTES = "notes"
# Lower-cased copy of the searchable note fields; a cache, never authoritative
NOTES_INDEX = "notes_index"
SETTINGS = "settings"
LAST_BACKUP = "last_backup"
BACKUP_DATA_PREFIX = "backup_data_"
BACKUP_LIST = "backup_data_list"


def backup_key(backup_id: str) -> str:
    """Key under which the backup record ``backup_id`` is stored."""
    return f"{BACKUP_DATA_PREFIX}{backup_id}"
