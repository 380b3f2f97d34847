"""Service for persisting the application settings."""

import json
import logging
from typing import Any, Dict, List, Mapping, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from lumen_notes.exceptions import ErrorCode, NotesError, StorageError, ValidationError
from lumen_notes.models.schema import ActionResult, AppSettings
from lumen_notes.observability import timed_operation
from lumen_notes.storage import keys
from lumen_notes.storage.kv_store import JsonStorage, KeyValueStore

logger = logging.getLogger(__name__)

INVALID_SETTINGS_FORMAT = "Invalid settings format"


def _pydantic_messages(error: PydanticValidationError) -> List[str]:
    return [
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in error.errors()
    ]


def merge_settings(model: BaseModel, updates: Mapping[str, Any]) -> BaseModel:
    """Return a copy of ``model`` with ``updates`` merged in.

    Keys may be attribute names or their camelCase aliases. Nested sections
    are merged key by key, so ``{"autoSave": {"enabled": False}}`` keeps the
    current interval.

    Raises:
        ValidationError: On unknown keys or values of the wrong type.
    """
    fields = type(model).model_fields
    names: Dict[str, str] = {}
    for name, info in fields.items():
        names[name] = name
        if info.alias:
            names[info.alias] = name

    data = model.model_dump()
    for key, value in updates.items():
        name = names.get(key)
        if name is None:
            raise ValidationError([f"Unknown setting: {key}"])
        current = getattr(model, name)
        if isinstance(current, BaseModel) and isinstance(value, Mapping):
            data[name] = merge_settings(current, value).model_dump()
        else:
            data[name] = value

    try:
        return type(model).model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(_pydantic_messages(e)) from e


class SettingsService:
    """Loads, updates, resets, exports and imports ``AppSettings``."""

    def __init__(self, storage: Union[JsonStorage, KeyValueStore]):
        if isinstance(storage, KeyValueStore):
            storage = JsonStorage(storage)
        self.storage = storage

    async def load(self) -> AppSettings:
        """Read the stored settings; defaults when nothing is stored.

        Raises:
            StorageError: If the store fails or holds malformed settings.
        """
        raw = await self.storage.get_item(keys.SETTINGS)
        if raw is None:
            return AppSettings()
        try:
            return AppSettings.model_validate(raw)
        except PydanticValidationError as e:
            raise StorageError(
                "Stored settings are malformed",
                operation="load",
                key=keys.SETTINGS,
                code=ErrorCode.STORAGE_READ_FAILED,
                original_error=e,
            ) from e

    async def save(self, settings: AppSettings) -> None:
        await self.storage.set_item(keys.SETTINGS, settings.to_storage())

    async def get_settings(self) -> ActionResult[AppSettings]:
        try:
            return ActionResult.ok(await self.load())
        except NotesError as e:
            logger.error(f"Failed to load settings: {e}")
            return ActionResult.fail(e.message)

    async def update_settings(self, updates: Mapping[str, Any]) -> ActionResult[AppSettings]:
        """Merge a partial update into the stored settings and persist it."""
        with timed_operation("update_settings", keys=sorted(updates)) as op:
            try:
                settings = merge_settings(await self.load(), updates)
                await self.save(settings)
                return ActionResult.ok(settings)
            except NotesError as e:
                op["error"] = e.message
                logger.warning(f"Failed to update settings: {e}")
                return ActionResult.fail(e.message)

    async def reset_settings(self) -> ActionResult[AppSettings]:
        """Overwrite the stored settings with the defaults."""
        settings = AppSettings()
        try:
            await self.save(settings)
        except NotesError as e:
            logger.error(f"Failed to reset settings: {e}")
            return ActionResult.fail(e.message)
        logger.info("Settings reset to defaults")
        return ActionResult.ok(settings)

    async def export_settings(self) -> ActionResult[str]:
        """Render the current settings as pretty-printed JSON."""
        try:
            settings = await self.load()
        except NotesError as e:
            return ActionResult.fail(e.message)
        return ActionResult.ok(json.dumps(settings.to_storage(), indent=2))

    async def import_settings(self, settings_json: str) -> ActionResult[AppSettings]:
        """Replace the stored settings with an exported document.

        Missing sections and fields take their defaults, so ``{}`` imports the
        default settings and unknown keys are ignored. Invalid JSON, a
        non-object document or mistyped values are rejected with "Invalid
        settings format" and nothing is written.
        """
        try:
            settings = AppSettings.model_validate(json.loads(settings_json))
        except (json.JSONDecodeError, TypeError, PydanticValidationError) as e:
            logger.warning(f"Rejected settings import: {e}")
            return ActionResult.fail(INVALID_SETTINGS_FORMAT)

        try:
            await self.save(settings)
        except NotesError as e:
            return ActionResult.fail(e.message)
        logger.info("Imported settings")
        return ActionResult.ok(settings)
