"""Common test fixtures for the Lumen Notes engine."""

import pytest

from lumen_notes.backup import BackupManager
from lumen_notes.config import NotesConfig
from lumen_notes.observability import metrics
from lumen_notes.services.notes_service import NotesService
from lumen_notes.services.search_service import SearchService
from lumen_notes.services.settings_service import SettingsService
from lumen_notes.storage.kv_store import InMemoryKeyValueStore, JsonStorage
from lumen_notes.storage.note_repository import NoteRepository


@pytest.fixture(params=["asyncio"])
def anyio_backend(request):
    """Restrict anyio tests to asyncio only (trio is not installed)."""
    return request.param


@pytest.fixture(autouse=True)
def _reset_metrics():
    """Keep the global metrics collector isolated between tests."""
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def test_config(tmp_path):
    """Config with small limits and a throwaway database path."""
    return NotesConfig(
        base_dir=tmp_path,
        database_path=tmp_path / "test_notes.db",
        storage_backend="memory",
        app_version="1.0.0",
        max_notes=5,
        max_backup_files=3,
        auto_backup_interval=3600,
    )


@pytest.fixture
def memory_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def storage(memory_store):
    return JsonStorage(memory_store)


@pytest.fixture
def repository(storage, test_config):
    return NoteRepository(storage, test_config)


@pytest.fixture
def settings_service(storage):
    return SettingsService(storage)


@pytest.fixture
def notes_service(repository):
    return NotesService(repository, SearchService())


@pytest.fixture
def backup_manager(storage, repository, settings_service, test_config):
    return BackupManager(
        storage,
        repository=repository,
        settings_service=settings_service,
        cfg=test_config,
    )
