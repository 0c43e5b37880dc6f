"""
Wiring of storage, catalog, and remote sync from Settings.

Usage:
    services = build_services(get_settings())
    attempt = await services.controller.start_test(user_id, lesson_id, test_id)
    ...
    await services.aclose()
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from progression.catalog import LessonCatalog, RemoteLessonCatalog, StaticLessonCatalog
from progression.config import Settings, get_settings
from progression.controller import ProgressionController
from progression.core.scoring import get_matcher
from progression.remote.progress_sync import RemoteProgressSync
from progression.remote.table_client import TableApiClient
from progression.store.backends import JsonFileStorage, KeyValueStorage, MemoryStorage, SqliteStorage
from progression.store.local_store import LocalProgressStore


def create_storage(settings: Settings) -> KeyValueStorage:
    """Get the key-value backend selected by settings."""
    if settings.storage_backend == "sqlite":
        return SqliteStorage(settings.sqlite_path, echo=settings.log_level.upper() == "DEBUG")
    if settings.storage_backend == "memory":
        return MemoryStorage()
    return JsonFileStorage(settings.json_store_dir)


def create_table_client(settings: Settings) -> TableApiClient | None:
    if not settings.has_remote_configured():
        return None
    return TableApiClient(
        settings.remote_base_url,
        api_key=settings.remote_api_key,
        access_token=settings.remote_access_token,
        timeout_seconds=settings.remote_timeout_seconds,
    )


def create_catalog(settings: Settings, client: TableApiClient | None) -> LessonCatalog:
    if settings.catalog_path is not None:
        return StaticLessonCatalog.from_file(settings.catalog_path)
    if client is not None:
        return RemoteLessonCatalog(
            client,
            lessons_table=settings.lessons_table,
            tests_table=settings.tests_table,
            questions_table=settings.questions_table,
        )
    logger.warning("No lesson catalog configured; only stored unlocks will be visible")
    return StaticLessonCatalog()


@dataclass
class ProgressionServices:
    """Controller plus the resources it was built from."""

    controller: ProgressionController
    store: LocalProgressStore
    storage: KeyValueStorage
    table_client: TableApiClient | None = None

    async def aclose(self) -> None:
        await self.controller.wait_for_sync()
        if self.table_client is not None:
            await self.table_client.close()
        if isinstance(self.storage, SqliteStorage):
            self.storage.close()


def build_services(settings: Settings | None = None) -> ProgressionServices:
    """Build a controller and its collaborators from settings."""
    settings = settings or get_settings()

    storage = create_storage(settings)
    store = LocalProgressStore(storage, namespace=settings.storage_namespace)
    client = create_table_client(settings)
    catalog = create_catalog(settings, client)

    remote = None
    if settings.remote_sync_enabled:
        if client is None:
            logger.warning("Remote sync enabled but remote_base_url/remote_api_key are not set")
        else:
            remote = RemoteProgressSync(client, table=settings.progress_table)

    controller = ProgressionController(
        store,
        catalog,
        remote=remote,
        matcher=get_matcher(settings.answer_matching),
    )
    logger.debug(f"Progression services ready (backend={settings.storage_backend}, remote={remote is not None})")
    return ProgressionServices(controller=controller, store=store, storage=storage, table_client=client)
