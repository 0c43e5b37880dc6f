"""
Local Progress Store - on-device copies of lesson progress and attempts.

Layout in the key-value backend:
- ``<ns>:lesson_progress:<user_id>`` -> list of LessonProgress for one user
- ``<ns>:test_attempts``             -> mapping of attempt id to TestAttempt

Every value is wrapped as ``{"version": 1, "records": ...}``. The store is a
local mirror, not the source of truth, so:
- reads degrade to empty results on any read or decode failure (logged)
- writes report failure as False instead of raising (logged)
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from progression.core.errors import StorageReadError, StorageWriteError
from progression.core.models import LessonProgress, TestAttempt

from .backends import KeyValueStorage

SCHEMA_VERSION = 1

_progress_adapter: TypeAdapter[list[LessonProgress]] = TypeAdapter(list[LessonProgress])
_attempts_adapter: TypeAdapter[dict[str, TestAttempt]] = TypeAdapter(dict[str, TestAttempt])


@dataclass
class StoreStats:
    """Counts across every user in the store."""

    total_attempts: int = 0
    total_progress: int = 0
    unlocked_lessons: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class LocalProgressStore:
    """Per-device persistence for LessonProgress and TestAttempt records."""

    def __init__(self, storage: KeyValueStorage, namespace: str = "progression"):
        self.storage = storage
        self.namespace = namespace

    # -------------------------------------------------------------------------
    # Keys & envelopes
    # -------------------------------------------------------------------------

    @property
    def _attempts_key(self) -> str:
        return f"{self.namespace}:test_attempts"

    @property
    def _progress_prefix(self) -> str:
        return f"{self.namespace}:lesson_progress:"

    def _progress_key(self, user_id: str) -> str:
        return f"{self._progress_prefix}{user_id}"

    async def _read_records(self, key: str) -> Any | None:
        try:
            envelope = await self.storage.get_item(key)
        except StorageReadError as e:
            logger.warning(f"Treating unreadable {key} as empty: {e}")
            return None

        if envelope is None:
            return None
        if not isinstance(envelope, dict) or envelope.get("version") != SCHEMA_VERSION:
            logger.warning(f"Ignoring {key}: unsupported layout or version")
            return None
        return envelope.get("records")

    async def _write_records(self, key: str, records: Any) -> bool:
        try:
            await self.storage.set_item(key, {"version": SCHEMA_VERSION, "records": records})
            return True
        except StorageWriteError as e:
            logger.error(f"Failed to persist {key}: {e}")
            return False

    # -------------------------------------------------------------------------
    # Lesson progress
    # -------------------------------------------------------------------------

    async def get_lesson_progress(self, user_id: str) -> list[LessonProgress]:
        """All lesson progress records for a user; empty on no or bad data."""
        records = await self._read_records(self._progress_key(user_id))
        if records is None:
            return []
        try:
            return _progress_adapter.validate_python(records)
        except ValidationError as e:
            logger.warning(f"Discarding corrupt lesson progress for {user_id}: {e.error_count()} errors")
            return []

    async def get_lesson_progress_by_id(self, user_id: str, lesson_id: int) -> LessonProgress | None:
        for record in await self.get_lesson_progress(user_id):
            if record.lesson_id == lesson_id:
                return record
        return None

    async def save_lesson_progress(self, user_id: str, record: LessonProgress) -> bool:
        """Upsert by (user_id, lesson_id). Returns False if not persisted."""
        if record.user_id != user_id:
            raise ValueError(f"Record belongs to {record.user_id!r}, not {user_id!r}")

        existing = await self.get_lesson_progress(user_id)
        updated = [p for p in existing if p.lesson_id != record.lesson_id]
        updated.append(record)
        return await self._write_records(
            self._progress_key(user_id),
            [p.model_dump(mode="json") for p in updated],
        )

    # -------------------------------------------------------------------------
    # Test attempts
    # -------------------------------------------------------------------------

    async def _get_all_attempts(self) -> dict[str, TestAttempt]:
        records = await self._read_records(self._attempts_key)
        if records is None:
            return {}
        try:
            return _attempts_adapter.validate_python(records)
        except ValidationError as e:
            logger.warning(f"Discarding corrupt test attempts: {e.error_count()} errors")
            return {}

    async def _write_attempts(self, attempts: dict[str, TestAttempt]) -> bool:
        return await self._write_records(
            self._attempts_key,
            {attempt_id: a.model_dump(mode="json") for attempt_id, a in attempts.items()},
        )

    async def get_test_attempt(self, attempt_id: str) -> TestAttempt | None:
        return (await self._get_all_attempts()).get(attempt_id)

    async def save_test_attempt(self, attempt: TestAttempt) -> bool:
        """Upsert by attempt id. Returns False if not persisted."""
        attempts = await self._get_all_attempts()
        attempts[attempt.id] = attempt
        return await self._write_attempts(attempts)

    async def get_user_test_attempts(self, user_id: str, test_id: int) -> list[TestAttempt]:
        """Attempts of one user on one test, ordered by attempt number."""
        matching = [
            a for a in (await self._get_all_attempts()).values()
            if a.user_id == user_id and a.test_id == test_id
        ]
        return sorted(matching, key=lambda a: a.attempt_number)

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    async def clear_user_data(self, user_id: str) -> None:
        """Remove one user's progress and attempts."""
        attempts = await self._get_all_attempts()
        remaining = {k: a for k, a in attempts.items() if a.user_id != user_id}
        try:
            await self.storage.remove_items([self._progress_key(user_id)])
        except StorageWriteError as e:
            logger.error(f"Failed to clear progress for {user_id}: {e}")
        if len(remaining) != len(attempts):
            await self._write_attempts(remaining)
        logger.info(f"Cleared local data for user {user_id}")

    async def clear_all_data(self) -> None:
        """Wipe every key owned by this store."""
        try:
            keys = [k for k in await self.storage.get_all_keys() if k.startswith(f"{self.namespace}:")]
            await self.storage.remove_items(keys)
            logger.info(f"Cleared {len(keys)} local data keys")
        except (StorageReadError, StorageWriteError) as e:
            logger.error(f"Failed to clear local data: {e}")

    async def get_debug_stats(self) -> StoreStats:
        stats = StoreStats(total_attempts=len(await self._get_all_attempts()))
        try:
            keys = await self.storage.get_all_keys()
        except StorageReadError as e:
            logger.warning(f"Cannot list keys for stats: {e}")
            return stats

        for key in keys:
            if not key.startswith(self._progress_prefix):
                continue
            records = await self.get_lesson_progress(key[len(self._progress_prefix):])
            stats.total_progress += len(records)
            stats.unlocked_lessons += sum(1 for r in records if r.is_unlocked)
        return stats
