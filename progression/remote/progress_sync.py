"""
Remote progress mirror.

Pushes lesson progress updates to the hosted ``user_lesson_progress`` table.
The update is a read-modify-upsert: fetch the current row, apply the action
with apply_progress_action(), and upsert on (user_id, lesson_id).

Failures never raise; they come back as SyncResult(success=False) so the
caller can log them and carry on with local state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from loguru import logger

from progression.core.errors import RemoteSyncError
from progression.core.models import LessonStatus, ProgressAction, ProgressUpdate, utc_now

from .table_client import TableApiClient


@dataclass
class SyncResult:
    """Result of a sync operation."""

    success: bool
    lesson_id: int | None = None
    action: str | None = None
    row: dict[str, Any] | None = None
    error: str | None = None
    sync_timestamp: datetime = field(default_factory=utc_now)


class ProgressSync(Protocol):
    """Remote sync collaborator consumed by the progression controller."""

    async def update_lesson_progress(self, user_id: str, update: ProgressUpdate) -> SyncResult:
        ...


# =============================================================================
# Action Semantics
# =============================================================================


def _new_row() -> dict[str, Any]:
    return {
        "status": LessonStatus.NOT_STARTED.value,
        "content_viewed": False,
        "examples_practiced": False,
        "test_passed": False,
        "total_study_time_minutes": 0,
        "bookmarks": [],
        "notes": "",
    }


def _test_passed(data: dict[str, Any]) -> bool | None:
    score = data.get("test_score")
    passing = data.get("passing_percentage")
    if score is None or passing is None:
        return None
    return score >= passing


def apply_progress_action(
    current: dict[str, Any] | None,
    user_id: str,
    update: ProgressUpdate,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Compute the remote row after applying one progress action.

    Args:
        current: Existing remote row, or None when the user has no row yet
        user_id: Owner of the row
        update: Action and its data
        now: Timestamp to stamp on the row

    Returns:
        The full row to upsert
    """
    now_iso = (now or utc_now()).isoformat()
    row = dict(current) if current else _new_row()
    row.update(
        user_id=user_id,
        lesson_id=update.lesson_id,
        last_accessed_at=now_iso,
        updated_at=now_iso,
    )
    data = update.data

    action = update.action
    if action == ProgressAction.START_LESSON:
        if row.get("status") != LessonStatus.COMPLETED.value:
            row["status"] = LessonStatus.IN_PROGRESS.value
        row["started_at"] = row.get("started_at") or now_iso

    elif action == ProgressAction.VIEW_CONTENT:
        row["content_viewed"] = True

    elif action == ProgressAction.PRACTICE_EXAMPLES:
        row["examples_practiced"] = True

    elif action == ProgressAction.COMPLETE_LESSON:
        row["status"] = LessonStatus.COMPLETED.value
        row["completed_at"] = now_iso
        passed = _test_passed(data)
        if passed is not None:
            row["test_passed"] = bool(row.get("test_passed")) or passed

    elif action == ProgressAction.SUBMIT_TEST:
        passed = _test_passed(data)
        if passed is not None:
            row["test_passed"] = bool(row.get("test_passed")) or passed
            if passed:
                row["status"] = LessonStatus.COMPLETED.value
                row["completed_at"] = row.get("completed_at") or now_iso

    elif action == ProgressAction.ADD_NOTE:
        if data.get("notes"):
            row["notes"] = data["notes"]

    elif action == ProgressAction.ADD_BOOKMARK:
        bookmark_id = data.get("bookmark_id")
        bookmarks = list(row.get("bookmarks") or [])
        if bookmark_id and bookmark_id not in bookmarks:
            bookmarks.append(bookmark_id)
        row["bookmarks"] = bookmarks

    if data.get("study_time_minutes"):
        row["total_study_time_minutes"] = (row.get("total_study_time_minutes") or 0) + data["study_time_minutes"]

    return row


# =============================================================================
# Remote Sync
# =============================================================================


class RemoteProgressSync:
    """Mirrors progress updates into the hosted progress table."""

    def __init__(self, client: TableApiClient, table: str = "user_lesson_progress"):
        self.client = client
        self.table = table

    async def update_lesson_progress(self, user_id: str, update: ProgressUpdate) -> SyncResult:
        """
        Apply a progress update to the remote row for (user_id, lesson_id).

        Returns:
            SyncResult carrying the stored row, or the error on failure
        """
        try:
            rows = await self.client.select(
                self.table,
                {"user_id": f"eq.{user_id}", "lesson_id": f"eq.{update.lesson_id}"},
                limit=1,
            )
            row = apply_progress_action(rows[0] if rows else None, user_id, update)
            stored = await self.client.upsert(self.table, row, on_conflict="user_id,lesson_id")
        except RemoteSyncError as e:
            logger.warning(f"Remote progress sync failed for lesson {update.lesson_id}: {e}")
            return SyncResult(
                success=False,
                lesson_id=update.lesson_id,
                action=update.action.value,
                error=str(e),
            )

        logger.debug(f"Synced {update.action.value} for lesson {update.lesson_id}")
        return SyncResult(
            success=True,
            lesson_id=update.lesson_id,
            action=update.action.value,
            row=stored[0] if stored else row,
        )
