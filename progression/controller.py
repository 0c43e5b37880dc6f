"""
Progression Controller - attempt lifecycle and lesson unlock policy.

Per submission the steps run strictly in order:
    score -> persist attempt -> update lesson progress -> unlock next -> remote sync

Lesson state per (user, lesson): not_started -> in_progress -> completed.
Only a passed attempt moves a lesson to completed, and a later failed retry
never revokes an earlier pass.

Failure policy:
- AttemptNotFoundError / TestNotFoundError propagate to the caller
- local write failures are logged by the store; the in-memory result is returned
- remote sync runs as a background task; its failures are logged only
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

from loguru import logger

from progression.catalog import LessonCatalog
from progression.core.errors import AttemptNotFoundError, TestNotFoundError
from progression.core.models import (
    CatalogLesson,
    LessonProgress,
    LessonStatus,
    ProgressAction,
    ProgressUpdate,
    Question,
    SubmittedAnswer,
    TestAttempt,
    utc_now,
)
from progression.core.scoring import AnswerMatcher, exact_match, is_passed, score_answers
from progression.remote.progress_sync import ProgressSync
from progression.store.local_store import LocalProgressStore


def _coerce_answers(answers: Sequence[SubmittedAnswer | dict[str, Any]]) -> list[SubmittedAnswer]:
    return [a if isinstance(a, SubmittedAnswer) else SubmittedAnswer.model_validate(a) for a in answers]


class ProgressionController:
    """
    Orchestrates test attempts and lesson unlocking for one device.

    Operations are expected to run one at a time per user session; no
    locking is done around the local store.
    """

    def __init__(
        self,
        store: LocalProgressStore,
        catalog: LessonCatalog,
        remote: ProgressSync | None = None,
        matcher: AnswerMatcher = exact_match,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the controller.

        Args:
            store: Local progress store (authoritative for this device)
            catalog: Lesson/test content used for ordering and test lookup
            remote: Optional best-effort mirror, pushed after unlocks
            matcher: Answer comparison used when scoring
            clock: Source of timestamps
        """
        self.store = store
        self.catalog = catalog
        self.remote = remote
        self.matcher = matcher
        self.clock = clock
        self._pending_syncs: set[asyncio.Task[None]] = set()

    # =========================================================================
    # Attempt Lifecycle
    # =========================================================================

    def _new_attempt_id(self, user_id: str, test_id: int, started_at: datetime) -> str:
        return f"{user_id}_{test_id}_{int(started_at.timestamp() * 1000)}_{uuid.uuid4().hex[:8]}"

    async def start_test(self, user_id: str, lesson_id: int, test_id: int) -> TestAttempt:
        """
        Create and persist an empty attempt.

        The attempt number is one more than the attempts already recorded
        for (user_id, test_id). Lesson progress is not touched.
        """
        prior = await self.store.get_user_test_attempts(user_id, test_id)
        highest = max((a.attempt_number for a in prior), default=0)
        now = self.clock()

        attempt = TestAttempt(
            id=self._new_attempt_id(user_id, test_id, now),
            user_id=user_id,
            lesson_id=lesson_id,
            test_id=test_id,
            attempt_number=max(len(prior), highest) + 1,
            started_at=now,
        )

        if not await self.store.save_test_attempt(attempt):
            logger.warning(f"Attempt {attempt.id} was not persisted locally")

        logger.info(f"Started attempt #{attempt.attempt_number} on test {test_id} for user {user_id}")
        return attempt

    async def submit_test(
        self,
        attempt_id: str,
        answers: Sequence[SubmittedAnswer | dict[str, Any]],
        questions: Sequence[Question],
        passing_percentage: float,
        time_taken_minutes: float | None = None,
    ) -> TestAttempt:
        """
        Score and finalize an attempt, then update progress.

        Args:
            attempt_id: Id returned by start_test
            answers: Raw answers as SubmittedAnswer or dicts
            questions: Authoritative question set for the test
            passing_percentage: Threshold the score must reach to pass
            time_taken_minutes: Duration reported by the caller

        Returns:
            The finalized attempt. Re-submitting a finalized attempt returns
            it unchanged.

        Raises:
            AttemptNotFoundError: attempt_id was never started on this device
        """
        attempt = await self.store.get_test_attempt(attempt_id)
        if attempt is None:
            raise AttemptNotFoundError(attempt_id)

        if attempt.is_completed:
            logger.info(f"Attempt {attempt_id} already finalized; ignoring resubmission")
            return attempt

        result = score_answers(questions, _coerce_answers(answers), self.matcher)
        passed = is_passed(result.score_percent, passing_percentage)

        completed = attempt.model_copy(
            update={
                "answers": result.detailed_answers,
                "score": result.score_percent,
                "total_questions": result.total_questions,
                "correct_answers": result.correct_count,
                "passed": passed,
                "completed_at": self.clock(),
                "time_taken_minutes": time_taken_minutes,
            }
        )
        if not await self.store.save_test_attempt(completed):
            logger.warning(f"Finalized attempt {attempt_id} was not persisted locally")

        await self._record_result(completed)

        if passed:
            await self.unlock_next_lesson(completed.user_id, completed.lesson_id)
            self._schedule_sync(
                completed.user_id,
                ProgressUpdate(
                    lesson_id=completed.lesson_id,
                    action=ProgressAction.SUBMIT_TEST,
                    data={"test_score": result.score_percent, "passing_percentage": passing_percentage},
                ),
            )

        logger.info(
            f"Attempt {attempt_id} completed: {result.score_percent}% "
            f"({'PASSED' if passed else 'FAILED'})"
        )
        return completed

    async def submit_attempt(
        self,
        attempt_id: str,
        answers: Sequence[SubmittedAnswer | dict[str, Any]],
        time_taken_minutes: float | None = None,
    ) -> TestAttempt:
        """
        Submit an attempt using the test definition from the catalog.

        Raises:
            AttemptNotFoundError: attempt_id was never started on this device
            TestNotFoundError: the catalog has no test for the attempt
        """
        attempt = await self.store.get_test_attempt(attempt_id)
        if attempt is None:
            raise AttemptNotFoundError(attempt_id)

        test = await self.catalog.get_test(attempt.test_id)
        if test is None:
            raise TestNotFoundError(attempt.test_id)

        return await self.submit_test(
            attempt_id,
            answers,
            test.questions,
            test.passing_percentage,
            time_taken_minutes,
        )

    async def _record_result(self, attempt: TestAttempt) -> LessonProgress:
        """Fold a finalized attempt into the lesson's progress record."""
        existing = await self.store.get_lesson_progress_by_id(attempt.user_id, attempt.lesson_id)
        now = self.clock()

        if existing is None:
            lesson = await self.catalog.get_lesson(attempt.lesson_id)
            book_id = lesson.book_id if lesson else None
            test_passed = attempt.passed
            best_score = attempt.score
            total_attempts = 1
            unlocked_at = now
        else:
            book_id = existing.book_id
            test_passed = existing.test_passed or attempt.passed
            best_score = max(existing.best_score, attempt.score)
            total_attempts = existing.total_attempts + 1
            unlocked_at = existing.unlocked_at or now

        record = LessonProgress(
            user_id=attempt.user_id,
            lesson_id=attempt.lesson_id,
            book_id=book_id,
            status=LessonStatus.COMPLETED if test_passed else LessonStatus.IN_PROGRESS,
            test_passed=test_passed,
            best_score=best_score,
            total_attempts=total_attempts,
            unlocked_at=unlocked_at,
            last_accessed_at=now,
        )
        await self.store.save_lesson_progress(attempt.user_id, record)
        logger.debug(f"Lesson {attempt.lesson_id} progress: best={best_score}% attempts={total_attempts}")
        return record

    # =========================================================================
    # Unlocking
    # =========================================================================

    async def _ensure_unlocked(self, user_id: str, lesson: CatalogLesson) -> LessonProgress:
        existing = await self.store.get_lesson_progress_by_id(user_id, lesson.id)
        if existing is not None and existing.is_unlocked:
            return existing

        now = self.clock()
        if existing is not None:
            record = existing.model_copy(update={"unlocked_at": now})
        else:
            record = LessonProgress(
                user_id=user_id,
                lesson_id=lesson.id,
                book_id=lesson.book_id,
                unlocked_at=now,
                last_accessed_at=now,
            )

        await self.store.save_lesson_progress(user_id, record)
        logger.info(f"Unlocked lesson {lesson.id} (book {lesson.book_id}) for user {user_id}")
        return record

    async def unlock_next_lesson(self, user_id: str, current_lesson_id: int) -> LessonProgress | None:
        """
        Unlock the lesson that follows current_lesson_id in its book.

        Unlocking an already unlocked lesson is a no-op. Returns the next
        lesson's progress record, or None when there is no next lesson.
        """
        next_lesson = await self.catalog.get_next_lesson(current_lesson_id)
        if next_lesson is None:
            logger.debug(f"No lesson after {current_lesson_id}; nothing to unlock")
            return None
        return await self._ensure_unlocked(user_id, next_lesson)

    async def initialize_first_lesson(self, user_id: str, book_id: int) -> LessonProgress | None:
        """Make sure the first lesson of a book has an unlocked progress record."""
        first = await self.catalog.get_first_lesson(book_id)
        if first is None:
            logger.warning(f"Book {book_id} has no lessons in the catalog")
            return None
        return await self._ensure_unlocked(user_id, first)

    async def _is_first_lesson(self, lesson_id: int) -> bool:
        lesson = await self.catalog.get_lesson(lesson_id)
        if lesson is None:
            return False
        first = await self.catalog.get_first_lesson(lesson.book_id)
        return first is not None and first.id == lesson.id

    async def is_lesson_unlocked(self, user_id: str, lesson_id: int) -> bool:
        """The first lesson of a book is always unlocked; others need unlocked_at."""
        record = await self.store.get_lesson_progress_by_id(user_id, lesson_id)
        if record is not None and record.is_unlocked:
            return True
        return await self._is_first_lesson(lesson_id)

    async def get_lesson_unlock_status(self, user_id: str, lesson_ids: Sequence[int]) -> dict[int, bool]:
        """Unlock flags for a list of lessons, e.g. for a lesson list screen."""
        unlocked = {p.lesson_id for p in await self.store.get_lesson_progress(user_id) if p.is_unlocked}
        status: dict[int, bool] = {}
        for lesson_id in lesson_ids:
            status[lesson_id] = lesson_id in unlocked or await self._is_first_lesson(lesson_id)
        return status

    # =========================================================================
    # Queries & Maintenance
    # =========================================================================

    async def get_lesson_progress(self, user_id: str) -> list[LessonProgress]:
        return await self.store.get_lesson_progress(user_id)

    async def get_lesson_progress_by_id(self, user_id: str, lesson_id: int) -> LessonProgress | None:
        return await self.store.get_lesson_progress_by_id(user_id, lesson_id)

    async def reset_user_data(self, user_id: str) -> None:
        await self.store.clear_user_data(user_id)

    async def clear_all_data(self) -> None:
        await self.store.clear_all_data()

    # =========================================================================
    # Remote Sync
    # =========================================================================

    def _schedule_sync(self, user_id: str, update: ProgressUpdate) -> None:
        if self.remote is None:
            return
        task = asyncio.create_task(self._push(user_id, update))
        self._pending_syncs.add(task)
        task.add_done_callback(self._pending_syncs.discard)

    async def _push(self, user_id: str, update: ProgressUpdate) -> None:
        try:
            result = await self.remote.update_lesson_progress(user_id, update)
        except Exception as e:  # Intentionally broad - remote failures never reach the caller
            logger.warning(f"Background sync failed for lesson {update.lesson_id}: {e}")
            return
        if not result.success:
            logger.warning(f"Background sync rejected for lesson {update.lesson_id}: {result.error}")

    async def wait_for_sync(self) -> None:
        """Wait for in-flight background syncs to finish."""
        if self._pending_syncs:
            await asyncio.gather(*list(self._pending_syncs), return_exceptions=True)
