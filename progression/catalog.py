"""
Lesson Catalog - read-only view of books, lessons, and tests.

The controller resolves "first lesson of a book" and "next lesson" through
the catalog by ``order_index`` within ``book_id``; lesson ids carry no
ordering meaning.

Implementations:
- StaticLessonCatalog: in-memory, built from lists or a JSON file
- RemoteLessonCatalog: hosted table API (lessons, tests, questions tables)
"""

from __future__ import annotations

import json
from collections import defaultdict
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

from loguru import logger
from pydantic import ValidationError

from progression.core.errors import RemoteSyncError
from progression.core.models import CatalogLesson, LessonTest
from progression.remote.table_client import TableApiClient


class LessonCatalog(Protocol):
    """Content collaborator consumed by the progression controller."""

    async def get_lesson(self, lesson_id: int) -> CatalogLesson | None:
        ...

    async def get_first_lesson(self, book_id: int) -> CatalogLesson | None:
        ...

    async def get_next_lesson(self, lesson_id: int) -> CatalogLesson | None:
        ...

    async def get_test(self, test_id: int) -> LessonTest | None:
        ...


def _sort_key(lesson: CatalogLesson) -> tuple[int, int]:
    return (lesson.order_index, lesson.id)


# =============================================================================
# Static Catalog
# =============================================================================


class StaticLessonCatalog:
    """Catalog held in memory."""

    def __init__(self, lessons: Iterable[CatalogLesson] = (), tests: Iterable[LessonTest] = ()):
        self._lessons: dict[int, CatalogLesson] = {}
        self._books: dict[int, list[CatalogLesson]] = defaultdict(list)
        self._tests: dict[int, LessonTest] = {t.id: t for t in tests}

        for lesson in lessons:
            self._lessons[lesson.id] = lesson
            self._books[lesson.book_id].append(lesson)
        for siblings in self._books.values():
            siblings.sort(key=_sort_key)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StaticLessonCatalog":
        """Build from ``{"lessons": [...], "tests": [...]}``."""
        lessons = [CatalogLesson.model_validate(row) for row in data.get("lessons", [])]
        tests = [LessonTest.model_validate(row) for row in data.get("tests", [])]
        return cls(lessons, tests)

    @classmethod
    def from_file(cls, path: Path) -> "StaticLessonCatalog":
        """Load a catalog JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        catalog = cls.from_dict(data)
        logger.info(f"Loaded catalog from {path}: {len(catalog._lessons)} lessons, {len(catalog._tests)} tests")
        return catalog

    @property
    def lessons(self) -> list[CatalogLesson]:
        return list(self._lessons.values())

    async def get_lesson(self, lesson_id: int) -> CatalogLesson | None:
        return self._lessons.get(lesson_id)

    async def get_first_lesson(self, book_id: int) -> CatalogLesson | None:
        siblings = self._books.get(book_id)
        return siblings[0] if siblings else None

    async def get_next_lesson(self, lesson_id: int) -> CatalogLesson | None:
        current = self._lessons.get(lesson_id)
        if current is None:
            return None
        for lesson in self._books[current.book_id]:
            if _sort_key(lesson) > _sort_key(current):
                return lesson
        return None

    async def get_test(self, test_id: int) -> LessonTest | None:
        return self._tests.get(test_id)


# =============================================================================
# Remote Catalog
# =============================================================================


class RemoteLessonCatalog:
    """
    Catalog read from the hosted table API.

    Only published, active lessons take part in ordering. Request and
    validation failures are logged and reported as "absent".
    """

    LESSON_COLUMNS = "id,book_id,order_index,title,passing_percentage"
    VISIBLE = {"is_published": "eq.true", "is_active": "eq.true"}

    def __init__(
        self,
        client: TableApiClient,
        lessons_table: str = "learning_lessons",
        tests_table: str = "lesson_tests",
        questions_table: str = "test_questions",
    ):
        self.client = client
        self.lessons_table = lessons_table
        self.tests_table = tests_table
        self.questions_table = questions_table

    async def _select_lesson(self, filters: dict[str, str], order: str | None = None) -> CatalogLesson | None:
        try:
            rows = await self.client.select(
                self.lessons_table,
                filters,
                columns=self.LESSON_COLUMNS,
                order=order,
                limit=1,
            )
            return CatalogLesson.model_validate(rows[0]) if rows else None
        except RemoteSyncError as e:
            logger.warning(f"Lesson lookup failed: {e}")
        except ValidationError as e:
            logger.warning(f"Malformed lesson row: {e}")
        return None

    async def get_lesson(self, lesson_id: int) -> CatalogLesson | None:
        return await self._select_lesson({"id": f"eq.{lesson_id}"})

    async def get_first_lesson(self, book_id: int) -> CatalogLesson | None:
        return await self._select_lesson(
            {"book_id": f"eq.{book_id}", **self.VISIBLE},
            order="order_index.asc",
        )

    async def get_next_lesson(self, lesson_id: int) -> CatalogLesson | None:
        current = await self.get_lesson(lesson_id)
        if current is None:
            return None
        return await self._select_lesson(
            {
                "book_id": f"eq.{current.book_id}",
                "order_index": f"gt.{current.order_index}",
                **self.VISIBLE,
            },
            order="order_index.asc",
        )

    async def get_test(self, test_id: int) -> LessonTest | None:
        try:
            rows = await self.client.select(
                self.tests_table,
                {"id": f"eq.{test_id}"},
                columns=f"id,lesson_id,passing_percentage,title,questions:{self.questions_table}(*)",
                limit=1,
            )
        except RemoteSyncError as e:
            logger.warning(f"Test lookup failed for {test_id}: {e}")
            return None
        if not rows:
            return None

        row = dict(rows[0])
        questions = [q for q in row.get("questions") or [] if isinstance(q, dict) and q.get("is_active", True)]
        row["questions"] = sorted(questions, key=lambda q: q.get("order_index", 0))
        if row.get("passing_percentage") is None:
            row.pop("passing_percentage", None)
        try:
            return LessonTest.model_validate(row)
        except ValidationError as e:
            logger.warning(f"Malformed test {test_id}: {e}")
            return None
