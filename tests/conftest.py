"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from progression.catalog import StaticLessonCatalog  # noqa: E402
from progression.controller import ProgressionController  # noqa: E402
from progression.core.models import (  # noqa: E402
    CatalogLesson,
    FillBlankQuestion,
    LessonTest,
    MultipleChoiceQuestion,
    QuestionOption,
)
from progression.core.errors import StorageReadError, StorageWriteError  # noqa: E402
from progression.store.backends import MemoryStorage  # noqa: E402
from progression.store.local_store import LocalProgressStore  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (real storage backends on disk)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def greeting_questions():
    """Two French greeting questions (Bonjour / Merci)."""
    return [
        FillBlankQuestion(id=1, correct_answer="Bonjour", question_text="Hello = ?"),
        MultipleChoiceQuestion(
            id=2,
            correct_answer="Merci",
            question_text="Thank you = ?",
            options=(
                QuestionOption(text="Merci", is_correct=True),
                QuestionOption(text="Pardon"),
            ),
        ),
    ]


@pytest.fixture
def catalog(greeting_questions):
    """
    Two books. Book 1 has lessons 10 -> 20 -> 30 (ids deliberately not
    contiguous), book 2 has lesson 40 alone.
    """
    lessons = [
        CatalogLesson(id=20, book_id=1, order_index=1, title="Merci"),
        CatalogLesson(id=10, book_id=1, order_index=0, title="Bonjour"),
        CatalogLesson(id=30, book_id=1, order_index=2, title="Au revoir"),
        CatalogLesson(id=40, book_id=2, order_index=0, title="Les nombres"),
    ]
    tests = [
        LessonTest(id=100, lesson_id=10, passing_percentage=70, questions=greeting_questions),
        LessonTest(id=200, lesson_id=20, passing_percentage=50, questions=greeting_questions),
    ]
    return StaticLessonCatalog(lessons, tests)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage):
    return LocalProgressStore(storage)


@pytest.fixture
def controller(store, catalog):
    return ProgressionController(store, catalog)


class FailingStorage(MemoryStorage):
    """MemoryStorage whose reads and/or writes fail on demand."""

    def __init__(self, fail_reads=False, fail_writes=False):
        super().__init__()
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    async def get_item(self, key):
        if self.fail_reads:
            raise StorageReadError(f"cannot read {key}")
        return await super().get_item(key)

    async def set_item(self, key, value):
        if self.fail_writes:
            raise StorageWriteError(f"disk full writing {key}")
        await super().set_item(key, value)


@pytest.fixture
def failing_storage():
    """Healthy until a test flips fail_reads / fail_writes."""
    return FailingStorage()
