"""
Lesson progression: local test-taking, scoring, and lesson unlocking.

Tracks per-user lesson state on the device, scores test attempts, unlocks
the next lesson of a book when an attempt passes, and mirrors progress to a
hosted table API on a best-effort basis.

Components:
- core: domain models, scoring engine, errors
- store: local progress store over pluggable key-value backends
- catalog: lesson ordering and test definitions
- remote: hosted table API client and progress mirror
- controller: attempt lifecycle and unlock policy
"""

from progression.catalog import LessonCatalog, RemoteLessonCatalog, StaticLessonCatalog
from progression.controller import ProgressionController
from progression.core import (
    AttemptNotFoundError,
    LessonProgress,
    LessonStatus,
    LessonTest,
    NotFoundError,
    SubmittedAnswer,
    TestAttempt,
    TestNotFoundError,
    score_answers,
)
from progression.store import LocalProgressStore

__version__ = "1.0.0"

__all__ = [
    "ProgressionController",
    "LocalProgressStore",
    "LessonCatalog",
    "StaticLessonCatalog",
    "RemoteLessonCatalog",
    "LessonProgress",
    "LessonStatus",
    "LessonTest",
    "TestAttempt",
    "SubmittedAnswer",
    "NotFoundError",
    "AttemptNotFoundError",
    "TestNotFoundError",
    "score_answers",
]
