"""
Core Module - domain models, scoring, and error taxonomy.

Components:
- models: LessonProgress, TestAttempt, tagged question variants, catalog shapes
- scoring: pure scoring engine and pass threshold
- errors: ProgressionError hierarchy
"""

from .errors import (
    AttemptNotFoundError,
    NotFoundError,
    ProgressionError,
    RemoteSyncError,
    StorageError,
    StorageReadError,
    StorageWriteError,
    TestNotFoundError,
)
from .models import (
    AnswerRecord,
    CatalogLesson,
    LessonProgress,
    LessonStatus,
    LessonTest,
    ProgressAction,
    ProgressUpdate,
    Question,
    SubmittedAnswer,
    TestAttempt,
    parse_questions,
)
from .scoring import ScoreResult, get_matcher, is_passed, score_answers

__all__ = [
    # Errors
    "ProgressionError",
    "NotFoundError",
    "AttemptNotFoundError",
    "TestNotFoundError",
    "StorageError",
    "StorageReadError",
    "StorageWriteError",
    "RemoteSyncError",
    # Models
    "LessonStatus",
    "LessonProgress",
    "TestAttempt",
    "AnswerRecord",
    "SubmittedAnswer",
    "Question",
    "LessonTest",
    "CatalogLesson",
    "ProgressAction",
    "ProgressUpdate",
    "parse_questions",
    # Scoring
    "ScoreResult",
    "score_answers",
    "is_passed",
    "get_matcher",
]
