"""
Domain models for lesson progression.

Persisted records (LessonProgress, TestAttempt) and the read-only content
shapes consumed from the content collaborator (questions, tests, catalog
lessons). Questions are a discriminated union on ``question_type``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


# =============================================================================
# Progress Records
# =============================================================================


class LessonStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class LessonProgress(BaseModel):
    """One user's state for one lesson, keyed by (user_id, lesson_id)."""

    user_id: str
    lesson_id: int
    book_id: int | None = None
    status: LessonStatus = LessonStatus.NOT_STARTED
    test_passed: bool = False
    best_score: float = Field(default=0, ge=0, le=100)
    total_attempts: int = Field(default=0, ge=0)
    unlocked_at: datetime | None = None
    last_accessed_at: datetime = Field(default_factory=utc_now)

    @property
    def is_unlocked(self) -> bool:
        return self.unlocked_at is not None


class AnswerRecord(BaseModel):
    """A submitted answer annotated with the authoritative answer."""

    question_id: int
    user_answer: str
    correct_answer: str
    is_correct: bool
    time_taken_seconds: float | None = None


class TestAttempt(BaseModel):
    """
    One instance of a user taking one test.

    An attempt without ``completed_at`` is in progress and holds no answers.
    Once completed it is never mutated again; retakes create new attempts.
    """

    __test__ = False  # not a pytest test class

    id: str
    user_id: str
    lesson_id: int
    test_id: int
    attempt_number: int = Field(ge=1)
    answers: list[AnswerRecord] = Field(default_factory=list)
    score: float = Field(default=0, ge=0, le=100)
    total_questions: int = Field(default=0, ge=0)
    correct_answers: int = Field(default=0, ge=0)
    passed: bool = False
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None
    time_taken_minutes: float | None = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


class SubmittedAnswer(BaseModel):
    """Raw answer entered by the user, before scoring."""

    model_config = ConfigDict(frozen=True)

    question_id: int
    user_answer: str
    time_taken_seconds: float | None = None


# =============================================================================
# Content Shapes (read-only)
# =============================================================================


class QuestionOption(BaseModel):
    text: str
    is_correct: bool = False
    id: str | None = None
    audio_url: str | None = None
    image_url: str | None = None


class _QuestionBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int
    correct_answer: str
    points: int = 1
    question_text: str = ""
    explanation: str | None = None
    order_index: int = 0


class MultipleChoiceQuestion(_QuestionBase):
    question_type: Literal["multiple_choice"] = "multiple_choice"
    options: tuple[QuestionOption, ...] = ()


class TrueFalseQuestion(_QuestionBase):
    question_type: Literal["true_false"] = "true_false"


class FillBlankQuestion(_QuestionBase):
    question_type: Literal["fill_blank"] = "fill_blank"


class AudioRecognitionQuestion(_QuestionBase):
    question_type: Literal["audio_recognition"] = "audio_recognition"
    audio_url: str | None = None


class TranslationQuestion(_QuestionBase):
    question_type: Literal["translation"] = "translation"


Question = Annotated[
    Union[
        MultipleChoiceQuestion,
        TrueFalseQuestion,
        FillBlankQuestion,
        AudioRecognitionQuestion,
        TranslationQuestion,
    ],
    Field(discriminator="question_type"),
]

_questions_adapter: TypeAdapter[list[Question]] = TypeAdapter(list[Question])


def parse_questions(rows: list[dict[str, Any]]) -> list[Question]:
    """Validate raw question rows into their tagged variants."""
    return _questions_adapter.validate_python(rows)


class LessonTest(BaseModel):
    """A test definition attached to a lesson."""

    __test__ = False  # not a pytest test class

    id: int
    lesson_id: int
    passing_percentage: float = Field(default=70, ge=0, le=100)
    title: str = ""
    questions: list[Question] = Field(default_factory=list)


class CatalogLesson(BaseModel):
    """Ordering information for one lesson within a book."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int
    book_id: int
    order_index: int
    title: str = ""
    passing_percentage: float | None = None


# =============================================================================
# Remote Progress Updates
# =============================================================================


class ProgressAction(str, Enum):
    START_LESSON = "start_lesson"
    VIEW_CONTENT = "view_content"
    PRACTICE_EXAMPLES = "practice_examples"
    COMPLETE_LESSON = "complete_lesson"
    SUBMIT_TEST = "submit_test"
    ADD_NOTE = "add_note"
    ADD_BOOKMARK = "add_bookmark"


class ProgressUpdate(BaseModel):
    """Progress update pushed to the remote mirror."""

    lesson_id: int
    action: ProgressAction
    data: dict[str, Any] = Field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return {
            "lesson_id": self.lesson_id,
            "action": self.action.value,
            "data": dict(self.data),
        }
