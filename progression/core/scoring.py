"""
Scoring engine for test attempts.

Pure, deterministic scoring of submitted answers against the authoritative
question set:
- each submitted answer is looked up by question id; unknown ids are skipped
- repeated answers to a question are recorded, but only the first one counts
- unanswered questions count as incorrect
- score_percent = round(correct / total_questions * 100), 0 for no questions
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Literal

from loguru import logger

from .models import AnswerRecord, Question, SubmittedAnswer

AnswerMatcher = Callable[[str, str], bool]
MatchMode = Literal["exact", "normalized"]


def exact_match(correct_answer: str, user_answer: str) -> bool:
    """Case-sensitive string equality, no normalization."""
    return correct_answer == user_answer


def normalized_match(correct_answer: str, user_answer: str) -> bool:
    """Whitespace-trimmed, case-folded comparison."""
    return correct_answer.strip().casefold() == user_answer.strip().casefold()


MATCHERS: dict[str, AnswerMatcher] = {
    "exact": exact_match,
    "normalized": normalized_match,
}


def get_matcher(mode: MatchMode) -> AnswerMatcher:
    """Resolve a configured match mode to its matcher."""
    try:
        return MATCHERS[mode]
    except KeyError:
        raise ValueError(f"Unknown answer matching mode: {mode}") from None


@dataclass(frozen=True)
class ScoreResult:
    """Outcome of scoring one set of submitted answers."""

    score_percent: int
    correct_count: int
    total_questions: int
    detailed_answers: list[AnswerRecord] = field(default_factory=list)
    earned_points: int = 0
    total_points: int = 0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score_answers(
    questions: Sequence[Question],
    submitted: Sequence[SubmittedAnswer],
    matcher: AnswerMatcher = exact_match,
) -> ScoreResult:
    """
    Score submitted answers against the question set.

    Args:
        questions: Authoritative questions (the denominator)
        submitted: Answers entered by the user, in submission order
        matcher: Comparison applied to (correct_answer, user_answer)

    Returns:
        ScoreResult whose detailed_answers cover every submitted answer that
        references a known question, in submission order. Only the first
        answer per question counts towards correct_count.
    """
    by_id: dict[int, Question] = {}
    for question in questions:
        by_id.setdefault(question.id, question)

    detailed: list[AnswerRecord] = []
    answered: set[int] = set()
    correct_count = 0
    earned_points = 0

    for answer in submitted:
        question = by_id.get(answer.question_id)
        if question is None:
            logger.debug(f"Skipping answer for unknown question {answer.question_id}")
            continue

        is_correct = matcher(question.correct_answer, answer.user_answer)
        if question.id in answered:
            logger.debug(f"Repeated answer for question {question.id} does not count")
        elif is_correct:
            correct_count += 1
            earned_points += question.points
        answered.add(question.id)

        detailed.append(
            AnswerRecord(
                question_id=answer.question_id,
                user_answer=answer.user_answer,
                correct_answer=question.correct_answer,
                is_correct=is_correct,
                time_taken_seconds=answer.time_taken_seconds,
            )
        )

    total = len(questions)
    score_percent = _round_half_up(correct_count / total * 100) if total > 0 else 0

    return ScoreResult(
        score_percent=score_percent,
        correct_count=correct_count,
        total_questions=total,
        detailed_answers=detailed,
        earned_points=earned_points,
        total_points=sum(q.points for q in questions),
    )


def is_passed(score_percent: float, passing_percentage: float) -> bool:
    """An attempt passes when its score reaches the threshold."""
    return score_percent >= passing_percentage
