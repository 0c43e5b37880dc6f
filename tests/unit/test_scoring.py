"""
Tests for the scoring engine.

Scores are whole percentages of the question set, rounded half-up; only
the first answer to a question counts and answers to unknown questions are
ignored.
"""

import pytest

from progression.core.models import FillBlankQuestion, SubmittedAnswer, TrueFalseQuestion
from progression.core.scoring import (
    exact_match,
    get_matcher,
    is_passed,
    normalized_match,
    score_answers,
)


def _answers(*pairs):
    return [SubmittedAnswer(question_id=qid, user_answer=text) for qid, text in pairs]


def _questions(count, answer="x"):
    return [FillBlankQuestion(id=i, correct_answer=answer) for i in range(1, count + 1)]


class TestScoreAnswers:
    """Counting, percentages, and detailed answers."""

    def test_all_correct(self, greeting_questions):
        """Both greetings right scores 100."""
        result = score_answers(greeting_questions, _answers((1, "Bonjour"), (2, "Merci")))

        assert result.score_percent == 100
        assert result.correct_count == 2
        assert result.total_questions == 2
        assert [a.is_correct for a in result.detailed_answers] == [True, True]

    def test_one_of_two_correct(self, greeting_questions):
        result = score_answers(greeting_questions, _answers((1, "Bonjour"), (2, "Pardon")))

        assert result.score_percent == 50
        assert result.correct_count == 1
        assert result.detailed_answers[1].is_correct is False

    def test_scoring_is_deterministic(self, greeting_questions):
        submitted = _answers((1, "Bonjour"), (2, "Pardon"))

        assert score_answers(greeting_questions, submitted) == score_answers(greeting_questions, submitted)

    def test_wrong_case_is_incorrect(self, greeting_questions):
        """Exact matching is case-sensitive: 'merci' != 'Merci'."""
        result = score_answers(greeting_questions, _answers((1, "Bonjour"), (2, "merci")))

        assert result.score_percent == 50
        assert result.correct_count == 1
        second = result.detailed_answers[1]
        assert second.user_answer == "merci"
        assert second.correct_answer == "Merci"
        assert second.is_correct is False

    def test_unanswered_questions_count_against_score(self):
        """Denominator is the question set, not the answers."""
        result = score_answers(_questions(4), _answers((1, "x")))

        assert result.score_percent == 25
        assert result.total_questions == 4
        assert len(result.detailed_answers) == 1

    def test_no_answers_scores_zero(self, greeting_questions):
        result = score_answers(greeting_questions, [])

        assert result.score_percent == 0
        assert result.correct_count == 0
        assert result.detailed_answers == []

    def test_empty_question_set_scores_zero(self):
        """No questions is a zero score, never a division error."""
        result = score_answers([], _answers((1, "x")))

        assert result.score_percent == 0
        assert result.total_questions == 0
        assert result.detailed_answers == []

    def test_unknown_question_is_skipped(self, greeting_questions):
        """Answers to ids outside the set are dropped from the detail."""
        result = score_answers(greeting_questions, _answers((1, "Bonjour"), (99, "Hola")))

        assert result.correct_count == 1
        assert result.score_percent == 50
        assert [a.question_id for a in result.detailed_answers] == [1]

    def test_only_first_answer_per_question_counts(self, greeting_questions):
        """Repeating a correct answer cannot inflate the score."""
        result = score_answers(
            greeting_questions,
            _answers((1, "Bonjour"), (1, "Bonjour"), (1, "Bonjour")),
        )

        assert result.correct_count == 1
        assert result.score_percent == 50
        assert result.earned_points == 1
        # Every repeat is still recorded in the detail
        assert len(result.detailed_answers) == 3

    def test_first_answer_wins_even_when_later_is_correct(self, greeting_questions):
        result = score_answers(greeting_questions, _answers((1, "Salut"), (1, "Bonjour")))

        assert result.correct_count == 0
        assert result.score_percent == 0
        assert [a.user_answer for a in result.detailed_answers] == ["Salut", "Bonjour"]
        assert [a.is_correct for a in result.detailed_answers] == [False, True]

    def test_detail_keeps_submission_order(self, greeting_questions):
        result = score_answers(greeting_questions, _answers((2, "Merci"), (1, "Bonjour")))

        assert [a.question_id for a in result.detailed_answers] == [2, 1]

    def test_time_taken_is_carried_into_detail(self, greeting_questions):
        submitted = [SubmittedAnswer(question_id=1, user_answer="Bonjour", time_taken_seconds=4.5)]

        result = score_answers(greeting_questions, submitted)

        assert result.detailed_answers[0].time_taken_seconds == 4.5

    @pytest.mark.parametrize(
        "correct,total,expected",
        [
            (1, 3, 33),
            (2, 3, 67),
            (1, 8, 13),   # 12.5 rounds half-up
            (7, 8, 88),   # 87.5 rounds half-up
            (5, 6, 83),
        ],
    )
    def test_percentage_rounding(self, correct, total, expected):
        """Percentages round half-up to a whole number."""
        answers = _answers(*[(i, "x") for i in range(1, correct + 1)])

        result = score_answers(_questions(total), answers)

        assert result.score_percent == expected

    def test_points_are_totalled(self):
        questions = [
            TrueFalseQuestion(id=1, correct_answer="true", points=3),
            TrueFalseQuestion(id=2, correct_answer="false", points=1),
        ]

        result = score_answers(questions, _answers((1, "true"), (2, "true")))

        assert result.earned_points == 3
        assert result.total_points == 4
        # Percentage is by question count, not by points
        assert result.score_percent == 50

    def test_normalized_matcher(self, greeting_questions):
        result = score_answers(
            greeting_questions,
            _answers((1, "  bonjour "), (2, "MERCI")),
            matcher=normalized_match,
        )

        assert result.score_percent == 100


class TestIsPassed:
    """Pass threshold comparison."""

    @pytest.mark.parametrize(
        "score,passing,expected",
        [
            (70, 70, True),
            (69, 70, False),
            (100, 100, True),
            (0, 0, True),
            (50, 50.5, False),
        ],
    )
    def test_threshold_is_inclusive(self, score, passing, expected):
        assert is_passed(score, passing) is expected


class TestMatchers:
    """Matcher lookup by configured mode."""

    def test_exact_is_case_sensitive(self):
        assert exact_match("Merci", "Merci")
        assert not exact_match("Merci", "merci")
        assert not exact_match("Merci", "Merci ")

    def test_get_matcher_modes(self):
        assert get_matcher("exact") is exact_match
        assert get_matcher("normalized") is normalized_match

    def test_get_matcher_unknown_mode(self):
        with pytest.raises(ValueError, match="fuzzy"):
            get_matcher("fuzzy")
