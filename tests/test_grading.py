"""Unit tests for the grading functions (no database)."""

import pytest

from quiz_portal.exceptions import ValidationError
from quiz_portal.models import QuizQuestion
from quiz_portal.services import grading
from quiz_portal.services.grading import count_correct, grade, grade_breakdown, register_marker, total_marks


def _question(correct: int, marks: int = 1, kind: str = "single_choice", n_options: int = 3) -> QuizQuestion:
    return QuizQuestion(
        quiz_id=1,
        position=0,
        kind=kind,
        question_text="Q",
        options=[f"opt{i}" for i in range(n_options)],
        correct_answer_index=correct,
        marks=marks,
    )


@pytest.fixture
def questions():
    # marks 1 and 2, correct indices 1 and 0
    return [_question(1, marks=1), _question(0, marks=2)]


class TestGrade:
    def test_all_correct_scores_total(self, questions):
        assert grade(questions, [1, 0]) == 3
        assert total_marks(questions) == 3

    def test_partial_and_wrong_answers(self, questions):
        assert grade(questions, [1, 2]) == 1
        assert grade(questions, [0, 0]) == 2
        assert grade(questions, [2, 1]) == 0

    def test_unanswered_scores_zero(self, questions):
        assert grade(questions, [None, None]) == 0
        assert grade(questions, []) == 0

    def test_short_answers_are_padded(self, questions):
        assert grade_breakdown(questions, [1]) == [1, 0]

    def test_extra_answers_are_ignored(self, questions):
        assert grade(questions, [1, 0, 2, 2]) == 3

    def test_bool_is_not_an_option_index(self):
        q = [_question(1)]
        assert grade(q, [True]) == 0

    def test_score_is_within_bounds(self, questions):
        """Given every possible answer combination, the score never leaves [0, total]."""
        for a in (None, 0, 1, 2):
            for b in (None, 0, 1, 2):
                score = grade(questions, [a, b])
                assert 0 <= score <= total_marks(questions)

    def test_grading_is_deterministic(self, questions):
        assert grade(questions, [1, None]) == grade(questions, [1, None])

    def test_count_correct(self, questions):
        assert count_correct(questions, [1, 1]) == 1
        assert count_correct(questions, [1, 0]) == 2

    def test_empty_quiz(self):
        assert grade([], [0]) == 0
        assert total_marks([]) == 0


class TestQuestionKinds:
    def test_unknown_kind_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            grade([_question(0, kind="essay")], [0])
        assert "essay" in exc.value.message

    def test_registered_marker_is_used(self, monkeypatch):
        monkeypatch.setattr(grading, "_MARKERS", dict(grading._MARKERS))

        def _mark_any_answer(question, answer):
            return question.marks if answer is not None else 0

        register_marker("free_text", _mark_any_answer)
        qs = [_question(0, marks=2, kind="free_text"), _question(1, marks=1)]
        assert grade(qs, [2, 1]) == 3
        assert grade(qs, [None, 0]) == 0
