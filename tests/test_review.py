"""Answer review tests."""

import pytest

from quiz_portal.exceptions import AuthorizationError, NotFoundError
from quiz_portal.schemas import QuestionIn
from quiz_portal.services.ledger import submit_quiz
from quiz_portal.services.quiz_service import update_quiz
from quiz_portal.services.review import build_review

from conftest import NOW


class TestBuildReview:
    def test_review_marks_each_answer(self, session, make_quiz, alice):
        quiz_id = make_quiz()
        submit_quiz(session, quiz_id, alice.id, [1, 2], time_taken_seconds=40, now=NOW)

        review = build_review(session, quiz_id, alice.id)

        assert review.score == 1
        assert review.total_marks == 3
        assert review.percentage == 33.33
        assert review.time_taken_seconds == 40
        first, second = review.items
        assert first.is_correct is True
        assert first.selected_index == 1
        assert [o.is_correct for o in first.options] == [False, True]
        assert [o.is_selected for o in first.options] == [False, True]
        assert second.is_correct is False
        assert second.selected_index == 2
        assert [o.is_correct for o in second.options] == [True, False, False]
        assert [o.is_selected for o in second.options] == [False, False, True]

    def test_unanswered_question(self, session, make_quiz, alice):
        quiz_id = make_quiz()
        submit_quiz(session, quiz_id, alice.id, [None, 0], now=NOW)

        item = build_review(session, quiz_id, alice.id).items[0]
        assert item.selected_index is None
        assert item.is_correct is False
        assert not any(o.is_selected for o in item.options)

    def test_review_uses_stored_score_after_edit(self, session, make_quiz, quiz_payload, alice):
        """Given the answer key changes after submitting, the stored score still stands."""
        quiz_id = make_quiz()
        submit_quiz(session, quiz_id, alice.id, [1, 0], now=NOW)

        update_quiz(
            session,
            quiz_id,
            quiz_payload(
                questions=[
                    QuestionIn(question_text="Q1", options=["A", "B"], correct_answer_index=0, marks=4),
                    QuestionIn(question_text="Q2", options=["A", "B"], correct_answer_index=1, marks=4),
                ]
            ),
        )

        review = build_review(session, quiz_id, alice.id)
        assert review.score == 3
        assert review.total_marks == 3
        assert [item.is_correct for item in review.items] == [False, False]

    def test_review_disabled(self, session, make_quiz, alice):
        quiz_id = make_quiz(show_correct_answers=False)
        submit_quiz(session, quiz_id, alice.id, [1, 0], now=NOW)

        with pytest.raises(AuthorizationError):
            build_review(session, quiz_id, alice.id)

    def test_review_without_submission(self, session, make_quiz, alice):
        quiz_id = make_quiz()
        with pytest.raises(NotFoundError) as exc:
            build_review(session, quiz_id, alice.id)
        assert exc.value.message == "No submission found for this quiz"
