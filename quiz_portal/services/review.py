"""Answer review for a submitted quiz."""

from sqlmodel import Session

from quiz_portal.exceptions import AuthorizationError, NotFoundError
from quiz_portal.schemas import QuizReview, ReviewItem, ReviewOption
from quiz_portal.services.ledger import find_submission
from quiz_portal.services.quiz_service import get_quiz, list_questions
from quiz_portal.utils import percentage


def build_review(session: Session, quiz_id: int, student_id: int) -> QuizReview:
    """Reconstruct a student's submission for display.

    The score shown is the one stored at submission time; the per-question
    flags are derived from the current question bank and never feed back
    into the score.

    Raises:
        NotFoundError: unknown quiz or no submission for the student
        AuthorizationError: the quiz does not allow answer review
    """
    quiz = get_quiz(session, quiz_id)
    if not quiz.show_correct_answers:
        raise AuthorizationError("Detailed answer review is not available for this quiz")

    submission = find_submission(session, quiz_id, student_id)
    if not submission:
        raise NotFoundError("No submission found for this quiz", details={"quiz_id": quiz_id, "student_id": student_id})

    answers = submission.answers or []
    items = []
    for i, question in enumerate(list_questions(session, quiz_id)):
        selected = answers[i] if i < len(answers) else None
        items.append(
            ReviewItem(
                index=i,
                question_text=question.question_text,
                marks=question.marks,
                selected_index=selected,
                is_correct=selected is not None and selected == question.correct_answer_index,
                options=[
                    ReviewOption(
                        index=j,
                        text=text,
                        is_correct=j == question.correct_answer_index,
                        is_selected=selected == j,
                    )
                    for j, text in enumerate(question.options)
                ],
            )
        )

    return QuizReview(
        quiz_id=quiz.id,
        student_id=student_id,
        title=quiz.title,
        score=submission.score,
        total_marks=submission.total_marks,
        percentage=percentage(submission.score, submission.total_marks),
        submitted_at=submission.submitted_at,
        time_taken_seconds=submission.time_taken_seconds,
        auto_submitted=submission.auto_submitted,
        items=items,
    )
