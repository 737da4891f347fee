"""Submission ledger: the server-side accept/reject decision for quiz submits.

Every decision here uses the server clock. The unique (quiz, student)
constraint on QuizSubmission backs the pre-read conflict check, so two
near-simultaneous first submits cannot both be stored.
"""

from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from quiz_portal.exceptions import ConflictError, InternalError, NotFoundError, ValidationError, WindowError
from quiz_portal.logging_config import get_logger
from quiz_portal.models import Quiz, QuizQuestion, QuizSubmission, Student
from quiz_portal.schemas import PreflightResult, SubmitResult
from quiz_portal.services.grading import grade
from quiz_portal.services.quiz_service import get_quiz, list_questions, student_view
from quiz_portal.utils import utcnow, validate_marks

logger = get_logger(__name__)

ALREADY_SUBMITTED = "Already submitted and retakes are not allowed"


def find_submission(session: Session, quiz_id: int, student_id: int) -> Optional[QuizSubmission]:
    stmt = select(QuizSubmission).where(
        (QuizSubmission.quiz_id == quiz_id) & (QuizSubmission.student_id == student_id)
    )
    return session.exec(stmt).first()


def window_problem(quiz: Quiz, now: datetime) -> Optional[str]:
    """Reason the quiz window is closed at ``now``, or None when it is open."""
    if now < quiz.start_time:
        return "Quiz has not started yet"
    if now > quiz.end_time:
        return "Quiz has ended"
    return None


def _get_student(session: Session, student_id: int) -> Student:
    student = session.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found", details={"student_id": student_id})
    return student


def _validate_answers(questions: List[QuizQuestion], answers: Sequence[Optional[int]]) -> None:
    errors = {}
    if len(answers) > len(questions):
        errors["answers"] = f"Expected at most {len(questions)} answers, got {len(answers)}."
    else:
        for i, answer in enumerate(answers):
            if answer is None:
                continue
            if isinstance(answer, bool) or not isinstance(answer, int):
                errors[f"answers[{i}]"] = f"Answer {i + 1} must be an option index."
            elif not 0 <= answer < len(questions[i].options):
                errors[f"answers[{i}]"] = f"Answer {i + 1} is not one of the question's options."
    if errors:
        raise ValidationError(next(iter(errors.values())), errors=errors)


def _record(
    session: Session,
    submission: QuizSubmission,
    answers: List[Optional[int]],
    score: int,
    total: int,
    submitted_at: datetime,
    time_taken_seconds: Optional[int],
    auto_submitted: bool,
) -> QuizSubmission:
    submission.answers = answers
    submission.score = score
    submission.total_marks = total
    submission.submitted_at = submitted_at
    submission.time_taken_seconds = time_taken_seconds
    submission.auto_submitted = auto_submitted
    session.add(submission)
    try:
        session.commit()
    except IntegrityError:
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Failed to persist submission for quiz %s", submission.quiz_id)
        raise InternalError("Could not save the submission, please try again") from exc
    session.refresh(submission)
    return submission


def submit_quiz(
    session: Session,
    quiz_id: int,
    student_id: int,
    answers: Sequence[Optional[int]],
    time_taken_seconds: Optional[int] = None,
    auto_submitted: bool = False,
    now: Optional[datetime] = None,
) -> SubmitResult:
    """Accept or reject a submit request and persist the graded result.

    Args:
        session: Database session
        quiz_id: Quiz being submitted
        student_id: Submitting student
        answers: Selected option index per question, None for unanswered
        time_taken_seconds: Client-reported time spent (informational only)
        auto_submitted: True when the client timer forced the submit
        now: Server time; defaults to the current UTC time

    Returns:
        SubmitResult with the score and the quiz total

    Raises:
        NotFoundError: unknown quiz or student
        WindowError: server time outside [start_time, end_time]
        ValidationError: malformed answers
        ConflictError: existing submission and retakes are not allowed
        InternalError: the submission could not be persisted
    """
    quiz = get_quiz(session, quiz_id)
    now = now or utcnow()

    problem = window_problem(quiz, now)
    if problem:
        logger.info("Rejected submit for quiz %s by student %s: %s", quiz_id, student_id, problem)
        raise WindowError(
            problem,
            details={"start_time": quiz.start_time.isoformat(), "end_time": quiz.end_time.isoformat()},
        )

    _get_student(session, student_id)
    questions = list_questions(session, quiz_id)
    answers = list(answers)
    _validate_answers(questions, answers)

    # Read everything needed from the quiz before a rollback can expire it
    allow_retake = quiz.allow_retake
    total = quiz.total_marks
    score = grade(questions, answers)

    existing = find_submission(session, quiz_id, student_id)
    if existing and not allow_retake:
        logger.info("Rejected duplicate submit for quiz %s by student %s", quiz_id, student_id)
        raise ConflictError(ALREADY_SUBMITTED, details={"quiz_id": quiz_id, "student_id": student_id})

    if existing:
        existing.attempt_number += 1
        submission = existing
    else:
        submission = QuizSubmission(quiz_id=quiz_id, student_id=student_id, attempt_number=1)

    try:
        submission = _record(session, submission, answers, score, total, now, time_taken_seconds, auto_submitted)
    except IntegrityError:
        # Another submit for the same student was stored first
        session.rollback()
        if not allow_retake:
            logger.info("Lost submit race for quiz %s by student %s", quiz_id, student_id)
            raise ConflictError(ALREADY_SUBMITTED, details={"quiz_id": quiz_id, "student_id": student_id})
        winner = find_submission(session, quiz_id, student_id)
        if winner is None:
            raise InternalError("Could not save the submission, please try again")
        winner.attempt_number += 1
        submission = _record(session, winner, answers, score, total, now, time_taken_seconds, auto_submitted)

    logger.info(
        "Accepted submit for quiz %s by student %s: %d/%d (attempt %d%s)",
        quiz_id, student_id, score, total, submission.attempt_number,
        ", auto-submitted" if auto_submitted else "",
    )
    return SubmitResult(
        score=submission.score,
        total_marks=submission.total_marks,
        attempt_number=submission.attempt_number,
        submitted_at=submission.submitted_at,
        auto_submitted=submission.auto_submitted,
    )


def preflight(session: Session, quiz_id: int, student_id: int, now: Optional[datetime] = None) -> PreflightResult:
    """Report whether a submit by this student would currently be accepted."""
    quiz = get_quiz(session, quiz_id)
    _get_student(session, student_id)
    now = now or utcnow()

    reason = window_problem(quiz, now)
    if reason is None and not quiz.allow_retake and find_submission(session, quiz_id, student_id):
        reason = "You have already submitted this quiz"

    return PreflightResult(
        eligible=reason is None,
        reason=reason,
        server_time=now,
        quiz=student_view(quiz, list_questions(session, quiz_id)),
    )


def update_marks(session: Session, quiz_id: int, student_id: int, marks: int) -> QuizSubmission:
    """Teacher override of a stored score, bounded by the submission's total marks."""
    get_quiz(session, quiz_id)
    submission = find_submission(session, quiz_id, student_id)
    if not submission:
        raise NotFoundError("Submission not found", details={"quiz_id": quiz_id, "student_id": student_id})

    try:
        validate_marks(marks, submission.total_marks)
    except ValueError as e:
        raise ValidationError(str(e), errors={"marks": str(e)})

    previous = submission.score
    submission.score = marks
    session.add(submission)
    session.commit()
    session.refresh(submission)

    logger.info(
        "Marks for quiz %s student %s changed from %d to %d", quiz_id, student_id, previous, marks,
    )
    return submission
