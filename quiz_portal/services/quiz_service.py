"""Quiz definition store: authoring, listing and deletion of quizzes."""

from typing import Dict, List, Optional

from sqlmodel import Session, select

from quiz_portal.config import settings
from quiz_portal.exceptions import AuthorizationError, NotFoundError, ValidationError
from quiz_portal.logging_config import get_logger
from quiz_portal.models import (
    Paper,
    QuestionKind,
    Quiz,
    QuizQuestion,
    QuizSubmission,
    Staff,
    Student,
)
from quiz_portal.schemas import QuestionIn, QuizIn, StudentQuestion, StudentQuizView, SubmissionRow
from quiz_portal.services.grading import total_marks
from quiz_portal.utils import sanitize_plain_text, sanitize_question_text, utcnow

logger = get_logger(__name__)

KNOWN_KINDS = {kind.value for kind in QuestionKind}


def _clean_question(question: QuestionIn) -> QuestionIn:
    return QuestionIn(
        question_text=sanitize_question_text(question.question_text),
        options=[sanitize_question_text(opt) for opt in question.options],
        correct_answer_index=question.correct_answer_index,
        marks=question.marks,
        kind=question.kind,
    )


def _validate_question(index: int, question: QuestionIn, errors: Dict[str, str]) -> None:
    prefix = f"questions[{index}]"

    if not question.question_text:
        errors[f"{prefix}.question_text"] = f"Question {index + 1}: question text is required."
    elif len(question.question_text) > settings.QUESTION_MAX_LENGTH:
        errors[f"{prefix}.question_text"] = (
            f"Question {index + 1}: question text must be at most {settings.QUESTION_MAX_LENGTH} characters."
        )

    if question.kind not in KNOWN_KINDS:
        errors[f"{prefix}.kind"] = f"Question {index + 1}: unsupported question kind '{question.kind}'."

    if len(question.options) < settings.MIN_OPTIONS:
        errors[f"{prefix}.options"] = f"Question {index + 1}: at least {settings.MIN_OPTIONS} options are required."
    elif any(not opt for opt in question.options):
        errors[f"{prefix}.options"] = f"Question {index + 1}: all options must be non-empty."
    elif any(len(opt) > settings.OPTION_MAX_LENGTH for opt in question.options):
        errors[f"{prefix}.options"] = (
            f"Question {index + 1}: options must be at most {settings.OPTION_MAX_LENGTH} characters."
        )

    if not 0 <= question.correct_answer_index < len(question.options):
        errors[f"{prefix}.correct_answer_index"] = (
            f"Question {index + 1}: correct answer must be one of the {len(question.options)} options."
        )

    if question.marks < 1:
        errors[f"{prefix}.marks"] = f"Question {index + 1}: marks must be a positive whole number."


def _validate_quiz_inputs(data: QuizIn, title: str, questions: List[QuestionIn]) -> Dict[str, str]:
    """Validate quiz fields and return an ordered field -> message map."""
    errors: Dict[str, str] = {}

    if not title:
        errors["title"] = "Title is required."

    if data.duration_minutes <= 0:
        errors["duration_minutes"] = "Duration must be greater than zero minutes."

    if data.end_time <= data.start_time:
        errors["end_time"] = "End time must be after start time."

    if not questions:
        errors["questions"] = "At least one question is required."

    for i, question in enumerate(questions):
        _validate_question(i, question, errors)

    return errors


def _check_paper_access(session: Session, data: QuizIn) -> Paper:
    paper = session.get(Paper, data.paper_id)
    if not paper:
        raise NotFoundError("Paper not found", details={"paper_id": data.paper_id})

    if data.teacher_id is not None and paper.teacher_id != data.teacher_id:
        raise AuthorizationError(
            "You are not assigned to this paper",
            details={"paper_id": paper.id, "teacher_id": data.teacher_id},
        )

    if data.section is not None and data.section.value not in (paper.sections or []):
        raise ValidationError(
            "Invalid section for this paper",
            errors={"section": f"Section {data.section.value} is not offered for this paper."},
        )
    return paper


def _prepare(session: Session, data: QuizIn) -> tuple:
    """Sanitize and validate an authoring payload; return (title, description, questions)."""
    title = sanitize_plain_text(data.title)
    description = sanitize_plain_text(data.description) if data.description else None
    questions = [_clean_question(q) for q in data.questions]

    errors = _validate_quiz_inputs(data, title, questions)
    if errors:
        raise ValidationError(next(iter(errors.values())), errors=errors)

    _check_paper_access(session, data)
    return title, description or None, questions


def _replace_questions(session: Session, quiz: Quiz, questions: List[QuestionIn]) -> None:
    """Swap the question bank wholesale and recompute total marks."""
    for old in session.exec(select(QuizQuestion).where(QuizQuestion.quiz_id == quiz.id)).all():
        session.delete(old)

    for position, q in enumerate(questions):
        session.add(
            QuizQuestion(
                quiz_id=quiz.id,
                position=position,
                kind=q.kind,
                question_text=q.question_text,
                options=list(q.options),
                correct_answer_index=q.correct_answer_index,
                marks=q.marks,
            )
        )
    quiz.total_marks = total_marks(questions)


def create_quiz(session: Session, data: QuizIn) -> Quiz:
    """Validate and persist a new quiz with its questions.

    Raises:
        ValidationError: malformed fields/questions or a section the paper does not offer
        NotFoundError: unknown paper
        AuthorizationError: teacher_id is not the paper's assigned teacher
    """
    title, description, questions = _prepare(session, data)

    quiz = Quiz(
        paper_id=data.paper_id,
        title=title,
        description=description,
        section=data.section.value if data.section else None,
        duration_minutes=data.duration_minutes,
        start_time=data.start_time,
        end_time=data.end_time,
        allow_retake=data.allow_retake,
        show_results=data.show_results,
        show_correct_answers=data.show_correct_answers,
    )
    session.add(quiz)
    # Flush to obtain quiz.id for the question rows
    session.flush()
    _replace_questions(session, quiz, questions)
    session.add(quiz)
    session.commit()
    session.refresh(quiz)

    logger.info(
        "Created quiz %s for paper %s (%d questions, %d marks)",
        quiz.id, quiz.paper_id, len(questions), quiz.total_marks,
    )
    return quiz


def update_quiz(session: Session, quiz_id: int, data: QuizIn) -> Quiz:
    """Replace a quiz's fields and questions wholesale.

    Stored submissions keep their recorded scores.
    """
    quiz = get_quiz(session, quiz_id)
    title, description, questions = _prepare(session, data)

    quiz.paper_id = data.paper_id
    quiz.title = title
    quiz.description = description
    quiz.section = data.section.value if data.section else None
    quiz.duration_minutes = data.duration_minutes
    quiz.start_time = data.start_time
    quiz.end_time = data.end_time
    quiz.allow_retake = data.allow_retake
    quiz.show_results = data.show_results
    quiz.show_correct_answers = data.show_correct_answers
    quiz.updated_at = utcnow()
    _replace_questions(session, quiz, questions)

    session.add(quiz)
    session.commit()
    session.refresh(quiz)

    logger.info("Updated quiz %s (%d questions, %d marks)", quiz.id, len(questions), quiz.total_marks)
    return quiz


def delete_quiz(session: Session, quiz_id: int) -> None:
    """Delete a quiz together with its questions and submissions."""
    quiz = get_quiz(session, quiz_id)

    submissions = list_submissions(session, quiz_id)
    for sub in submissions:
        session.delete(sub)
    for q in list_questions(session, quiz_id):
        session.delete(q)
    session.delete(quiz)
    session.commit()

    logger.info("Deleted quiz %s and %d submissions", quiz_id, len(submissions))


def get_quiz(session: Session, quiz_id: int) -> Quiz:
    quiz = session.get(Quiz, quiz_id)
    if not quiz:
        raise NotFoundError("Quiz not found", details={"quiz_id": quiz_id})
    return quiz


def list_questions(session: Session, quiz_id: int) -> List[QuizQuestion]:
    return session.exec(
        select(QuizQuestion).where(QuizQuestion.quiz_id == quiz_id).order_by(QuizQuestion.position)
    ).all()


def list_submissions(session: Session, quiz_id: int) -> List[QuizSubmission]:
    return session.exec(
        select(QuizSubmission).where(QuizSubmission.quiz_id == quiz_id).order_by(QuizSubmission.submitted_at)
    ).all()


def list_quizzes_for_paper(session: Session, paper_id: int, section: Optional[str] = None) -> List[Quiz]:
    """Quizzes of a paper, newest start time first, optionally for one section."""
    stmt = select(Quiz).where(Quiz.paper_id == paper_id)
    if section:
        stmt = stmt.where(Quiz.section == section)
    return session.exec(stmt.order_by(Quiz.start_time.desc())).all()


def list_quizzes_for_student(session: Session, section: str, department: str, year: str) -> List[Quiz]:
    """Quizzes visible to a student section.

    Covers every paper of the department/year that offers the section;
    quizzes restricted to another section are left out.
    """
    papers = session.exec(select(Paper).where(Paper.department == department, Paper.year == year)).all()
    paper_ids = [p.id for p in papers if section in (p.sections or [])]
    if not paper_ids:
        raise NotFoundError("No papers found for this section")

    quizzes = session.exec(
        select(Quiz).where(Quiz.paper_id.in_(paper_ids)).order_by(Quiz.start_time.desc())
    ).all()
    return [q for q in quizzes if q.section in (None, section)]


def list_papers_for_staff(session: Session, staff_id: int) -> List[Paper]:
    """Papers a staff member may author quizzes for.

    HODs get every paper in their department; teachers only the papers assigned to them.
    """
    staff = session.get(Staff, staff_id)
    if not staff:
        raise NotFoundError("Staff member not found", details={"staff_id": staff_id})

    if staff.role == "hod":
        papers = session.exec(select(Paper).where(Paper.department == staff.department)).all()
        if not papers:
            raise NotFoundError("No papers found in your department")
    else:
        papers = session.exec(select(Paper).where(Paper.teacher_id == staff.id)).all()
        if not papers:
            raise NotFoundError("No papers assigned to this teacher")
    return papers


def student_view(quiz: Quiz, questions: List[QuizQuestion]) -> StudentQuizView:
    """Quiz as presented to a student: questions without the answer key."""
    return StudentQuizView(
        id=quiz.id,
        paper_id=quiz.paper_id,
        title=quiz.title,
        description=quiz.description,
        section=quiz.section,
        duration_minutes=quiz.duration_minutes,
        start_time=quiz.start_time,
        end_time=quiz.end_time,
        allow_retake=quiz.allow_retake,
        show_results=quiz.show_results,
        show_correct_answers=quiz.show_correct_answers,
        total_marks=quiz.total_marks,
        questions=[
            StudentQuestion(
                index=q.position,
                question_text=q.question_text,
                options=list(q.options),
                marks=q.marks,
                kind=q.kind,
            )
            for q in questions
        ],
    )


def submission_rows(session: Session, quiz: Quiz) -> List[SubmissionRow]:
    """Read-only submission listing for teachers and report rendering.

    When the quiz targets one section, only students of that section are listed.
    """
    rows = []
    for sub in list_submissions(session, quiz.id):
        student = session.get(Student, sub.student_id)
        if quiz.section and (student is None or student.section != quiz.section):
            continue
        rows.append(
            SubmissionRow(
                student_id=sub.student_id,
                roll_no=student.roll_no if student else None,
                name=student.name if student else None,
                section=student.section if student else None,
                score=sub.score,
                total_marks=sub.total_marks,
                submitted_at=sub.submitted_at,
                time_taken_seconds=sub.time_taken_seconds,
                attempt_number=sub.attempt_number,
                auto_submitted=sub.auto_submitted,
            )
        )
    return rows
