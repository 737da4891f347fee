"""Per-student quiz averages for the internal-marks gradebook.

Malformed data is skipped with a diagnostic instead of failing the whole
computation: one quiz's corrupt submissions must not hide everyone else's
marks.
"""

import math
from typing import Dict, List, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from quiz_portal.logging_config import get_logger
from quiz_portal.models import Paper, Quiz, QuizSubmission
from quiz_portal.schemas import AggregationDiagnostic, DepartmentMarksReport, PaperMarksReport
from quiz_portal.services.quiz_service import list_submissions

logger = get_logger(__name__)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _load_submissions(session: Session, quiz: Quiz) -> List[QuizSubmission]:
    return list_submissions(session, quiz.id)


def _submission_problem(submission: QuizSubmission) -> str:
    score = submission.score
    if score is None or isinstance(score, bool) or not isinstance(score, int):
        return f"score {score!r} is not a whole number"
    if score < 0:
        return f"score {score} is negative"
    if submission.total_marks is not None and score > submission.total_marks:
        return f"score {score} exceeds total marks {submission.total_marks}"
    return ""


def aggregate_paper(session: Session, paper_id: int) -> PaperMarksReport:
    """Average quiz score per student across every quiz of a paper.

    Students without a usable submission are absent from ``marks``.
    """
    totals: Dict[int, Tuple[int, int]] = {}
    diagnostics: List[AggregationDiagnostic] = []

    quizzes = session.exec(select(Quiz).where(Quiz.paper_id == paper_id)).all()
    for quiz in quizzes:
        try:
            submissions = _load_submissions(session, quiz)
        except SQLAlchemyError as exc:
            session.rollback()
            diagnostics.append(
                AggregationDiagnostic(paper_id=paper_id, quiz_id=quiz.id, reason=f"could not load submissions: {exc}")
            )
            continue

        for sub in submissions:
            problem = _submission_problem(sub)
            if problem:
                diagnostics.append(
                    AggregationDiagnostic(paper_id=paper_id, quiz_id=quiz.id, student_id=sub.student_id, reason=problem)
                )
                continue
            score_sum, count = totals.get(sub.student_id, (0, 0))
            totals[sub.student_id] = (score_sum + sub.score, count + 1)

    for diag in diagnostics:
        logger.warning(
            "Skipped quiz data for paper %s (quiz %s, student %s): %s",
            diag.paper_id, diag.quiz_id, diag.student_id, diag.reason,
        )

    marks = {student_id: round_half_up(s / n) for student_id, (s, n) in totals.items() if n > 0}
    return PaperMarksReport(paper_id=paper_id, marks=marks, diagnostics=diagnostics)


def get_quiz_marks_for_paper(session: Session, paper_id: int) -> Dict[int, int]:
    """Gradebook contract: student id -> integer average quiz score for the paper."""
    return aggregate_paper(session, paper_id).marks


def aggregate_department(session: Session, department: str) -> DepartmentMarksReport:
    """Quiz averages for every paper of a department, with partial results on failure."""
    papers: Dict[int, Dict[int, int]] = {}
    diagnostics: List[AggregationDiagnostic] = []

    for paper in session.exec(select(Paper).where(Paper.department == department)).all():
        try:
            report = aggregate_paper(session, paper.id)
        except SQLAlchemyError as exc:
            session.rollback()
            logger.warning("Quiz marks unavailable for paper %s: %s", paper.id, exc)
            diagnostics.append(AggregationDiagnostic(paper_id=paper.id, reason=f"could not aggregate paper: {exc}"))
            continue
        papers[paper.id] = report.marks
        diagnostics.extend(report.diagnostics)

    return DepartmentMarksReport(department=department, papers=papers, diagnostics=diagnostics)
