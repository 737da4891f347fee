"""JSON API for quiz authoring, taking, results and gradebook marks."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi import status as http_status
from sqlmodel import Session

from quiz_portal.database import get_session
from quiz_portal.deps import get_now, quiz_or_404
from quiz_portal.models import Quiz, QuizQuestion, QuizSubmission, Section
from quiz_portal.schemas import (
    DepartmentMarksReport,
    MarksUpdateIn,
    PreflightResult,
    QuizIn,
    QuizReview,
    SubmissionRow,
    SubmitIn,
)
from quiz_portal.services import aggregation, ledger, quiz_service, review

router = APIRouter()


def _question_dict(q: QuizQuestion) -> dict:
    return {
        "question_id": q.id,
        "index": q.position,
        "kind": q.kind,
        "question_text": q.question_text,
        "options": list(q.options),
        "correct_answer_index": q.correct_answer_index,
        "marks": q.marks,
    }


def _submission_dict(sub: QuizSubmission) -> dict:
    return {
        "student_id": sub.student_id,
        "answers": list(sub.answers or []),
        "score": sub.score,
        "total_marks": sub.total_marks,
        "submitted_at": sub.submitted_at,
        "time_taken_seconds": sub.time_taken_seconds,
        "attempt_number": sub.attempt_number,
        "auto_submitted": sub.auto_submitted,
    }


def _quiz_dict(
    quiz: Quiz,
    questions: List[QuizQuestion],
    submissions: Optional[List[QuizSubmission]] = None,
) -> dict:
    data = {
        "quiz_id": quiz.id,
        "paper_id": quiz.paper_id,
        "title": quiz.title,
        "description": quiz.description,
        "section": quiz.section,
        "duration_minutes": quiz.duration_minutes,
        "start_time": quiz.start_time,
        "end_time": quiz.end_time,
        "allow_retake": quiz.allow_retake,
        "show_results": quiz.show_results,
        "show_correct_answers": quiz.show_correct_answers,
        "total_marks": quiz.total_marks,
        "questions": [_question_dict(q) for q in questions],
    }
    if submissions is not None:
        data["submissions"] = [_submission_dict(s) for s in submissions]
    return data


# 1) AUTHORING
@router.post("", status_code=http_status.HTTP_201_CREATED)
def api_create_quiz(payload: QuizIn = Body(...), session: Session = Depends(get_session)):
    quiz = quiz_service.create_quiz(session, payload)
    return {
        "message": "Quiz created successfully",
        "quiz": _quiz_dict(quiz, quiz_service.list_questions(session, quiz.id), []),
    }


@router.put("/{quiz_id}")
def api_update_quiz(quiz_id: int, payload: QuizIn = Body(...), session: Session = Depends(get_session)):
    quiz = quiz_service.update_quiz(session, quiz_id, payload)
    return {
        "message": "Quiz updated successfully",
        "quiz": _quiz_dict(quiz, quiz_service.list_questions(session, quiz.id)),
    }


@router.delete("/{quiz_id}")
def api_delete_quiz(quiz_id: int, session: Session = Depends(get_session)):
    quiz_service.delete_quiz(session, quiz_id)
    return {"message": "Quiz deleted successfully"}


# 2) LISTING
@router.get("/teacher-papers/{staff_id}")
def api_teacher_papers(staff_id: int, session: Session = Depends(get_session)):
    """Papers a teacher (or HOD) can create quizzes for."""
    papers = quiz_service.list_papers_for_staff(session, staff_id)
    return [
        {
            "paper_id": p.id,
            "paper": p.paper,
            "department": p.department,
            "semester": p.semester,
            "year": p.year,
            "sections": list(p.sections or []),
            "teacher_id": p.teacher_id,
        }
        for p in papers
    ]


@router.get("/student/{section}")
def api_student_quizzes(
    section: Section,
    department: str = Query(...),
    year: str = Query(...),
    session: Session = Depends(get_session),
):
    """Quizzes visible to a student section, newest first."""
    quizzes = quiz_service.list_quizzes_for_student(session, section.value, department, year)
    return [
        quiz_service.student_view(q, quiz_service.list_questions(session, q.id)).model_dump(mode="json")
        for q in quizzes
    ]


@router.get("/paper/{paper_id}")
def api_list_quizzes(
    paper_id: int,
    section: Optional[Section] = Query(None),
    session: Session = Depends(get_session),
):
    quizzes = quiz_service.list_quizzes_for_paper(session, paper_id, section.value if section else None)
    return [
        _quiz_dict(q, quiz_service.list_questions(session, q.id), quiz_service.list_submissions(session, q.id))
        for q in quizzes
    ]


@router.get("/quiz/{quiz_id}")
def api_get_quiz(quiz: Quiz = Depends(quiz_or_404), session: Session = Depends(get_session)):
    return _quiz_dict(
        quiz,
        quiz_service.list_questions(session, quiz.id),
        quiz_service.list_submissions(session, quiz.id),
    )


# 3) TAKING
@router.get("/{quiz_id}/preflight", response_model=PreflightResult)
def api_preflight(
    quiz_id: int,
    student_id: int = Query(...),
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now),
):
    return ledger.preflight(session, quiz_id, student_id, now=now)


@router.post("/{quiz_id}/submit", status_code=http_status.HTTP_201_CREATED)
def api_submit(
    quiz_id: int,
    payload: SubmitIn = Body(...),
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now),
):
    result = ledger.submit_quiz(
        session,
        quiz_id,
        payload.student_id,
        payload.answers,
        time_taken_seconds=payload.time_taken_seconds,
        auto_submitted=payload.auto_submitted,
        now=now,
    )
    return {"message": "Quiz submitted successfully", **result.model_dump(mode="json")}


# 4) RESULTS
@router.get("/{quiz_id}/results")
def api_results(quiz: Quiz = Depends(quiz_or_404), session: Session = Depends(get_session)):
    """Teacher results view; section-restricted quizzes list only that section's students."""
    rows = quiz_service.submission_rows(session, quiz)
    return {
        "quiz": {
            "quiz_id": quiz.id,
            "title": quiz.title,
            "total_marks": quiz.total_marks,
            "section": quiz.section,
        },
        "submissions": [r.model_dump(mode="json") for r in rows],
    }


@router.get("/{quiz_id}/submissions", response_model=List[SubmissionRow])
def api_submissions(quiz: Quiz = Depends(quiz_or_404), session: Session = Depends(get_session)):
    return quiz_service.submission_rows(session, quiz)


@router.patch("/{quiz_id}/update-marks")
def api_update_marks(quiz_id: int, payload: MarksUpdateIn = Body(...), session: Session = Depends(get_session)):
    submission = ledger.update_marks(session, quiz_id, payload.student_id, payload.marks)
    return {"message": "Quiz marks updated successfully", "score": submission.score}


@router.get("/{quiz_id}/review/{student_id}", response_model=QuizReview)
def api_review(quiz_id: int, student_id: int, session: Session = Depends(get_session)):
    return review.build_review(session, quiz_id, student_id)


# 5) GRADEBOOK
@router.get("/marks/department/{department}", response_model=DepartmentMarksReport)
def api_department_marks(department: str, session: Session = Depends(get_session)):
    return aggregation.aggregate_department(session, department)


@router.get("/marks/{paper_id}")
def api_paper_marks(paper_id: int, session: Session = Depends(get_session)):
    """Average quiz score per student for a paper (internal marks integration)."""
    return aggregation.get_quiz_marks_for_paper(session, paper_id)
