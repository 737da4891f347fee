"""Request/response schemas shared by the services, the API and the client."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from quiz_portal.models import QuestionKind, Section
from quiz_portal.utils import to_naive_utc


# --- Authoring ---


class QuestionIn(BaseModel):
    question_text: str
    options: List[str]
    correct_answer_index: int
    marks: int = 1
    kind: str = QuestionKind.SINGLE_CHOICE.value


class QuizIn(BaseModel):
    """Create/update payload. Field rules beyond types are checked by the service."""

    paper_id: int
    title: str
    description: Optional[str] = None
    section: Optional[Section] = None
    questions: List[QuestionIn] = Field(default_factory=list)
    duration_minutes: int
    start_time: datetime
    end_time: datetime
    allow_retake: bool = False
    show_results: bool = True
    show_correct_answers: bool = True
    # Creator identity from the auth collaborator; must be the paper's teacher
    teacher_id: Optional[int] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _naive_utc(cls, v: datetime) -> datetime:
        return to_naive_utc(v)


# --- Taking ---


class SubmitIn(BaseModel):
    student_id: int
    answers: List[Optional[int]]
    time_taken_seconds: Optional[int] = Field(default=None, ge=0)
    auto_submitted: bool = False


class MarksUpdateIn(BaseModel):
    student_id: int
    marks: int


class SubmitResult(BaseModel):
    score: int
    total_marks: int
    attempt_number: int
    submitted_at: datetime
    auto_submitted: bool


class StudentQuestion(BaseModel):
    """A question as shown to a student taking the quiz (no answer key)."""

    index: int
    question_text: str
    options: List[str]
    marks: int
    kind: str


class StudentQuizView(BaseModel):
    id: int
    paper_id: int
    title: str
    description: Optional[str] = None
    section: Optional[str] = None
    duration_minutes: int
    start_time: datetime
    end_time: datetime
    allow_retake: bool
    show_results: bool
    show_correct_answers: bool
    total_marks: int
    questions: List[StudentQuestion]


class PreflightResult(BaseModel):
    eligible: bool
    reason: Optional[str] = None
    server_time: datetime
    quiz: StudentQuizView


# --- Review ---


class ReviewOption(BaseModel):
    index: int
    text: str
    is_correct: bool
    is_selected: bool


class ReviewItem(BaseModel):
    index: int
    question_text: str
    marks: int
    selected_index: Optional[int] = None
    is_correct: bool
    options: List[ReviewOption]


class QuizReview(BaseModel):
    quiz_id: int
    student_id: int
    title: str
    score: int
    total_marks: int
    percentage: float
    submitted_at: datetime
    time_taken_seconds: Optional[int] = None
    auto_submitted: bool
    items: List[ReviewItem]


# --- Reporting / aggregation ---


class SubmissionRow(BaseModel):
    student_id: int
    roll_no: Optional[str] = None
    name: Optional[str] = None
    section: Optional[str] = None
    score: int
    total_marks: int
    submitted_at: datetime
    time_taken_seconds: Optional[int] = None
    attempt_number: int
    auto_submitted: bool


class AggregationDiagnostic(BaseModel):
    paper_id: Optional[int] = None
    quiz_id: Optional[int] = None
    student_id: Optional[int] = None
    reason: str


class PaperMarksReport(BaseModel):
    paper_id: int
    marks: Dict[int, int]
    diagnostics: List[AggregationDiagnostic] = Field(default_factory=list)


class DepartmentMarksReport(BaseModel):
    department: str
    papers: Dict[int, Dict[int, int]]
    diagnostics: List[AggregationDiagnostic] = Field(default_factory=list)
