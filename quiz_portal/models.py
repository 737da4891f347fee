"""SQLModel models for the quiz engine.

Staff, Student and Paper mirror records owned by the wider college portal;
the quiz engine only reads them for authorization and section checks.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from quiz_portal.utils import utcnow


class Section(str, Enum):
    ALPHA = "ALPHA"
    BETA = "BETA"
    GAMMA = "GAMMA"
    DELTA = "DELTA"
    SIGMA = "SIGMA"
    OMEGA = "OMEGA"
    ZETA = "ZETA"
    EPSILON = "EPSILON"


class QuestionKind(str, Enum):
    """Question-type tag. Grading dispatches on this value."""

    SINGLE_CHOICE = "single_choice"


# ===================== PORTAL RECORDS (read-only here) =====================


class Staff(SQLModel, table=True):
    """Teaching staff member; HODs may author quizzes for any paper in their department."""

    __table_args__ = (UniqueConstraint("email", name="uq_staff_email"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str
    department: str
    role: str = Field(default="teacher")  # "teacher", "hod"


class Student(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("roll_no", name="uq_student_roll_no"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    roll_no: str
    email: Optional[str] = None
    department: Optional[str] = None
    year: Optional[str] = None
    section: Optional[str] = None  # one of Section


class Paper(SQLModel, table=True):
    """An individual paper (subject) of a course, taught to one or more sections."""

    id: Optional[int] = Field(default=None, primary_key=True)
    paper: str
    department: str
    semester: str  # I..VIII
    year: str
    sections: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    teacher_id: Optional[int] = Field(default=None, foreign_key="staff.id")


# ===================== QUIZ MODELS =====================


class Quiz(SQLModel, table=True):
    """A time-bounded multiple-choice assessment for a paper."""

    id: Optional[int] = Field(default=None, primary_key=True)
    paper_id: int = Field(foreign_key="paper.id", index=True)
    title: str
    description: Optional[str] = None
    # None means every section of the paper
    section: Optional[str] = None
    duration_minutes: int
    start_time: datetime
    end_time: datetime
    allow_retake: bool = Field(default=False)
    show_results: bool = Field(default=True)
    show_correct_answers: bool = Field(default=True)
    # Always the sum of the current question marks; recomputed on create/update
    total_marks: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class QuizQuestion(SQLModel, table=True):
    """A single-correct-index question, ordered by position within its quiz."""

    id: Optional[int] = Field(default=None, primary_key=True)
    quiz_id: int = Field(foreign_key="quiz.id", index=True)
    position: int
    kind: str = Field(default=QuestionKind.SINGLE_CHOICE.value)
    question_text: str
    options: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    correct_answer_index: int
    marks: int = Field(default=1)


class QuizSubmission(SQLModel, table=True):
    """The latest recorded attempt of a student for a quiz.

    The unique constraint is the write-time guard behind the
    one-submission-per-student rule.
    """

    __table_args__ = (
        UniqueConstraint("quiz_id", "student_id", name="uq_quiz_student_submission"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    quiz_id: int = Field(foreign_key="quiz.id", index=True)
    student_id: int = Field(foreign_key="student.id")
    # Selected option index per question; None means unanswered
    answers: List[Optional[int]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    score: int = Field(default=0)
    # Quiz total at the time of submission; later question edits do not touch it
    total_marks: int = Field(default=0)
    submitted_at: datetime = Field(default_factory=utcnow)
    time_taken_seconds: Optional[int] = None
    attempt_number: int = Field(default=1)
    auto_submitted: bool = Field(default=False)
