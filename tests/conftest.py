import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, text


def _ensure_app_on_path():
    repo_root = Path(__file__).resolve().parent.parent
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))
    return repo_root


_ensure_app_on_path()

from quiz_portal.models import Paper, Staff, Student  # noqa: E402
from quiz_portal.schemas import QuestionIn, QuizIn  # noqa: E402
from quiz_portal.services.quiz_service import create_quiz  # noqa: E402

# ============================================================================
# IN-MEMORY DATABASE FOR TESTING
# ============================================================================

# StaticPool so every session shares the same in-memory database
test_engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Fixed server clock used by every test
NOW = datetime(2026, 3, 2, 10, 0, 0)


@pytest.fixture(scope="session")
def engine():
    return test_engine


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create all tables in the test database once per session."""
    SQLModel.metadata.create_all(test_engine)
    yield
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(autouse=True)
def cleanup_db_between_tests():
    """Clean up test data after each test."""
    yield

    # FK-safe order
    with Session(test_engine) as session:
        session.exec(text("DELETE FROM quizsubmission"))
        session.exec(text("DELETE FROM quizquestion"))
        session.exec(text("DELETE FROM quiz"))
        session.exec(text("DELETE FROM paper"))
        session.exec(text("DELETE FROM student"))
        session.exec(text("DELETE FROM staff"))
        session.commit()


# ============================================================================
# FASTAPI APP & TEST CLIENT
# ============================================================================

from fastapi.testclient import TestClient  # noqa: E402

from quiz_portal.database import get_session  # noqa: E402
from quiz_portal.deps import get_now  # noqa: E402
from quiz_portal.main import app  # noqa: E402


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def client():
    """Test client bound to the in-memory database and the fixed clock."""

    def override_get_session():
        with Session(test_engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_now] = lambda: NOW

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def session():
    """Provide a database session for tests."""
    with Session(test_engine) as session:
        yield session


# ============================================================================
# ENTITY FIXTURES
# ============================================================================


@pytest.fixture
def teacher():
    """Teacher assigned to the sample paper."""
    with Session(test_engine) as session:
        staff = Staff(name="Arun Kumar", email="arun@example.com", department="Computer Science")
        session.add(staff)
        session.commit()
        session.refresh(staff)
        staff_id = staff.id

    with Session(test_engine) as session:
        return session.get(Staff, staff_id)


@pytest.fixture
def other_teacher():
    with Session(test_engine) as session:
        staff = Staff(name="Divya Rao", email="divya@example.com", department="Computer Science")
        session.add(staff)
        session.commit()
        session.refresh(staff)
        staff_id = staff.id

    with Session(test_engine) as session:
        return session.get(Staff, staff_id)


@pytest.fixture
def hod():
    with Session(test_engine) as session:
        staff = Staff(name="Dr. Meera Iyer", email="hod@example.com", department="Computer Science", role="hod")
        session.add(staff)
        session.commit()
        session.refresh(staff)
        staff_id = staff.id

    with Session(test_engine) as session:
        return session.get(Staff, staff_id)


@pytest.fixture
def paper(teacher):
    """Data Structures paper taught to ALPHA and BETA."""
    with Session(test_engine) as session:
        p = Paper(
            paper="Data Structures",
            department="Computer Science",
            semester="III",
            year="2",
            sections=["ALPHA", "BETA"],
            teacher_id=teacher.id,
        )
        session.add(p)
        session.commit()
        session.refresh(p)
        paper_id = p.id

    with Session(test_engine) as session:
        return session.get(Paper, paper_id)


@pytest.fixture
def second_paper(teacher):
    with Session(test_engine) as session:
        p = Paper(
            paper="Operating Systems",
            department="Computer Science",
            semester="IV",
            year="2",
            sections=["ALPHA"],
            teacher_id=teacher.id,
        )
        session.add(p)
        session.commit()
        session.refresh(p)
        paper_id = p.id

    with Session(test_engine) as session:
        return session.get(Paper, paper_id)


def _add_student(name: str, roll_no: str, section: str) -> Student:
    with Session(test_engine) as session:
        s = Student(name=name, roll_no=roll_no, department="Computer Science", year="2", section=section)
        session.add(s)
        session.commit()
        session.refresh(s)
        student_id = s.id

    with Session(test_engine) as session:
        return session.get(Student, student_id)


@pytest.fixture
def alice():
    return _add_student("Alice Tan", "CS2001", "ALPHA")


@pytest.fixture
def bob():
    return _add_student("Bob Lim", "CS2002", "ALPHA")


@pytest.fixture
def chong():
    return _add_student("Chong Wei", "CS2003", "BETA")


def scenario_questions():
    """Two questions: marks 1 and 2, correct indices 1 and 0."""
    return [
        QuestionIn(question_text="Which structure is last-in, first-out?", options=["Queue", "Stack"], correct_answer_index=1, marks=1),
        QuestionIn(question_text="Enqueue adds at the...", options=["Rear", "Front", "Middle"], correct_answer_index=0, marks=2),
    ]


@pytest.fixture
def quiz_payload(paper, teacher):
    """Factory for valid authoring payloads; keyword overrides replace fields."""

    def _payload(**overrides) -> QuizIn:
        data = dict(
            paper_id=paper.id,
            title="Stacks and Queues",
            description="Week 3 quiz",
            questions=scenario_questions(),
            duration_minutes=10,
            start_time=NOW - timedelta(hours=1),
            end_time=NOW + timedelta(hours=1),
            teacher_id=teacher.id,
        )
        data.update(overrides)
        return QuizIn(**data)

    return _payload


@pytest.fixture
def make_quiz(quiz_payload):
    """Create a quiz through the service and return its id."""

    def _make(**overrides) -> int:
        with Session(test_engine) as session:
            return create_quiz(session, quiz_payload(**overrides)).id

    return _make
