"""FastAPI entrypoint for the college portal quiz engine."""

from datetime import timedelta

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlmodel import Session, select

from quiz_portal import __version__
from quiz_portal.config import settings
from quiz_portal.database import create_db_and_tables, engine
from quiz_portal.exceptions import ConflictError, QuizPortalError, WindowError
from quiz_portal.logging_config import get_logger, setup_logging
from quiz_portal.middleware import RequestLoggingMiddleware
from quiz_portal.models import Paper, Staff, Student
from quiz_portal.routers import quizzes as quizzes_router_module
from quiz_portal.schemas import QuestionIn, QuizIn
from quiz_portal.services.quiz_service import create_quiz
from quiz_portal.utils import utcnow

setup_logging()
logger = get_logger(__name__)

app = FastAPI(title=settings.APP_NAME, version=__version__)

# Friendly names for request fields in validation messages
FIELD_NAME_MAPPING = {
    "paper_id": "Paper",
    "title": "Title",
    "questions": "Questions",
    "question_text": "Question text",
    "options": "Options",
    "correct_answer_index": "Correct answer",
    "marks": "Marks",
    "duration_minutes": "Duration",
    "start_time": "Start time",
    "end_time": "End time",
    "section": "Section",
    "student_id": "Student ID",
    "answers": "Answers",
    "time_taken_seconds": "Time taken",
}


def _field_key(loc) -> str:
    """Turn a pydantic error location into a dotted field key, dropping the 'body' root."""
    parts = [p for p in loc if p not in ("body", "query", "path")]
    key = ""
    for part in parts:
        if isinstance(part, int):
            key += f"[{part}]"
        else:
            key += f".{part}" if key else str(part)
    return key or "request"


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Render request validation failures with field-specific messages."""
    errors_dict = {}
    for error in exc.errors():
        field_path = error.get("loc", [])
        key = _field_key(field_path)
        # Last string element is the field name
        field_name = next((p for p in reversed(field_path) if isinstance(p, str)), key)
        display_name = FIELD_NAME_MAPPING.get(field_name, field_name.replace("_", " ").title())

        if error.get("type", "") == "missing":
            errors_dict[key] = f"{display_name} is required."
        else:
            errors_dict[key] = f"{display_name}: {error.get('msg', 'Invalid input')}"

    message = next(iter(errors_dict.values()), "Invalid request")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"code": "VALIDATION_ERROR", "message": message, "details": {"errors": errors_dict}},
    )


@app.exception_handler(QuizPortalError)
async def quiz_portal_exception_handler(request: Request, exc: QuizPortalError):
    """Render taxonomy errors; window and conflict errors are notices, not failures."""
    if isinstance(exc, (WindowError, ConflictError)):
        logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    elif exc.status_code >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    else:
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": str(exc) if settings.DEBUG else "Internal server error",
            "details": {},
        },
    )


app.add_middleware(RequestLoggingMiddleware)

# Routers
app.include_router(quizzes_router_module.router, prefix="/quizzes", tags=["quizzes"])


@app.get("/health", tags=["health"])
def health_check():
    return {"status": "ok", "version": __version__}


def seed_sample_data(session: Session) -> None:
    """Seed a small department (HOD, teacher, paper, students, one open quiz) into an empty database."""
    if session.exec(select(Paper)).first():
        return

    hod = Staff(name="Dr. Meera Iyer", email="hod.cs@example.com", department="Computer Science", role="hod")
    teacher = Staff(name="Arun Kumar", email="arun.kumar@example.com", department="Computer Science")
    session.add_all([hod, teacher])
    session.commit()
    session.refresh(teacher)

    paper = Paper(
        paper="Data Structures",
        department="Computer Science",
        semester="III",
        year="2",
        sections=["ALPHA", "BETA"],
        teacher_id=teacher.id,
    )
    session.add(paper)
    session.add_all(
        [
            Student(name="Alice Tan", roll_no="CS2001", department="Computer Science", year="2", section="ALPHA"),
            Student(name="Bob Lim", roll_no="CS2002", department="Computer Science", year="2", section="ALPHA"),
            Student(name="Chong Wei", roll_no="CS2003", department="Computer Science", year="2", section="BETA"),
        ]
    )
    session.commit()
    session.refresh(paper)

    now = utcnow()
    quiz = create_quiz(
        session,
        QuizIn(
            paper_id=paper.id,
            title="Stacks and Queues",
            duration_minutes=10,
            start_time=now - timedelta(hours=1),
            end_time=now + timedelta(days=7),
            questions=[
                QuestionIn(
                    question_text="Which structure is last-in, first-out?",
                    options=["Queue", "Stack", "Heap"],
                    correct_answer_index=1,
                ),
                QuestionIn(
                    question_text="Enqueue adds an element at the...",
                    options=["Rear", "Front"],
                    correct_answer_index=0,
                    marks=2,
                ),
            ],
            teacher_id=teacher.id,
        ),
    )
    logger.info("Seeded sample department: paper %s, quiz %s", paper.id, quiz.id)


@app.on_event("startup")
def on_startup():
    """Initialize database schema and optionally seed sample data."""
    create_db_and_tables()
    if settings.SEED_SAMPLE_DATA:
        with Session(engine) as session:
            seed_sample_data(session)
