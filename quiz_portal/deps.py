"""Shared FastAPI dependencies for database access and the server clock."""

from datetime import datetime

from fastapi import Depends
from sqlmodel import Session

from quiz_portal.database import get_session
from quiz_portal.models import Quiz
from quiz_portal.services.quiz_service import get_quiz
from quiz_portal.utils import utcnow


def get_now() -> datetime:
    """Authoritative server time for window checks (naive UTC).

    Overridden in tests to pin the clock.
    """
    return utcnow()


def quiz_or_404(quiz_id: int, session: Session = Depends(get_session)) -> Quiz:
    """Resolve the ``quiz_id`` path parameter; NotFoundError renders as 404."""
    return get_quiz(session, quiz_id)
