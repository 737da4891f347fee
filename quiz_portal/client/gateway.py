"""Server access for the take-quiz client.

Two implementations of the same two calls: an in-process gateway over a
database session (used by tools and tests), and an HTTP gateway over the
JSON API. Both raise the quiz_portal error taxonomy.
"""

from datetime import datetime
from typing import Callable, Optional, Protocol, Sequence

import httpx
from pydantic import ValidationError as PydanticValidationError
from sqlmodel import Session

from quiz_portal.config import settings
from quiz_portal.exceptions import InternalError, error_from_payload
from quiz_portal.logging_config import get_logger
from quiz_portal.schemas import PreflightResult, SubmitResult
from quiz_portal.services import ledger
from quiz_portal.utils import utcnow

logger = get_logger(__name__)


class QuizGateway(Protocol):
    def preflight(self, quiz_id: int, student_id: int) -> PreflightResult:
        ...

    def submit(
        self,
        quiz_id: int,
        student_id: int,
        answers: Sequence[Optional[int]],
        time_taken_seconds: Optional[int],
        auto_submitted: bool,
    ) -> SubmitResult:
        ...


class LedgerGateway:
    """Calls the service layer directly; ``now`` stands in for the server clock."""

    def __init__(self, session: Session, now: Callable[[], datetime] = utcnow):
        self.session = session
        self.now = now

    def preflight(self, quiz_id: int, student_id: int) -> PreflightResult:
        return ledger.preflight(self.session, quiz_id, student_id, now=self.now())

    def submit(
        self,
        quiz_id: int,
        student_id: int,
        answers: Sequence[Optional[int]],
        time_taken_seconds: Optional[int],
        auto_submitted: bool,
    ) -> SubmitResult:
        return ledger.submit_quiz(
            self.session,
            quiz_id,
            student_id,
            answers,
            time_taken_seconds=time_taken_seconds,
            auto_submitted=auto_submitted,
            now=self.now(),
        )


class HttpQuizGateway:
    """Talks to the quiz API over HTTP with httpx."""

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.Client] = None,
        timeout: Optional[float] = None,
    ):
        self._owns_client = client is None
        self.client = client or httpx.Client(
            base_url=base_url,
            timeout=timeout if timeout is not None else settings.CLIENT_TIMEOUT_SECONDS,
        )

    def __enter__(self) -> "HttpQuizGateway":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def _request(self, method: str, url: str, **kwargs) -> dict:
        try:
            response = self.client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Quiz server request %s %s failed: %s", method, url, exc)
            raise InternalError("Could not reach the quiz server") from exc

        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            raise error_from_payload(response.status_code, payload)

        try:
            return response.json()
        except ValueError as exc:
            logger.warning("Quiz server sent a non-JSON reply to %s %s", method, url)
            raise InternalError("Unexpected response from the quiz server") from exc

    @staticmethod
    def _parse(model, data):
        try:
            return model.model_validate(data)
        except PydanticValidationError as exc:
            logger.warning("Quiz server reply did not match %s: %s", model.__name__, exc)
            raise InternalError("Unexpected response from the quiz server") from exc

    def preflight(self, quiz_id: int, student_id: int) -> PreflightResult:
        data = self._request("GET", f"/quizzes/{quiz_id}/preflight", params={"student_id": student_id})
        return self._parse(PreflightResult, data)

    def submit(
        self,
        quiz_id: int,
        student_id: int,
        answers: Sequence[Optional[int]],
        time_taken_seconds: Optional[int],
        auto_submitted: bool,
    ) -> SubmitResult:
        body = {
            "student_id": student_id,
            "answers": list(answers),
            "time_taken_seconds": time_taken_seconds,
            "auto_submitted": auto_submitted,
        }
        data = self._request("POST", f"/quizzes/{quiz_id}/submit", json=body)
        return self._parse(SubmitResult, data)
