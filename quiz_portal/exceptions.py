"""
Error taxonomy for the quiz engine.

Services raise these instead of HTTPException so they can be used outside
a request; the API layer renders them as {"code", "message", "details"}.

Usage:
    from quiz_portal.exceptions import NotFoundError

    quiz = session.get(Quiz, quiz_id)
    if not quiz:
        raise NotFoundError("Quiz not found")
"""

from typing import Any, Dict, Optional


class QuizPortalError(Exception):
    """Base exception for all quiz engine errors"""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(QuizPortalError):
    """Malformed fields, questions or answers"""

    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        super().__init__(message, details={"errors": errors or {}})
        self.errors = errors or {}


class AuthorizationError(QuizPortalError):
    """Requester is not allowed to perform this action"""

    code = "NOT_AUTHORIZED"
    status_code = 403


class NotFoundError(QuizPortalError):
    """Quiz, paper, staff member, student or submission does not exist"""

    code = "NOT_FOUND"
    status_code = 404


class WindowError(QuizPortalError):
    """Submit attempted outside the quiz time window"""

    code = "WINDOW_CLOSED"
    status_code = 400


class ConflictError(QuizPortalError):
    """Duplicate submission when retakes are not allowed"""

    code = "ALREADY_SUBMITTED"
    status_code = 409


class InternalError(QuizPortalError):
    """Persistence or other unexpected failure"""

    code = "INTERNAL_ERROR"
    status_code = 500


_ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (
        ValidationError,
        AuthorizationError,
        NotFoundError,
        WindowError,
        ConflictError,
        InternalError,
    )
}


def error_from_payload(status_code: int, payload: Any) -> QuizPortalError:
    """Rebuild a taxonomy error from an API error response body.

    Falls back to InternalError when the body is not one of ours.
    """
    if not isinstance(payload, dict):
        return InternalError(f"Unexpected response (HTTP {status_code})")

    code = payload.get("code")
    message = payload.get("message") or f"Request failed (HTTP {status_code})"
    details = payload.get("details") or {}

    cls = _ERRORS_BY_CODE.get(code)
    if cls is None:
        return InternalError(message, details=details)
    if cls is ValidationError:
        return ValidationError(message, errors=details.get("errors"))
    return cls(message, details=details)
