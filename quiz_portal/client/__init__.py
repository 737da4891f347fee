"""Take-quiz client: the countdown state machine and its server gateways."""

from quiz_portal.client.gateway import HttpQuizGateway, LedgerGateway, QuizGateway
from quiz_portal.client.session import ClientSession, CompletedResult, SessionState, SessionStateError, format_time

__all__ = [
    "ClientSession",
    "CompletedResult",
    "HttpQuizGateway",
    "LedgerGateway",
    "QuizGateway",
    "SessionState",
    "SessionStateError",
    "format_time",
]
