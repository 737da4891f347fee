"""Take-quiz flow as a timer-driven state machine.

A ClientSession has no threads and no rendering: its only inputs are
``tick()`` (called once a second by whatever hosts it) and user actions.
Remaining time is recomputed from an absolute deadline on every tick, so a
suspended host catches up on the next tick instead of drifting.

    QUIZ_LIST -> PREFLIGHT_CHECK -> IN_PROGRESS -> SUBMITTING -> COMPLETED
                       |                 |              |
                       v                 v              v
                   QUIZ_LIST         QUIZ_LIST        ERROR -> SUBMITTING (retry)
                  (rejected)        (abandoned)
"""

import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Set

from quiz_portal.client.gateway import QuizGateway
from quiz_portal.exceptions import ConflictError, InternalError, QuizPortalError
from quiz_portal.logging_config import get_logger
from quiz_portal.schemas import StudentQuestion, StudentQuizView, SubmitResult
from quiz_portal.utils import percentage

logger = get_logger(__name__)


class SessionState(str, Enum):
    QUIZ_LIST = "quiz_list"
    PREFLIGHT_CHECK = "preflight_check"
    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    ERROR = "error"


class SessionStateError(RuntimeError):
    """A user action that is not valid in the session's current state."""


@dataclass
class CompletedResult:
    message: str
    auto_submitted: bool
    already_submitted: bool = False
    # Only filled in when the quiz shows results
    score: Optional[int] = None
    total_marks: Optional[int] = None
    percentage: Optional[float] = None


def format_time(seconds: int) -> str:
    """MM:SS countdown display."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


class ClientSession:
    """One student's attempt at one quiz at a time.

    Args:
        gateway: server access (preflight and submit)
        student_id: the student taking quizzes
        clock: monotonic seconds; defaults to time.monotonic
    """

    def __init__(self, gateway: QuizGateway, student_id: int, clock: Callable[[], float] = time.monotonic):
        self.gateway = gateway
        self.student_id = student_id
        self.clock = clock

        self.state = SessionState.QUIZ_LIST
        self.notice: Optional[str] = None
        self.result: Optional[CompletedResult] = None
        self.last_error: Optional[QuizPortalError] = None
        self._reset()

    def _reset(self) -> None:
        self.quiz: Optional[StudentQuizView] = None
        self.question_index = 0
        self._answers: List[Optional[int]] = []
        self._flagged: Set[int] = set()
        self._started_at: Optional[float] = None
        self._deadline: Optional[float] = None
        self.remaining_seconds = 0
        self._submitting = False
        self._last_auto = False

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def answers(self) -> List[Optional[int]]:
        return list(self._answers)

    @property
    def flagged(self) -> Set[int]:
        return set(self._flagged)

    @property
    def current_question(self) -> Optional[StudentQuestion]:
        if self.quiz is None or not self.quiz.questions:
            return None
        return self.quiz.questions[self.question_index]

    @property
    def unanswered_count(self) -> int:
        return sum(1 for a in self._answers if a is None)

    @property
    def time_display(self) -> str:
        return format_time(self.remaining_seconds)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def begin(self, quiz_id: int) -> SessionState:
        """Run the server preflight check and start the countdown if allowed."""
        if self.state not in (SessionState.QUIZ_LIST, SessionState.COMPLETED):
            raise SessionStateError(f"Cannot start a quiz while {self.state.value}")

        self._reset()
        self.result = None
        self.notice = None
        self.last_error = None
        self.state = SessionState.PREFLIGHT_CHECK

        try:
            check = self.gateway.preflight(quiz_id, self.student_id)
        except QuizPortalError as exc:
            self.last_error = exc
            self.notice = exc.message
            self.state = SessionState.QUIZ_LIST
            return self.state
        except Exception as exc:
            logger.exception("Unexpected error in preflight for quiz %s", quiz_id)
            self.last_error = InternalError(f"Preflight failed: {exc}")
            self.notice = "Could not start the quiz, please try again"
            self.state = SessionState.QUIZ_LIST
            return self.state

        if not check.eligible:
            self.notice = check.reason
            self.state = SessionState.QUIZ_LIST
            return self.state

        self.quiz = check.quiz
        self._answers = [None] * len(check.quiz.questions)
        self._started_at = self.clock()
        # Never count down past the window end reported by the server
        window_left = (check.quiz.end_time - check.server_time).total_seconds()
        self._deadline = self._started_at + min(check.quiz.duration_minutes * 60, max(window_left, 0))
        self.state = SessionState.IN_PROGRESS
        self._refresh_remaining()
        if self.remaining_seconds == 0:
            self._submit(auto=True)
        return self.state

    def tick(self) -> SessionState:
        """Advance the countdown; at zero the buffer is submitted unconditionally."""
        if self.state != SessionState.IN_PROGRESS:
            return self.state

        self._refresh_remaining()
        if self.remaining_seconds == 0:
            logger.info("Time is up for quiz %s, auto-submitting", self.quiz.id)
            self._submit(auto=True)
        return self.state

    def submit(self) -> SessionState:
        """Manual submit, or a retry after a failed submit."""
        if self.state == SessionState.ERROR:
            return self._submit(auto=self._last_auto)
        return self._submit(auto=False)

    def abandon(self) -> SessionState:
        """Leave the quiz without submitting; nothing is recorded on the server."""
        if self.state == SessionState.SUBMITTING:
            raise SessionStateError("Cannot leave while a submission is in flight")
        self._reset()
        self.notice = None
        self.state = SessionState.QUIZ_LIST
        return self.state

    # ------------------------------------------------------------------
    # Answering and navigation
    # ------------------------------------------------------------------

    def _require_in_progress(self) -> None:
        if self.state != SessionState.IN_PROGRESS:
            raise SessionStateError(f"No quiz in progress (state: {self.state.value})")

    def select_answer(self, option_index: int) -> None:
        self._require_in_progress()
        options = self.current_question.options
        if not 0 <= option_index < len(options):
            raise ValueError(f"Option {option_index} out of range [0, {len(options) - 1}]")
        self._answers[self.question_index] = option_index

    def clear_answer(self) -> None:
        self._require_in_progress()
        self._answers[self.question_index] = None

    def go_to(self, index: int) -> None:
        self._require_in_progress()
        if not 0 <= index < len(self.quiz.questions):
            raise ValueError(f"Question {index} out of range [0, {len(self.quiz.questions) - 1}]")
        self.question_index = index

    def next_question(self) -> None:
        self._require_in_progress()
        if self.question_index < len(self.quiz.questions) - 1:
            self.question_index += 1

    def previous_question(self) -> None:
        self._require_in_progress()
        if self.question_index > 0:
            self.question_index -= 1

    def toggle_flag(self) -> bool:
        """Flag or unflag the current question for review; returns the new flag."""
        self._require_in_progress()
        if self.question_index in self._flagged:
            self._flagged.discard(self.question_index)
            return False
        self._flagged.add(self.question_index)
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _refresh_remaining(self) -> None:
        self.remaining_seconds = max(0, math.ceil(self._deadline - self.clock()))

    def _time_taken(self) -> int:
        elapsed = int(round(self.clock() - self._started_at))
        return max(0, min(elapsed, self.quiz.duration_minutes * 60))

    def _submit(self, auto: bool) -> SessionState:
        # First caller wins; the timer and a click landing together submit once
        if self._submitting or self.state not in (SessionState.IN_PROGRESS, SessionState.ERROR):
            return self.state

        self._submitting = True
        self._last_auto = auto
        self.state = SessionState.SUBMITTING
        try:
            result = self.gateway.submit(
                self.quiz.id,
                self.student_id,
                list(self._answers),
                self._time_taken(),
                auto,
            )
        except ConflictError:
            # The server already holds our submission (e.g. an earlier attempt landed)
            self.result = CompletedResult(
                message="You have already submitted this quiz",
                auto_submitted=auto,
                already_submitted=True,
            )
            self.notice = self.result.message
            self.state = SessionState.COMPLETED
        except QuizPortalError as exc:
            # Keep the answers buffer for a retry
            logger.warning("Submit for quiz %s failed: %s", self.quiz.id, exc.message)
            self.last_error = exc
            self.notice = exc.message
            self.state = SessionState.ERROR
        except Exception as exc:
            logger.exception("Unexpected error submitting quiz %s", self.quiz.id)
            self.last_error = InternalError(f"Submission failed: {exc}")
            self.notice = "Could not submit the quiz, please try again"
            self.state = SessionState.ERROR
        else:
            self._complete(result, auto)
        finally:
            self._submitting = False
        return self.state

    def _complete(self, result: SubmitResult, auto: bool) -> None:
        message = "Quiz auto-submitted due to time limit!" if auto else "Quiz submitted successfully!"
        if self.quiz.show_results:
            self.result = CompletedResult(
                message=f"{message} Your score: {result.score}/{result.total_marks}",
                auto_submitted=auto,
                score=result.score,
                total_marks=result.total_marks,
                percentage=percentage(result.score, result.total_marks),
            )
        else:
            self.result = CompletedResult(message=message, auto_submitted=auto)
        self.notice = self.result.message
        self.last_error = None
        self.state = SessionState.COMPLETED
