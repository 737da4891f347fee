"""Deterministic scoring of quiz answers.

Grading is a pure function of the question list and the answers buffer.
Questions are dispatched on their ``kind`` tag so new question types can
register a marker without changing how existing quizzes are scored.
"""

from typing import Callable, Dict, List, Optional, Protocol, Sequence

from quiz_portal.exceptions import ValidationError
from quiz_portal.models import QuestionKind

Answer = Optional[int]


class GradableQuestion(Protocol):
    kind: str
    correct_answer_index: int
    marks: int


def _is_option_index(answer: object) -> bool:
    # bool is a subclass of int; True must never count as option 1
    return isinstance(answer, int) and not isinstance(answer, bool)


def _mark_single_choice(question: GradableQuestion, answer: Answer) -> int:
    if _is_option_index(answer) and answer == question.correct_answer_index:
        return question.marks
    return 0


_MARKERS: Dict[str, Callable[[GradableQuestion, Answer], int]] = {
    QuestionKind.SINGLE_CHOICE.value: _mark_single_choice,
}


def register_marker(kind: str, marker: Callable[[GradableQuestion, Answer], int]) -> None:
    """Register the marking function for a question kind."""
    _MARKERS[kind] = marker


def _kind_of(question: GradableQuestion) -> str:
    kind = getattr(question, "kind", QuestionKind.SINGLE_CHOICE.value)
    # Accept both the enum member and its stored string value
    return kind.value if isinstance(kind, QuestionKind) else kind


def _marker_for(question: GradableQuestion) -> Callable[[GradableQuestion, Answer], int]:
    kind = _kind_of(question)
    marker = _MARKERS.get(kind)
    if marker is None:
        raise ValidationError(f"Unsupported question kind: {kind}", errors={"kind": f"Unknown kind '{kind}'"})
    return marker


def total_marks(questions: Sequence[GradableQuestion]) -> int:
    """Sum of question marks."""
    return sum(q.marks for q in questions)


def grade_breakdown(questions: Sequence[GradableQuestion], answers: Sequence[Answer]) -> List[int]:
    """Marks awarded per question.

    Answers shorter than the question list are padded as unanswered;
    entries beyond the last question are ignored.
    """
    awarded = []
    for i, question in enumerate(questions):
        answer = answers[i] if i < len(answers) else None
        awarded.append(_marker_for(question)(question, answer))
    return awarded


def grade(questions: Sequence[GradableQuestion], answers: Sequence[Answer]) -> int:
    """Score for an answers buffer, always within [0, total_marks(questions)]."""
    return sum(grade_breakdown(questions, answers))


def count_correct(questions: Sequence[GradableQuestion], answers: Sequence[Answer]) -> int:
    """Number of questions answered correctly."""
    return sum(1 for awarded in grade_breakdown(questions, answers) if awarded > 0)
