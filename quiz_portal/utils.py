"""Utility functions for sanitization, validation and timestamps."""

from datetime import datetime, timezone

import bleach


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def sanitize_question_text(text: str) -> str:
    """Sanitize question or option text to prevent XSS attacks.

    Allows basic formatting tags but removes script/dangerous content.
    """
    allowed_tags = ['b', 'i', 'u', 'em', 'strong', 'p', 'br', 'code', 'pre', 'sub', 'sup']
    allowed_attributes = {}

    sanitized = bleach.clean(text or "", tags=allowed_tags, attributes=allowed_attributes, strip=True)
    return sanitized.strip()


def sanitize_plain_text(text: str) -> str:
    """Strip all HTML, used for titles and descriptions."""
    sanitized = bleach.clean(text or "", tags=[], strip=True)
    return sanitized.strip()


def validate_marks(marks: int, max_marks: int) -> bool:
    """Validate that awarded marks are within [0, max_marks].

    Raises:
        ValueError: If marks exceed valid range
    """
    if isinstance(marks, bool) or not isinstance(marks, int):
        raise ValueError(f"Marks {marks!r} must be a whole number")
    if marks < 0 or marks > max_marks:
        raise ValueError(f"Marks {marks} out of range [0, {max_marks}]")

    return True


def percentage(score: int, total: int) -> float:
    """Score as a percentage of total, rounded to two places."""
    if total <= 0:
        return 0.0
    return round(score / total * 100, 2)
