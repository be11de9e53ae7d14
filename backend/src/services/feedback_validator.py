"""Validation of user-submitted feedback.

Checks run in a fixed order (subject, message, rating) and stop at the
first violation, so the client always gets a single actionable message.
"""

import re
from typing import Any

from models.feedback import FeedbackSubmission, ValidatedFeedback
from utils.constants import (
    MESSAGE_MAX_LENGTH,
    MESSAGE_MIN_LENGTH,
    RATING_MAX,
    RATING_MIN,
    SUBJECT_MAX_LENGTH,
    SUBJECT_MIN_LENGTH,
)

# ASCII digits only
_INTEGER_PATTERN = re.compile(r"^[+-]?[0-9]+$")


class FeedbackValidationError(ValueError):
    """A feedback field failed validation."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


def _check_text(
    value: Any, field: str, label: str, min_length: int, max_length: int
) -> str:
    """Trim a text field and check its length bounds."""
    if not isinstance(value, str):
        raise FeedbackValidationError(field, f"{label} is required")

    text = value.strip()
    if len(text) < min_length:
        raise FeedbackValidationError(
            field, f"{label} must be at least {min_length} characters"
        )
    if len(text) > max_length:
        raise FeedbackValidationError(field, f"{label} too long")
    return text


def _coerce_rating(value: Any) -> int:
    """Convert a raw rating to int, or raise if it isn't an integer."""
    # bool is a subclass of int but is never a rating
    if isinstance(value, bool):
        raise FeedbackValidationError("rating", "Invalid rating")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and _INTEGER_PATTERN.match(value.strip()):
        try:
            return int(value.strip())
        except ValueError:
            # Past the interpreter's integer string conversion limit
            raise FeedbackValidationError("rating", "Invalid rating")
    raise FeedbackValidationError("rating", "Invalid rating")


def validate_feedback(candidate: FeedbackSubmission | dict[str, Any]) -> ValidatedFeedback:
    """Validate and normalize a feedback submission.

    Args:
        candidate: Raw submission with subject, message and rating

    Returns:
        ValidatedFeedback with trimmed text and an integer rating

    Raises:
        FeedbackValidationError: For the first field that violates its
            constraint, in the order subject, message, rating
    """
    if isinstance(candidate, FeedbackSubmission):
        raw = candidate.model_dump()
    else:
        raw = dict(candidate)

    subject = _check_text(
        raw.get("subject"), "subject", "Subject", SUBJECT_MIN_LENGTH, SUBJECT_MAX_LENGTH
    )
    message = _check_text(
        raw.get("message"), "message", "Message", MESSAGE_MIN_LENGTH, MESSAGE_MAX_LENGTH
    )

    rating = _coerce_rating(raw.get("rating"))
    if rating < RATING_MIN:
        raise FeedbackValidationError("rating", "Please select a rating")
    if rating > RATING_MAX:
        raise FeedbackValidationError("rating", "Invalid rating")

    return ValidatedFeedback(subject=subject, message=message, rating=rating)
