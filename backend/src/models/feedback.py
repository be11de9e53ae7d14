"""Feedback data models."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from utils.constants import (
    MESSAGE_MAX_LENGTH,
    MESSAGE_MIN_LENGTH,
    RATING_MAX,
    RATING_MIN,
    SUBJECT_MAX_LENGTH,
    SUBJECT_MIN_LENGTH,
)


class FeedbackSubmission(BaseModel):
    """Raw feedback form as sent by the client.

    Fields are deliberately loose; the feedback validator decides which
    constraint fails first.
    """

    subject: Any = None
    message: Any = None
    rating: Any = None


class ValidatedFeedback(BaseModel):
    """Normalized submission that satisfies every field constraint."""

    subject: str = Field(..., min_length=SUBJECT_MIN_LENGTH, max_length=SUBJECT_MAX_LENGTH)
    message: str = Field(..., min_length=MESSAGE_MIN_LENGTH, max_length=MESSAGE_MAX_LENGTH)
    rating: int = Field(..., ge=RATING_MIN, le=RATING_MAX)


class Feedback(BaseModel):
    """Stored feedback record."""

    feedback_id: str
    user_id: str = Field(..., min_length=1)
    subject: str
    message: str
    rating: int = Field(ge=RATING_MIN, le=RATING_MAX)
    created_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())


class SubmitterInfo(BaseModel):
    """Display info of the user who submitted a feedback record."""

    name: str | None = None
    email: str | None = None


class FeedbackWithSubmitter(Feedback):
    """Feedback record joined with its submitter, as shown to admins."""

    submitter: SubmitterInfo = Field(default_factory=SubmitterInfo)
