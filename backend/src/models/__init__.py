"""Data models for Feedback Hub."""

from .feedback import (
    Feedback,
    FeedbackSubmission,
    FeedbackWithSubmitter,
    SubmitterInfo,
    ValidatedFeedback,
)
from .session import Session, UserRole
from .user import User

__all__ = [
    "Feedback",
    "FeedbackSubmission",
    "FeedbackWithSubmitter",
    "SubmitterInfo",
    "ValidatedFeedback",
    "Session",
    "UserRole",
    "User",
]
