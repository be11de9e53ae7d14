"""Services for the Feedback Hub backend."""

from .auth_service import AuthenticationError, AuthService
from .access_policy import Action, AuthorizationDenied, allow, require
from .feedback_service import FeedbackService, FeedbackStorageError
from .feedback_validator import FeedbackValidationError, validate_feedback
from .user_service import UserService

__all__ = [
    "AuthService",
    "AuthenticationError",
    "Action",
    "AuthorizationDenied",
    "allow",
    "require",
    "FeedbackService",
    "FeedbackStorageError",
    "FeedbackValidationError",
    "validate_feedback",
    "UserService",
]
