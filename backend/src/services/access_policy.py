"""Role-based access policy for feedback actions."""

from enum import Enum

from models.session import Session, UserRole
from services.auth_service import AuthenticationError


class Action(str, Enum):
    """Actions a caller can attempt on feedback."""

    SUBMIT = "submit"
    VIEW_OWN = "view-own"
    VIEW_ALL = "view-all"
    DELETE = "delete"


class AuthorizationDenied(Exception):
    """The caller's role does not permit the requested action."""

    def __init__(self, action: Action, message: str = "Access denied. Admin privileges required."):
        super().__init__(message)
        self.action = action


# Roles allowed to perform each action. Anonymous callers appear nowhere.
_PERMISSIONS: dict[Action, frozenset[UserRole]] = {
    Action.SUBMIT: frozenset({UserRole.USER, UserRole.ADMIN}),
    Action.VIEW_OWN: frozenset({UserRole.USER, UserRole.ADMIN}),
    Action.VIEW_ALL: frozenset({UserRole.ADMIN}),
    Action.DELETE: frozenset({UserRole.ADMIN}),
}


def role_of(session: Session | None) -> UserRole:
    """Map a possibly-absent session onto its role."""
    if session is None:
        return UserRole.ANONYMOUS
    return UserRole(session.role)


def allow(
    session: Session | None, action: Action, resource_owner: str | None = None
) -> bool:
    """Decide whether a session may perform an action.

    ``resource_owner`` is accepted for the view-own case but does not
    change the decision: the caller scopes its query to the session's own
    user ID.
    """
    return role_of(session) in _PERMISSIONS[Action(action)]


def require(session: Session | None, action: Action) -> Session:
    """Return the session if the action is allowed, otherwise raise.

    Raises:
        AuthenticationError: If there is no session
        AuthorizationDenied: If the session's role is insufficient
    """
    if session is None:
        raise AuthenticationError("Sign in required")
    if not allow(session, action):
        raise AuthorizationDenied(Action(action))
    return session
