"""Session and role models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class UserRole(str, Enum):
    """Closed set of roles a caller can hold."""

    ANONYMOUS = "anonymous"  # No session
    USER = "user"
    ADMIN = "admin"


class Session(BaseModel):
    """Authenticated identity of the current caller.

    The role is fixed for the lifetime of the session. An absent session
    (``None``) is the anonymous state.
    """

    user_id: str = Field(..., min_length=1, description="Authenticated user ID")
    email: str | None = Field(None, description="User email address")
    role: UserRole = Field(default=UserRole.USER, description="Role granted at sign-in")

    model_config = ConfigDict(frozen=True)

    @property
    def is_admin(self) -> bool:
        """Whether this session carries the admin role."""
        return self.role == UserRole.ADMIN
