"""User data models."""

from pydantic import BaseModel, ConfigDict, Field

from models.session import UserRole


class User(BaseModel):
    """User account as stored in the users table."""

    user_id: str = Field(..., description="Stable user identifier derived from the email")
    email: str = Field(..., description="Normalized (lower-case) email address")
    name: str | None = Field(None, description="Display name")
    role: UserRole = Field(default=UserRole.USER, description="Account role")
    auth_provider: str = Field(default="password", description="How the account signs in")
    password_hash: str | None = Field(None, description="PBKDF2 password hash")
    token_version: int = Field(
        default=0, description="Bumped on sign-out to revoke outstanding tokens"
    )
    created_at: str = Field(..., description="ISO timestamp when user was created")
    last_login: str | None = Field(None, description="ISO timestamp of last login")
    is_active: bool = Field(default=True, description="Whether user account is active")

    model_config = ConfigDict(use_enum_values=True)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def to_public_dict(self) -> dict:
        """User fields that are safe to return to clients."""
        return {
            "user_id": self.user_id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "is_admin": self.is_admin,
        }
