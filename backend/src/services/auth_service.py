"""Authentication service for email/password accounts and JWT sessions."""

import hashlib
import hmac
import logging
import os
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from botocore.exceptions import ClientError
from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError

from models.session import Session, UserRole
from models.user import User
from utils.constants import PASSWORD_MIN_LENGTH
from utils.dynamodb_utils import parse_from_dynamodb, prepare_for_dynamodb

logger = logging.getLogger(__name__)


class AuthProvider(str, Enum):
    """Supported authentication providers."""

    PASSWORD = "password"


@dataclass
class AuthenticatedUser:
    """Authenticated user data."""

    user_id: str
    email: str
    name: str | None
    role: UserRole
    token_version: int = 0
    is_new_user: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "email": self.email,
            "name": self.name,
            "role": self.role.value,
            "is_admin": self.is_admin,
            "is_new_user": self.is_new_user,
        }


class AuthenticationError(Exception):
    """Authentication error."""

    pass


class AuthService:
    """Service for handling sign-up, sign-in and session tokens."""

    # JWT settings
    JWT_ALGORITHM = "HS256"
    JWT_EXPIRATION_HOURS = 1
    JWT_REFRESH_EXPIRATION_DAYS = 30

    # Password hashing
    PASSWORD_HASH_ALGORITHM = "sha256"
    PASSWORD_HASH_ITERATIONS = 260_000

    # Same message for every credential failure so accounts can't be probed
    INVALID_CREDENTIALS = "Invalid email or password"

    def __init__(self, user_table, jwt_secret: str | None = None):
        """Initialize auth service.

        Args:
            user_table: DynamoDB table for users
            jwt_secret: Secret for signing JWTs
        """
        self.user_table = user_table
        self.jwt_secret = jwt_secret or os.environ.get(
            "JWT_SECRET_KEY", "dev-secret-change-in-prod"
        )

    # ============================================
    # Email / Password
    # ============================================

    def sign_up(
        self, email: str, password: str, name: str | None = None
    ) -> AuthenticatedUser:
        """Create a new account.

        Args:
            email: Email address (normalized to lower case)
            password: Plain-text password
            name: Optional display name

        Returns:
            AuthenticatedUser for the new account

        Raises:
            AuthenticationError: If the email is taken or the input is invalid
        """
        email = self._normalize_email(email)
        if not email or "@" not in email:
            raise AuthenticationError("A valid email address is required")
        if len(password or "") < PASSWORD_MIN_LENGTH:
            raise AuthenticationError(
                f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
            )

        user_id = self._generate_user_id(email, AuthProvider.PASSWORD)
        if self._get_user(user_id) is not None:
            raise AuthenticationError("An account with this email already exists")

        user = self._create_user(
            user_id=user_id,
            email=email,
            name=(name or "").strip() or email.split("@")[0],
            password_hash=self._hash_password(password),
        )
        logger.info("Created account %s", user_id)

        return AuthenticatedUser(
            user_id=user.user_id,
            email=user.email,
            name=user.name,
            role=UserRole(user.role),
            token_version=user.token_version,
            is_new_user=True,
        )

    def sign_in(self, email: str, password: str) -> AuthenticatedUser:
        """Verify credentials and record the login.

        Raises:
            AuthenticationError: If the credentials don't match an active user
        """
        email = self._normalize_email(email)
        user_id = self._generate_user_id(email, AuthProvider.PASSWORD)

        user = self._get_user(user_id)
        if (
            user is None
            or not user.is_active
            or not user.password_hash
            or not self._verify_password(password or "", user.password_hash)
        ):
            raise AuthenticationError(self.INVALID_CREDENTIALS)

        user = self._update_user_login(user)

        return AuthenticatedUser(
            user_id=user.user_id,
            email=user.email,
            name=user.name,
            role=UserRole(user.role),
            token_version=user.token_version,
            is_new_user=False,
        )

    def sign_out(self, user_id: str) -> None:
        """End every session of a user by bumping the token version."""
        user = self._get_user(user_id)
        if user is None:
            return

        user.token_version += 1
        self._put_user(user, "Failed to sign out")
        logger.info("Revoked sessions for %s", user_id)

    # ============================================
    # JWT Session Management
    # ============================================

    def create_session_tokens(self, user: AuthenticatedUser) -> dict[str, Any]:
        """Create access and refresh tokens for a user.

        Args:
            user: Authenticated user

        Returns:
            Dict with access_token and refresh_token
        """
        now = datetime.now(UTC)
        claims = {
            "sub": user.user_id,
            "email": user.email,
            "role": user.role.value,
            "ver": user.token_version,
            "iat": now,
        }

        access_token = jwt.encode(
            {
                **claims,
                "type": "access",
                "exp": now + timedelta(hours=self.JWT_EXPIRATION_HOURS),
            },
            self.jwt_secret,
            algorithm=self.JWT_ALGORITHM,
        )
        refresh_token = jwt.encode(
            {
                **claims,
                "type": "refresh",
                "exp": now + timedelta(days=self.JWT_REFRESH_EXPIRATION_DAYS),
            },
            self.jwt_secret,
            algorithm=self.JWT_ALGORITHM,
        )

        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "Bearer",
            "expires_in": self.JWT_EXPIRATION_HOURS * 3600,
        }

    def verify_access_token(self, token: str) -> Session:
        """Verify an access token's signature, expiry and type.

        This does not touch the users table; use ``current_session`` to
        also reject revoked sessions.

        Returns:
            Session built from the token claims

        Raises:
            AuthenticationError: If token is invalid
        """
        payload = self._decode(token, expected_type="access")
        try:
            role = UserRole(payload.get("role", UserRole.USER.value))
        except ValueError:
            raise AuthenticationError("Invalid role in token")
        if role == UserRole.ANONYMOUS:
            raise AuthenticationError("Invalid role in token")

        return Session(user_id=payload["sub"], email=payload.get("email"), role=role)

    def current_session(self, token: str) -> Session:
        """Resolve a bearer token into the caller's session.

        Raises:
            AuthenticationError: If the token is invalid, expired or revoked
        """
        session = self.verify_access_token(token)
        payload = jwt.get_unverified_claims(token)

        user = self._get_user(session.user_id)
        if not user or not user.is_active:
            raise AuthenticationError("User not found or inactive")
        if payload.get("ver", 0) != user.token_version:
            raise AuthenticationError("Session has been signed out")

        return session

    def refresh_tokens(self, refresh_token: str) -> dict[str, Any]:
        """Refresh access and refresh tokens.

        The user record is re-read, so role changes take effect here.

        Raises:
            AuthenticationError: If refresh token is invalid
        """
        payload = self._decode(refresh_token, expected_type="refresh")

        user = self._get_user(payload["sub"])
        if not user or not user.is_active:
            raise AuthenticationError("User not found or inactive")
        if payload.get("ver", 0) != user.token_version:
            raise AuthenticationError("Session has been signed out")

        return self.create_session_tokens(
            AuthenticatedUser(
                user_id=user.user_id,
                email=user.email,
                name=user.name,
                role=UserRole(user.role),
                token_version=user.token_version,
            )
        )

    def _decode(self, token: str, expected_type: str) -> dict[str, Any]:
        """Decode a session JWT and check its type and subject."""
        try:
            payload = jwt.decode(
                token,
                self.jwt_secret,
                algorithms=[self.JWT_ALGORITHM],
                options={"verify_exp": True},
            )
        except ExpiredSignatureError:
            label = "Refresh token" if expected_type == "refresh" else "Token"
            raise AuthenticationError(f"{label} has expired")
        except JWTError as e:
            label = "refresh token" if expected_type == "refresh" else "token"
            raise AuthenticationError(f"Invalid {label}: {str(e)}")

        if payload.get("type") != expected_type:
            raise AuthenticationError("Invalid token type")
        if not payload.get("sub"):
            raise AuthenticationError("Missing user ID in token")

        return payload

    # ============================================
    # Passwords
    # ============================================

    def _hash_password(self, password: str) -> str:
        """Hash a password as ``pbkdf2_sha256$iterations$salt$hash``."""
        salt = secrets.token_hex(16)
        digest = hashlib.pbkdf2_hmac(
            self.PASSWORD_HASH_ALGORITHM,
            password.encode(),
            bytes.fromhex(salt),
            self.PASSWORD_HASH_ITERATIONS,
        )
        return f"pbkdf2_{self.PASSWORD_HASH_ALGORITHM}${self.PASSWORD_HASH_ITERATIONS}${salt}${digest.hex()}"

    def _verify_password(self, password: str, encoded: str) -> bool:
        try:
            scheme, iterations, salt, expected = encoded.split("$")
            algorithm = scheme.removeprefix("pbkdf2_")
            digest = hashlib.pbkdf2_hmac(
                algorithm, password.encode(), bytes.fromhex(salt), int(iterations)
            )
        except ValueError:
            logger.warning("Malformed password hash encountered")
            return False
        return hmac.compare_digest(digest.hex(), expected)

    # ============================================
    # User Management
    # ============================================

    @staticmethod
    def _normalize_email(email: str | None) -> str:
        return (email or "").strip().lower()

    def _generate_user_id(self, external_id: str, provider: AuthProvider) -> str:
        """Generate internal user ID from external ID.

        Creates a stable, unique ID based on provider and external ID.
        """
        combined = f"{provider.value}:{external_id}"
        return hashlib.sha256(combined.encode()).hexdigest()[:32]

    def _get_user(self, user_id: str) -> User | None:
        """Get user by ID."""
        try:
            response = self.user_table.get_item(Key={"user_id": user_id})
        except ClientError as e:
            logger.error("Failed to load user %s: %s", user_id, e)
            raise AuthenticationError("Authentication service unavailable") from e

        item = response.get("Item")
        if not item:
            return None
        return User(**parse_from_dynamodb(item))

    def _create_user(
        self, user_id: str, email: str, name: str | None, password_hash: str
    ) -> User:
        """Create a new user."""
        now = datetime.now(UTC).isoformat()
        user = User(
            user_id=user_id,
            email=email,
            name=name,
            role=UserRole.USER,
            auth_provider=AuthProvider.PASSWORD.value,
            password_hash=password_hash,
            token_version=0,
            created_at=now,
            last_login=now,
            is_active=True,
        )

        try:
            self.user_table.put_item(
                Item=prepare_for_dynamodb(user.model_dump()),
                ConditionExpression="attribute_not_exists(user_id)",
            )
            return user
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise AuthenticationError("An account with this email already exists")
            raise AuthenticationError(f"Failed to create user: {str(e)}") from e

    def _update_user_login(self, user: User) -> User:
        """Update user on login."""
        user.last_login = datetime.now(UTC).isoformat()
        return self._put_user(user, "Failed to update user")

    def _put_user(self, user: User, error_message: str) -> User:
        try:
            self.user_table.put_item(Item=prepare_for_dynamodb(user.model_dump()))
            return user
        except ClientError as e:
            raise AuthenticationError(f"{error_message}: {str(e)}") from e
