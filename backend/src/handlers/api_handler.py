"""Main FastAPI application handler for Lambda deployment."""

import logging
import os
import time
from datetime import UTC, datetime

import boto3
from botocore.exceptions import ClientError
from fastapi import Depends, FastAPI, HTTPException, Query, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from mangum import Mangum
from pydantic import BaseModel, Field

from models.feedback import FeedbackSubmission
from models.session import Session
from services.access_policy import Action, AuthorizationDenied, require
from services.auth_service import AuthenticationError, AuthService
from services.feedback_service import (
    FeedbackService,
    FeedbackStorageError,
    filter_by_rating,
    parse_rating_filter,
)
from services.feedback_validator import FeedbackValidationError, validate_feedback
from services.navigation import build_navigation
from services.user_service import UserService
from utils.constants import RATING_FILTER_ALL

logger = logging.getLogger(__name__)
logging.getLogger().setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())

# Per-user data must never be cached by intermediaries
CACHE_CONTROL_PRIVATE = "private, no-store"

# Initialize FastAPI app
app = FastAPI(
    title="Feedback Hub API",
    description="API for collecting and reviewing star-rated user feedback",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request, call_next):
    """Log all API requests with timing for CloudWatch monitoring."""
    start = time.time()
    response = await call_next(request)
    duration_ms = (time.time() - start) * 1000

    path = request.url.path
    if duration_ms > 1000:
        logger.warning(
            "[SLOW] %s %s %.0fms status=%d",
            request.method,
            path,
            duration_ms,
            response.status_code,
        )
    elif response.status_code >= 500:
        logger.error(
            "[ERROR] %s %s %.0fms status=%d",
            request.method,
            path,
            duration_ms,
            response.status_code,
        )
    elif response.status_code >= 400:
        logger.info(
            "[CLIENT_ERROR] %s %s %.0fms status=%d",
            request.method,
            path,
            duration_ms,
            response.status_code,
        )

    return response


# Lazy-initialized AWS clients and services
# Required for Lambda SnapStart - connections must be re-established after restore
_dynamodb = None
_users_table = None
_feedback_table = None
_auth_service = None
_user_service = None
_feedback_service = None

# Security scheme for bearer token authentication
security = HTTPBearer(auto_error=False)


def reset_services():
    """Reset all lazy-initialized services. Useful for testing.

    Also resets boto3's default session so that subsequent calls to
    boto3.resource() create fresh sessions within the current mock context
    (e.g., moto's mock_aws).
    """
    global _dynamodb, _users_table, _feedback_table
    global _auth_service, _user_service, _feedback_service
    _dynamodb = None
    _users_table = None
    _feedback_table = None
    _auth_service = None
    _user_service = None
    _feedback_service = None
    boto3.DEFAULT_SESSION = None


def get_dynamodb():
    """Get or create DynamoDB resource (lazy init for SnapStart)."""
    global _dynamodb
    if _dynamodb is None:
        region = os.environ.get("AWS_DEFAULT_REGION", "us-west-2")
        _dynamodb = boto3.resource("dynamodb", region_name=region)
    return _dynamodb


def get_users_table():
    """Get or create users table (lazy init for SnapStart)."""
    global _users_table
    if _users_table is None:
        _users_table = get_dynamodb().Table(
            os.environ.get("USERS_TABLE", "feedback-hub-users-dev")
        )
    return _users_table


def get_feedback_table():
    """Get or create feedback table (lazy init for SnapStart)."""
    global _feedback_table
    if _feedback_table is None:
        _feedback_table = get_dynamodb().Table(
            os.environ.get("FEEDBACK_TABLE", "feedback-hub-feedback-dev")
        )
    return _feedback_table


def get_auth_service():
    """Get or create AuthService (lazy init for SnapStart)."""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService(
            user_table=get_users_table(),
            jwt_secret=os.environ.get("JWT_SECRET_KEY"),
        )
    return _auth_service


def get_user_service():
    """Get or create UserService (lazy init for SnapStart)."""
    global _user_service
    if _user_service is None:
        _user_service = UserService(get_users_table())
    return _user_service


def get_feedback_service():
    """Get or create FeedbackService (lazy init for SnapStart)."""
    global _feedback_service
    if _feedback_service is None:
        _feedback_service = FeedbackService(
            table=get_feedback_table(),
            user_service=get_user_service(),
        )
    return _feedback_service


# MARK: - Authentication Dependency


async def get_current_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),  # noqa: B008
) -> Session:
    """Resolve the bearer token into the caller's session.

    Raises:
        HTTPException: If token is missing, invalid or revoked
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return get_auth_service().current_session(credentials.credentials)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_optional_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),  # noqa: B008
) -> Session | None:
    """Resolve the bearer token if present (optional auth).

    Returns None if no token is provided or the token is not valid.
    """
    if not credentials:
        return None

    try:
        return get_auth_service().current_session(credentials.credentials)
    except AuthenticationError:
        return None


# MARK: - Health Check


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "version": "1.0.0",
    }


# MARK: - Landing / Navigation


@app.get("/api/v1/navigation")
async def get_navigation(
    response: Response, session: Session | None = Depends(get_optional_session)
):
    """Landing page call-to-action and nav bar items for the caller."""
    response.headers["Cache-Control"] = CACHE_CONTROL_PRIVATE
    return build_navigation(session)


# MARK: - Authentication Endpoints


class SignUpRequest(BaseModel):
    """Request body for creating an account."""

    email: str = Field(..., max_length=254, description="Email address")
    password: str = Field(..., max_length=256, description="Password")
    name: str | None = Field(None, max_length=100, description="Display name")


class SignInRequest(BaseModel):
    """Request body for email/password sign in."""

    email: str = Field(..., max_length=254, description="Email address")
    password: str = Field(..., max_length=256, description="Password")


class RefreshTokenRequest(BaseModel):
    """Request body for token refresh."""

    refresh_token: str = Field(..., description="Refresh token")


@app.post("/api/v1/auth/signup", status_code=status.HTTP_201_CREATED)
async def sign_up(request: SignUpRequest):
    """Create an account and return session tokens."""
    auth_service = get_auth_service()
    try:
        user = auth_service.sign_up(
            email=request.email, password=request.password, name=request.name
        )
        tokens = auth_service.create_session_tokens(user)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except Exception as e:
        logger.error("Sign up error: %s", e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Sign up failed",
        )

    return {
        "user": user.to_dict(),
        "tokens": tokens,
        "is_new_user": user.is_new_user,
    }


@app.post("/api/v1/auth/signin")
async def sign_in(request: SignInRequest):
    """Authenticate with email and password."""
    auth_service = get_auth_service()
    try:
        user = auth_service.sign_in(email=request.email, password=request.password)
        tokens = auth_service.create_session_tokens(user)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        )
    except Exception as e:
        logger.error("Sign in error: %s", e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Authentication failed",
        )

    return {
        "user": user.to_dict(),
        "tokens": tokens,
        "is_new_user": user.is_new_user,
    }


@app.post("/api/v1/auth/refresh")
async def refresh_token(request: RefreshTokenRequest):
    """Refresh access token using refresh token."""
    try:
        tokens = get_auth_service().refresh_tokens(request.refresh_token)
        return {"tokens": tokens}

    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        )


@app.post("/api/v1/auth/signout")
async def sign_out(session: Session = Depends(get_current_session)):
    """Sign out, revoking every token issued to the caller."""
    try:
        get_auth_service().sign_out(session.user_id)
    except AuthenticationError as e:
        logger.error("Sign out error for %s: %s", session.user_id, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to sign out",
        )
    return {"message": "Signed out"}


@app.get("/api/v1/auth/me")
async def get_current_user(
    response: Response, session: Session = Depends(get_current_session)
):
    """Get the authenticated user's profile.

    Role and admin flag come from the session, which keeps the role it
    was issued with until the next sign-in or refresh.
    """
    try:
        user = get_user_service().get_user(session.user_id)
    except Exception as e:
        logger.error("Failed to load profile for %s: %s", session.user_id, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load profile",
        )
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
            headers={"WWW-Authenticate": "Bearer"},
        )

    response.headers["Cache-Control"] = CACHE_CONTROL_PRIVATE
    return {
        **user.to_public_dict(),
        "role": session.role.value,
        "is_admin": session.is_admin,
    }


# MARK: - Feedback Endpoints (dashboard)


@app.post("/api/v1/feedback", status_code=status.HTTP_201_CREATED)
async def submit_feedback(
    submission: FeedbackSubmission,
    session: Session = Depends(get_current_session),
):
    """Validate and store feedback for the authenticated user."""
    require(session, Action.SUBMIT)
    validated = validate_feedback(submission)

    try:
        feedback = get_feedback_service().insert(session.user_id, validated)
    except FeedbackStorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to submit feedback",
        )

    return feedback.model_dump()


@app.get("/api/v1/feedback")
async def get_my_feedback(
    response: Response,
    session: Session = Depends(get_current_session),
):
    """Get the authenticated user's feedback history, newest first."""
    require(session, Action.VIEW_OWN)

    try:
        feedback = get_feedback_service().list_by_owner(session.user_id)
    except FeedbackStorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load feedback",
        )

    response.headers["Cache-Control"] = CACHE_CONTROL_PRIVATE
    return {
        "feedback": [f.model_dump() for f in feedback],
        "count": len(feedback),
    }


# MARK: - Admin Endpoints


@app.get("/api/v1/admin/feedback")
async def get_all_feedback(
    response: Response,
    session: Session = Depends(get_current_session),
    rating: str = Query("all", description="Exact rating to show: 'all' or 1-5"),
):
    """Get all feedback with submitter info, optionally filtered by rating."""
    require(session, Action.VIEW_ALL)

    try:
        rating_value = parse_rating_filter(rating)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    try:
        feedback = get_feedback_service().list_all()
    except FeedbackStorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load feedback",
        )

    filtered = filter_by_rating(feedback, rating)

    response.headers["Cache-Control"] = CACHE_CONTROL_PRIVATE
    return {
        "feedback": [f.model_dump() for f in filtered],
        "count": len(filtered),
        "total": len(feedback),
        "rating_filter": (
            RATING_FILTER_ALL if rating_value is None else str(rating_value)
        ),
    }


@app.delete(
    "/api/v1/admin/feedback/{feedback_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_feedback(
    feedback_id: str,
    session: Session = Depends(get_current_session),
):
    """Delete a feedback record (admins only)."""
    require(session, Action.DELETE)

    try:
        deleted = get_feedback_service().delete_by_id(feedback_id, session)
    except FeedbackStorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete feedback",
        )

    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Feedback {feedback_id} not found",
        )
    return None


# MARK: - Error Handlers


@app.exception_handler(FeedbackValidationError)
async def feedback_validation_error_handler(request, exc: FeedbackValidationError):
    """Report the first invalid feedback field."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.message, "field": exc.field},
    )


@app.exception_handler(AuthorizationDenied)
async def authorization_denied_handler(request, exc: AuthorizationDenied):
    """Handle actions the caller's role does not permit."""
    logger.info("Denied %s on %s", exc.action.value, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN, content={"detail": str(exc)}
    )


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request, exc: AuthenticationError):
    """Handle a missing or invalid session."""
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": str(exc)},
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(ClientError)
async def aws_client_error_handler(request, exc: ClientError):
    """Handle AWS client errors."""
    error_code = exc.response["Error"]["Code"]
    logger.error(
        "AWS error on %s: %s %s",
        request.url.path,
        error_code,
        exc.response["Error"]["Message"],
    )

    if error_code == "ResourceNotFoundException":
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": "Resource not found"},
        )
    else:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Storage error"},
        )


@app.exception_handler(ValueError)
async def value_error_handler(request, exc: ValueError):
    """Handle value errors."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)}
    )


# MARK: - Lambda Handler

# Create the Lambda handler
api_handler = Mangum(app, lifespan="off")


# For local development
if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
