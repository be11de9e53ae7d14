"""Service for storing and querying user feedback."""

import logging
from datetime import UTC, datetime

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from ulid import ULID

from models.feedback import (
    Feedback,
    FeedbackWithSubmitter,
    SubmitterInfo,
    ValidatedFeedback,
)
from models.session import Session
from services.access_policy import Action, require
from utils.constants import RATING_FILTER_ALL, RATING_MAX, RATING_MIN
from utils.dynamodb_utils import prepare_for_dynamodb, query_all, scan_all

logger = logging.getLogger(__name__)

# GSI on the feedback table: hash user_id, range created_at
USER_ID_INDEX = "UserIdIndex"

# Accepted rating filter strings, besides "all"
_RATING_FILTER_VALUES = {str(r): r for r in range(RATING_MIN, RATING_MAX + 1)}


class FeedbackStorageError(Exception):
    """A feedback table operation failed."""

    pass


def _newest_first(items: list[Feedback]) -> list[Feedback]:
    # ULIDs are time-ordered, so the ID breaks created_at ties deterministically
    return sorted(items, key=lambda f: (f.created_at, f.feedback_id), reverse=True)


def parse_rating_filter(rating_filter: str | int | None) -> int | None:
    """Parse the admin rating filter.

    Returns:
        The rating to match, or None for "all"

    Raises:
        ValueError: If the filter is neither "all" nor a rating in range
    """
    if rating_filter is None:
        return None
    value = str(rating_filter).strip().lower()
    if value in ("", RATING_FILTER_ALL):
        return None
    if value not in _RATING_FILTER_VALUES:
        raise ValueError(
            f"Invalid rating filter. Must be '{RATING_FILTER_ALL}' "
            f"or {RATING_MIN}-{RATING_MAX}"
        )
    return _RATING_FILTER_VALUES[value]


def filter_by_rating(items: list[Feedback], rating_filter: str | int | None):
    """Keep only items whose rating exactly matches the filter."""
    rating = parse_rating_filter(rating_filter)
    if rating is None:
        return list(items)
    return [item for item in items if item.rating == rating]


class FeedbackService:
    """Repository for feedback records."""

    def __init__(self, table, user_service=None):
        """Initialize the feedback service.

        Args:
            table: DynamoDB table for feedback
            user_service: Optional UserService used to join submitter info
        """
        self.table = table
        self.user_service = user_service

    def insert(self, owner: str, feedback: ValidatedFeedback) -> Feedback:
        """Store a validated submission for its owner.

        Args:
            owner: User ID of the submitting session
            feedback: Output of the feedback validator

        Returns:
            The stored Feedback record

        Raises:
            ValueError: If owner is empty
            FeedbackStorageError: On database errors
        """
        if not owner:
            raise ValueError("Feedback owner is required")

        record = Feedback(
            feedback_id=str(ULID()),
            user_id=owner,
            subject=feedback.subject,
            message=feedback.message,
            rating=feedback.rating,
            created_at=datetime.now(UTC).isoformat(),
        )

        try:
            self.table.put_item(
                Item=prepare_for_dynamodb(record.model_dump()),
                ConditionExpression="attribute_not_exists(feedback_id)",
            )
        except ClientError as e:
            logger.error("Failed to store feedback for %s: %s", owner, e)
            raise FeedbackStorageError(f"Failed to submit feedback: {e}") from e

        logger.info("Stored feedback %s (rating %d)", record.feedback_id, record.rating)
        return record

    def list_by_owner(self, owner: str) -> list[Feedback]:
        """Get a user's own feedback, newest first.

        Raises:
            FeedbackStorageError: On database errors
        """
        try:
            items = query_all(
                self.table,
                IndexName=USER_ID_INDEX,
                KeyConditionExpression=Key("user_id").eq(owner),
                ScanIndexForward=False,
            )
        except ClientError as e:
            logger.error("Failed to list feedback for %s: %s", owner, e)
            raise FeedbackStorageError(f"Failed to load feedback: {e}") from e

        return _newest_first([Feedback(**item) for item in items])

    def list_all(self) -> list[FeedbackWithSubmitter]:
        """Get every feedback record joined with submitter info, newest first.

        Records whose submitter no longer exists are kept with empty
        submitter info.

        Raises:
            FeedbackStorageError: On database errors
        """
        try:
            items = scan_all(self.table)
        except ClientError as e:
            logger.error("Failed to list all feedback: %s", e)
            raise FeedbackStorageError(f"Failed to load feedback: {e}") from e

        records = _newest_first([Feedback(**item) for item in items])
        submitters = self._load_submitters([r.user_id for r in records])

        return [
            FeedbackWithSubmitter(
                **record.model_dump(),
                submitter=submitters.get(record.user_id, SubmitterInfo()),
            )
            for record in records
        ]

    def delete_by_id(self, feedback_id: str, session: Session | None) -> bool:
        """Delete a feedback record.

        The admin role is checked here as well as at the endpoint, so the
        storage boundary never deletes on behalf of a non-admin.

        Returns:
            True if deleted, False if not found

        Raises:
            AuthorizationDenied: If the session is not an admin
            FeedbackStorageError: On database errors
        """
        require(session, Action.DELETE)

        try:
            self.table.delete_item(
                Key={"feedback_id": feedback_id},
                ConditionExpression="attribute_exists(feedback_id)",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return False
            logger.error("Failed to delete feedback %s: %s", feedback_id, e)
            raise FeedbackStorageError(f"Failed to delete feedback: {e}") from e

        logger.info("Feedback %s deleted by %s", feedback_id, session.user_id)
        return True

    def _load_submitters(self, user_ids: list[str]) -> dict[str, SubmitterInfo]:
        """Look up display info for the given users."""
        if not self.user_service or not user_ids:
            return {}

        try:
            users = self.user_service.get_users(user_ids)
        except Exception as e:
            # The list is still useful without names
            logger.warning("Failed to load submitter info: %s", e)
            return {}

        return {
            user_id: SubmitterInfo(name=user.name, email=user.email)
            for user_id, user in users.items()
        }
