"""User management service."""

import logging

from botocore.exceptions import ClientError

from models.session import UserRole
from models.user import User
from utils.dynamodb_utils import parse_from_dynamodb, prepare_for_dynamodb, scan_all

logger = logging.getLogger(__name__)

# DynamoDB BatchGetItem accepts at most 100 keys per request
BATCH_GET_LIMIT = 100


class UserService:
    """Service for managing user records and roles."""

    def __init__(self, table):
        """Initialize the service with a DynamoDB table."""
        self.table = table

    def get_user(self, user_id: str) -> User | None:
        """Get user by ID."""
        try:
            response = self.table.get_item(Key={"user_id": user_id})
        except ClientError as e:
            raise Exception(f"Failed to retrieve user {user_id}: {str(e)}") from e

        item = response.get("Item")
        if not item:
            return None
        return User(**parse_from_dynamodb(item))

    def get_users(self, user_ids: list[str]) -> dict[str, User]:
        """Get several users at once.

        Args:
            user_ids: User IDs to load; duplicates are ignored

        Returns:
            Mapping of user ID to User for the IDs that exist
        """
        unique_ids = list(dict.fromkeys(uid for uid in user_ids if uid))
        users: dict[str, User] = {}
        if not unique_ids:
            return users

        client = self.table.meta.client
        try:
            for start in range(0, len(unique_ids), BATCH_GET_LIMIT):
                chunk = unique_ids[start : start + BATCH_GET_LIMIT]
                request = {
                    self.table.name: {
                        "Keys": [{"user_id": uid} for uid in chunk],
                    }
                }
                while request:
                    response = client.batch_get_item(RequestItems=request)
                    for item in response.get("Responses", {}).get(self.table.name, []):
                        user = User(**parse_from_dynamodb(item))
                        users[user.user_id] = user
                    request = response.get("UnprocessedKeys") or None
        except ClientError as e:
            raise Exception(f"Failed to retrieve users: {str(e)}") from e

        return users

    def create_user(self, user: User) -> User:
        """Create a new user record."""
        try:
            self.table.put_item(
                Item=prepare_for_dynamodb(user.model_dump()),
                ConditionExpression="attribute_not_exists(user_id)",
            )
            return user
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise Exception(f"User {user.user_id} already exists")
            raise Exception(f"Failed to create user: {str(e)}") from e

    def update_user(self, user: User) -> User:
        """Update an existing user record."""
        try:
            self.table.put_item(
                Item=prepare_for_dynamodb(user.model_dump()),
                ConditionExpression="attribute_exists(user_id)",
            )
            return user
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise Exception(f"User {user.user_id} does not exist")
            raise Exception(f"Failed to update user: {str(e)}") from e

    def set_role(self, user_id: str, role: UserRole) -> User:
        """Grant or revoke the admin role.

        Existing sessions keep the role they were issued with; the new role
        applies from the next sign-in or token refresh.

        Raises:
            ValueError: If the user doesn't exist or the role isn't assignable
        """
        role = UserRole(role)
        if role == UserRole.ANONYMOUS:
            raise ValueError("The anonymous role cannot be assigned")

        user = self.get_user(user_id)
        if not user:
            raise ValueError(f"User {user_id} not found")

        user.role = role.value
        self.update_user(user)
        logger.info("Set role of %s to %s", user_id, role.value)
        return user

    def find_user_by_email(self, email: str) -> User | None:
        """Look up a user by email address (full scan; admin tooling only)."""
        email = (email or "").strip().lower()
        try:
            items = scan_all(
                self.table,
                FilterExpression="email = :email",
                ExpressionAttributeValues={":email": email},
            )
        except ClientError as e:
            raise Exception(f"Failed to look up user: {str(e)}") from e

        if not items:
            return None
        return User(**items[0])
