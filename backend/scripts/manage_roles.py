#!/usr/bin/env python3
"""
Command-line script for managing administrator roles.

Usage:
    python scripts/manage_roles.py grant <email>
    python scripts/manage_roles.py revoke <email>
    python scripts/manage_roles.py show <email>

Role changes apply from the user's next sign-in or token refresh.
"""

import argparse
import logging
import os
import sys

import boto3
from botocore.exceptions import ClientError

# Add the src directory to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.session import UserRole  # noqa: E402
from services.user_service import UserService  # noqa: E402

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def setup_user_service() -> UserService:
    """Create a UserService bound to the configured users table."""
    region = os.environ.get("AWS_DEFAULT_REGION", "us-west-2")
    table_name = os.environ.get("USERS_TABLE", "feedback-hub-users-dev")
    logger.info("Using DynamoDB table: %s", table_name)

    dynamodb = boto3.resource("dynamodb", region_name=region)
    return UserService(dynamodb.Table(table_name))


def run(command: str, email: str, user_service: UserService) -> int:
    """Execute a role command and return the process exit code."""
    user = user_service.find_user_by_email(email)
    if not user:
        logger.error("No user with email %s", email)
        return 1

    if command == "show":
        print(f"{user.email}: {user.role}")
        return 0

    role = UserRole.ADMIN if command == "grant" else UserRole.USER
    if user.role == role.value:
        logger.info("%s already has role %s", user.email, role.value)
        return 0

    user_service.set_role(user.user_id, role)
    print(f"{user.email}: {role.value}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Manage Feedback Hub admin roles")
    parser.add_argument("command", choices=["grant", "revoke", "show"])
    parser.add_argument("email", help="Email address of the account")
    args = parser.parse_args(argv)

    try:
        return run(args.command, args.email, setup_user_service())
    except ClientError as e:
        logger.error("AWS error: %s", e.response["Error"]["Message"])
        return 1
    except Exception as e:
        logger.error("Failed to %s role: %s", args.command, str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
