"""Pytest configuration and shared fixtures."""

from decimal import Decimal
from unittest.mock import Mock

import pytest

from models.session import Session, UserRole
from models.user import User


@pytest.fixture
def user_session():
    """Session of a regular signed-in user."""
    return Session(user_id="user_123", email="skyler@example.com", role=UserRole.USER)


@pytest.fixture
def admin_session():
    """Session of a signed-in administrator."""
    return Session(user_id="admin_456", email="admin@example.com", role=UserRole.ADMIN)


@pytest.fixture
def sample_user():
    """Create a sample user for testing."""
    return User(
        user_id="user_123",
        email="skyler@example.com",
        name="Skyler",
        role=UserRole.USER,
        created_at="2026-01-20T08:00:00+00:00",
        last_login="2026-01-20T10:00:00+00:00",
        is_active=True,
    )


@pytest.fixture
def sample_feedback_item():
    """A feedback record as returned by DynamoDB."""
    return {
        "feedback_id": "01JA2B3C4D5E6F7G8H9J0KMNPQ",
        "user_id": "user_123",
        "subject": "Great app",
        "message": "Really enjoyed using this service",
        "rating": Decimal("5"),
        "created_at": "2026-01-20T08:00:00+00:00",
    }


@pytest.fixture
def mock_dynamodb_table():
    """Create a mock DynamoDB table for testing."""
    mock_table = Mock()
    mock_table.name = "feedback-hub-test"
    mock_table.put_item.return_value = {}
    mock_table.get_item.return_value = {}
    mock_table.query.return_value = {"Items": []}
    mock_table.scan.return_value = {"Items": []}
    mock_table.delete_item.return_value = {}
    return mock_table
