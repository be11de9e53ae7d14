"""Integration tests for API endpoints."""

import os

import boto3
import pytest
from moto import mock_aws

# Set environment variables before any app imports
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"
os.environ["AWS_DEFAULT_REGION"] = "us-west-2"
os.environ["USERS_TABLE"] = "feedback-hub-users-test"
os.environ["FEEDBACK_TABLE"] = "feedback-hub-feedback-test"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-for-testing"

PASSWORD = "correct-horse-battery"


@pytest.fixture(scope="module")
def aws_mock():
    """Set up AWS mock for the entire module."""
    with mock_aws():
        yield


@pytest.fixture(scope="module")
def dynamodb_tables(aws_mock):
    """Create DynamoDB tables for testing."""
    dynamodb = boto3.resource("dynamodb", region_name="us-west-2")

    users_table = dynamodb.create_table(
        TableName="feedback-hub-users-test",
        KeySchema=[{"AttributeName": "user_id", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "user_id", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )

    feedback_table = dynamodb.create_table(
        TableName="feedback-hub-feedback-test",
        KeySchema=[{"AttributeName": "feedback_id", "KeyType": "HASH"}],
        AttributeDefinitions=[
            {"AttributeName": "feedback_id", "AttributeType": "S"},
            {"AttributeName": "user_id", "AttributeType": "S"},
            {"AttributeName": "created_at", "AttributeType": "S"},
        ],
        GlobalSecondaryIndexes=[
            {
                "IndexName": "UserIdIndex",
                "KeySchema": [
                    {"AttributeName": "user_id", "KeyType": "HASH"},
                    {"AttributeName": "created_at", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            }
        ],
        BillingMode="PAY_PER_REQUEST",
    )

    users_table.wait_until_exists()
    feedback_table.wait_until_exists()

    yield {"users_table": users_table, "feedback_table": feedback_table}


@pytest.fixture(scope="module")
def app_client(dynamodb_tables):
    """Create FastAPI test client after tables are set up."""
    # Import app after mock is active
    from fastapi.testclient import TestClient

    from handlers.api_handler import app, reset_services

    reset_services()
    return TestClient(app)


def _sign_up(client, email, name=None):
    resp = client.post(
        "/api/v1/auth/signup",
        json={"email": email, "password": PASSWORD, "name": name},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def _sign_in(client, email):
    resp = client.post("/api/v1/auth/signin", json={"email": email, "password": PASSWORD})
    assert resp.status_code == 200, resp.text
    return resp.json()


def _bearer(tokens):
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest.fixture(scope="module")
def user_tokens(app_client):
    """Tokens of a regular user."""
    return _sign_up(app_client, "skyler@example.com", name="Skyler")["tokens"]


@pytest.fixture(scope="module")
def admin_tokens(app_client, dynamodb_tables):
    """Tokens of a user promoted to admin before signing in again."""
    from models.session import UserRole
    from services.user_service import UserService

    created = _sign_up(app_client, "admin@example.com", name="Admin")
    UserService(dynamodb_tables["users_table"]).set_role(
        created["user"]["user_id"], UserRole.ADMIN
    )
    signed_in = _sign_in(app_client, "admin@example.com")
    assert signed_in["user"]["is_admin"] is True
    return signed_in["tokens"]


class TestAPIIntegration:
    """Integration tests for the API endpoints."""

    def test_health_check(self, app_client):
        resp = app_client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    def test_duplicate_sign_up_rejected(self, app_client, user_tokens):
        resp = app_client.post(
            "/api/v1/auth/signup",
            json={"email": "Skyler@Example.com", "password": PASSWORD},
        )
        assert resp.status_code == 400

    def test_wrong_password_rejected(self, app_client, user_tokens):
        resp = app_client.post(
            "/api/v1/auth/signin",
            json={"email": "skyler@example.com", "password": "not-the-password"},
        )
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid email or password"

    def test_me_returns_role(self, app_client, user_tokens, admin_tokens):
        user = app_client.get("/api/v1/auth/me", headers=_bearer(user_tokens)).json()
        admin = app_client.get("/api/v1/auth/me", headers=_bearer(admin_tokens)).json()

        assert user["role"] == "user"
        assert admin["role"] == "admin"

    def test_navigation_by_role(self, app_client, user_tokens, admin_tokens):
        anonymous = app_client.get("/api/v1/navigation").json()
        user = app_client.get("/api/v1/navigation", headers=_bearer(user_tokens)).json()
        admin = app_client.get("/api/v1/navigation", headers=_bearer(admin_tokens)).json()

        assert anonymous["role"] == "anonymous"
        assert "Admin" not in [item["label"] for item in user["items"]]
        assert "Admin" in [item["label"] for item in admin["items"]]


class TestFeedbackFlow:
    """Submit, list, review and delete feedback end to end."""

    def test_submit_then_list_newest_first(self, app_client, user_tokens):
        headers = _bearer(user_tokens)
        first = app_client.post(
            "/api/v1/feedback",
            json={"subject": "First note", "message": "The first message I sent", "rating": 3},
            headers=headers,
        )
        assert first.status_code == 201

        resp = app_client.post(
            "/api/v1/feedback",
            json={
                "subject": "Great app",
                "message": "Really enjoyed using this service",
                "rating": 5,
            },
            headers=headers,
        )
        assert resp.status_code == 201
        created = resp.json()

        listing = app_client.get("/api/v1/feedback", headers=headers).json()
        assert listing["feedback"][0]["feedback_id"] == created["feedback_id"]
        assert listing["feedback"][0]["rating"] == 5
        assert all(f["user_id"] == created["user_id"] for f in listing["feedback"])

    def test_invalid_submission_not_stored(self, app_client, user_tokens):
        headers = _bearer(user_tokens)
        before = app_client.get("/api/v1/feedback", headers=headers).json()["count"]

        resp = app_client.post(
            "/api/v1/feedback",
            json={"subject": "Hi", "message": "ok", "rating": 5},
            headers=headers,
        )

        assert resp.status_code == 422
        assert resp.json()["field"] == "subject"
        after = app_client.get("/api/v1/feedback", headers=headers).json()["count"]
        assert after == before

    def test_users_only_see_own_feedback(self, app_client, user_tokens, admin_tokens):
        app_client.post(
            "/api/v1/feedback",
            json={"subject": "From admin", "message": "Admins leave feedback too", "rating": 4},
            headers=_bearer(admin_tokens),
        )

        mine = app_client.get("/api/v1/feedback", headers=_bearer(user_tokens)).json()
        assert "From admin" not in [f["subject"] for f in mine["feedback"]]

    def test_user_denied_admin_list(self, app_client, user_tokens):
        resp = app_client.get("/api/v1/admin/feedback", headers=_bearer(user_tokens))
        assert resp.status_code == 403

    def test_admin_list_includes_submitters(self, app_client, user_tokens, admin_tokens):
        data = app_client.get(
            "/api/v1/admin/feedback", headers=_bearer(admin_tokens)
        ).json()

        assert data["total"] >= 3
        names = {f["submitter"]["name"] for f in data["feedback"]}
        assert "Skyler" in names
        created = [f["created_at"] for f in data["feedback"]]
        assert created == sorted(created, reverse=True)

    def test_admin_rating_filter(self, app_client, admin_tokens):
        data = app_client.get(
            "/api/v1/admin/feedback?rating=3", headers=_bearer(admin_tokens)
        ).json()

        assert data["count"] >= 1
        assert all(f["rating"] == 3 for f in data["feedback"])
        assert data["total"] > data["count"]

    def test_admin_delete_removes_record(self, app_client, user_tokens, admin_tokens):
        resp = app_client.post(
            "/api/v1/feedback",
            json={"subject": "Delete me", "message": "This record will be removed", "rating": 1},
            headers=_bearer(user_tokens),
        )
        feedback_id = resp.json()["feedback_id"]

        denied = app_client.delete(
            f"/api/v1/admin/feedback/{feedback_id}", headers=_bearer(user_tokens)
        )
        assert denied.status_code == 403

        deleted = app_client.delete(
            f"/api/v1/admin/feedback/{feedback_id}", headers=_bearer(admin_tokens)
        )
        assert deleted.status_code == 204

        remaining = app_client.get(
            "/api/v1/admin/feedback", headers=_bearer(admin_tokens)
        ).json()
        assert feedback_id not in [f["feedback_id"] for f in remaining["feedback"]]

        again = app_client.delete(
            f"/api/v1/admin/feedback/{feedback_id}", headers=_bearer(admin_tokens)
        )
        assert again.status_code == 404


class TestSignOut:
    """Signing out revokes outstanding tokens."""

    def test_sign_out_revokes_tokens(self, app_client):
        tokens = _sign_up(app_client, "leaving@example.com")["tokens"]
        headers = _bearer(tokens)
        assert app_client.get("/api/v1/auth/me", headers=headers).status_code == 200

        resp = app_client.post("/api/v1/auth/signout", headers=headers)
        assert resp.status_code == 200

        assert app_client.get("/api/v1/auth/me", headers=headers).status_code == 401
        refresh = app_client.post(
            "/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
        )
        assert refresh.status_code == 401

        # A fresh sign-in works again
        new_tokens = _sign_in(app_client, "leaving@example.com")["tokens"]
        assert app_client.get("/api/v1/auth/me", headers=_bearer(new_tokens)).status_code == 200
