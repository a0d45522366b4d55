"""
Tests for the user and health endpoints through the FastAPI test client.
"""

import pytest
from fastapi.testclient import TestClient

from photostore.api import create_app

ADMIN = {"name": "Admin", "email": "admin@example.com", "username": "admin", "password": "s3cret-pass"}


@pytest.fixture
def client(store_context):
    with TestClient(create_app(store_context)) as test_client:
        yield test_client


@pytest.fixture
def admin_headers(client):
    assert client.post("/users/bootstrap", json=ADMIN).status_code == 200
    token = client.post("/users/login", json={"email": ADMIN["email"], "password": ADMIN["password"]}).json()["token"]
    return {"Authorization": f"Bearer {token}"}


class TestBootstrapAndLogin:
    """Test cases for bootstrap and login."""

    def test_bootstrap(self, client):
        """Test creating the first user without a token."""
        response = client.post("/users/bootstrap", json=ADMIN)

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "User created successfully"
        assert body["user"]["username"] == "admin"
        assert "password" not in body["user"]

    def test_second_bootstrap(self, client, admin_headers):
        """Test that bootstrap is refused once a user exists."""
        response = client.post("/users/bootstrap", json={**ADMIN, "username": "other", "email": "o@example.com"})

        assert response.status_code == 403
        assert response.json()["error"] == "admin_already_exists"

    def test_bootstrap_missing_fields(self, client):
        """Test that missing fields are reported as such."""
        response = client.post("/users/bootstrap", json={"name": "Admin"})

        assert response.status_code == 400
        assert response.json()["error"] == "missing_field"

    def test_login(self, client, admin_headers, store_context):
        """Test that login returns a token for the user."""
        response = client.post("/users/login", json={"email": ADMIN["email"], "password": ADMIN["password"]})

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Login successful"
        assert body["username"] == "admin"
        assert store_context.auth.extract_subject(body["token"]) == body["userid"]

    def test_login_wrong_password(self, client, admin_headers):
        """Test that wrong credentials answer 401."""
        response = client.post("/users/login", json={"email": ADMIN["email"], "password": "wrong"})

        assert response.status_code == 401
        assert response.json()["error"] == "invalid_credentials"


class TestUserManagement:
    """Test cases for creating, listing and deleting users."""

    def test_create_requires_token(self, client, admin_headers):
        """Test that creating a user needs authentication."""
        response = client.post("/users/create", json={**ADMIN, "username": "grace", "email": "g@example.com"})

        assert response.status_code == 403

    def test_create_without_token_and_body(self, client):
        """Test that a missing token is reported before the missing body."""
        response = client.post("/users/create")

        assert response.status_code == 403
        assert response.json()["error"] == "missing_token"

    def test_public_route_malformed_body(self, client):
        """Test that routes without a token still answer a bad body with 400."""
        response = client.post("/users/login", headers={"Content-Type": "application/json"}, content=b"{not json")

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_request"

    def test_create_and_list(self, client, admin_headers):
        """Test creating a user and listing all users."""
        response = client.post(
            "/users/create",
            headers=admin_headers,
            json={"name": "Grace", "email": "grace@example.com", "username": "grace", "password": "hopper"},
        )
        assert response.status_code == 200

        listed = client.get("/users", headers=admin_headers).json()["users"]
        assert {user["username"] for user in listed} == {"admin", "grace"}

    def test_create_duplicate(self, client, admin_headers):
        """Test that a taken username answers 409."""
        response = client.post("/users/create", headers=admin_headers, json={**ADMIN, "email": "x@example.com"})

        assert response.status_code == 409
        assert response.json()["error"] == "duplicate_user"

    def test_delete(self, client, admin_headers, store_context):
        """Test deleting a user with matching credentials."""
        response = client.request(
            "DELETE",
            "/users/delete",
            json={"usernameToDelete": "admin", "email": ADMIN["email"], "password": ADMIN["password"]},
        )

        assert response.status_code == 200
        assert response.json() == {"message": "User deleted successfully"}
        assert store_context.metadata.count_users() == 0

    def test_delete_wrong_password(self, client, admin_headers, store_context):
        """Test that deletion with a wrong password answers 401."""
        response = client.request(
            "DELETE",
            "/users/delete",
            json={"usernameToDelete": "admin", "email": ADMIN["email"], "password": "wrong"},
        )

        assert response.status_code == 401
        assert store_context.metadata.count_users() == 1


class TestHealth:
    """Test cases for GET /health."""

    def test_healthy(self, client):
        """Test that working stores report healthy."""
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "healthy"
        assert body["checks"]["storage"]["bucket"] == "test-photos-bucket"

    def test_unreachable_bucket(self, client, bucket):
        """Test that an unreachable bucket answers 503."""
        bucket.reachable = False

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["unhealthy_services"] == ["storage"]
