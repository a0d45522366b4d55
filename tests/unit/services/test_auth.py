"""
Unit tests for the authentication service.
"""

from datetime import UTC, datetime, timedelta

import jwt
import pytest

from photostore.error_handling import (
    ExpiredTokenError,
    InvalidTokenError,
    MissingFieldError,
    MissingTokenError,
    ValidationError,
)
from photostore.services.auth import AuthService, strip_bearer
from tests.conftest import TEST_SECRET


class TestStripBearer:
    """Test cases for the bearer prefix helper."""

    @pytest.mark.parametrize(
        ("header", "expected"),
        [("Bearer abc", "abc"), ("bearer   abc ", "abc"), ("abc", "abc"), (None, ""), ("  ", "")],
    )
    def test_values(self, header, expected):
        """Test headers with and without the scheme."""
        assert strip_bearer(header) == expected


class TestTokens:
    """Test cases for token issuance and verification."""

    def test_issue_and_verify(self, auth_service):
        """Test that an issued token verifies to its subject."""
        token = auth_service.issue_token("user-a")

        claims = auth_service.verify(token)

        assert claims.subject == "user-a"
        assert claims.expires_at - claims.issued_at == timedelta(hours=1)
        assert auth_service.extract_subject(f"Bearer {token}") == "user-a"

    def test_defaults_from_environment(self):
        """Test that an unconfigured service reads the environment."""
        service = AuthService()

        assert service.algorithm == "HS256"
        assert service.bcrypt_rounds == 4
        assert service.verify(service.issue_token("user-a")).subject == "user-a"

    def test_missing_token(self, auth_service):
        """Test that an absent token is reported as missing."""
        with pytest.raises(MissingTokenError):
            auth_service.verify(None)
        with pytest.raises(MissingTokenError):
            auth_service.verify("Bearer ")

    def test_expired_token(self, auth_service):
        """Test that an expired token is rejected."""
        past = datetime.now(UTC) - timedelta(hours=2)
        token = jwt.encode({"sub": "user-a", "iat": past, "exp": past + timedelta(hours=1)}, TEST_SECRET)

        with pytest.raises(ExpiredTokenError):
            auth_service.verify(token)

    def test_wrong_signature(self, auth_service):
        """Test that a token signed with another key is rejected."""
        now = datetime.now(UTC)
        token = jwt.encode({"sub": "user-a", "iat": now, "exp": now + timedelta(hours=1)}, "other-secret-key")

        with pytest.raises(InvalidTokenError):
            auth_service.verify(token)

    def test_missing_subject(self, auth_service):
        """Test that a token without a subject is rejected."""
        now = datetime.now(UTC)
        token = jwt.encode({"iat": now, "exp": now + timedelta(hours=1)}, TEST_SECRET)

        with pytest.raises(InvalidTokenError):
            auth_service.verify(token)

    def test_garbage_token(self, auth_service):
        """Test that a malformed token is rejected."""
        with pytest.raises(InvalidTokenError):
            auth_service.verify("not.a.token")

    def test_refresh_keeps_subject(self, auth_service, owner_token):
        """Test that refreshing issues a token for the same subject."""
        refreshed = auth_service.refresh(owner_token)

        assert auth_service.extract_subject(refreshed) == "user-a"

    def test_refresh_rejects_invalid_token(self, auth_service):
        """Test that an invalid token cannot be refreshed."""
        with pytest.raises(InvalidTokenError):
            auth_service.refresh("not.a.token")


class TestPasswords:
    """Test cases for password hashing."""

    def test_hash_and_verify(self, auth_service):
        """Test that a hash verifies only the original password."""
        hashed = auth_service.hash_password("correct horse")

        assert hashed != "correct horse"
        assert hashed.startswith("$2b$04$")
        assert auth_service.verify_password("correct horse", hashed) is True
        assert auth_service.verify_password("wrong horse", hashed) is False

    def test_hashes_are_salted(self, auth_service):
        """Test that the same password hashes differently each time."""
        assert auth_service.hash_password("secret") != auth_service.hash_password("secret")

    def test_empty_password(self, auth_service):
        """Test that an empty password cannot be hashed."""
        with pytest.raises(MissingFieldError):
            auth_service.hash_password("")

    def test_password_too_long(self, auth_service):
        """Test that passwords beyond the bcrypt limit are refused."""
        with pytest.raises(ValidationError) as exc_info:
            auth_service.hash_password("x" * 73)

        assert exc_info.value.code == "password_too_long"

    def test_unreadable_hash(self, auth_service):
        """Test that a corrupt stored hash fails verification instead of raising."""
        assert auth_service.verify_password("secret", "not-a-bcrypt-hash") is False
