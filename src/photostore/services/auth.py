"""Authentication service for photostore.

Issues and verifies signed bearer tokens (PyJWT) and hashes passwords
(bcrypt). The token subject is the user ID; it is the only identity the
coordinator trusts.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import jwt

from ..config import get_bcrypt_rounds, get_jwt_algorithm, get_jwt_secret, get_token_ttl_seconds
from ..error_handling import (
    ExpiredTokenError,
    InvalidTokenError,
    MissingFieldError,
    MissingTokenError,
    ValidationError,
)
from ..logging_config import get_logger, log_security_event

logger = get_logger(__name__)

BEARER_PREFIX = "bearer "

# bcrypt only reads the first 72 bytes and newer releases reject longer input
MAX_PASSWORD_BYTES = 72


@dataclass
class TokenClaims:
    """Verified token contents."""

    subject: str
    issued_at: datetime
    expires_at: datetime


def strip_bearer(token: str | None) -> str:
    """Remove an optional ``Bearer`` scheme prefix and surrounding whitespace."""
    value = (token or "").strip()
    if value.lower().startswith(BEARER_PREFIX):
        value = value[len(BEARER_PREFIX) :].strip()
    return value


class AuthService:
    """Token issuance, token verification and password hashing."""

    def __init__(
        self,
        secret: str | None = None,
        algorithm: str | None = None,
        token_ttl_seconds: int | None = None,
        bcrypt_rounds: int | None = None,
    ) -> None:
        """
        Initialize the auth service.

        Args:
            secret: Signing key (defaults to JWT_SECRET_KEY)
            algorithm: JWT algorithm (defaults to JWT_ALGORITHM)
            token_ttl_seconds: Token lifetime (defaults to TOKEN_TTL_SECONDS)
            bcrypt_rounds: bcrypt cost factor (defaults to BCRYPT_ROUNDS)
        """
        self._secret = secret or get_jwt_secret()
        self.algorithm = algorithm or get_jwt_algorithm()
        self.token_ttl = timedelta(seconds=token_ttl_seconds or get_token_ttl_seconds())
        self.bcrypt_rounds = bcrypt_rounds or get_bcrypt_rounds()

    def issue_token(self, user_id: str) -> str:
        """
        Issue a signed token whose subject is the user ID.

        Args:
            user_id: Subject of the token

        Returns:
            Encoded token
        """
        now = datetime.now(UTC)
        payload = {"sub": user_id, "iat": now, "exp": now + self.token_ttl}
        token: str = jwt.encode(payload, self._secret, algorithm=self.algorithm)
        logger.debug("token_issued", user_id=user_id, expires_at=payload["exp"].isoformat())
        return token

    def verify(self, token: str | None) -> TokenClaims:
        """
        Verify a token's signature and expiry.

        Args:
            token: Encoded token, optionally prefixed with ``Bearer``

        Returns:
            TokenClaims of the verified token

        Raises:
            MissingTokenError: If no token was supplied
            ExpiredTokenError: If the token has expired
            InvalidTokenError: If the token is malformed, tampered with or has no subject
        """
        raw = strip_bearer(token)
        if not raw:
            raise MissingTokenError("No token provided", user_message="No token provided.")

        try:
            payload: dict[str, Any] = jwt.decode(
                raw,
                self._secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise ExpiredTokenError("Token has expired", original_exception=e) from e
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(f"Token verification failed: {e}", original_exception=e) from e

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise InvalidTokenError("Token has no subject")

        return TokenClaims(
            subject=subject,
            issued_at=datetime.fromtimestamp(payload["iat"], UTC),
            expires_at=datetime.fromtimestamp(payload["exp"], UTC),
        )

    def extract_subject(self, token: str | None) -> str:
        """Verify a token and return its subject (the user ID)."""
        return self.verify(token).subject

    def refresh(self, token: str | None) -> str:
        """Verify a token and issue a fresh one for the same subject."""
        return self.issue_token(self.extract_subject(token))

    def hash_password(self, password: str) -> str:
        """
        Hash a password with a per-password salt.

        Raises:
            ValidationError: If the password is empty or longer than bcrypt accepts
        """
        encoded = password.encode("utf-8")
        if not encoded:
            raise MissingFieldError("Empty password", user_message="Please provide a password.")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValidationError(
                "Password exceeds bcrypt input limit",
                code="password_too_long",
                user_message=f"Passwords may be at most {MAX_PASSWORD_BYTES} bytes.",
            )
        hashed = bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.bcrypt_rounds))
        return hashed.decode("utf-8")

    def verify_password(self, password: str, hashed: str) -> bool:
        """
        Check a password against a stored hash.

        Returns:
            True if the password matches; False for a mismatch or an unreadable hash
        """
        try:
            matched = bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            log_security_event("unreadable_password_hash")
            return False
        return bool(matched)
