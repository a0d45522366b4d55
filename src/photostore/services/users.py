"""User account operations: bootstrap, signup, login and deletion."""

from dataclasses import dataclass

from ..error_handling import (
    AdminAlreadyExistsError,
    InvalidCredentialsError,
    MissingFieldError,
    NotFoundError,
)
from ..logging_config import get_logger, log_security_event, log_user_action
from ..models.user import User
from .auth import AuthService
from .metadata import MetadataService

logger = get_logger(__name__)


@dataclass
class LoginResult:
    """Token and identity returned by a successful login."""

    token: str
    username: str
    user_id: str

    def to_dict(self) -> dict[str, str]:
        return {"token": self.token, "username": self.username, "userid": self.user_id}


def _require_fields(**fields: str | None) -> None:
    missing = sorted(name for name, value in fields.items() if not value or not str(value).strip())
    if missing:
        raise MissingFieldError(
            f"Missing required fields: {', '.join(missing)}", details={"missing_fields": missing}
        )


class UserService:
    """User accounts stored in the metadata store."""

    def __init__(self, metadata: MetadataService, auth: AuthService) -> None:
        self.metadata = metadata
        self.auth = auth

    def bootstrap_admin(self, name: str, email: str, username: str, password: str) -> User:
        """
        Create the first user without authentication.

        Only allowed while no user exists. Of concurrent bootstraps exactly one
        succeeds.

        Raises:
            MissingFieldError: If a field is empty
            AdminAlreadyExistsError: If any user already exists
        """
        _require_fields(name=name, email=email, username=username, password=password)

        user = self._new_user(name, email, username, password)
        if not self.metadata.insert_first_user(user):
            raise AdminAlreadyExistsError("Bootstrap refused: users already exist", details={"username": username})
        log_security_event("admin_bootstrapped", user_id=user.id, username=user.username)
        return user

    def create_user(self, token: str | None, name: str, email: str, username: str, password: str) -> User:
        """
        Create a user on behalf of an authenticated caller.

        Raises:
            AuthenticationError: If the token is not valid
            MissingFieldError: If a field is empty
            DuplicateUserError: If the email or username is taken
        """
        creator = self.auth.extract_subject(token)
        _require_fields(name=name, email=email, username=username, password=password)

        user = self._insert(name, email, username, password)
        log_user_action(creator, "user_created_for", new_user_id=user.id, username=user.username)
        return user

    def _new_user(self, name: str, email: str, username: str, password: str) -> User:
        return User.create_new(
            name=name.strip(),
            email=email.strip(),
            username=username.strip(),
            password_hash=self.auth.hash_password(password),
        )

    def _insert(self, name: str, email: str, username: str, password: str) -> User:
        user = self._new_user(name, email, username, password)
        self.metadata.insert_user(user)
        return user

    def login(self, email: str, password: str) -> LoginResult:
        """
        Check credentials and issue a token.

        Raises:
            MissingFieldError: If email or password is empty
            InvalidCredentialsError: If the email is unknown or the password is wrong
        """
        _require_fields(email=email, password=password)

        try:
            user = self.metadata.get_user_by_email(email.strip())
        except NotFoundError as e:
            raise InvalidCredentialsError("Login failed: unknown email", original_exception=e) from e

        if not self.auth.verify_password(password, user.password_hash):
            raise InvalidCredentialsError("Login failed: wrong password", details={"user_id": user.id})

        log_user_action(user.id, "login")
        return LoginResult(token=self.auth.issue_token(user.id), username=user.username, user_id=user.id)

    def delete_user(self, username: str, email: str, password: str) -> None:
        """
        Delete a user when username, email and password all belong to the same account.

        Raises:
            MissingFieldError: If a field is empty
            InvalidCredentialsError: If the three values do not identify one account
        """
        _require_fields(username=username, email=email, password=password)

        try:
            by_username = self.metadata.get_user_by_username(username.strip())
            by_email = self.metadata.get_user_by_email(email.strip())
        except NotFoundError as e:
            raise InvalidCredentialsError("User deletion failed: user not found", original_exception=e) from e

        if by_username.id != by_email.id:
            raise InvalidCredentialsError(
                "User deletion failed: email and username belong to different users",
                details={"username": username},
            )
        if not self.auth.verify_password(password, by_username.password_hash):
            raise InvalidCredentialsError("User deletion failed: wrong password", details={"user_id": by_username.id})

        self.metadata.delete_user_by_username(by_username.username)
        log_security_event("user_deleted", user_id=by_username.id, username=by_username.username)

    def list_users(self) -> list[User]:
        """List all users."""
        return self.metadata.list_users()
