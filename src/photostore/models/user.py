"""User account model for photostore."""

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any


@dataclass
class User:
    """A user account. ``password_hash`` is a salted bcrypt hash, never the password."""

    id: str
    name: str
    email: str
    username: str
    password_hash: str
    created_at: datetime

    @classmethod
    def create_new(cls, name: str, email: str, username: str, password_hash: str) -> "User":
        """Create a new User with a generated ID."""
        return cls(
            id=str(uuid.uuid4()),
            name=name,
            email=email,
            username=username,
            password_hash=password_hash,
            created_at=datetime.now(UTC),
        )

    def to_public_dict(self) -> dict[str, Any]:
        """Serialize for clients, without the password hash."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "username": self.username,
            "createdAt": self.created_at.isoformat(),
        }

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "username": self.username,
            "password_hash": self.password_hash,
            "created_at": self.created_at.astimezone(UTC).replace(tzinfo=None),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "User":
        created_at = row["created_at"]
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)

        return cls(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            username=row["username"],
            password_hash=row["password_hash"],
            created_at=created_at,
        )
