"""Query/filter layer: turns client filter parameters into photos-table predicates.

Reads only; it never touches the blob store.
"""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any

from ..error_handling import MissingFieldError, ValidationError
from ..models.photo import normalize_tags


@dataclass
class PhotoFilter:
    """
    Filter for listing one owner's photos.

    ``taken_at`` matches an exact capture timestamp, ``taken_on`` a capture
    calendar day (UTC). ``tags`` matches photos carrying any of the tags.
    """

    user_id: str
    taken_at: datetime | None = None
    taken_on: date | None = None
    tags: list[str] = field(default_factory=list)
    is_favorite: bool | None = None

    def to_sql(self) -> tuple[str, list[Any]]:
        """
        Build the WHERE clause and its parameters.

        Returns:
            Tuple of the clause (without the WHERE keyword) and parameter list
        """
        clauses = ["user_id = ?"]
        params: list[Any] = [self.user_id]

        if self.taken_at is not None:
            clauses.append("date_taken = ?")
            params.append(self.taken_at.astimezone(UTC).replace(tzinfo=None))
        if self.taken_on is not None:
            clauses.append("CAST(date_taken AS DATE) = ?")
            params.append(self.taken_on)
        if self.tags:
            clauses.append("list_has_any(tags, CAST(? AS VARCHAR[]))")
            params.append(list(self.tags))
        if self.is_favorite is not None:
            clauses.append("is_favorite = ?")
            params.append(self.is_favorite)

        return " AND ".join(clauses), params


def parse_date_taken(value: str) -> tuple[datetime | None, date | None]:
    """
    Parse the ``dateTaken`` query parameter.

    A bare ``YYYY-MM-DD`` selects a whole day; anything with a time part
    selects that exact instant (naive values are read as UTC).

    Raises:
        ValidationError: If the value is not an ISO 8601 date or datetime
    """
    value = value.strip()
    try:
        if len(value) == 10:
            return None, date.fromisoformat(value)
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValidationError(
            f"Invalid dateTaken value: {value!r}",
            code="invalid_filter",
            user_message="dateTaken must be an ISO 8601 date or datetime.",
            details={"date_taken": value},
        ) from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed, None


def parse_favorite(value: str | bool | None) -> bool | None:
    """Parse ``isFavorite``. Anything other than true/false means no filter."""
    if isinstance(value, bool) or value is None:
        return value
    lowered = value.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return None


def build_filter(
    user_id: str | None,
    date_taken: str | None = None,
    tags: str | list[str] | None = None,
    is_favorite: str | bool | None = None,
) -> PhotoFilter:
    """
    Build a PhotoFilter from raw query parameters.

    Raises:
        MissingFieldError: If no user ID was supplied
        ValidationError: If dateTaken cannot be parsed
    """
    if not user_id:
        raise MissingFieldError("No user ID provided", user_message="Please provide a user ID.")

    taken_at, taken_on = parse_date_taken(date_taken) if date_taken else (None, None)

    return PhotoFilter(
        user_id=user_id,
        taken_at=taken_at,
        taken_on=taken_on,
        tags=normalize_tags(tags),
        is_favorite=parse_favorite(is_favorite),
    )
