"""
Metadata store: photo records and user accounts in DuckDB.

Every public method is a single statement against the shared DuckDB
database, so each one is atomic on its own. Nothing here spans more than one
statement; multi-step consistency with the blob store is the coordinator's
job.

Usage:
    service = MetadataService(create_database("data/photostore.duckdb"))
    photo_id = service.insert_photo(record)
    record = service.get_photo_by_id(photo_id)
"""

import json
import threading
from typing import Any

import duckdb

from ..error_handling import (
    DatabaseError,
    DuplicateUserError,
    NotFoundError,
    RecordDeleteError,
    RecordUpdateError,
    RecordWriteError,
)
from ..logging_config import get_logger, log_user_action
from ..models.database import DatabaseManager
from ..models.photo import PhotoRecord, normalize_tags
from ..models.schema import PHOTO_COLUMNS, USER_COLUMNS
from ..models.user import User
from .query import PhotoFilter

logger = get_logger(__name__)

PHOTO_SELECT = f"SELECT {', '.join(PHOTO_COLUMNS)} FROM photos"
USER_SELECT = f"SELECT {', '.join(USER_COLUMNS)} FROM users"

# Fields the coordinator may change after a record is created
MUTABLE_PHOTO_FIELDS = {"filename", "tags", "description", "is_favorite"}


def _placeholder(column: str) -> str:
    # An empty Python list has no element type; pin it to the column type
    return "CAST(? AS VARCHAR[])" if column == "tags" else "?"


def _photo_from_row(row: dict[str, Any]) -> PhotoRecord:
    raw = row.get("full_metadata")
    row["full_metadata"] = json.loads(raw) if raw else {}
    return PhotoRecord.from_row(row)


class MetadataService:
    """
    Photo and user records in DuckDB.

    Lookups that find nothing raise NotFoundError; callers never receive a
    None they could mistake for a record.
    """

    def __init__(self, db_manager: DatabaseManager):
        """
        Args:
            db_manager: Shared database manager with an initialized schema
        """
        self.db_manager = db_manager
        self._first_user_lock = threading.Lock()

    # Photos

    def insert_photo(self, record: PhotoRecord) -> str:
        """
        Insert a new photo record.

        Args:
            record: Record to persist

        Returns:
            The record ID

        Raises:
            RecordWriteError: If the record is invalid or the insert fails
        """
        if not record.validate():
            raise RecordWriteError(
                "Invalid photo record",
                details={"photo_id": record.id, "blob_id": record.blob_id, "filename": record.filename},
            )

        row = record.to_row()
        row["full_metadata"] = json.dumps(row["full_metadata"], default=str)
        placeholders = ", ".join(_placeholder(column) for column in PHOTO_COLUMNS)

        try:
            self.db_manager.execute_query(
                f"INSERT INTO photos ({', '.join(PHOTO_COLUMNS)}) VALUES ({placeholders})",
                [row[column] for column in PHOTO_COLUMNS],
            )
        except duckdb.Error as e:
            raise RecordWriteError(
                f"Failed to insert photo record: {e}",
                details={"photo_id": record.id, "blob_id": record.blob_id},
                original_exception=e,
            ) from e

        log_user_action(record.user_id, "photo_record_inserted", photo_id=record.id, blob_id=record.blob_id)
        return record.id

    def get_photo_by_id(self, photo_id: str) -> PhotoRecord:
        """
        Get a photo record by ID.

        Raises:
            NotFoundError: If no record has this ID
            DatabaseError: If the lookup fails
        """
        rows = self._fetch_photos(f"{PHOTO_SELECT} WHERE id = ?", [photo_id], operation="get_photo_by_id")
        if not rows:
            raise NotFoundError(
                f"Photo not found: {photo_id}", user_message="Photo not found.", details={"photo_id": photo_id}
            )
        return rows[0]

    def get_photo_by_blob_id(self, blob_id: str) -> PhotoRecord:
        """
        Get the photo record referencing a blob.

        Raises:
            NotFoundError: If no record references this blob
            DatabaseError: If the lookup fails
        """
        rows = self._fetch_photos(f"{PHOTO_SELECT} WHERE blob_id = ?", [blob_id], operation="get_photo_by_blob_id")
        if not rows:
            raise NotFoundError(
                f"No photo references blob: {blob_id}", user_message="Photo not found.", details={"blob_id": blob_id}
            )
        return rows[0]

    def find_photos(self, photo_filter: PhotoFilter) -> list[PhotoRecord]:
        """
        List an owner's photos matching a filter, newest capture first.

        Raises:
            DatabaseError: If the query fails
        """
        where, params = photo_filter.to_sql()
        photos = self._fetch_photos(
            f"{PHOTO_SELECT} WHERE {where} ORDER BY COALESCE(date_taken, uploaded_at) DESC, id",
            params,
            operation="find_photos",
        )
        logger.info("photos_found", user_id=photo_filter.user_id, photos_count=len(photos))
        return photos

    def count_photos(self, user_id: str) -> int:
        """Count an owner's photos."""
        try:
            result = self.db_manager.execute_query("SELECT COUNT(*) FROM photos WHERE user_id = ?", [user_id])
        except duckdb.Error as e:
            raise DatabaseError(f"Failed to count photos: {e}", original_exception=e) from e
        return int(result[0][0]) if result else 0

    def update_photo_fields(self, photo_id: str, fields: dict[str, Any]) -> None:
        """
        Update mutable fields of one record in a single statement.

        Args:
            photo_id: Record to update
            fields: Column name to new value; only filename, tags, description
                and is_favorite may be changed

        Raises:
            ValueError: If a field is not mutable
            NotFoundError: If the record does not exist
            RecordUpdateError: If the update fails
        """
        if not fields:
            return
        unknown = set(fields) - MUTABLE_PHOTO_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")

        values = dict(fields)
        if "tags" in values:
            values["tags"] = normalize_tags(values["tags"])

        assignments = ", ".join(f"{column} = {_placeholder(column)}" for column in values)
        try:
            result = self.db_manager.execute_query(
                f"UPDATE photos SET {assignments} WHERE id = ? RETURNING id",
                [*values.values(), photo_id],
            )
        except duckdb.Error as e:
            raise RecordUpdateError(
                f"Failed to update photo {photo_id}: {e}",
                details={"photo_id": photo_id, "fields": sorted(values)},
                original_exception=e,
            ) from e

        if not result:
            raise NotFoundError(
                f"Photo not found: {photo_id}", user_message="Photo not found.", details={"photo_id": photo_id}
            )
        logger.info("photo_record_updated", photo_id=photo_id, fields=sorted(values))

    def toggle_favorite(self, photo_id: str) -> bool:
        """
        Flip the favorite flag in one statement and return the new value.

        Raises:
            NotFoundError: If the record does not exist
            RecordUpdateError: If the update fails
        """
        try:
            result = self.db_manager.execute_query(
                "UPDATE photos SET is_favorite = NOT is_favorite WHERE id = ? RETURNING is_favorite", [photo_id]
            )
        except duckdb.Error as e:
            raise RecordUpdateError(
                f"Failed to toggle favorite for {photo_id}: {e}",
                details={"photo_id": photo_id, "fields": ["is_favorite"]},
                original_exception=e,
            ) from e

        if not result:
            raise NotFoundError(
                f"Photo not found: {photo_id}", user_message="Photo not found.", details={"photo_id": photo_id}
            )
        return bool(result[0][0])

    def delete_photo(self, photo_id: str) -> None:
        """
        Delete a photo record.

        Raises:
            NotFoundError: If the record does not exist
            RecordDeleteError: If the delete fails
        """
        try:
            result = self.db_manager.execute_query("DELETE FROM photos WHERE id = ? RETURNING id", [photo_id])
        except duckdb.Error as e:
            raise RecordDeleteError(
                f"Failed to delete photo record {photo_id}: {e}",
                details={"photo_id": photo_id},
                original_exception=e,
            ) from e

        if not result:
            raise NotFoundError(
                f"Photo not found: {photo_id}", user_message="Photo not found.", details={"photo_id": photo_id}
            )
        logger.info("photo_record_deleted", photo_id=photo_id)

    def list_blob_references(self) -> dict[str, str]:
        """
        Map every referenced blob ID to the photo referencing it.

        Raises:
            DatabaseError: If the query fails
        """
        try:
            rows = self.db_manager.execute_query("SELECT blob_id, id FROM photos")
        except duckdb.Error as e:
            raise DatabaseError(f"Failed to list blob references: {e}", original_exception=e) from e
        return {blob_id: photo_id for blob_id, photo_id in rows}

    def _fetch_photos(self, query: str, params: list[Any], operation: str) -> list[PhotoRecord]:
        try:
            rows = self.db_manager.fetch_dicts(query, params)
        except duckdb.Error as e:
            raise DatabaseError(
                f"Photo query failed: {e}", details={"operation": operation}, original_exception=e
            ) from e
        return [_photo_from_row(row) for row in rows]

    # Users

    def insert_user(self, user: User) -> str:
        """
        Insert a user.

        Raises:
            DuplicateUserError: If the email or username is already taken
            RecordWriteError: If the insert fails
        """
        try:
            existing = self.db_manager.execute_query(
                "SELECT email, username FROM users WHERE email = ? OR username = ?", [user.email, user.username]
            )
        except duckdb.Error as e:
            raise DatabaseError(f"User lookup failed: {e}", original_exception=e) from e

        if existing:
            taken = sorted(
                {"email" for email, _ in existing if email == user.email}
                | {"username" for _, username in existing if username == user.username}
            )
            raise DuplicateUserError(
                f"User already exists with the same {' and '.join(taken)}",
                details={"taken_fields": taken},
            )

        row = user.to_row()
        try:
            self.db_manager.execute_query(
                f"INSERT INTO users ({', '.join(USER_COLUMNS)}) VALUES ({', '.join('?' for _ in USER_COLUMNS)})",
                [row[column] for column in USER_COLUMNS],
            )
        except duckdb.ConstraintException as e:
            # Lost a race with a concurrent signup
            raise DuplicateUserError(f"User already exists: {e}", original_exception=e) from e
        except duckdb.Error as e:
            raise RecordWriteError(f"Failed to insert user: {e}", original_exception=e) from e

        log_user_action(user.id, "user_created", username=user.username)
        return user.id

    def insert_first_user(self, user: User) -> bool:
        """
        Insert a user only if the users table is empty.

        The emptiness check and the insert are one statement. DuckDB allows a
        single writing process, and concurrent transactions in it only
        conflict on the same rows, so the statement also runs under a
        per-service lock.

        Returns:
            bool: True if the user was inserted, False if any user already existed

        Raises:
            RecordWriteError: If the insert fails
        """
        row = user.to_row()
        try:
            with self._first_user_lock:
                inserted = self.db_manager.execute_query(
                    f"""
                    INSERT INTO users ({', '.join(USER_COLUMNS)})
                    SELECT CAST(? AS VARCHAR), CAST(? AS VARCHAR), CAST(? AS VARCHAR),
                           CAST(? AS VARCHAR), CAST(? AS VARCHAR), CAST(? AS TIMESTAMP)
                    WHERE NOT EXISTS (SELECT 1 FROM users)
                    RETURNING id
                    """,
                    [row[column] for column in USER_COLUMNS],
                )
        except duckdb.Error as e:
            raise RecordWriteError(f"Failed to insert first user: {e}", original_exception=e) from e

        if not inserted:
            return False

        log_user_action(user.id, "user_created", username=user.username)
        return True

    def get_user_by_email(self, email: str) -> User:
        """Raises NotFoundError if no user has this email."""
        return self._fetch_user("email", email)

    def get_user_by_username(self, username: str) -> User:
        """Raises NotFoundError if no user has this username."""
        return self._fetch_user("username", username)

    def get_user_by_id(self, user_id: str) -> User:
        """Raises NotFoundError if no user has this ID."""
        return self._fetch_user("id", user_id)

    def delete_user_by_username(self, username: str) -> None:
        """
        Delete a user by username.

        Raises:
            NotFoundError: If no user has this username
            RecordDeleteError: If the delete fails
        """
        try:
            result = self.db_manager.execute_query("DELETE FROM users WHERE username = ? RETURNING id", [username])
        except duckdb.Error as e:
            raise RecordDeleteError(f"Failed to delete user: {e}", original_exception=e) from e

        if not result:
            raise NotFoundError(f"User not found: {username}", user_message="User not found.")
        log_user_action(result[0][0], "user_deleted", username=username)

    def count_users(self) -> int:
        """Count all users."""
        try:
            result = self.db_manager.execute_query("SELECT COUNT(*) FROM users")
        except duckdb.Error as e:
            raise DatabaseError(f"Failed to count users: {e}", original_exception=e) from e
        return int(result[0][0]) if result else 0

    def list_users(self) -> list[User]:
        """List all users ordered by creation time."""
        try:
            rows = self.db_manager.fetch_dicts(f"{USER_SELECT} ORDER BY created_at")
        except duckdb.Error as e:
            raise DatabaseError(f"Failed to list users: {e}", original_exception=e) from e
        return [User.from_row(row) for row in rows]

    def _fetch_user(self, column: str, value: str) -> User:
        try:
            rows = self.db_manager.fetch_dicts(f"{USER_SELECT} WHERE {column} = ?", [value])
        except duckdb.Error as e:
            raise DatabaseError(f"User lookup failed: {e}", original_exception=e) from e

        if not rows:
            raise NotFoundError(f"User not found by {column}", user_message="User not found.")
        return User.from_row(rows[0])
