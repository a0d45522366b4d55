"""
Photo storage coordinator.

Keeps the blob store and the metadata store consistent without a transaction
spanning both. Every mutating operation verifies the caller's token and
ownership first, then runs its store steps in a fixed order:

- ingest: write blob, extract metadata, insert record. A failure after the
  blob exists deletes the blob again; if that fails too the blob is reported
  as orphaned.
- delete: delete blob, then delete record.
- rename: update record, then rename blob. A blob failure restores the
  record's filename.

Usage:
    coordinator = PhotoStorageCoordinator(storage, metadata, auth, ImageProcessor())
    record = coordinator.ingest(token, data, "IMG_0001.jpg", "image/jpeg")
"""

import mimetypes
import shutil
import tempfile
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

from ..config import get_max_file_size, get_temp_dir
from ..error_handling import (
    BlobNotFoundError,
    BlobRenameError,
    DatabaseError,
    FileTooLargeError,
    MissingFieldError,
    NotFoundError,
    OrphanedBlobError,
    PartialDeleteError,
    PhotoStoreError,
    RecordUpdateError,
    RollbackFailedError,
    StorageError,
    UnauthorizedError,
)
from ..logging_config import get_logger, log_performance, log_user_action
from ..models.photo import PhotoRecord, normalize_tags
from .auth import AuthService
from .image_processor import ImageProcessor, validate_content_type
from .metadata import MetadataService
from .query import build_filter
from .storage import StorageService

logger = get_logger(__name__)

mimetypes.add_type("image/heic", ".heic")
mimetypes.add_type("image/heif", ".heif")


@dataclass
class PhotoDownload:
    """A resolved download: response headers plus the byte stream."""

    photo_id: str
    blob_id: str
    content_type: str
    filename: str
    chunks: Iterator[bytes]

    @property
    def content_disposition(self) -> str:
        ascii_name = self.filename.encode("ascii", errors="replace").decode("ascii").replace('"', "'")
        return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(self.filename)}"


@contextmanager
def staged_copy(source: str | Path, temp_dir: str | None = None) -> Iterator[Path]:
    """
    Copy a file into a private temporary location for the duration of a block.

    The staged copy is removed on every exit path, including errors raised
    inside the block.
    """
    source_path = Path(source)
    staging_dir = Path(tempfile.mkdtemp(prefix="photostore-", dir=temp_dir or get_temp_dir()))
    staged = staging_dir / source_path.name
    try:
        with source_path.open("rb") as src, staged.open("wb") as dst:
            shutil.copyfileobj(src, dst)
        logger.debug("upload_staged", source=str(source_path), staged=str(staged))
        yield staged
    finally:
        shutil.rmtree(staging_dir, ignore_errors=True)
        logger.debug("staged_upload_removed", staged=str(staged))


class PhotoStorageCoordinator:
    """Ownership-checked, consistency-preserving photo operations."""

    def __init__(
        self,
        storage: StorageService,
        metadata: MetadataService,
        auth: AuthService,
        image_processor: ImageProcessor | None = None,
        max_file_size: int | None = None,
    ) -> None:
        self.storage = storage
        self.metadata = metadata
        self.auth = auth
        self.image_processor = image_processor or ImageProcessor()
        self.max_file_size = max_file_size or get_max_file_size()

    # Authorization

    def authorize_ownership(self, token: str | None, photo_id: str) -> PhotoRecord:
        """
        Verify the token and check that its subject owns the photo.

        Returns:
            The loaded record

        Raises:
            AuthenticationError: If the token is missing, invalid or expired
            NotFoundError: If the photo does not exist
            UnauthorizedError: If the subject is not the owner
        """
        subject = self.auth.extract_subject(token)
        if not photo_id:
            raise MissingFieldError("No photo ID provided", user_message="Please provide a photo ID.")

        record = self.metadata.get_photo_by_id(photo_id)
        self._check_owner(record, subject)
        return record

    def _check_owner(self, record: PhotoRecord, subject: str) -> None:
        if record.user_id != subject:
            raise UnauthorizedError(
                f"User {subject} does not own photo {record.id}",
                details={"user_id": subject, "photo_id": record.id},
            )

    # Ingest

    def ingest(self, token: str | None, file_data: bytes, filename: str, content_type: str | None) -> PhotoRecord:
        """
        Store a new photo for the token's subject.

        Args:
            token: Bearer token; its subject becomes the owner
            file_data: Raw image bytes
            filename: Display filename
            content_type: Declared MIME type, must be ``image/*``

        Returns:
            The inserted record

        Raises:
            AuthenticationError: If the token is not valid
            ValidationError: For missing fields, a non-image type or an oversized file
            BlobWriteError: If the blob could not be written (nothing else was touched)
            MetadataExtractionError: If metadata could not be read (the blob was removed)
            RecordWriteError: If the record could not be inserted (the blob was removed)
            OrphanedBlobError: If the blob could not be removed after a later failure
        """
        start = time.perf_counter()
        user_id = self.auth.extract_subject(token)

        filename = (filename or "").strip()
        if not filename:
            raise MissingFieldError("No filename provided", user_message="Please provide a filename.")
        if not file_data:
            raise MissingFieldError("No file uploaded", user_message="No file uploaded.")
        content_type = validate_content_type(content_type)
        if len(file_data) > self.max_file_size:
            raise FileTooLargeError(
                f"File of {len(file_data)} bytes exceeds limit of {self.max_file_size}",
                details={"filename": filename, "file_size": len(file_data), "max_file_size": self.max_file_size},
            )

        logger.info("ingest_started", user_id=user_id, filename=filename, file_size=len(file_data))

        # Step 1: write the blob; failure here leaves no state behind
        blob_id = self.storage.put(file_data, filename, content_type)

        # Step 2 and 3: extract metadata and insert the record, removing the blob on failure
        try:
            extracted = self.image_processor.extract_metadata(file_data, filename)
            record = PhotoRecord.create_new(
                user_id=user_id,
                filename=filename,
                blob_id=blob_id,
                content_type=content_type,
                date_taken=extracted.date_taken,
                size=extracted.size,
                important_metadata=extracted.important,
                full_metadata=extracted.full,
            )
            self.metadata.insert_photo(record)
        except Exception as e:
            self._discard_blob(blob_id, user_id=user_id, filename=filename, cause=e)
            raise

        log_performance("ingest", time.perf_counter() - start, photo_id=record.id, file_size=len(file_data))
        log_user_action(user_id, "photo_ingested", photo_id=record.id, blob_id=blob_id, filename=filename)
        return record

    def _discard_blob(self, blob_id: str, user_id: str, filename: str, cause: Exception) -> None:
        """Compensate a failed ingest by deleting the blob it wrote."""
        cause_code = cause.code if isinstance(cause, PhotoStoreError) else type(cause).__name__
        logger.warning("ingest_compensating_blob_delete", blob_id=blob_id, filename=filename, cause=cause_code)
        try:
            self.storage.delete(blob_id)
        except BlobNotFoundError:
            logger.warning("compensating_delete_blob_missing", blob_id=blob_id)
        except StorageError as e:
            raise OrphanedBlobError(
                f"Blob {blob_id} has no record and could not be deleted after {cause_code}",
                details={"blob_id": blob_id, "user_id": user_id, "filename": filename, "cause": cause_code},
                original_exception=e,
            ) from cause

    def ingest_file(
        self,
        token: str | None,
        path: str | Path,
        content_type: str | None = None,
        filename: str | None = None,
    ) -> PhotoRecord:
        """
        Ingest a file from disk through a staged temporary copy.

        Args:
            token: Bearer token
            path: Source file
            content_type: MIME type (guessed from the extension when omitted)
            filename: Display filename (the source file's name when omitted)

        Returns:
            The inserted record
        """
        source = Path(path)
        if not source.is_file():
            raise MissingFieldError(
                f"Not a file: {source}", user_message="File not found.", details={"path": str(source)}
            )

        content_type = content_type or mimetypes.guess_type(source.name)[0]
        with staged_copy(source) as staged:
            return self.ingest(token, staged.read_bytes(), filename or source.name, content_type)

    # Delete

    def delete(self, token: str | None, photo_id: str) -> None:
        """
        Delete a photo: blob first, then record.

        Raises:
            AuthenticationError, NotFoundError, UnauthorizedError: From the ownership check
            BlobDeleteError: If the blob could not be deleted (the record is untouched)
            PartialDeleteError: If the blob is gone but the record could not be deleted
        """
        record = self.authorize_ownership(token, photo_id)

        try:
            self.storage.delete(record.blob_id)
        except BlobNotFoundError:
            # Already gone; removing the record restores consistency
            logger.warning("delete_blob_already_missing", photo_id=record.id, blob_id=record.blob_id)

        try:
            self.metadata.delete_photo(record.id)
        except NotFoundError:
            logger.warning("delete_record_already_missing", photo_id=record.id, blob_id=record.blob_id)
        except DatabaseError as e:
            raise PartialDeleteError(
                f"Blob {record.blob_id} deleted but record {record.id} remains",
                details={"photo_id": record.id, "blob_id": record.blob_id, "user_id": record.user_id},
                original_exception=e,
            ) from e

        log_user_action(record.user_id, "photo_deleted", photo_id=record.id, blob_id=record.blob_id)

    # Rename

    def rename(self, token: str | None, photo_id: str, new_filename: str) -> PhotoRecord:
        """
        Rename a photo in both stores: record first, then blob.

        Returns:
            The updated record

        Raises:
            MissingFieldError: If the new filename is empty
            RecordUpdateError: If the record could not be updated (nothing changed)
            BlobRenameError: If the blob could not be renamed (the record was restored)
            RollbackFailedError: If restoring the record also failed
        """
        record = self.authorize_ownership(token, photo_id)

        new_filename = (new_filename or "").strip()
        if not new_filename:
            raise MissingFieldError("No new filename provided", user_message="Please provide a new filename.")

        original_filename = record.filename
        self.metadata.update_photo_fields(record.id, {"filename": new_filename})

        try:
            self.storage.rename(record.blob_id, new_filename)
        except StorageError as e:
            self._restore_filename(record, original_filename, new_filename, e)
            if isinstance(e, BlobRenameError):
                raise
            raise BlobRenameError(
                f"Failed to rename blob {record.blob_id}: {e}",
                details={"photo_id": record.id, "blob_id": record.blob_id, "cause": e.code},
                original_exception=e,
            ) from e

        log_user_action(
            record.user_id,
            "photo_renamed",
            photo_id=record.id,
            old_filename=original_filename,
            new_filename=new_filename,
        )
        record.filename = new_filename
        return record

    def _restore_filename(
        self, record: PhotoRecord, original_filename: str, new_filename: str, rename_error: StorageError
    ) -> None:
        logger.warning(
            "rename_compensating_record_update",
            photo_id=record.id,
            blob_id=record.blob_id,
            original_filename=original_filename,
        )
        try:
            self.metadata.update_photo_fields(record.id, {"filename": original_filename})
        except PhotoStoreError as rollback_error:
            raise RollbackFailedError(
                f"Record {record.id} left as '{new_filename}' while blob {record.blob_id} kept '{original_filename}'",
                details={
                    "photo_id": record.id,
                    "blob_id": record.blob_id,
                    "original_filename": original_filename,
                    "new_filename": new_filename,
                    "rename_error": rename_error.code,
                    "rollback_error": rollback_error.code,
                },
                original_exception=rollback_error,
            ) from rename_error

    # Record-only updates

    def update_metadata(
        self,
        token: str | None,
        photo_id: str,
        tags: list[str] | str | None = None,
        description: str | None = None,
    ) -> PhotoRecord:
        """
        Update tags and/or description.

        The two fields are written independently; a failure of one does not
        undo the other.

        Returns:
            The updated record

        Raises:
            MissingFieldError: If neither field is given
            RecordUpdateError: If any field failed; details name the updated and failed fields
        """
        record = self.authorize_ownership(token, photo_id)
        if tags is None and description is None:
            raise MissingFieldError(
                "No tags or description provided", user_message="Please provide tags or a description."
            )

        updates: dict[str, object] = {}
        if tags is not None:
            updates["tags"] = normalize_tags(tags)
        if description is not None:
            updates["description"] = description

        updated: list[str] = []
        failed: list[str] = []
        for field_name, value in updates.items():
            try:
                self.metadata.update_photo_fields(record.id, {field_name: value})
            except RecordUpdateError:
                failed.append(field_name)
            else:
                updated.append(field_name)

        if failed:
            raise RecordUpdateError(
                f"Failed to update {', '.join(failed)} for photo {record.id}",
                details={"photo_id": record.id, "updated_fields": updated, "failed_fields": failed},
            )

        log_user_action(record.user_id, "photo_metadata_updated", photo_id=record.id, fields=updated)
        return self.metadata.get_photo_by_id(record.id)

    def toggle_favorite(self, token: str | None, photo_id: str) -> bool:
        """Flip the favorite flag and return the new value."""
        record = self.authorize_ownership(token, photo_id)
        is_favorite = self.metadata.toggle_favorite(record.id)
        log_user_action(record.user_id, "photo_favorite_toggled", photo_id=record.id, is_favorite=is_favorite)
        return is_favorite

    def set_favorite(self, token: str | None, photo_id: str, value: bool) -> bool:
        """Set the favorite flag to an explicit value. Repeating the call changes nothing."""
        record = self.authorize_ownership(token, photo_id)
        self.metadata.update_photo_fields(record.id, {"is_favorite": bool(value)})
        log_user_action(record.user_id, "photo_favorite_set", photo_id=record.id, is_favorite=bool(value))
        return bool(value)

    # Reads

    def get_photo(self, token: str | None, photo_id: str) -> PhotoRecord:
        """Get one of the caller's photos."""
        return self.authorize_ownership(token, photo_id)

    def download(self, token: str | None, blob_id: str) -> PhotoDownload:
        """
        Resolve a blob ID to a streamed download of one of the caller's photos.

        Raises:
            NotFoundError: If no record references the blob
            UnauthorizedError: If the caller does not own the photo
            BlobNotFoundError: If the record's blob is missing
        """
        subject = self.auth.extract_subject(token)
        if not blob_id:
            raise MissingFieldError("No blob ID provided", user_message="Please provide a blob ID.")

        record = self.metadata.get_photo_by_blob_id(blob_id)
        self._check_owner(record, subject)
        chunks = self.storage.get(record.blob_id)

        log_user_action(subject, "photo_downloaded", photo_id=record.id, blob_id=record.blob_id)
        return PhotoDownload(
            photo_id=record.id,
            blob_id=record.blob_id,
            content_type=record.content_type,
            filename=record.download_filename,
            chunks=chunks,
        )

    def list_photos(
        self,
        token: str | None,
        user_id: str | None,
        date_taken: str | None = None,
        tags: list[str] | str | None = None,
        is_favorite: str | bool | None = None,
    ) -> list[PhotoRecord]:
        """
        List the caller's photos, optionally filtered.

        Raises:
            MissingFieldError: If no user ID is given
            UnauthorizedError: If the user ID is not the token subject
        """
        subject = self.auth.extract_subject(token)
        photo_filter = build_filter(user_id, date_taken=date_taken, tags=tags, is_favorite=is_favorite)
        if photo_filter.user_id != subject:
            raise UnauthorizedError(
                f"User {subject} cannot list photos of {photo_filter.user_id}",
                details={"user_id": subject, "requested_user_id": photo_filter.user_id},
            )
        return self.metadata.find_photos(photo_filter)
