"""Blob store backed by Google Cloud Storage.

Blobs are addressed by an opaque ID generated here. The object name is
``{prefix}/{blob_id}`` and never changes; the display name lives in the
object's custom metadata under ``filename`` so it can be renamed without
copying bytes. The store knows nothing about photo records.
"""

import uuid
from collections.abc import Iterator
from datetime import UTC, datetime

from google.cloud import storage  # type: ignore[attr-defined]
from google.cloud.exceptions import GoogleCloudError, NotFound

from ..config import get_blob_prefix, get_download_chunk_size, get_env
from ..error_handling import (
    BlobDeleteError,
    BlobNotFoundError,
    BlobReadError,
    BlobRenameError,
    BlobWriteError,
    StorageError,
)
from ..logging_config import get_logger

logger = get_logger(__name__)

DISPLAY_NAME_KEY = "filename"


class StorageService:
    """Blob store operations on a single GCS bucket."""

    def __init__(
        self,
        bucket_name: str | None = None,
        project_id: str | None = None,
        prefix: str | None = None,
        client: storage.Client | None = None,
    ) -> None:
        """
        Initialize the storage service.

        Args:
            bucket_name: Photos bucket (defaults to GCS_PHOTOS_BUCKET)
            project_id: GCP project (defaults to GOOGLE_CLOUD_PROJECT)
            prefix: Object name prefix (defaults to GCS_BLOB_PREFIX)
            client: Preconfigured storage client, mainly for tests and emulators

        Raises:
            StorageError: If configuration is missing or the client cannot be created
        """
        self.bucket_name = bucket_name or get_env("GCS_PHOTOS_BUCKET")
        self.project_id = project_id or get_env("GOOGLE_CLOUD_PROJECT")
        self.prefix = (prefix or get_blob_prefix()).strip("/")

        if not self.bucket_name:
            raise StorageError("GCS_PHOTOS_BUCKET environment variable is required", code="storage_misconfigured")
        if client is None and not self.project_id:
            raise StorageError("GOOGLE_CLOUD_PROJECT environment variable is required", code="storage_misconfigured")

        try:
            self.client = client or storage.Client(project=self.project_id)
            self.bucket = self.client.bucket(self.bucket_name)
        except Exception as e:
            raise StorageError(
                f"Failed to initialize GCS client: {e}", code="storage_misconfigured", original_exception=e
            ) from e

        logger.info(
            "storage_service_initialized",
            bucket=self.bucket_name,
            project_id=self.project_id,
            prefix=self.prefix,
        )

    def _object_name(self, blob_id: str) -> str:
        return f"{self.prefix}/{blob_id}"

    def put(self, data: bytes, name: str, content_type: str = "application/octet-stream") -> str:
        """
        Write bytes as a new blob.

        Args:
            data: Raw bytes
            name: Display name stored alongside the blob
            content_type: MIME type recorded on the object

        Returns:
            str: The new blob ID

        Raises:
            BlobWriteError: If the upload fails
        """
        blob_id = uuid.uuid4().hex
        object_name = self._object_name(blob_id)

        try:
            blob = self.bucket.blob(object_name)
            blob.metadata = {
                DISPLAY_NAME_KEY: name,
                "uploaded_at": datetime.now(UTC).isoformat(),
            }
            # if_generation_match=0 refuses to overwrite an existing object
            blob.upload_from_string(data, content_type=content_type, if_generation_match=0)
        except Exception as e:
            raise BlobWriteError(
                f"Failed to write blob for '{name}': {e}",
                details={"blob_id": blob_id, "filename": name, "file_size": len(data)},
                original_exception=e,
            ) from e

        logger.info("blob_written", blob_id=blob_id, filename=name, file_size=len(data), content_type=content_type)
        return blob_id

    def get(self, blob_id: str, chunk_size: int | None = None) -> Iterator[bytes]:
        """
        Open a blob for streamed reading.

        Existence is checked before returning so a missing blob fails here and
        not halfway through a response.

        Args:
            blob_id: Blob to read
            chunk_size: Bytes per yielded chunk (defaults to DOWNLOAD_CHUNK_SIZE)

        Returns:
            Iterator over the blob's bytes

        Raises:
            BlobNotFoundError: If the blob does not exist
            BlobReadError: If the blob cannot be opened
        """
        chunk_size = chunk_size or get_download_chunk_size()
        try:
            blob = self.bucket.get_blob(self._object_name(blob_id))
        except GoogleCloudError as e:
            raise BlobReadError(
                f"Failed to open blob '{blob_id}': {e}", details={"blob_id": blob_id}, original_exception=e
            ) from e

        if blob is None:
            raise BlobNotFoundError(f"Blob not found: {blob_id}", details={"blob_id": blob_id})

        return self._iter_chunks(blob, blob_id, chunk_size)

    def _iter_chunks(self, blob: storage.Blob, blob_id: str, chunk_size: int) -> Iterator[bytes]:
        try:
            with blob.open("rb", chunk_size=chunk_size) as reader:
                while True:
                    chunk = reader.read(chunk_size)
                    if not chunk:
                        break
                    yield chunk
        except GoogleCloudError as e:
            raise BlobReadError(
                f"Failed to stream blob '{blob_id}': {e}", details={"blob_id": blob_id}, original_exception=e
            ) from e

    def read_bytes(self, blob_id: str) -> bytes:
        """
        Download a whole blob.

        Raises:
            BlobNotFoundError: If the blob does not exist
            BlobReadError: If the download fails
        """
        try:
            data: bytes = self.bucket.blob(self._object_name(blob_id)).download_as_bytes()
        except NotFound as e:
            raise BlobNotFoundError(f"Blob not found: {blob_id}", details={"blob_id": blob_id}) from e
        except Exception as e:
            raise BlobReadError(
                f"Failed to download blob '{blob_id}': {e}", details={"blob_id": blob_id}, original_exception=e
            ) from e

        logger.debug("blob_downloaded", blob_id=blob_id, file_size=len(data))
        return data

    def delete(self, blob_id: str) -> None:
        """
        Delete a blob.

        Raises:
            BlobNotFoundError: If the blob does not exist
            BlobDeleteError: If deletion fails
        """
        try:
            self.bucket.blob(self._object_name(blob_id)).delete()
        except NotFound as e:
            raise BlobNotFoundError(f"Blob not found: {blob_id}", details={"blob_id": blob_id}) from e
        except Exception as e:
            raise BlobDeleteError(
                f"Failed to delete blob '{blob_id}': {e}", details={"blob_id": blob_id}, original_exception=e
            ) from e

        logger.info("blob_deleted", blob_id=blob_id)

    def rename(self, blob_id: str, new_name: str) -> None:
        """
        Change a blob's display name. The blob ID and bytes are unchanged.

        Raises:
            BlobNotFoundError: If the blob does not exist
            BlobRenameError: If the metadata patch fails
        """
        try:
            blob = self.bucket.get_blob(self._object_name(blob_id))
        except Exception as e:
            raise BlobRenameError(
                f"Failed to load blob '{blob_id}' for rename: {e}",
                details={"blob_id": blob_id, "new_filename": new_name},
                original_exception=e,
            ) from e

        if blob is None:
            raise BlobNotFoundError(f"Blob not found: {blob_id}", details={"blob_id": blob_id})

        try:
            blob.metadata = {**(blob.metadata or {}), DISPLAY_NAME_KEY: new_name}
            blob.patch()
        except Exception as e:
            raise BlobRenameError(
                f"Failed to rename blob '{blob_id}': {e}",
                details={"blob_id": blob_id, "new_filename": new_name},
                original_exception=e,
            ) from e

        logger.info("blob_renamed", blob_id=blob_id, new_filename=new_name)

    def get_display_name(self, blob_id: str) -> str | None:
        """
        Get the display name stored with a blob.

        Raises:
            BlobNotFoundError: If the blob does not exist
            BlobReadError: If the lookup fails
        """
        try:
            blob = self.bucket.get_blob(self._object_name(blob_id))
        except Exception as e:
            raise BlobReadError(
                f"Failed to load blob '{blob_id}': {e}", details={"blob_id": blob_id}, original_exception=e
            ) from e

        if blob is None:
            raise BlobNotFoundError(f"Blob not found: {blob_id}", details={"blob_id": blob_id})
        return (blob.metadata or {}).get(DISPLAY_NAME_KEY)

    def exists(self, blob_id: str) -> bool:
        """Check whether a blob exists."""
        try:
            return bool(self.bucket.blob(self._object_name(blob_id)).exists())
        except Exception as e:
            raise BlobReadError(
                f"Failed to check blob '{blob_id}': {e}", details={"blob_id": blob_id}, original_exception=e
            ) from e

    def list_blobs(self) -> dict[str, datetime | None]:
        """
        List every blob under the prefix with its creation time.

        Returns:
            dict: Blob ID to the object's ``time_created``

        Raises:
            StorageError: If listing fails
        """
        object_prefix = f"{self.prefix}/"
        try:
            listed = [
                (blob.name, blob.time_created) for blob in self.client.list_blobs(self.bucket, prefix=object_prefix)
            ]
        except Exception as e:
            raise StorageError(f"Failed to list blobs: {e}", code="blob_list_failed", original_exception=e) from e

        return {name[len(object_prefix) :]: created for name, created in listed if name.startswith(object_prefix)}

    def list_blob_ids(self) -> list[str]:
        """
        List the IDs of every blob under the prefix.

        Raises:
            StorageError: If listing fails
        """
        return list(self.list_blobs())

    def check_bucket_exists(self) -> bool:
        """Check whether the configured bucket is reachable."""
        try:
            return bool(self.bucket.exists())
        except Exception as e:
            logger.error("bucket_check_failed", bucket=self.bucket_name, error=str(e))
            return False
