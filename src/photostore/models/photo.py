"""
Photo record model for photostore.

A PhotoRecord is the metadata-store document describing one photo. Its
``blob_id`` is the only link to the bytes held by the blob store.
"""

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


@dataclass
class GeoLocation:
    """GPS position in decimal degrees."""

    latitude: float
    longitude: float


@dataclass
class Dimensions:
    """Pixel dimensions of the original image."""

    width: int
    height: int


@dataclass
class ImportantMetadata:
    """Capture fields promoted out of the raw EXIF blob. Every field is optional."""

    make: str | None = None
    model: str | None = None
    location: GeoLocation | None = None
    dimensions: Dimensions | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize, leaving out absent fields instead of filling in zeros."""
        result: dict[str, Any] = {}
        if self.make is not None:
            result["Make"] = self.make
        if self.model is not None:
            result["Model"] = self.model
        if self.location is not None:
            result["Location"] = {"Latitude": self.location.latitude, "Longitude": self.location.longitude}
        if self.dimensions is not None:
            result["Dimensions"] = {"width": self.dimensions.width, "height": self.dimensions.height}
        return result


def normalize_tags(tags: Iterable[str] | str | None) -> list[str]:
    """
    Normalize client-supplied tags into a de-duplicated list.

    Accepts a list or a comma-separated string. Whitespace is stripped, empty
    entries dropped and the first occurrence of each tag wins.
    """
    if tags is None:
        return []
    if isinstance(tags, str):
        tags = tags.split(",")

    seen: list[str] = []
    for tag in tags:
        cleaned = str(tag).strip()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


def _as_utc(value: datetime | str | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _to_db_timestamp(value: datetime | None) -> datetime | None:
    # Timestamps are stored as naive UTC
    if value is None:
        return None
    return value.astimezone(UTC).replace(tzinfo=None)


@dataclass
class PhotoRecord:
    """
    Metadata for one photo.

    ``uploaded_at`` is set once at creation. ``filename``, ``tags``,
    ``description`` and ``is_favorite`` are the only fields mutated after
    creation.
    """

    id: str
    user_id: str
    filename: str
    blob_id: str
    content_type: str
    uploaded_at: datetime
    date_taken: datetime | None = None
    size: int | None = None
    important_metadata: ImportantMetadata = field(default_factory=ImportantMetadata)
    tags: list[str] = field(default_factory=list)
    description: str | None = None
    is_favorite: bool = False
    full_metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create_new(
        cls,
        user_id: str,
        filename: str,
        blob_id: str,
        content_type: str,
        date_taken: datetime | None = None,
        size: int | None = None,
        important_metadata: ImportantMetadata | None = None,
        full_metadata: dict[str, Any] | None = None,
        uploaded_at: datetime | None = None,
    ) -> "PhotoRecord":
        """
        Create a new PhotoRecord with a generated ID and the current upload time.

        Args:
            user_id: Owner, taken from the verified token subject
            filename: Display filename
            blob_id: ID of the blob holding the original bytes
            content_type: Declared image content type
            date_taken: Capture time from EXIF, if any
            size: Pixel count, if dimensions are known
            important_metadata: Promoted EXIF fields
            full_metadata: Every extracted tag, JSON-safe
            uploaded_at: Upload time (defaults to now)

        Returns:
            New PhotoRecord instance
        """
        return cls(
            id=str(uuid.uuid4()),
            user_id=user_id,
            filename=filename,
            blob_id=blob_id,
            content_type=content_type,
            uploaded_at=_as_utc(uploaded_at) or datetime.now(UTC),
            date_taken=_as_utc(date_taken),
            size=size,
            important_metadata=important_metadata or ImportantMetadata(),
            full_metadata=full_metadata or {},
        )

    def validate(self) -> bool:
        """
        Validate required fields.

        Returns:
            True if valid, False otherwise
        """
        if not self.id or not self.user_id or not self.filename or not self.blob_id:
            return False

        if not self.content_type or not self.content_type.startswith("image/"):
            return False

        if self.size is not None and self.size <= 0:
            return False

        return True

    @property
    def download_filename(self) -> str:
        """Filename for Content-Disposition, with an extension derived from the content type if missing."""
        if "." in self.filename.rsplit("/", 1)[-1]:
            return self.filename
        extension = self.content_type.split("/", 1)[1].split(";", 1)[0].strip()
        return f"{self.filename}.{extension}" if extension else self.filename

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the record to the JSON shape returned to clients.

        Returns:
            Dictionary representation of the photo record
        """
        return {
            "id": self.id,
            "userId": self.user_id,
            "filename": self.filename,
            "blobId": self.blob_id,
            "contentType": self.content_type,
            "dateTaken": self.date_taken.isoformat() if self.date_taken else None,
            "size": self.size,
            "importantMetadata": self.important_metadata.to_dict(),
            "tags": list(self.tags),
            "description": self.description,
            "isFavorite": self.is_favorite,
            "fullMetadata": self.full_metadata,
            "uploadedAt": self.uploaded_at.isoformat(),
        }

    def to_row(self) -> dict[str, Any]:
        """
        Convert the record to column values for the photos table.

        Returns:
            Mapping of column name to value
        """
        meta = self.important_metadata
        return {
            "id": self.id,
            "user_id": self.user_id,
            "filename": self.filename,
            "blob_id": self.blob_id,
            "content_type": self.content_type,
            "date_taken": _to_db_timestamp(self.date_taken),
            "size": self.size,
            "make": meta.make,
            "model": meta.model,
            "latitude": meta.location.latitude if meta.location else None,
            "longitude": meta.location.longitude if meta.location else None,
            "width": meta.dimensions.width if meta.dimensions else None,
            "height": meta.dimensions.height if meta.dimensions else None,
            "tags": list(self.tags),
            "description": self.description,
            "is_favorite": self.is_favorite,
            "full_metadata": self.full_metadata,
            "uploaded_at": _to_db_timestamp(self.uploaded_at),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "PhotoRecord":
        """
        Create a PhotoRecord from a photos table row.

        Args:
            row: Mapping of column name to value

        Returns:
            PhotoRecord instance
        """
        location = None
        if row.get("latitude") is not None and row.get("longitude") is not None:
            location = GeoLocation(latitude=row["latitude"], longitude=row["longitude"])

        dimensions = None
        if row.get("width") is not None and row.get("height") is not None:
            dimensions = Dimensions(width=row["width"], height=row["height"])

        return cls(
            id=row["id"],
            user_id=row["user_id"],
            filename=row["filename"],
            blob_id=row["blob_id"],
            content_type=row["content_type"],
            uploaded_at=_as_utc(row["uploaded_at"]),
            date_taken=_as_utc(row.get("date_taken")),
            size=row.get("size"),
            important_metadata=ImportantMetadata(
                make=row.get("make"),
                model=row.get("model"),
                location=location,
                dimensions=dimensions,
            ),
            tags=list(row.get("tags") or []),
            description=row.get("description"),
            is_favorite=bool(row.get("is_favorite")),
            full_metadata=row.get("full_metadata") or {},
        )
