"""Metadata extraction for uploaded photos.

Reads EXIF with Pillow and produces the structured capture fields a photo
record carries, plus a JSON-safe dump of every readable tag. Fields that are
not present in the file stay None; nothing is defaulted to zero.
"""

import io
import math
import re
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta, timezone
from typing import Any

from PIL import ExifTags, Image, UnidentifiedImageError
from pillow_heif import register_heif_opener  # type: ignore[import-untyped]

from ..error_handling import InvalidContentTypeError, MetadataExtractionError
from ..logging_config import get_logger, log_performance
from ..models.photo import Dimensions, GeoLocation, ImportantMetadata

register_heif_opener()

logger = get_logger(__name__)

CONTENT_TYPE_PATTERN = re.compile(r"^image/[a-z0-9][a-z0-9.+-]*$", re.IGNORECASE)

# Sub-IFD pointers; their contents are merged in, the pointer values are not useful
IFD_POINTER_TAGS = {int(ExifTags.IFD.Exif), int(ExifTags.IFD.GPSInfo), int(ExifTags.IFD.Interop)}

# Binary tags that are large and meaningless outside the camera vendor's tools
SKIPPED_TAGS = {"MakerNote", "UserComment", "PrintImageMatching", "ComponentsConfiguration"}


@dataclass
class ExtractedMetadata:
    """Result of metadata extraction."""

    date_taken: datetime | None = None
    important: ImportantMetadata = field(default_factory=ImportantMetadata)
    size: int | None = None
    full: dict[str, Any] = field(default_factory=dict)


def validate_content_type(content_type: str | None) -> str:
    """
    Check that a declared content type is ``image/*``.

    Returns:
        The content type, stripped of parameters and lowercased

    Raises:
        InvalidContentTypeError: For anything that is not an image type
    """
    mime = (content_type or "").split(";", 1)[0].strip().lower()
    if not CONTENT_TYPE_PATTERN.match(mime):
        raise InvalidContentTypeError(
            f"Invalid file type: {content_type!r}", details={"content_type": content_type}
        )
    return mime


def parse_exif_datetime(value: Any, offset: Any = None) -> datetime | None:
    """
    Parse an EXIF ``YYYY:MM:DD HH:MM:SS`` timestamp into an aware UTC datetime.

    EXIF timestamps have no zone. When an ``OffsetTime*`` value such as
    ``+02:00`` is given it is applied; otherwise the value is read as UTC.
    """
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.strptime(value.strip().rstrip("\x00")[:19], "%Y:%m:%d %H:%M:%S")
    except ValueError:
        logger.debug("exif_date_parse_failed", date_string=value)
        return None

    tz = UTC
    if isinstance(offset, str):
        match = re.match(r"^([+-])(\d{2}):(\d{2})$", offset.strip())
        if match:
            sign = 1 if match.group(1) == "+" else -1
            tz = timezone(sign * timedelta(hours=int(match.group(2)), minutes=int(match.group(3))))

    return parsed.replace(tzinfo=tz).astimezone(UTC)


def _to_float(value: Any) -> float | None:
    try:
        result = float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    return None if math.isnan(result) or math.isinf(result) else result


def gps_to_location(gps: dict[str, Any]) -> GeoLocation | None:
    """
    Convert EXIF GPS degrees/minutes/seconds to decimal degrees.

    Args:
        gps: GPS IFD keyed by tag name (GPSLatitude, GPSLatitudeRef, ...)

    Returns:
        GeoLocation, or None when either coordinate is missing or malformed
    """

    def to_decimal(dms: Any, ref: Any, negative_ref: str) -> float | None:
        if not isinstance(dms, (tuple, list)) or len(dms) != 3:
            return None
        parts = [_to_float(part) for part in dms]
        if any(part is None for part in parts):
            return None
        degrees, minutes, seconds = parts
        decimal = degrees + minutes / 60 + seconds / 3600
        if isinstance(ref, bytes):
            ref = ref.decode("ascii", errors="ignore")
        if isinstance(ref, str) and ref.strip().upper() == negative_ref:
            decimal = -decimal
        return round(decimal, 7)

    latitude = to_decimal(gps.get("GPSLatitude"), gps.get("GPSLatitudeRef"), "S")
    longitude = to_decimal(gps.get("GPSLongitude"), gps.get("GPSLongitudeRef"), "W")
    if latitude is None or longitude is None:
        return None
    return GeoLocation(latitude=latitude, longitude=longitude)


def to_json_safe(value: Any) -> Any:
    """Convert EXIF values (rationals, bytes, tuples) into JSON-compatible values."""
    if isinstance(value, dict):
        return {str(k): to_json_safe(v) for k, v in value.items()}
    if isinstance(value, (tuple, list)):
        return [to_json_safe(v) for v in value]
    if isinstance(value, bytes):
        text = value.rstrip(b"\x00").decode("utf-8", errors="replace")
        return text if text.isprintable() else None
    if isinstance(value, str):
        return value.rstrip("\x00")
    if isinstance(value, (bool, int)):
        return value
    if isinstance(value, float):
        return None if math.isnan(value) or math.isinf(value) else value
    return _to_float(value)


class ImageProcessor:
    """Extracts capture metadata from image bytes."""

    # Priority order for the capture timestamp and the matching offset tag
    EXIF_DATE_TAGS = [
        ("DateTimeOriginal", "OffsetTimeOriginal"),
        ("DateTimeDigitized", "OffsetTimeDigitized"),
        ("DateTime", "OffsetTime"),
    ]

    def extract_metadata(self, image_data: bytes, filename: str = "") -> ExtractedMetadata:
        """
        Extract capture metadata from an image.

        Args:
            image_data: Raw image bytes
            filename: Name used in log and error context

        Returns:
            ExtractedMetadata with absent fields left as None

        Raises:
            MetadataExtractionError: If the bytes cannot be decoded as an image
        """
        start = time.perf_counter()
        try:
            with Image.open(io.BytesIO(image_data)) as image:
                tags = self._collect_tags(image)
                pixel_size = image.size
        except (UnidentifiedImageError, OSError, ValueError, SyntaxError) as e:
            raise MetadataExtractionError(
                f"Failed to read metadata from '{filename}': {e}",
                details={"filename": filename, "file_size": len(image_data)},
                original_exception=e,
            ) from e

        metadata = self._build(tags, pixel_size)

        log_performance("extract_metadata", time.perf_counter() - start, filename=filename, tag_count=len(tags))
        logger.info(
            "metadata_extracted",
            filename=filename,
            make=metadata.important.make,
            model=metadata.important.model,
            date_taken=metadata.date_taken.isoformat() if metadata.date_taken else None,
            has_location=metadata.important.location is not None,
        )
        return metadata

    def _collect_tags(self, image: Image.Image) -> dict[str, Any]:
        """Merge IFD0, the Exif sub-IFD and the GPS sub-IFD into one dict keyed by tag name."""
        exif = image.getexif()
        tags: dict[str, Any] = {}

        for tag_id, value in exif.items():
            if tag_id not in IFD_POINTER_TAGS:
                tags[ExifTags.TAGS.get(tag_id, str(tag_id))] = value

        for tag_id, value in exif.get_ifd(ExifTags.IFD.Exif).items():
            tags.setdefault(ExifTags.TAGS.get(tag_id, str(tag_id)), value)

        gps = exif.get_ifd(ExifTags.IFD.GPSInfo)
        if gps:
            tags["GPSInfo"] = {ExifTags.GPSTAGS.get(tag_id, str(tag_id)): value for tag_id, value in gps.items()}

        return tags

    def _build(self, tags: dict[str, Any], pixel_size: tuple[int, int]) -> ExtractedMetadata:
        date_taken = None
        for date_tag, offset_tag in self.EXIF_DATE_TAGS:
            date_taken = parse_exif_datetime(tags.get(date_tag), tags.get(offset_tag))
            if date_taken:
                break

        width = tags.get("ExifImageWidth") or tags.get("ImageWidth")
        height = tags.get("ExifImageHeight") or tags.get("ImageLength")
        if not (isinstance(width, int) and isinstance(height, int) and width > 0 and height > 0):
            width, height = pixel_size

        dimensions = Dimensions(width=width, height=height) if width and height else None

        make = to_json_safe(tags.get("Make"))
        model = to_json_safe(tags.get("Model"))

        important = ImportantMetadata(
            make=make.strip() if isinstance(make, str) and make.strip() else None,
            model=model.strip() if isinstance(model, str) and model.strip() else None,
            location=gps_to_location(tags.get("GPSInfo") or {}),
            dimensions=dimensions,
        )

        full = {
            name: safe
            for name, value in tags.items()
            if name not in SKIPPED_TAGS and (safe := to_json_safe(value)) is not None
        }

        return ExtractedMetadata(
            date_taken=date_taken,
            important=important,
            size=width * height if dimensions else None,
            full=full,
        )


image_processor = ImageProcessor()


def get_image_processor() -> ImageProcessor:
    """
    Get the global image processor instance.

    Returns:
        ImageProcessor: Global image processor instance
    """
    return image_processor
