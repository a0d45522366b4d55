"""
Unit tests for the PhotoRecord model.
"""

from datetime import UTC, datetime, timedelta, timezone

from photostore.models.photo import (
    Dimensions,
    GeoLocation,
    ImportantMetadata,
    PhotoRecord,
    normalize_tags,
)


def _record(**overrides) -> PhotoRecord:
    values = {
        "user_id": "user-a",
        "filename": "IMG_0001.jpg",
        "blob_id": "abc123",
        "content_type": "image/jpeg",
    }
    values.update(overrides)
    return PhotoRecord.create_new(**values)


class TestNormalizeTags:
    """Test cases for tag normalization."""

    def test_comma_separated_string(self):
        """Test splitting a comma-separated string."""
        assert normalize_tags("beach, sunset ,family") == ["beach", "sunset", "family"]

    def test_duplicates_keep_first_occurrence(self):
        """Test that duplicates collapse into their first position."""
        assert normalize_tags(["b", "a", "b", " a "]) == ["b", "a"]

    def test_empty_values(self):
        """Test that None and blank entries produce no tags."""
        assert normalize_tags(None) == []
        assert normalize_tags(" , ,") == []


class TestImportantMetadata:
    """Test cases for ImportantMetadata serialization."""

    def test_absent_fields_are_omitted(self):
        """Test that missing fields are left out instead of zeroed."""
        assert ImportantMetadata().to_dict() == {}
        assert ImportantMetadata(make="Canon").to_dict() == {"Make": "Canon"}

    def test_full_serialization(self):
        """Test serialization with every field present."""
        meta = ImportantMetadata(
            make="Canon",
            model="EOS R5",
            location=GeoLocation(latitude=35.5, longitude=-120.25),
            dimensions=Dimensions(width=4000, height=3000),
        )

        assert meta.to_dict() == {
            "Make": "Canon",
            "Model": "EOS R5",
            "Location": {"Latitude": 35.5, "Longitude": -120.25},
            "Dimensions": {"width": 4000, "height": 3000},
        }


class TestPhotoRecord:
    """Test cases for PhotoRecord."""

    def test_create_new_defaults(self):
        """Test creating a record with only required fields."""
        before = datetime.now(UTC)
        record = _record()

        assert len(record.id) == 36
        assert record.uploaded_at >= before
        assert record.uploaded_at.tzinfo is not None
        assert record.date_taken is None
        assert record.size is None
        assert record.tags == []
        assert record.is_favorite is False
        assert record.important_metadata.to_dict() == {}

    def test_create_new_converts_date_taken_to_utc(self):
        """Test that an offset capture time is stored as UTC."""
        taken = datetime(2024, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        record = _record(date_taken=taken)

        assert record.date_taken == datetime(2024, 1, 1, 10, 0, tzinfo=UTC)

    def test_validate(self):
        """Test validation of required fields and content type."""
        assert _record().validate() is True
        assert _record(user_id="").validate() is False
        assert _record(blob_id="").validate() is False
        assert _record(content_type="application/pdf").validate() is False
        assert _record(size=0).validate() is False

    def test_download_filename_adds_extension(self):
        """Test that a filename without an extension gets one from the content type."""
        assert _record(filename="holiday", content_type="image/png").download_filename == "holiday.png"
        assert _record(filename="holiday.jpg").download_filename == "holiday.jpg"

    def test_to_dict_shape(self):
        """Test the client-facing representation."""
        record = _record(date_taken=datetime(2024, 1, 1, 10, 0, tzinfo=UTC))
        record.tags = ["beach"]

        data = record.to_dict()

        assert data["userId"] == "user-a"
        assert data["blobId"] == "abc123"
        assert data["dateTaken"] == "2024-01-01T10:00:00+00:00"
        assert data["tags"] == ["beach"]
        assert data["isFavorite"] is False
        assert data["importantMetadata"] == {}

    def test_row_conversion_preserves_fields(self):
        """Test converting to a table row and back."""
        record = _record(
            date_taken=datetime(2024, 1, 1, 10, 0, tzinfo=UTC),
            size=12_000_000,
            important_metadata=ImportantMetadata(
                make="Canon", location=GeoLocation(1.5, 2.5), dimensions=Dimensions(4000, 3000)
            ),
        )

        row = record.to_row()
        assert row["date_taken"] == datetime(2024, 1, 1, 10, 0)
        assert row["date_taken"].tzinfo is None
        assert row["make"] == "Canon"
        assert row["model"] is None
        assert row["width"] == 4000

        restored = PhotoRecord.from_row(row)
        assert restored.date_taken == record.date_taken
        assert restored.uploaded_at == record.uploaded_at
        assert restored.important_metadata == record.important_metadata
        assert restored.important_metadata.model is None
