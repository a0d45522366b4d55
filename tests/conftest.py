"""
Pytest configuration and fixtures for photostore tests.

DuckDB runs for real on temporary files. Google Cloud Storage is replaced by
an in-memory fake client that implements the calls StorageService makes and
can be told to fail specific operations.
"""

import io
from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
from google.api_core.exceptions import NotFound, PreconditionFailed, ServiceUnavailable
from PIL import Image

from photostore.config import get_config
from photostore.logging_config import configure_structured_logging
from photostore.models.database import DatabaseManager, create_database
from photostore.services.auth import AuthService
from photostore.services.context import StoreContext
from photostore.services.coordinator import PhotoStorageCoordinator
from photostore.services.metadata import MetadataService
from photostore.services.storage import StorageService

TEST_SECRET = "test-secret-key"


class FakeBlob:
    """In-memory stand-in for google.cloud.storage.Blob."""

    def __init__(self, bucket: "FakeBucket", name: str, metadata: dict[str, str] | None = None):
        self.bucket = bucket
        self.name = name
        self.metadata = metadata
        self.content_type: str | None = None
        self.time_created: datetime | None = None

    def _fail(self, operation: str) -> None:
        error = self.bucket.failures.get(operation)
        if error is not None:
            raise error

    def upload_from_string(self, data: bytes, content_type: str | None = None, if_generation_match: Any = None):
        self._fail("upload")
        if if_generation_match == 0 and self.name in self.bucket.objects:
            raise PreconditionFailed(f"Object exists: {self.name}")
        self.content_type = content_type
        self.bucket.objects[self.name] = {
            "data": bytes(data),
            "content_type": content_type,
            "metadata": dict(self.metadata or {}),
            "time_created": datetime.now(UTC),
        }

    def download_as_bytes(self) -> bytes:
        self._fail("download")
        if self.name not in self.bucket.objects:
            raise NotFound(f"No such object: {self.name}")
        return self.bucket.objects[self.name]["data"]

    def open(self, mode: str = "rb", chunk_size: int | None = None) -> io.BytesIO:
        self._fail("download")
        if self.name not in self.bucket.objects:
            raise NotFound(f"No such object: {self.name}")
        return io.BytesIO(self.bucket.objects[self.name]["data"])

    def delete(self) -> None:
        self._fail("delete")
        if self.name not in self.bucket.objects:
            raise NotFound(f"No such object: {self.name}")
        del self.bucket.objects[self.name]

    def patch(self) -> None:
        self._fail("patch")
        if self.name not in self.bucket.objects:
            raise NotFound(f"No such object: {self.name}")
        self.bucket.objects[self.name]["metadata"] = dict(self.metadata or {})

    def exists(self) -> bool:
        return self.name in self.bucket.objects


class FakeBucket:
    """In-memory bucket. ``failures`` maps an operation name to the exception it raises."""

    def __init__(self, name: str):
        self.name = name
        self.objects: dict[str, dict[str, Any]] = {}
        self.failures: dict[str, Exception] = {}
        self.reachable = True

    def blob(self, name: str) -> FakeBlob:
        return FakeBlob(self, name)

    def get_blob(self, name: str) -> FakeBlob | None:
        self._check_get()
        stored = self.objects.get(name)
        if stored is None:
            return None
        blob = FakeBlob(self, name, metadata=dict(stored["metadata"]))
        blob.content_type = stored["content_type"]
        return blob

    def _check_get(self) -> None:
        error = self.failures.get("get")
        if error is not None:
            raise error

    def exists(self) -> bool:
        return self.reachable

    def fail(self, operation: str, message: str = "injected failure") -> None:
        self.failures[operation] = ServiceUnavailable(message)

    def display_name(self, object_name: str) -> str | None:
        return self.objects[object_name]["metadata"].get("filename")

    def age_objects(self, seconds: float) -> None:
        """Move the creation time of every stored object into the past."""
        for stored in self.objects.values():
            stored["time_created"] = stored.get("time_created", datetime.now(UTC)) - timedelta(seconds=seconds)


class FakeStorageClient:
    """In-memory stand-in for google.cloud.storage.Client."""

    def __init__(self):
        self.buckets: dict[str, FakeBucket] = {}
        self.closed = False

    def bucket(self, name: str) -> FakeBucket:
        return self.buckets.setdefault(name, FakeBucket(name))

    def list_blobs(self, bucket: FakeBucket, prefix: str = "") -> list[FakeBlob]:
        error = bucket.failures.get("list")
        if error is not None:
            raise error
        listed = []
        for name in sorted(bucket.objects):
            if name.startswith(prefix):
                blob = FakeBlob(bucket, name)
                blob.time_created = bucket.objects[name].get("time_created")
                listed.append(blob)
        return listed

    def close(self) -> None:
        self.closed = True


def make_jpeg(exif_tags: dict[int, Any] | None = None, size: tuple[int, int] = (64, 48)) -> bytes:
    """Encode a small JPEG, optionally with IFD0 EXIF tags."""
    image = Image.new("RGB", size, color=(200, 120, 40))
    buffer = io.BytesIO()
    if exif_tags:
        exif = Image.Exif()
        for tag, value in exif_tags.items():
            exif[tag] = value
        image.save(buffer, format="JPEG", exif=exif)
    else:
        image.save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.fixture(autouse=True, scope="session")
def structured_logging() -> None:
    """Route structlog through stdlib logging so stdout only carries what the code prints."""
    configure_structured_logging()


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Isolate configuration from the developer's environment."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("JWT_SECRET_KEY", TEST_SECRET)
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    monkeypatch.setenv("GCS_PHOTOS_BUCKET", "test-photos-bucket")
    monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "test-project")
    get_config().clear_cache()
    yield
    get_config().clear_cache()


@pytest.fixture
def storage_client() -> FakeStorageClient:
    return FakeStorageClient()


@pytest.fixture
def storage_service(storage_client: FakeStorageClient) -> StorageService:
    return StorageService(
        bucket_name="test-photos-bucket",
        project_id="test-project",
        prefix="photos/blobs",
        client=storage_client,
    )


@pytest.fixture
def bucket(storage_client: FakeStorageClient) -> FakeBucket:
    return storage_client.bucket("test-photos-bucket")


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "db" / "photostore.duckdb")


@pytest.fixture
def db_manager(db_path: str) -> Generator[DatabaseManager, None, None]:
    manager = create_database(db_path)
    yield manager
    manager.close()


@pytest.fixture
def metadata_service(db_manager: DatabaseManager) -> MetadataService:
    return MetadataService(db_manager)


@pytest.fixture
def auth_service() -> AuthService:
    return AuthService(secret=TEST_SECRET, algorithm="HS256", token_ttl_seconds=3600, bcrypt_rounds=4)


@pytest.fixture
def coordinator(
    storage_service: StorageService, metadata_service: MetadataService, auth_service: AuthService
) -> PhotoStorageCoordinator:
    return PhotoStorageCoordinator(storage_service, metadata_service, auth_service, max_file_size=1024 * 1024)


@pytest.fixture
def store_context(
    db_manager: DatabaseManager, storage_service: StorageService, auth_service: AuthService
) -> Generator[StoreContext, None, None]:
    context = StoreContext(db_manager, storage_service, auth_service).open()
    yield context
    context.close()


@pytest.fixture
def owner_token(auth_service: AuthService) -> str:
    return auth_service.issue_token("user-a")


@pytest.fixture
def other_token(auth_service: AuthService) -> str:
    return auth_service.issue_token("user-b")


@pytest.fixture
def jpeg_bytes() -> bytes:
    """A plain JPEG without EXIF."""
    return make_jpeg()


@pytest.fixture
def canon_jpeg() -> bytes:
    """A JPEG with Make=Canon and DateTimeOriginal=2024:01:01 10:00:00."""
    return make_jpeg({271: "Canon", 272: "EOS R5", 36867: "2024:01:01 10:00:00"})


@pytest.fixture
def jpeg_factory():
    """Build JPEGs with chosen IFD0 EXIF tags: ``jpeg_factory({271: "Canon"}, size=(8, 8))``."""
    return make_jpeg
