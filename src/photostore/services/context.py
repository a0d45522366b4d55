"""
Process-wide store handles.

A StoreContext is created once at startup, opened, handed to whatever needs
the stores (API app, operator tasks) and closed at shutdown. Nothing in the
services reaches for a global store handle.
"""

from google.cloud import storage  # type: ignore[attr-defined]

from ..config import get_database_path
from ..logging_config import get_logger
from ..models.database import DatabaseManager
from .auth import AuthService
from .coordinator import PhotoStorageCoordinator
from .image_processor import ImageProcessor
from .metadata import MetadataService
from .storage import StorageService
from .users import UserService

logger = get_logger(__name__)


class StoreContext:
    """Owns the database connection and the blob store client."""

    def __init__(
        self,
        db_manager: DatabaseManager,
        storage_service: StorageService,
        auth: AuthService,
        image_processor: ImageProcessor | None = None,
    ) -> None:
        self.db_manager = db_manager
        self.storage = storage_service
        self.auth = auth
        self.metadata = MetadataService(db_manager)
        self.coordinator = PhotoStorageCoordinator(
            storage=storage_service,
            metadata=self.metadata,
            auth=auth,
            image_processor=image_processor or ImageProcessor(),
        )
        self.users = UserService(self.metadata, auth)
        self._opened = False

    @classmethod
    def from_config(
        cls,
        db_path: str | None = None,
        storage_client: storage.Client | None = None,
    ) -> "StoreContext":
        """
        Build a context from environment configuration.

        Args:
            db_path: DuckDB path override (defaults to DATABASE_PATH)
            storage_client: GCS client override, e.g. for an emulator
        """
        return cls(
            db_manager=DatabaseManager(db_path or get_database_path()),
            storage_service=StorageService(client=storage_client),
            auth=AuthService(),
        )

    @property
    def is_open(self) -> bool:
        return self._opened

    def open(self) -> "StoreContext":
        """Connect to the database and make sure the schema exists."""
        if not self._opened:
            self.db_manager.connect()
            self.db_manager.initialize_schema()
            self._opened = True
            logger.info("store_context_opened", db_path=self.db_manager.db_path, bucket=self.storage.bucket_name)
        return self

    def close(self) -> None:
        """Release the database connection and the storage client."""
        if not self._opened:
            return
        self.db_manager.close()
        close_client = getattr(self.storage.client, "close", None)
        if callable(close_client):
            close_client()
        self._opened = False
        logger.info("store_context_closed")

    def __enter__(self) -> "StoreContext":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
