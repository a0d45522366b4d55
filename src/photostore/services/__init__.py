"""
Services module for photostore.

This module contains the service classes that handle business logic:
- StorageService: Blob store on Google Cloud Storage
- MetadataService: Photo and user records in DuckDB
- ImageProcessor: EXIF metadata extraction
- AuthService: Tokens and password hashing
- PhotoStorageCoordinator: Consistent, ownership-checked photo operations
- UserService: Account bootstrap, signup, login and deletion
- StoreContext: Process-wide store handles
"""

from .auth import AuthService
from .context import StoreContext
from .coordinator import PhotoDownload, PhotoStorageCoordinator
from .image_processor import ExtractedMetadata, ImageProcessor, get_image_processor
from .metadata import MetadataService
from .query import PhotoFilter, build_filter
from .reconciliation import ReconciliationReport, reconcile
from .storage import StorageService
from .users import LoginResult, UserService

__all__ = [
    "AuthService",
    "StoreContext",
    "PhotoDownload",
    "PhotoStorageCoordinator",
    "ExtractedMetadata",
    "ImageProcessor",
    "get_image_processor",
    "MetadataService",
    "PhotoFilter",
    "build_filter",
    "ReconciliationReport",
    "reconcile",
    "StorageService",
    "LoginResult",
    "UserService",
]
