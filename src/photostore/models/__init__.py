"""
Models module for photostore.

This module contains data models and schemas:
- PhotoRecord: Metadata-store document for one photo
- User: Account record
- DatabaseManager: DuckDB connection and schema management
"""

from .database import DatabaseManager, create_database
from .photo import Dimensions, GeoLocation, ImportantMetadata, PhotoRecord, normalize_tags
from .schema import get_schema_statements
from .user import User

__all__ = [
    "PhotoRecord",
    "ImportantMetadata",
    "GeoLocation",
    "Dimensions",
    "normalize_tags",
    "User",
    "DatabaseManager",
    "create_database",
    "get_schema_statements",
]
