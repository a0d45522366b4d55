"""
photostore - Self-hosted photo storage backend

Keeps photo bytes in Google Cloud Storage and photo/user records in DuckDB
consistent with each other:
- Ingest, rename and delete coordinated across both stores
- Ownership checks on every photo operation
- EXIF metadata extraction
- Token authentication and user accounts
- HTTP API and operator tasks
"""

__version__ = "0.1.0"
__author__ = "photostore"
__description__ = "Self-hosted photo storage backend"
