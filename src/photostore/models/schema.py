"""
Database schema definitions for photostore.

The photos table references blobs by ID only. No foreign key ties
``photos.blob_id`` to the blob store or ``photos.user_id`` to users; the
coordinator keeps those links valid.
"""

USERS_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id VARCHAR PRIMARY KEY,
    name VARCHAR NOT NULL,
    email VARCHAR NOT NULL UNIQUE,
    username VARCHAR NOT NULL UNIQUE,
    password_hash VARCHAR NOT NULL,
    created_at TIMESTAMP NOT NULL
);
"""

PHOTOS_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS photos (
    id VARCHAR PRIMARY KEY,
    user_id VARCHAR NOT NULL,
    filename VARCHAR NOT NULL,
    blob_id VARCHAR NOT NULL,
    content_type VARCHAR NOT NULL,
    date_taken TIMESTAMP,
    size BIGINT,
    make VARCHAR,
    model VARCHAR,
    latitude DOUBLE,
    longitude DOUBLE,
    width INTEGER,
    height INTEGER,
    tags VARCHAR[] NOT NULL,
    description VARCHAR,
    is_favorite BOOLEAN NOT NULL DEFAULT false,
    full_metadata VARCHAR,
    uploaded_at TIMESTAMP NOT NULL
);
"""

PHOTOS_TABLE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_photos_user_id ON photos(user_id);",
    "CREATE INDEX IF NOT EXISTS idx_photos_blob_id ON photos(blob_id);",
]

ALL_SCHEMA_STATEMENTS = [USERS_TABLE_SCHEMA, PHOTOS_TABLE_SCHEMA] + PHOTOS_TABLE_INDEXES

PHOTO_COLUMNS = (
    "id",
    "user_id",
    "filename",
    "blob_id",
    "content_type",
    "date_taken",
    "size",
    "make",
    "model",
    "latitude",
    "longitude",
    "width",
    "height",
    "tags",
    "description",
    "is_favorite",
    "full_metadata",
    "uploaded_at",
)

USER_COLUMNS = ("id", "name", "email", "username", "password_hash", "created_at")

REQUIRED_COLUMNS = {
    "photos": set(PHOTO_COLUMNS),
    "users": set(USER_COLUMNS),
}


def get_schema_statements() -> list[str]:
    """
    Get all database schema creation statements.

    Returns:
        List of SQL statements to create tables and indexes
    """
    return ALL_SCHEMA_STATEMENTS
