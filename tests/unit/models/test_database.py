"""
Unit tests for the database module.
"""

import os
import tempfile

import duckdb
import pytest

from photostore.models.database import DatabaseManager, create_database
from photostore.models.schema import PHOTO_COLUMNS, get_schema_statements


class TestDatabaseManager:
    """Test cases for DatabaseManager class."""

    def test_init(self):
        """Test DatabaseManager initialization."""
        manager = DatabaseManager("/tmp/test.db")

        assert manager.db_path == "/tmp/test.db"
        assert manager._connection is None

    def test_connect_creates_parent_directory(self):
        """Test that connect creates missing parent directories."""
        with tempfile.TemporaryDirectory() as tmp_dir:
            db_path = os.path.join(tmp_dir, "nested", "dir", "test.duckdb")
            manager = DatabaseManager(db_path)

            conn = manager.connect()

            assert isinstance(conn, duckdb.DuckDBPyConnection)
            assert os.path.isdir(os.path.dirname(db_path))
            assert manager.connect() is conn
            manager.close()
            assert manager._connection is None

    def test_initialize_and_verify_schema(self):
        """Test schema creation is idempotent and verifiable."""
        manager = DatabaseManager(":memory:")
        manager.initialize_schema()
        manager.initialize_schema()

        assert manager.verify_schema() is True
        columns = {row[0] for row in manager.execute_query("DESCRIBE photos")}
        assert set(PHOTO_COLUMNS) <= columns
        manager.close()

    def test_verify_schema_missing_tables(self):
        """Test verification fails on an empty database."""
        manager = DatabaseManager(":memory:")

        assert manager.verify_schema() is False
        manager.close()

    def test_fetch_dicts(self):
        """Test rows come back keyed by column name."""
        manager = DatabaseManager(":memory:")

        rows = manager.fetch_dicts("SELECT 1 AS one, 'x' AS letter")

        assert rows == [{"one": 1, "letter": "x"}]
        manager.close()

    def test_execute_query_propagates_errors(self):
        """Test that SQL errors are raised to the caller."""
        manager = DatabaseManager(":memory:")

        with pytest.raises(duckdb.Error):
            manager.execute_query("SELECT * FROM missing_table")
        manager.close()


class TestCreateDatabase:
    """Test cases for create_database."""

    def test_create_database(self, tmp_path):
        """Test creating an initialized database file."""
        manager = create_database(str(tmp_path / "photostore.duckdb"))

        assert manager.verify_schema() is True
        manager.close()

    def test_schema_statements_cover_both_tables(self):
        """Test the schema defines users and photos."""
        statements = " ".join(get_schema_statements())

        assert "CREATE TABLE IF NOT EXISTS users" in statements
        assert "CREATE TABLE IF NOT EXISTS photos" in statements
