"""
Database initialization and management for photostore.

One DatabaseManager (and so one DuckDB connection) exists per process. Each
query runs on its own cursor, so request handlers on different threads can
share the manager without holding a lock across store calls.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import duckdb

from ..logging_config import get_logger
from .schema import REQUIRED_COLUMNS, get_schema_statements

logger = get_logger(__name__)


class DatabaseManager:
    """
    Manages the DuckDB connection and schema.
    """

    def __init__(self, db_path: str):
        """
        Initialize DatabaseManager.

        Args:
            db_path: Path to the DuckDB database file, or ``:memory:``
        """
        self.db_path = db_path
        self._connection: duckdb.DuckDBPyConnection | None = None

    def connect(self) -> duckdb.DuckDBPyConnection:
        """
        Get or create the database connection.

        Returns:
            DuckDB connection object
        """
        if self._connection is None:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self._connection = duckdb.connect(self.db_path)
            logger.info("database_connected", db_path=self.db_path)

        return self._connection

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
            logger.info("database_closed", db_path=self.db_path)

    @contextmanager
    def cursor(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """Yield a cursor of the shared connection and close it afterwards."""
        cursor = self.connect().cursor()
        try:
            yield cursor
        finally:
            cursor.close()

    def initialize_schema(self) -> None:
        """
        Create all tables and indexes if they don't exist.

        Raises:
            duckdb.Error: If database operations fail
        """
        with self.cursor() as cur:
            try:
                for statement in get_schema_statements():
                    logger.debug("executing_schema_statement", statement=statement.strip().splitlines()[0])
                    cur.execute(statement)
            except duckdb.Error as e:
                logger.error("schema_initialization_failed", error=str(e))
                raise

        logger.info("database_schema_initialized", db_path=self.db_path)

    def verify_schema(self) -> bool:
        """
        Verify that the users and photos tables exist with all required columns.

        Returns:
            True if schema is valid, False otherwise
        """
        try:
            with self.cursor() as cur:
                for table, required in REQUIRED_COLUMNS.items():
                    rows = cur.execute(
                        "SELECT column_name FROM information_schema.columns WHERE table_name = ?", [table]
                    ).fetchall()
                    columns = {row[0] for row in rows}
                    if not columns:
                        logger.warning("table_missing", table=table)
                        return False
                    missing = required - columns
                    if missing:
                        logger.warning("columns_missing", table=table, missing=sorted(missing))
                        return False
        except duckdb.Error as e:
            logger.error("schema_verification_failed", error=str(e))
            return False

        return True

    def execute_query(self, query: str, parameters: list | tuple | None = None) -> list[tuple]:
        """
        Execute a SQL statement and return all result rows.

        Args:
            query: SQL query string
            parameters: Optional query parameters

        Returns:
            List of result tuples

        Raises:
            duckdb.Error: If query execution fails
        """
        with self.cursor() as cur:
            try:
                result = cur.execute(query, parameters) if parameters else cur.execute(query)
                return result.fetchall()
            except duckdb.Error as e:
                logger.error("query_failed", query=" ".join(query.split()), error=str(e))
                raise

    def fetch_dicts(self, query: str, parameters: list | tuple | None = None) -> list[dict[str, Any]]:
        """
        Execute a SELECT and return rows as column-name dictionaries.

        Raises:
            duckdb.Error: If query execution fails
        """
        with self.cursor() as cur:
            try:
                result = cur.execute(query, parameters) if parameters else cur.execute(query)
                columns = [description[0] for description in result.description]
                return [dict(zip(columns, row)) for row in result.fetchall()]
            except duckdb.Error as e:
                logger.error("query_failed", query=" ".join(query.split()), error=str(e))
                raise

    def __enter__(self) -> "DatabaseManager":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def create_database(db_path: str) -> DatabaseManager:
    """
    Open (creating if needed) a DuckDB database and make sure its schema exists.

    Args:
        db_path: Path of the database file, or ``:memory:``

    Returns:
        Initialized DatabaseManager instance

    Raises:
        RuntimeError: If database creation fails
    """
    db_manager = DatabaseManager(db_path)
    try:
        db_manager.initialize_schema()

        if not db_manager.verify_schema():
            raise RuntimeError("Schema verification failed after creation")
    except Exception as e:
        db_manager.close()
        logger.error("database_creation_failed", db_path=db_path, error=str(e))
        raise RuntimeError(f"Database creation failed: {e}") from e

    logger.info("database_ready", db_path=db_path)
    return db_manager
