"""
Unit tests for health checks.
"""

from unittest.mock import patch

import duckdb

from photostore.health import (
    check_database_health,
    check_storage_health,
    get_application_info,
    get_health_status,
)


class TestHealthChecks:
    """Test cases for the individual checks."""

    def test_database_healthy(self, store_context):
        """Test a working database with its schema."""
        result = check_database_health(store_context)

        assert result["status"] == "healthy"
        assert result["photos"] == 0

    def test_database_failure(self, store_context):
        """Test that a failing query marks the database unhealthy."""
        with patch.object(store_context.db_manager, "execute_query", side_effect=duckdb.IOException("gone")):
            result = check_database_health(store_context)

        assert result["status"] == "unhealthy"
        assert "gone" in result["message"]

    def test_database_schema_incomplete(self, store_context):
        """Test that a missing table marks the database unhealthy."""
        with patch.object(store_context.db_manager, "verify_schema", return_value=False):
            result = check_database_health(store_context)

        assert result["status"] == "unhealthy"

    def test_storage(self, store_context, bucket):
        """Test bucket reachability."""
        assert check_storage_health(store_context)["status"] == "healthy"

        bucket.reachable = False
        assert check_storage_health(store_context)["status"] == "unhealthy"

    def test_application_info(self):
        """Test the static application info."""
        info = get_application_info()

        assert info["name"] == "photostore"
        assert info["environment"] == "test"
        assert info["uptime"] >= 0


class TestHealthStatus:
    """Test cases for the aggregated status."""

    def test_all_healthy(self, store_context):
        """Test that all checks passing is healthy."""
        status = get_health_status(store_context)

        assert status["status"] == "healthy"
        assert set(status["checks"]) == {"database", "storage"}
        assert "unhealthy_services" not in status

    def test_one_unhealthy(self, store_context, bucket):
        """Test that a failing check makes the whole status unhealthy."""
        bucket.reachable = False

        status = get_health_status(store_context)

        assert status["status"] == "unhealthy"
        assert status["unhealthy_services"] == ["storage"]
