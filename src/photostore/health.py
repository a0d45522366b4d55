"""
Health checks for photostore.

Checks run against the live StoreContext: the shared DuckDB connection with
its schema, and the configured photos bucket.
"""

import sys
import time
from typing import Any

import duckdb

from . import __version__
from .config import get_env
from .logging_config import get_logger
from .services.context import StoreContext

logger = get_logger(__name__)

_start_time = time.time()


def check_database_health(context: StoreContext) -> dict[str, Any]:
    """Check the metadata database connection and schema."""
    try:
        context.db_manager.execute_query("SELECT 1")
        if not context.db_manager.verify_schema():
            return {"status": "unhealthy", "message": "Database schema is incomplete", "timestamp": time.time()}

        return {
            "status": "healthy",
            "message": "Database connection successful",
            "timestamp": time.time(),
            "photos": context.db_manager.execute_query("SELECT COUNT(*) FROM photos")[0][0],
        }
    except duckdb.Error as e:
        logger.error("database_health_check_failed", error=str(e))
        return {"status": "unhealthy", "message": f"Database connection failed: {e}", "timestamp": time.time()}


def check_storage_health(context: StoreContext) -> dict[str, Any]:
    """Check that the photos bucket is reachable."""
    bucket_name = context.storage.bucket_name
    if not context.storage.check_bucket_exists():
        return {
            "status": "unhealthy",
            "message": f"Bucket not reachable: {bucket_name}",
            "timestamp": time.time(),
            "bucket": bucket_name,
        }

    return {
        "status": "healthy",
        "message": f"Storage connection successful to bucket: {bucket_name}",
        "timestamp": time.time(),
        "bucket": bucket_name,
    }


def get_application_info() -> dict[str, Any]:
    """Get application information."""
    return {
        "name": "photostore",
        "version": __version__,
        "environment": get_env("ENVIRONMENT", "unknown"),
        "timestamp": time.time(),
        "uptime": time.time() - _start_time,
        "python_version": sys.version.split()[0],
    }


def get_health_status(context: StoreContext) -> dict[str, Any]:
    """Run every check and report an overall status."""
    logger.info("health_check_started")
    start_time = time.time()

    checks = {
        "database": check_database_health(context),
        "storage": check_storage_health(context),
    }

    unhealthy_services = [service for service, result in checks.items() if result["status"] != "healthy"]
    overall_status = "unhealthy" if unhealthy_services else "healthy"

    health_response: dict[str, Any] = {
        "status": overall_status,
        "timestamp": time.time(),
        "duration_ms": round((time.time() - start_time) * 1000, 2),
        "application": get_application_info(),
        "checks": checks,
    }
    if unhealthy_services:
        health_response["unhealthy_services"] = unhealthy_services

    logger.info(
        "health_check_completed",
        status=overall_status,
        duration_ms=health_response["duration_ms"],
        unhealthy_services=unhealthy_services,
    )
    return health_response
