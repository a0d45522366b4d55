"""
Structured logging setup for photostore.

All modules log through structlog with snake_case event names and keyword
context, so that store operations, security events and cross-store
consistency violations can be filtered by event name in production logs.
"""

import logging
import os
import sys
from typing import Any

import structlog

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def get_log_level() -> int:
    """
    Get log level from the LOG_LEVEL environment variable.

    Returns:
        int: Log level constant from logging module (INFO when unset or unknown)
    """
    return LEVELS.get(os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)


def is_development_environment() -> bool:
    """Check if running in development environment."""
    return os.getenv("ENVIRONMENT", "development").lower() in ["development", "dev", "local", "test"]


def configure_structured_logging() -> None:
    """
    Configure structlog for the whole process.

    Development gets the console renderer, everything else renders JSON
    lines to stderr.
    """
    log_level = get_log_level()
    is_dev = is_development_environment()

    logging.basicConfig(level=log_level, format="%(message)s", stream=sys.stderr)

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if is_dev:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.getLogger().setLevel(log_level)

    get_logger("photostore.logging").info(
        "logging_configured",
        log_level=logging.getLevelName(log_level),
        environment="development" if is_dev else "production",
    )


def get_logger(name: str | None = None) -> Any:
    """
    Get a structured logger instance.

    Args:
        name: Logger name, usually the calling module's ``__name__``

    Returns:
        structlog.BoundLogger: Configured logger instance
    """
    return structlog.get_logger(name or "photostore")


def log_performance(operation: str, duration: float, **context: Any) -> None:
    """
    Log the duration of a store operation.

    Args:
        operation: Name of the operation
        duration: Duration in seconds
        **context: Additional context information
    """
    get_logger("photostore.performance").info(
        "performance_metric", operation=operation, duration_seconds=duration, **context
    )


def log_user_action(user_id: str, action: str, **context: Any) -> None:
    """
    Log user actions for the audit trail.

    Args:
        user_id: User identifier
        action: Action performed
        **context: Additional context information
    """
    get_logger("photostore.user_actions").info("user_action", user_id=user_id, action=action, **context)


def log_error(error: Exception, context: dict[str, Any] | None = None) -> None:
    """
    Log errors with structured context.

    Args:
        error: Exception that occurred
        context: Additional context information
    """
    error_context = {
        "error_type": type(error).__name__,
        "error_message": str(error),
    }
    if context:
        error_context.update(context)

    get_logger("photostore.errors").error("error_occurred", **error_context)


def log_security_event(event_type: str, user_id: str | None = None, **context: Any) -> None:
    """
    Log security-related events (token failures, ownership mismatches).

    Args:
        event_type: Type of security event
        user_id: User identifier (if known)
        **context: Additional context information
    """
    get_logger("photostore.security").warning("security_event", event_type=event_type, user_id=user_id, **context)


def log_consistency_violation(kind: str, **context: Any) -> None:
    """
    Log a state where the blob store and the metadata store disagree.

    These entries need operator attention and are kept under their own
    logger and event name so they can be alerted on.

    Args:
        kind: Error code describing the violation
        **context: Photo ID, blob ID and the underlying errors
    """
    get_logger("photostore.consistency").critical("consistency_violation", kind=kind, **context)


class LogContext:
    """Context manager that binds structured context to a logger."""

    def __init__(self, logger: Any, **context: Any):
        self.logger = logger
        self.context = context
        self.bound_logger: Any = None

    def __enter__(self) -> Any:
        self.bound_logger = self.logger.bind(**self.context)
        return self.bound_logger

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if exc_type is not None and self.bound_logger is not None:
            self.bound_logger.warning(
                "operation_aborted", exception_type=exc_type.__name__, exception_message=str(exc_val)
            )


def log_context(logger: Any, **context: Any) -> LogContext:
    """
    Create a logging context manager.

    Args:
        logger: Logger to bind context to
        **context: Context variables to add to all log messages

    Returns:
        LogContext: Context manager for structured logging
    """
    return LogContext(logger, **context)
