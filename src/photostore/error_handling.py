"""
Error classification and handling for photostore.

Every failure the coordinator and the stores can report is a subclass of
PhotoStoreError carrying a machine-readable ``code`` (returned to clients), a
short ``user_message`` (returned to clients) and internal ``details`` (logged
only). Errors log themselves when they are created.

Cross-store consistency errors form their own category with critical
severity. They denote a state where the blob store and the metadata store
disagree and must never be reported as a generic internal error.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .logging_config import get_logger, log_consistency_violation, log_error, log_security_event

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Error categories for classification and handling."""

    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    IMAGE_PROCESSING = "image_processing"
    DATABASE = "database"
    STORAGE = "storage"
    CONSISTENCY = "consistency"
    SYSTEM = "system"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorInfo:
    """Structured error information."""

    category: ErrorCategory
    severity: ErrorSeverity
    code: str
    message: str
    user_message: str
    details: dict[str, Any]
    timestamp: datetime
    recoverable: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Convert error info to dictionary."""
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
            "user_message": self.user_message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
        }

    def to_response(self) -> dict[str, str]:
        """Client-facing payload: the error kind and a short message, nothing internal."""
        return {"error": self.code, "message": self.user_message}


class PhotoStoreError(Exception):
    """Base exception class for photostore."""

    default_code = "unknown_error"
    default_user_message = "An unexpected error occurred."

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        recoverable: bool = True,
        original_exception: Exception | None = None,
    ):
        super().__init__(message)
        self.category = category
        self.severity = severity
        self.code = code or self.default_code
        self.user_message = user_message or self.default_user_message
        self.details = details or {}
        self.recoverable = recoverable
        self.original_exception = original_exception
        self.timestamp = datetime.now(UTC)

        self._log_error()

    def _log_error(self) -> None:
        """Log the error with its structured context."""
        error_context = {
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            "recoverable": self.recoverable,
            **self.details,
        }
        if self.original_exception is not None:
            error_context["original_exception"] = repr(self.original_exception)

        if self.category is ErrorCategory.CONSISTENCY:
            log_consistency_violation(self.code, message=str(self), **self.details)
            return

        log_error(self, error_context)

        if self.category in (ErrorCategory.AUTHENTICATION, ErrorCategory.AUTHORIZATION):
            security_context = dict(self.details)
            user_id = security_context.pop("user_id", None)
            log_security_event(self.code, user_id=user_id, **security_context)

    def get_error_info(self) -> ErrorInfo:
        """Get structured error information."""
        return ErrorInfo(
            category=self.category,
            severity=self.severity,
            code=self.code,
            message=str(self),
            user_message=self.user_message,
            details=self.details,
            timestamp=self.timestamp,
            recoverable=self.recoverable,
        )


# Category base classes


class AuthenticationError(PhotoStoreError):
    """Token or credential problems."""

    default_code = "invalid_token"
    default_user_message = "Invalid or expired token."

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.AUTHENTICATION,
            severity=ErrorSeverity.HIGH,
            code=code,
            user_message=user_message,
            details=details,
            recoverable=True,
            original_exception=original_exception,
        )


class AuthorizationError(PhotoStoreError):
    """The caller is authenticated but not allowed to do this."""

    default_code = "unauthorized"
    default_user_message = "You are not allowed to perform this operation."

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.AUTHORIZATION,
            severity=ErrorSeverity.HIGH,
            code=code,
            user_message=user_message,
            details=details,
            recoverable=False,
            original_exception=original_exception,
        )


class ValidationError(PhotoStoreError):
    """Bad input. Reported directly to the caller, no state change."""

    default_code = "validation_failed"
    default_user_message = "The request is invalid."

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.LOW,
            code=code,
            user_message=user_message,
            details=details,
            recoverable=True,
            original_exception=original_exception,
        )


class ImageProcessingError(PhotoStoreError):
    """Image decoding or metadata extraction errors."""

    default_code = "image_processing_failed"
    default_user_message = "The image could not be processed."

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.IMAGE_PROCESSING,
            severity=ErrorSeverity.MEDIUM,
            code=code,
            user_message=user_message,
            details=details,
            recoverable=True,
            original_exception=original_exception,
        )


class DatabaseError(PhotoStoreError):
    """Metadata store errors."""

    default_code = "database_error"
    default_user_message = "A database error occurred. Please try again later."

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.DATABASE,
            severity=ErrorSeverity.HIGH,
            code=code,
            user_message=user_message,
            details=details,
            recoverable=True,
            original_exception=original_exception,
        )


class StorageError(PhotoStoreError):
    """Blob store errors."""

    default_code = "storage_error"
    default_user_message = "A storage error occurred. Please try again later."

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.STORAGE,
            severity=ErrorSeverity.HIGH,
            code=code,
            user_message=user_message,
            details=details,
            recoverable=True,
            original_exception=original_exception,
        )


class ConsistencyError(PhotoStoreError):
    """The two stores disagree and an operator has to reconcile them."""

    default_code = "consistency_error"
    default_user_message = "The operation left the photo library in an inconsistent state. Contact the administrator."

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.CONSISTENCY,
            severity=ErrorSeverity.CRITICAL,
            code=code,
            user_message=user_message,
            details=details,
            recoverable=False,
            original_exception=original_exception,
        )


# Authentication


class MissingTokenError(AuthenticationError):
    default_code = "missing_token"
    default_user_message = "Missing Authentication Header."


class InvalidTokenError(AuthenticationError):
    default_code = "invalid_token"


class ExpiredTokenError(AuthenticationError):
    default_code = "expired_token"


class InvalidCredentialsError(AuthenticationError):
    default_code = "invalid_credentials"
    default_user_message = "Invalid email, username or password."


# Authorization


class UnauthorizedError(AuthorizationError):
    default_code = "unauthorized"


class AdminAlreadyExistsError(AuthorizationError):
    default_code = "admin_already_exists"
    default_user_message = "Admin user already exists."


# Validation


class MissingFieldError(ValidationError):
    default_code = "missing_field"
    default_user_message = "Please provide all required fields."


class InvalidContentTypeError(ValidationError):
    default_code = "invalid_content_type"
    default_user_message = "Invalid file type. Only images can be uploaded."


class FileTooLargeError(ValidationError):
    default_code = "file_too_large"
    default_user_message = "The file is too large."


class NotFoundError(ValidationError):
    default_code = "not_found"
    default_user_message = "Not found."


class DuplicateUserError(ValidationError):
    default_code = "duplicate_user"
    default_user_message = "A user with this email or username already exists."


# Image processing


class MetadataExtractionError(ImageProcessingError):
    default_code = "metadata_extraction_failed"
    default_user_message = "Error reading metadata."


# Metadata store


class RecordWriteError(DatabaseError):
    default_code = "record_write_failed"


class RecordUpdateError(DatabaseError):
    default_code = "record_update_failed"


class RecordDeleteError(DatabaseError):
    default_code = "record_delete_failed"


# Blob store


class BlobWriteError(StorageError):
    default_code = "blob_write_failed"


class BlobReadError(StorageError):
    default_code = "blob_read_failed"


class BlobNotFoundError(StorageError):
    default_code = "blob_not_found"
    default_user_message = "File not found in storage."


class BlobDeleteError(StorageError):
    default_code = "blob_delete_failed"


class BlobRenameError(StorageError):
    default_code = "blob_rename_failed"


# Cross-store consistency


class PartialDeleteError(ConsistencyError):
    """The blob is gone but the record that references it could not be deleted."""

    default_code = "partial_delete_failure"


class RollbackFailedError(ConsistencyError):
    """A compensating rename could not restore the original filename."""

    default_code = "rollback_failed"


class OrphanedBlobError(ConsistencyError):
    """A blob was written but neither a record nor its compensating delete succeeded."""

    default_code = "orphaned_blob"


HTTP_STATUS_BY_CATEGORY = {
    ErrorCategory.AUTHENTICATION: 403,
    ErrorCategory.AUTHORIZATION: 403,
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.IMAGE_PROCESSING: 500,
    ErrorCategory.DATABASE: 500,
    ErrorCategory.STORAGE: 500,
    ErrorCategory.CONSISTENCY: 500,
    ErrorCategory.SYSTEM: 500,
    ErrorCategory.UNKNOWN: 500,
}

HTTP_STATUS_BY_CODE = {
    "not_found": 404,
    "invalid_credentials": 401,
    "duplicate_user": 409,
    "blob_not_found": 404,
}


def http_status_for(error: PhotoStoreError | ErrorInfo) -> int:
    """Map an error to the HTTP status the API layer answers with."""
    if error.code in HTTP_STATUS_BY_CODE:
        return HTTP_STATUS_BY_CODE[error.code]
    return HTTP_STATUS_BY_CATEGORY.get(error.category, 500)


class ErrorHandler:
    """Converts arbitrary exceptions to ErrorInfo and counts them per code."""

    def __init__(self) -> None:
        self.error_counts: dict[str, int] = {}
        self.logger = get_logger(__name__)

    def handle_error(self, error: Exception, context: dict[str, Any] | None = None) -> ErrorInfo:
        """
        Handle and classify errors.

        Exceptions that are not PhotoStoreError are wrapped as system errors;
        their text stays in the logs and never reaches ``user_message``.

        Args:
            error: Exception to handle
            context: Additional context information

        Returns:
            ErrorInfo: Structured error information
        """
        if not isinstance(error, PhotoStoreError):
            error = PhotoStoreError(
                str(error),
                category=ErrorCategory.SYSTEM,
                severity=ErrorSeverity.CRITICAL,
                code="system_error",
                user_message="Internal server error.",
                details={"original_type": type(error).__name__, **(context or {})},
                recoverable=False,
                original_exception=error,
            )

        error_info = error.get_error_info()
        self._track_error(error_info.code)
        return error_info

    def _track_error(self, error_code: str) -> None:
        """Track error occurrence for monitoring."""
        self.error_counts[error_code] = self.error_counts.get(error_code, 0) + 1

        if self.error_counts[error_code] % 10 == 0:
            self.logger.warning("frequent_error_detected", error_code=error_code, count=self.error_counts[error_code])

    def get_error_statistics(self) -> dict[str, int]:
        """Get error occurrence statistics."""
        return self.error_counts.copy()

    def reset_statistics(self) -> None:
        """Reset error statistics."""
        self.error_counts.clear()


error_handler = ErrorHandler()


def handle_error(error: Exception, context: dict[str, Any] | None = None) -> ErrorInfo:
    """Handle an error with the global error handler."""
    return error_handler.handle_error(error, context)


def get_error_handler() -> ErrorHandler:
    """Get the global error handler instance."""
    return error_handler
