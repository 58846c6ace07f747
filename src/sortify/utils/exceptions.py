"""
Custom Exceptions
=================

Defines custom exception classes for Sortify.
All exceptions include error codes for programmatic handling.
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """Error codes for programmatic error handling."""

    # General errors (1000-1099)
    UNKNOWN_ERROR = 1000
    CONFIGURATION_ERROR = 1001
    FILE_NOT_FOUND = 1002
    PERMISSION_DENIED = 1003

    # Move errors (1100-1199)
    PROCESSING_FAILED = 1100
    COLLISION_EXHAUSTED = 1101

    # Classification errors (1200-1299)
    CLASSIFICATION_AMBIGUITY = 1200

    # Monitoring errors (1300-1399)
    WATCH_SETUP_FAILED = 1300


class SortifyError(Exception):
    """Base exception for all Sortify errors.

    Attributes:
        message: Human-readable error message.
        error_code: Programmatic error code.
        details: Additional error context.
        cause: Original exception that caused this error.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: Optional[dict] = None,
        cause: Optional[Exception] = None
    ):
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Programmatic error code.
            details: Additional context as key-value pairs.
            cause: Original exception if wrapping another error.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        """Return a formatted error string."""
        result = f"[{self.error_code.name}] {self.message}"
        if self.details:
            result += f" | Details: {self.details}"
        if self.cause:
            result += f" | Caused by: {type(self.cause).__name__}: {self.cause}"
        return result

    def to_dict(self) -> dict:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "error_code": self.error_code.value,
            "error_name": self.error_code.name,
            "details": self.details,
            "cause": str(self.cause) if self.cause else None,
        }


class ConfigError(SortifyError):
    """Raised when there's a configuration problem.

    Examples:
        - Malformed extension in a category rule
        - Invalid configuration file format
        - Registering the same watched path twice
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type
        super().__init__(
            message,
            error_code=ErrorCode.CONFIGURATION_ERROR,
            details=details,
            **kwargs
        )


class ClassificationAmbiguity(SortifyError):
    """Raised when one extension is declared in two categories."""

    def __init__(
        self,
        message: str,
        extension: Optional[str] = None,
        categories: Optional[list] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if extension:
            details["extension"] = extension
        if categories:
            details["categories"] = list(categories)
        super().__init__(
            message,
            error_code=ErrorCode.CLASSIFICATION_AMBIGUITY,
            details=details,
            **kwargs
        )


class FileProcessingError(SortifyError):
    """Raised when a file operation fails.

    Examples:
        - Move across devices fails midway
        - Destination directory cannot be created
    """

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.PROCESSING_FAILED,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if file_path:
            details["file_path"] = file_path
        super().__init__(
            message,
            error_code=error_code,
            details=details,
            **kwargs
        )


class NotFound(FileProcessingError):
    """Raised when a source file, directory or watched path id is missing."""

    def __init__(self, message: str, file_path: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            file_path=file_path,
            error_code=ErrorCode.FILE_NOT_FOUND,
            **kwargs
        )


class PermissionDenied(FileProcessingError):
    """Raised when the OS refuses access. Never retried."""

    def __init__(self, message: str, file_path: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            file_path=file_path,
            error_code=ErrorCode.PERMISSION_DENIED,
            **kwargs
        )


class CollisionExhausted(FileProcessingError):
    """Raised when the bounded rename search finds no free name."""

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        attempts: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if attempts is not None:
            details["attempts"] = attempts
        super().__init__(
            message,
            file_path=file_path,
            error_code=ErrorCode.COLLISION_EXHAUSTED,
            details=details,
            **kwargs
        )


class WatchSetupFailed(SortifyError):
    """Raised when a directory watch cannot be created or is lost.

    Examples:
        - OS inotify watch limit reached
        - Watched directory removed while monitoring
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        path_id: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if path:
            details["path"] = path
        if path_id:
            details["path_id"] = path_id
        super().__init__(
            message,
            error_code=ErrorCode.WATCH_SETUP_FAILED,
            details=details,
            **kwargs
        )
