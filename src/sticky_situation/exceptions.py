"""Custom exceptions for sticky-situation.

Provides a structured exception hierarchy with error codes and
machine-readable error information for better error handling.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Lookup errors (1xxx)
    STICKIES_DIR_NOT_FOUND = 1001
    BUNDLE_NOT_FOUND = 1002
    STICKY_NOT_FOUND = 1003

    # Format errors (2xxx)
    METADATA_INVALID = 2001

    # Storage errors (4xxx)
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    STORAGE_CONNECTION_FAILED = 4004

    # Companion application errors (5xxx)
    APP_CONTROL_FAILED = 5001

    # Configuration errors (6xxx)
    CONFIG_INVALID = 6001
    CONFIG_MISSING = 6002

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001
    PATH_TRAVERSAL_DETECTED = 7005


class StickyError(Exception):
    """Base exception for all sticky-situation errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class NotFoundError(StickyError):
    """Raised when an expected directory, bundle or record is absent."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        sticky_id: Optional[str] = None,
        code: ErrorCode = ErrorCode.BUNDLE_NOT_FOUND
    ):
        details = {}
        if path:
            details["path_hint"] = path.split("/")[-1] if "/" in path else path
        if sticky_id:
            details["sticky_id"] = sticky_id

        super().__init__(message, code=code, details=details)
        self.path = path
        self.sticky_id = sticky_id


class FormatError(StickyError):
    """Raised when a metadata file exists but cannot be understood."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        code: ErrorCode = ErrorCode.METADATA_INVALID,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if path:
            details["path_hint"] = path.split("/")[-1] if "/" in path else path
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.path = path
        self.original_error = original_error


class StorageError(StickyError):
    """Raised for storage/persistence errors."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        path: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if path:
            # Don't expose full paths in error messages
            details["path_hint"] = path.split("/")[-1] if "/" in path else path
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.path = path
        self.original_error = original_error


class AppControlError(StickyError):
    """Raised when the Stickies application cannot be queried or restarted."""

    def __init__(
        self,
        message: str,
        command: Optional[str] = None,
        code: ErrorCode = ErrorCode.APP_CONTROL_FAILED
    ):
        details = {}
        if command:
            details["command"] = command

        super().__init__(message, code=code, details=details)
        self.command = command


class ConfigurationError(StickyError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONFIG_INVALID
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=code, details=details)
        self.config_key = config_key


class ValidationError(StickyError):
    """Raised for general validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value
