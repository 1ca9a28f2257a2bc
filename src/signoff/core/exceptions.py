"""
Custom Exceptions for Signoff
=============================

Structured error handling allows the HTTP layer to map errors to status
codes and machine-readable reasons by type rather than parsing strings.

Error Codes:
- 1xxx: Client errors (missing fields, malformed tokens, unknown kinds)
- 2xxx: Security errors (approver identity, integrity tag)
- 3xxx: Delivery errors (notification gateway unreachable)
- 5xxx: System errors (internal, configuration)
"""

from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Structured error codes for user-friendly messages"""

    # 1xxx: Client Errors
    VALIDATION_ERROR = 1001
    MISSING_FIELD = 1002
    INVALID_TOKEN = 1003
    UNKNOWN_KIND = 1004

    # 2xxx: Security Errors
    UNAUTHORIZED = 2001

    # 3xxx: Delivery Errors
    DELIVERY_FAILED = 3001

    # 5xxx: System Errors
    INTERNAL_ERROR = 5001
    CONFIGURATION_ERROR = 5003


class SignoffError(Exception):
    """Base exception for all Signoff errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    @property
    def reason(self) -> str:
        """Machine-readable reason, e.g. ``missing_field``."""
        return self.error_code.name.lower()

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured logging"""
        return {
            'error_type': self.__class__.__name__,
            'error_code': int(self.error_code),
            'message': self.message,
            'details': self.details
        }

    def user_message(self) -> str:
        """Get user-friendly error message based on error code"""
        code_messages = {
            ErrorCode.VALIDATION_ERROR: "Invalid input provided",
            ErrorCode.MISSING_FIELD: "Missing required fields",
            ErrorCode.INVALID_TOKEN: "Invalid token",
            ErrorCode.UNKNOWN_KIND: "Unknown type",
            ErrorCode.UNAUTHORIZED: "Not authorised",
            ErrorCode.DELIVERY_FAILED: "Notification delivery failed",
            ErrorCode.INTERNAL_ERROR: "Internal server error",
            ErrorCode.CONFIGURATION_ERROR: "Configuration error",
        }
        return f"Error {self.error_code}: {code_messages.get(self.error_code, self.message)}"


class ValidationError(SignoffError):
    """Raised when caller input is rejected before any state is touched"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code, details)


class AuthorizationError(SignoffError):
    """Raised when the approver identity or integrity tag does not check out"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNAUTHORIZED,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code, details)


class DeliveryError(SignoffError):
    """Raised when the notification gateway cannot deliver a message"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.DELIVERY_FAILED, details)


class ConfigurationError(SignoffError):
    """Raised when required configuration is missing or unusable"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)
