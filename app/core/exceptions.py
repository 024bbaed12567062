"""
Base exception classes for application-wide error handling.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Malformed input, operation not attempted (400)
    ├── NotFoundError - Unknown id or not visible to the requester (404)
    ├── ConflictError - Constraint violations and invalid state transitions (409)
    └── StorageUnavailableError - Database unreachable, retryable (503)

Usage:
    from core.exceptions import NotFoundError, ValidationError

    raise ValidationError("Reply target must be in the same conversation",
                          error_code="INVALID_REPLY_TARGET")

    # Uniform not-found for "unknown" and "not yours"
    raise NotFoundError("Message not found", error_code="MESSAGE_NOT_FOUND")

Note:
    These exceptions are rendered by core.exception_handler into
    {"error", "error_code", "details"?} bodies with the class status code.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, metadata, etc.)
        status_code: HTTP status used when the error reaches a view
    """

    default_error_code: str = "APPLICATION_ERROR"
    status_code: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Message not found",
                "error_code": "MESSAGE_NOT_FOUND",
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for:
    - Missing body fields (empty text message, missing file url)
    - Reply targets outside the conversation
    - Group members that do not resolve to users
    """

    default_error_code: str = "VALIDATION_ERROR"
    status_code: int = 400


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found or not visible.

    Unknown ids and resources the requester may not touch (a message they
    did not send, a conversation they are not a member of) are reported
    with the same error so that existence is not leaked.
    """

    default_error_code: str = "NOT_FOUND"
    status_code: int = 404


class ConflictError(BaseApplicationError):
    """
    Raised when operation conflicts with current resource state.

    Use for:
    - Unique constraint violations (duplicate membership, taken username)
    - Invalid call status transitions

    Note:
        The caller may retry with corrected input.
    """

    default_error_code: str = "CONSTRAINT_VIOLATION"
    status_code: int = 409


class StorageUnavailableError(BaseApplicationError):
    """
    Raised when the database cannot be reached.

    Transient: clients may retry the same request later. Never swallowed;
    the original database error is logged by the exception handler.
    """

    default_error_code: str = "STORAGE_UNAVAILABLE"
    status_code: int = 503
