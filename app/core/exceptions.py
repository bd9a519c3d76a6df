"""
Base exception classes for application-wide error handling.

Service operations report expected failures through ServiceResult. These
exceptions cover the places where raising is the natural seam: parsing
change feed filters, authorizing subscriptions and resolving the target of
a WebSocket connection. Consumers catch BaseApplicationError and turn it
into an ``error`` frame.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input validation failures
    ├── NotFoundError - Resource not found
    ├── PermissionDeniedError - Authorization failures
    └── ConflictError - Request conflicts with existing state

Usage:
    from core.exceptions import ValidationError

    raise ValidationError("Unsupported filter operator", error_code="INVALID_FILTER")

    try:
        ...
    except BaseApplicationError as e:
        await self.send_json({"type": "error", **e.to_dict()})
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
        details: Additional error context (offending filter, table, etc.)
    """

    default_error_code: str = "APPLICATION_ERROR"

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
        Convert exception to a dictionary for API and WebSocket responses.

        Example:
            {
                "error": "Unknown table 'mesages'",
                "error_code": "UNKNOWN_TABLE",
                "details": {"table": "mesages"}
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

    Example:
        raise ValidationError(
            "Filter must look like column=eq.value",
            error_code="INVALID_FILTER",
            details={"filter": expression},
        )
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Example:
        raise NotFoundError("Channel not found", error_code="CHANNEL_NOT_FOUND")
    """

    default_error_code: str = "NOT_FOUND"


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when a user may not read or subscribe to a resource.

    Note:
        For authentication failures (missing/invalid token) WebSocket
        consumers close with code 4001 instead.
    """

    default_error_code: str = "PERMISSION_DENIED"


class ConflictError(BaseApplicationError):
    """
    Raised when a request conflicts with existing state.

    Example:
        raise ConflictError(
            "Subscription id already in use",
            error_code="SUBSCRIPTION_EXISTS",
            details={"id": subscription_id},
        )
    """

    default_error_code: str = "CONFLICT"
