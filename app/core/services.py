"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Uniform {success, message, data} result for every mutation
- BaseService: Base class with logging, transaction and exception helpers
- service_operation: Decorator that turns unexpected exceptions into a
  generic failure result at the operation boundary

Service Layer Philosophy:
    Services encapsulate business logic separate from views and models.
    Views handle HTTP concerns, models handle data, services handle logic.
    Every public service operation returns a ServiceResult; callers check
    ``success`` before trusting ``data``.

Failure Policy:
    - Validation failures: ServiceResult.failure(..., "VALIDATION_ERROR")
    - Missing entities: ServiceResult.failure(..., "<ENTITY>_NOT_FOUND")
    - Anything unexpected: caught by @service_operation, logged with its
      traceback, and returned as a generic failure ("INTERNAL_ERROR").
      The underlying cause is never exposed to the caller.

Usage:
    from core.services import BaseService, ServiceResult, service_operation

    class ChannelService(BaseService):
        @classmethod
        @service_operation("Failed to create channel")
        def create_channel(cls, workspace, creator, name) -> ServiceResult[Channel]:
            if not name:
                return ServiceResult.failure(
                    "Channel name is required",
                    error_code="VALIDATION_ERROR",
                )

            with cls.atomic():
                channel = Channel.objects.create(workspace=workspace, name=name)
                ChannelMembership.objects.create(channel=channel, user=creator)

            cls.get_logger().info(f"Created channel {channel.id}")
            return ServiceResult.success(channel, "Channel created successfully")

    # In view
    result = ChannelService.create_channel(workspace, request.user, name)
    if result.success:
        return Response(result.map(serialize).to_response(), status=201)
    return Response(result.to_response(), status=400)

Related:
    - core.exceptions: Exceptions for the realtime layer and consumers
    - core.viewset_mixins: Maps ServiceResult to HTTP responses
"""

from __future__ import annotations

import functools
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Callable, Generator
    from typing import Any

# Generic type for ServiceResult data
T = TypeVar("T")

GENERIC_FAILURE_MESSAGE = "An unexpected error occurred"
INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Every mutation returns one of these instead of raising. The response
    shape is ``{"success": bool, "message": str, "data"?: T}``.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        message: Human-readable message for both outcomes
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures

    Usage:
        # Success case
        return ServiceResult.success(channel, "Channel created successfully")

        # Failure case
        return ServiceResult.failure("Channel not found", "CHANNEL_NOT_FOUND")

        # Check result
        result = ChannelService.get_channel(channel_id, user)
        if result.success:
            channel = result.data
        else:
            logger.info(f"{result.message} ({result.error_code})")
    """

    success: bool
    data: T | None = None
    message: str = ""
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T = None, message: str = "") -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data
            message: Optional human-readable confirmation

        Returns:
            ServiceResult with success=True and data set
        """
        return cls(success=True, data=data, message=message)

    @classmethod
    def failure(
        cls,
        message: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)

        Returns:
            ServiceResult with success=False and error details

        Example:
            return ServiceResult.failure(
                "Validation failed",
                error_code="VALIDATION_ERROR",
                errors={"name": ["This field is required."]},
            )
        """
        return cls(
            success=False,
            message=message,
            error_code=error_code,
            errors=errors,
        )

    @property
    def error(self) -> str | None:
        """Failure message, None for successful results."""
        return None if self.success else self.message

    def to_response(self) -> dict[str, Any]:
        """
        Convert to the uniform API response envelope.

        ``data`` is included only when the operation succeeded and produced
        something; it must already be JSON-serializable (see ``map``).

        Returns:
            Dict with success, message and optional data/error details
        """
        response: dict[str, Any] = {
            "success": self.success,
            "message": self.message,
        }
        if self.success:
            if self.data is not None:
                response["data"] = self.data
            return response

        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        return response

    def map(self, func: Callable[[T], Any]) -> ServiceResult:
        """
        Transform the data if successful.

        Args:
            func: Function to apply to data

        Returns:
            New ServiceResult with transformed data and the same message

        Example:
            result = ChannelService.get_channel(channel_id, user)
            payload = result.map(lambda c: ChannelSerializer(c).data)
        """
        if self.success and self.data is not None:
            return ServiceResult.success(func(self.data), self.message)
        return self

    def __bool__(self) -> bool:
        """Allow ``if result:`` as shorthand for ``if result.success:``."""
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management
    - Exception to ServiceResult conversion

    Design Notes:
        - Use @classmethod (no instance state)
        - Services are stateless; all sharing happens through the database
        - Use ServiceResult for expected failures
        - Wrap public operations with @service_operation
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        All database operations within this context manager are
        wrapped in a transaction. If any operation fails, all
        changes are rolled back and change feed events registered
        inside the block are discarded.

        Example:
            with cls.atomic():
                reply = Message.objects.create(...)
                Message.objects.filter(pk=parent.pk).update(
                    reply_count=F("reply_count") + 1
                )
        """
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        message: str = GENERIC_FAILURE_MESSAGE,
        log_level: int = logging.ERROR,
    ) -> ServiceResult:
        """
        Convert an unexpected exception to a generic failure with logging.

        The traceback is logged on the service logger; the caller only
        sees ``message`` and the INTERNAL_ERROR code.

        Args:
            exc: The caught exception
            context: Operation name for the log line
            message: Generic message returned to the caller
            log_level: Logging level (default ERROR)

        Returns:
            ServiceResult failure with error_code INTERNAL_ERROR
        """
        log_message = f"{context}: {exc}" if context else str(exc)
        cls.get_logger().log(log_level, log_message, exc_info=exc)
        return ServiceResult.failure(message, error_code=INTERNAL_ERROR)

    @classmethod
    def validate_required(cls, **kwargs) -> ServiceResult | None:
        """
        Validate that required fields are provided.

        Returns a failure result if any required field is None or blank.
        Returns None if all fields are valid.

        Example:
            validation = cls.validate_required(workspace_id=workspace_id, name=name)
            if validation is not None:
                return validation
        """
        errors = {}
        for field_name, value in kwargs.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[field_name] = ["This field is required."]

        if errors:
            missing = ", ".join(errors)
            return ServiceResult.failure(
                f"Required fields missing: {missing}",
                error_code="VALIDATION_ERROR",
                errors=errors,
            )
        return None


def service_operation(failure_message: str = GENERIC_FAILURE_MESSAGE):
    """
    Catch-all boundary for a service classmethod.

    Any exception escaping the wrapped operation is logged with its
    traceback and converted to ``ServiceResult.failure(failure_message,
    "INTERNAL_ERROR")``. Place it under ``@classmethod``.

    Args:
        failure_message: Generic message returned when the operation fails

    Example:
        class WorkspaceService(BaseService):
            @classmethod
            @service_operation("Failed to delete workspace")
            def delete_workspace(cls, workspace_id, user):
                ...
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(cls, *args, **kwargs):
            try:
                return func(cls, *args, **kwargs)
            except Exception as exc:
                return cls.handle_exception(
                    exc,
                    context=func.__name__,
                    message=failure_message,
                )

        return wrapper

    return decorator
