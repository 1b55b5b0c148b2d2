"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Service Layer Philosophy:
    Views handle HTTP concerns, models handle data, services handle logic.
    Expected failures (unknown plan, missing subscription) come back as a
    failed ServiceResult; unexpected failures are raised.

Usage:
    from core.services import BaseService, ServiceResult

    class CheckoutService(BaseService):
        @classmethod
        def create_checkout(cls, user_id, plan) -> ServiceResult[dict]:
            if plan not in PAID_TIERS:
                return ServiceResult.failure("Invalid plan", error_code="INVALID_PLAN")
            ...
            return ServiceResult.success(payload)

    # In view
    result = CheckoutService.create_checkout(request.user.id, plan)
    if result.success:
        return Response(result.data)
    return Response(result.to_response(), status=400)

Related:
    - core.exceptions: For unexpected/exceptional errors
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from typing import Any

    from core.exceptions import BaseApplicationError

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures

    Usage:
        return ServiceResult.success({"subscriptionId": "sub_123"})
        return ServiceResult.failure("User not found", "USER_NOT_FOUND")

        result = CancellationService.cancel_subscription(user.id)
        if result:  # Same as: if result.success
            ...
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """Create a successful result carrying ``data``."""
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Application errors keep their own message and error code; any other
        exception falls back to its class name as the code.

        Example:
            try:
                gateway.cancel_subscription(subscription_id)
            except GatewayError as e:
                return ServiceResult.from_exception(e)
        """
        message = getattr(exc, "message", None) or str(exc)
        code = error_code or getattr(exc, "error_code", None) or exc.__class__.__name__.upper()
        return cls(success=False, error=message, error_code=code)

    def to_response(self) -> dict[str, Any]:
        """
        Convert to API response format.

        Failed results render as ``{"error": ..., "error_code": ...}`` so the
        ``error`` key matches what API clients already read.
        """
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {"error": self.error}
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        return response

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Exception-to-result conversion

    Services are stateless: use @classmethod and pass collaborators
    (such as the payment gateway adapter) in as arguments.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get a logger named after the service class."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def handle_exception(
        cls,
        exc: BaseApplicationError | Exception,
        context: str = "",
        log_level: int = logging.ERROR,
        message: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> ServiceResult:
        """
        Log an exception and convert it to a failed ServiceResult.

        Args:
            exc: The caught exception
            context: Short description of the operation for the log line
            log_level: Logging level (default ERROR)
            message: Client-facing message used instead of the exception's own
            extra: Structured log context

        Example:
            except GatewayError as e:
                return cls.handle_exception(
                    e, "Failed to cancel Razorpay subscription",
                    message="Failed to cancel subscription",
                )
        """
        result = ServiceResult.from_exception(exc)
        log_message = f"{context}: {exc}" if context else str(exc)
        cls.get_logger().log(
            log_level,
            log_message,
            extra={**(extra or {}), "error_code": result.error_code},
            exc_info=True,
        )
        if message is not None:
            result.error = message
        return result
