"""
Billing domain exceptions.

Exception Hierarchy:
    BaseApplicationError (core)
    └── BillingError
        ├── SubscriptionNotFoundError (404)
        ├── UserNotFoundError (404)
        ├── ActiveSubscriptionConflictError (409)
        ├── InvalidPlanError (400)
        ├── WebhookSignatureError (400)
        ├── MalformedPayloadError (400)
        ├── ReconciliationError (swallowed; webhook still answers 200)
        └── GatewayError (500)
            ├── GatewayUnavailableError - network failure, timeout, 5xx (retryable)
            ├── GatewayRateLimitError - 429 (retryable)
            ├── GatewayAuthenticationError - bad key id / secret
            └── GatewayRequestError - 4xx rejected by Razorpay

Usage:
    from billing.exceptions import GatewayError

    try:
        gateway.cancel_subscription("sub_123", cancel_at_cycle_end=True)
    except GatewayError as e:
        if e.is_retryable:
            ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


class BillingError(BaseApplicationError):
    """Base class for billing errors."""

    default_error_code: str = "BILLING_ERROR"


class SubscriptionNotFoundError(BillingError, NotFoundError):
    """No subscription (or no live Razorpay subscription) for the user."""

    default_error_code: str = "SUBSCRIPTION_NOT_FOUND"


class UserNotFoundError(BillingError, NotFoundError):
    default_error_code: str = "USER_NOT_FOUND"


class ActiveSubscriptionConflictError(BillingError, ConflictError):
    """Checkout requested while a paid subscription is already active."""

    default_error_code: str = "SUBSCRIPTION_ALREADY_ACTIVE"


class InvalidPlanError(BillingError, ValidationError):
    """Unknown tier or interval, or no Razorpay plan configured for it."""

    default_error_code: str = "INVALID_PLAN"


class WebhookSignatureError(BillingError):
    default_error_code: str = "INVALID_SIGNATURE"


class MalformedPayloadError(BillingError):
    """Webhook body is not a JSON object."""

    default_error_code: str = "MALFORMED_PAYLOAD"


class ReconciliationError(BillingError):
    """A webhook could not be applied to local state."""

    default_error_code: str = "RECONCILIATION_FAILED"


# =============================================================================
# Gateway Errors
# =============================================================================


class GatewayError(BillingError, ExternalServiceError):
    """
    Base class for Razorpay API failures.

    Attributes:
        status_code: HTTP status returned by Razorpay, if any
        razorpay_code: Razorpay error.code from the response body, if any
        is_retryable: Whether retrying the same call may succeed
    """

    default_error_code: str = "GATEWAY_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        razorpay_code: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.status_code = status_code
        self.razorpay_code = razorpay_code
        details = dict(details or {})
        if status_code is not None:
            details.setdefault("status_code", status_code)
        if razorpay_code:
            details.setdefault("razorpay_code", razorpay_code)
        super().__init__(message, error_code=error_code, details=details)


class GatewayUnavailableError(GatewayError):
    default_error_code: str = "GATEWAY_UNAVAILABLE"
    is_retryable: bool = True


class GatewayRateLimitError(GatewayError):
    default_error_code: str = "GATEWAY_RATE_LIMITED"
    is_retryable: bool = True


class GatewayAuthenticationError(GatewayError):
    default_error_code: str = "GATEWAY_AUTHENTICATION_FAILED"


class GatewayRequestError(GatewayError):
    default_error_code: str = "GATEWAY_REQUEST_REJECTED"
