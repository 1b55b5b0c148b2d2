"""
Razorpay API adapter for subscription operations.

This module provides the RazorpayAdapter class which encapsulates every
Razorpay HTTP call the billing app makes. Services receive an adapter
instance as an argument instead of reaching for a module-level client, so
tests can pass a mock and deployments can hold several configured clients.

Features:
- Basic auth with the key id / key secret pair
- Configurable timeout on every call
- Automatic error translation to billing.exceptions.GatewayError subclasses
- Structured logging with timing metrics

Configuration (via settings):
- RAZORPAY_KEY_ID / RAZORPAY_KEY_SECRET: API credentials
- RAZORPAY_WEBHOOK_SECRET: Webhook signing secret
- RAZORPAY_API_BASE: API root (default: https://api.razorpay.com/v1)
- RAZORPAY_API_TIMEOUT_SECONDS: Call timeout (default: 10)

Usage:
    from billing.adapters import CreateSubscriptionParams, get_razorpay_adapter

    gateway = get_razorpay_adapter()
    result = gateway.create_subscription(
        CreateSubscriptionParams(
            plan_id="plan_pro_monthly",
            total_count=120,
            notes={"userId": "42", "plan": "PRO", "interval": "MONTHLY"},
        )
    )
    gateway.cancel_subscription(result.id, cancel_at_cycle_end=True)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

import requests
from django.conf import settings
from django.core.signals import setting_changed
from django.dispatch import receiver

from billing.exceptions import (
    GatewayAuthenticationError,
    GatewayError,
    GatewayRateLimitError,
    GatewayRequestError,
    GatewayUnavailableError,
    WebhookSignatureError,
)
from billing.webhooks.signature import verify_webhook_signature

DEFAULT_API_BASE = "https://api.razorpay.com/v1"


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CreateSubscriptionParams:
    """
    Parameters for creating a Razorpay subscription.

    Attributes:
        plan_id: Razorpay plan ID (plan_xxx)
        total_count: Number of billing cycles to charge
        quantity: Units of the plan per cycle
        customer_notify: Whether Razorpay emails the customer (1) or not (0)
        notes: Correlation notes echoed back on every webhook
        addons: Upfront add-on charges
    """

    plan_id: str
    total_count: int
    quantity: int = 1
    customer_notify: int = 1
    notes: dict[str, str] = field(default_factory=dict)
    addons: list[dict[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.plan_id:
            raise ValueError("plan_id is required")
        if self.total_count <= 0:
            raise ValueError("total_count must be positive")

    def to_request(self) -> dict[str, Any]:
        return {
            "plan_id": self.plan_id,
            "total_count": self.total_count,
            "quantity": self.quantity,
            "customer_notify": self.customer_notify,
            "addons": self.addons,
            "notes": self.notes,
        }


@dataclass
class SubscriptionResult:
    """
    Result from Razorpay subscription operations.

    Attributes:
        id: Subscription ID (sub_xxx)
        status: Razorpay status (created, authenticated, active, cancelled, ...)
        plan_id: Razorpay plan ID
        short_url: Hosted authorization link, when Razorpay returns one
        raw_response: Full response body (for debugging)
    """

    id: str
    status: str | None = None
    plan_id: str | None = None
    short_url: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> SubscriptionResult:
        return cls(
            id=data["id"],
            status=data.get("status"),
            plan_id=data.get("plan_id"),
            short_url=data.get("short_url"),
            raw_response=data,
        )


# =============================================================================
# Adapter
# =============================================================================


class RazorpayAdapter:
    """
    Client for the Razorpay subscriptions API.

    Instances are cheap and hold no connection state beyond their
    configuration, so one instance is safe to share across threads and
    Celery workers.
    """

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        webhook_secret: str = "",
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 10,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> RazorpayAdapter:
        """Build an adapter from Django settings."""
        return cls(
            key_id=settings.RAZORPAY_KEY_ID,
            key_secret=settings.RAZORPAY_KEY_SECRET,
            webhook_secret=settings.RAZORPAY_WEBHOOK_SECRET,
            api_base=getattr(settings, "RAZORPAY_API_BASE", DEFAULT_API_BASE),
            timeout=getattr(settings, "RAZORPAY_API_TIMEOUT_SECONDS", 10),
        )

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Core Operations
    # =========================================================================

    def create_subscription(self, params: CreateSubscriptionParams) -> SubscriptionResult:
        """
        Create a Razorpay subscription.

        Raises:
            GatewayRequestError: Razorpay rejected the parameters
            GatewayAuthenticationError: Bad credentials
            GatewayUnavailableError: Network failure, timeout or 5xx
        """
        data = self._request(
            "POST",
            "subscriptions",
            json_payload=params.to_request(),
            log_context={
                "operation": "create_subscription",
                "plan_id": params.plan_id,
                "total_count": params.total_count,
            },
        )
        return SubscriptionResult.from_response(data)

    def cancel_subscription(
        self,
        subscription_id: str,
        cancel_at_cycle_end: bool,
    ) -> SubscriptionResult:
        """
        Cancel a Razorpay subscription, now or at the end of the current cycle.
        """
        data = self._request(
            "POST",
            f"subscriptions/{subscription_id}/cancel",
            json_payload={"cancel_at_cycle_end": 1 if cancel_at_cycle_end else 0},
            log_context={
                "operation": "cancel_subscription",
                "razorpay_subscription_id": subscription_id,
                "cancel_at_cycle_end": cancel_at_cycle_end,
            },
        )
        return SubscriptionResult.from_response(data)

    def fetch_subscription(self, subscription_id: str) -> SubscriptionResult:
        data = self._request(
            "GET",
            f"subscriptions/{subscription_id}",
            log_context={
                "operation": "fetch_subscription",
                "razorpay_subscription_id": subscription_id,
            },
        )
        return SubscriptionResult.from_response(data)

    def verify_webhook_signature(self, body: bytes, signature: str | None) -> bool:
        """Check a webhook body against this adapter's webhook secret."""
        return verify_webhook_signature(body, signature, self.webhook_secret)

    def ensure_webhook_signature(self, body: bytes, signature: str | None) -> None:
        """
        Raise unless the webhook body carries a valid signature.

        Raises:
            WebhookSignatureError: Signature missing, wrong or unverifiable
        """
        if not self.verify_webhook_signature(body, signature):
            raise WebhookSignatureError(
                "Invalid signature",
                details={"has_signature": bool(signature)},
            )

    # =========================================================================
    # HTTP
    # =========================================================================

    def _request(
        self,
        method: str,
        path: str,
        json_payload: dict[str, Any] | None = None,
        log_context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        logger = self.get_logger()
        log_context = dict(log_context or {})
        url = f"{self.api_base}/{path.lstrip('/')}"

        start_time = time.time()
        logger.info("Starting Razorpay operation", extra=log_context)

        try:
            response = requests.request(
                method=method,
                url=url,
                auth=(self.key_id, self.key_secret),
                json=json_payload,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "Connection error to Razorpay",
                extra={**log_context, "duration_ms": duration_ms},
                exc_info=True,
            )
            raise GatewayUnavailableError(
                "Could not reach Razorpay",
                details={"error": str(e)},
            ) from e

        duration_ms = (time.time() - start_time) * 1000

        if response.status_code >= 400:
            self._handle_error_response(response, log_context, duration_ms)

        try:
            data = response.json()
        except ValueError as e:
            logger.error(
                "Invalid JSON from Razorpay",
                extra={**log_context, "duration_ms": duration_ms},
            )
            raise GatewayUnavailableError(
                "Invalid response received from Razorpay",
                status_code=response.status_code,
            ) from e

        if not isinstance(data, dict) or "id" not in data:
            raise GatewayError(
                "Unexpected response format from Razorpay",
                status_code=response.status_code,
            )

        logger.info(
            "Razorpay operation completed",
            extra={
                **log_context,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return data

    # =========================================================================
    # Error Handling
    # =========================================================================

    def _handle_error_response(
        self,
        response: requests.Response,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate a Razorpay error response to a domain exception.

        Razorpay error bodies look like
        {"error": {"code": "BAD_REQUEST_ERROR", "description": "..."}}.

        Raises:
            GatewayAuthenticationError: 401
            GatewayRateLimitError: 429
            GatewayUnavailableError: 5xx
            GatewayRequestError: any other 4xx
        """
        logger = self.get_logger()
        status_code = response.status_code

        razorpay_code = None
        description = response.reason or "Razorpay request failed"
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            razorpay_code = body["error"].get("code")
            description = body["error"].get("description") or description

        log_context = {
            **log_context,
            "status_code": status_code,
            "razorpay_code": razorpay_code,
            "duration_ms": duration_ms,
        }

        if status_code == 401:
            logger.error("Razorpay rejected credentials", extra=log_context)
            raise GatewayAuthenticationError(
                description, status_code=status_code, razorpay_code=razorpay_code
            )

        if status_code == 429:
            logger.warning("Rate limited by Razorpay", extra=log_context)
            raise GatewayRateLimitError(
                "Razorpay rate limit exceeded. Please retry.",
                status_code=status_code,
                razorpay_code=razorpay_code,
            )

        if status_code >= 500:
            logger.error("Razorpay server error", extra=log_context)
            raise GatewayUnavailableError(
                description, status_code=status_code, razorpay_code=razorpay_code
            )

        logger.error("Invalid request to Razorpay", extra=log_context)
        raise GatewayRequestError(
            description, status_code=status_code, razorpay_code=razorpay_code
        )


@lru_cache(maxsize=1)
def get_razorpay_adapter() -> RazorpayAdapter:
    """Return the process-wide adapter built from settings."""
    return RazorpayAdapter.from_settings()


@receiver(setting_changed)
def reset_razorpay_adapter(*, setting: str, **kwargs) -> None:
    """Drop the cached adapter when RAZORPAY_* settings are overridden."""
    if setting.startswith("RAZORPAY_"):
        get_razorpay_adapter.cache_clear()
