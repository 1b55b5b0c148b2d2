"""
Test configuration and fixtures for billing tests.

Fixtures:
    user / other_user: Users with their signup FREE subscription rows
    api_client / authenticated_client: DRF clients
    gateway: Mock RazorpayAdapter passed into services
    webhook_payload_factory: Builds Razorpay webhook bodies
    post_webhook: Signs and posts a body to the webhook endpoint
"""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from django.conf import settings
from django.urls import reverse
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from billing.adapters import RazorpayAdapter, SubscriptionResult
from billing.webhooks.signature import compute_signature

# Billing period used by webhook payloads (Unix seconds)
PERIOD_START = 1_700_000_000
PERIOD_END = PERIOD_START + 30 * 24 * 60 * 60


def as_datetime(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """User with a display name; owns a FREE/ACTIVE subscription row."""
    return UserFactory(name="Asha Rao", email="asha@example.com")


@pytest.fixture
def other_user(db):
    return UserFactory(name="", email="nameless@example.com")


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def authenticated_client(user):
    """API client authenticated with a JWT for the ``user`` fixture."""
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


# =============================================================================
# Gateway Fixtures
# =============================================================================


@pytest.fixture
def gateway():
    """
    Mock Razorpay adapter.

    create_subscription returns sub_new123 and cancel_subscription echoes
    a cancelled subscription.
    """
    adapter = MagicMock(spec=RazorpayAdapter)
    adapter.key_id = "rzp_test_key"
    adapter.create_subscription.return_value = SubscriptionResult(
        id="sub_new123", status="created", plan_id="plan_pro_monthly"
    )
    adapter.cancel_subscription.return_value = SubscriptionResult(
        id="sub_live123", status="cancelled"
    )
    return adapter


# =============================================================================
# Webhook Fixtures
# =============================================================================


@pytest.fixture
def webhook_payload_factory():
    """
    Build Razorpay webhook bodies.

    Usage:
        body = webhook_payload_factory(
            "subscription.charged",
            subscription_id="sub_1",
            payment={"id": "pay_1", "invoice_id": "inv_1", "amount": 49900},
        )
    """

    def _build(
        event,
        subscription_id="sub_test123",
        plan_id="plan_pro_monthly",
        notes=None,
        current_start=PERIOD_START,
        current_end=PERIOD_END,
        payment=None,
        include_subscription=True,
    ):
        payload = {}
        if include_subscription:
            payload["subscription"] = {
                "entity": {
                    "id": subscription_id,
                    "entity": "subscription",
                    "plan_id": plan_id,
                    "status": "active",
                    "current_start": current_start,
                    "current_end": current_end,
                    "notes": notes if notes is not None else [],
                }
            }
        if payment is not None:
            payload["payment"] = {
                "entity": {"entity": "payment", "currency": "INR", **payment}
            }
        return {
            "entity": "event",
            "account_id": "acc_test",
            "event": event,
            "contains": list(payload),
            "payload": payload,
            "created_at": PERIOD_START,
        }

    return _build


@pytest.fixture
def post_webhook(client, db):
    """
    Sign and post a webhook body.

    Accepts a dict (JSON-encoded here) or raw bytes. Pass ``signature`` to
    override the computed one.
    """
    url = reverse("billing:razorpay_webhook")

    def _post(body, signature=None, event_id=None):
        if isinstance(body, dict):
            body = json.dumps(body).encode("utf-8")
        if signature is None:
            signature = compute_signature(body, settings.RAZORPAY_WEBHOOK_SECRET)
        headers = {"HTTP_X_RAZORPAY_SIGNATURE": signature}
        if event_id:
            headers["HTTP_X_RAZORPAY_EVENT_ID"] = event_id
        return client.post(url, data=body, content_type="application/json", **headers)

    return _post
