"""
Tests for the billing API endpoints.
"""

from unittest.mock import patch

import pytest
from django.urls import reverse
from rest_framework import status

from billing.exceptions import GatewayUnavailableError
from billing.models import Subscription
from billing.state_machines import PlanTier, SubscriptionStatus
from billing.tests.factories import PaymentFactory, SubscriptionFactory

CHECKOUT_URL = reverse("billing:checkout")
CANCEL_URL = reverse("billing:cancel")
SUBSCRIPTION_URL = reverse("billing:subscription")
PORTAL_URL = reverse("billing:portal")


@pytest.fixture
def patched_gateway(gateway):
    """Route both services to the mock gateway."""
    with patch(
        "billing.services.checkout_service.get_razorpay_adapter", return_value=gateway
    ), patch(
        "billing.services.cancellation_service.get_razorpay_adapter", return_value=gateway
    ):
        yield gateway


class TestUrls:
    def test_billing_routes(self):
        assert CHECKOUT_URL == "/api/v1/billing/checkout/"
        assert CANCEL_URL == "/api/v1/billing/cancel/"
        assert SUBSCRIPTION_URL == "/api/v1/billing/subscription/"
        assert PORTAL_URL == "/api/v1/billing/portal/"
        assert reverse("billing:razorpay_webhook") == "/api/v1/billing/webhooks/razorpay/"


@pytest.mark.django_db
class TestAuthentication:
    @pytest.mark.parametrize(
        "method,url",
        [
            ("post", CHECKOUT_URL),
            ("post", CANCEL_URL),
            ("delete", CANCEL_URL),
            ("get", SUBSCRIPTION_URL),
            ("post", PORTAL_URL),
        ],
    )
    def test_requires_authentication(self, api_client, method, url):
        response = getattr(api_client, method)(url)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestCheckoutView:
    def test_returns_checkout_payload(self, authenticated_client, user, patched_gateway):
        response = authenticated_client.post(
            CHECKOUT_URL, {"plan": "PRO", "interval": "YEARLY"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "subscriptionId": "sub_new123",
            "keyId": "rzp_test_key",
            "name": "Asha Rao",
            "email": user.email,
            "plan": "PRO",
            "interval": "YEARLY",
        }

    def test_interval_defaults_to_monthly(self, authenticated_client, patched_gateway):
        response = authenticated_client.post(CHECKOUT_URL, {"plan": "STARTER"}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["interval"] == "MONTHLY"

    @pytest.mark.parametrize(
        "body",
        [{"plan": "FREE"}, {"plan": "GOLD"}, {"plan": "PRO", "interval": "DAILY"}, {}],
    )
    def test_invalid_plan(self, authenticated_client, patched_gateway, body):
        response = authenticated_client.post(CHECKOUT_URL, body, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "Invalid plan"
        patched_gateway.create_subscription.assert_not_called()

    def test_active_plan_conflicts(self, authenticated_client, user, patched_gateway):
        SubscriptionFactory(user=user)

        response = authenticated_client.post(CHECKOUT_URL, {"plan": "BUSINESS"}, format="json")

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"] == (
            "Already on an active plan. Manage it from billing settings."
        )

    def test_cancelled_user_can_upgrade(self, authenticated_client, user, patched_gateway):
        SubscriptionFactory(
            user=user,
            plan=PlanTier.FREE,
            status=SubscriptionStatus.CANCELED,
            razorpay_subscription_id=None,
        )

        response = authenticated_client.post(
            CHECKOUT_URL, {"plan": "PRO", "interval": "YEARLY"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK

    def test_gateway_failure(self, authenticated_client, patched_gateway):
        patched_gateway.create_subscription.side_effect = GatewayUnavailableError("down")

        response = authenticated_client.post(CHECKOUT_URL, {"plan": "PRO"}, format="json")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["error"] == "Failed to create subscription"


@pytest.mark.django_db
class TestCancelSubscriptionView:
    def test_deferred_by_default(self, authenticated_client, user, patched_gateway):
        SubscriptionFactory(user=user, razorpay_subscription_id="sub_live123")

        response = authenticated_client.post(CANCEL_URL, {}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "message": "Subscription will be cancelled at end of billing period."
        }
        assert Subscription.objects.get(user=user).cancel_at_period_end is True

    def test_immediate(self, authenticated_client, user, patched_gateway):
        SubscriptionFactory(user=user, razorpay_subscription_id="sub_live123")

        response = authenticated_client.post(
            CANCEL_URL, {"cancelAtPeriodEnd": False}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"message": "Subscription cancelled immediately."}
        subscription = Subscription.objects.get(user=user)
        assert subscription.plan == PlanTier.FREE
        assert subscription.status == SubscriptionStatus.CANCELED

    def test_no_subscription_row(self, authenticated_client, user, patched_gateway):
        Subscription.objects.filter(user=user).delete()

        response = authenticated_client.post(CANCEL_URL, {}, format="json")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "No active subscription found."

    def test_gateway_failure(self, authenticated_client, user, patched_gateway):
        SubscriptionFactory(user=user, razorpay_subscription_id="sub_live123")
        patched_gateway.cancel_subscription.side_effect = GatewayUnavailableError("down")

        response = authenticated_client.post(CANCEL_URL, {}, format="json")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["error"] == "Failed to cancel subscription"

    def test_delete_reverses_cancellation(self, authenticated_client, user):
        SubscriptionFactory(user=user, cancel_at_period_end=True)

        response = authenticated_client.delete(CANCEL_URL)

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"message": "Cancellation reversed."}
        assert Subscription.objects.get(user=user).cancel_at_period_end is False


@pytest.mark.django_db
class TestSubscriptionView:
    def test_returns_subscription_with_recent_payments(self, authenticated_client, user):
        subscription = SubscriptionFactory(user=user, razorpay_subscription_id="sub_live123")
        PaymentFactory(subscription=subscription, amount=49900)

        response = authenticated_client.get(SUBSCRIPTION_URL)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["plan"] == "PRO"
        assert data["status"] == "ACTIVE"
        assert data["is_paid"] is True
        assert data["razorpay_subscription_id"] == "sub_live123"
        assert len(data["recent_payments"]) == 1
        assert data["recent_payments"][0]["amount"] == 49900

    def test_free_user(self, authenticated_client):
        response = authenticated_client.get(SUBSCRIPTION_URL)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["plan"] == "FREE"
        assert response.json()["recent_payments"] == []


@pytest.mark.django_db
class TestBillingPortalView:
    def test_is_gone(self, authenticated_client):
        response = authenticated_client.post(PORTAL_URL)

        assert response.status_code == status.HTTP_410_GONE
        assert response.json() == {
            "error": "Use /api/v1/billing/cancel/ to manage your subscription."
        }
