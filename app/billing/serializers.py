"""
DRF serializers for the billing app.

This module provides serializers for:
- Checkout and cancellation requests
- Subscription display with recent payments
- Payment ledger rows

Related files:
    - models/: Subscription, Payment
    - views.py: Billing API views

Usage:
    serializer = CheckoutRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
"""

from __future__ import annotations

from rest_framework import serializers

from billing.models import Payment, Subscription
from billing.state_machines import PAID_TIERS, BillingInterval

RECENT_PAYMENTS_LIMIT = 10


# =============================================================================
# Request Serializers
# =============================================================================


class CheckoutRequestSerializer(serializers.Serializer):
    """
    Serializer for checkout requests.

    Fields:
        plan: Paid tier to subscribe to
        interval: Billing interval (default MONTHLY)
    """

    plan = serializers.ChoiceField(
        choices=[(tier.value, tier.label) for tier in PAID_TIERS],
        help_text="Plan tier (STARTER, PRO, BUSINESS)",
    )
    interval = serializers.ChoiceField(
        choices=BillingInterval.choices,
        default=BillingInterval.MONTHLY,
        help_text="Billing interval (MONTHLY, YEARLY)",
    )


class CancelRequestSerializer(serializers.Serializer):
    """
    Serializer for cancellation requests.

    Fields:
        cancelAtPeriodEnd: Cancel at the end of the billing period (default)
            or immediately
    """

    cancelAtPeriodEnd = serializers.BooleanField(  # noqa: N815
        default=True,
        help_text="Cancel at end of billing period (true) or immediately (false)",
    )


# =============================================================================
# Response Serializers
# =============================================================================


class CheckoutResponseSerializer(serializers.Serializer):
    """Data the client passes to Razorpay's hosted checkout."""

    subscriptionId = serializers.CharField()  # noqa: N815
    keyId = serializers.CharField()  # noqa: N815
    name = serializers.CharField()
    email = serializers.EmailField()
    plan = serializers.CharField()
    interval = serializers.CharField()


class MessageSerializer(serializers.Serializer):
    message = serializers.CharField()


class PaymentSerializer(serializers.ModelSerializer):
    """
    Payment ledger row for billing history.

    Amounts are in minor units (paise).
    """

    class Meta:
        model = Payment
        fields = [
            "id",
            "razorpay_payment_id",
            "razorpay_invoice_id",
            "amount",
            "currency",
            "status",
            "failure_reason",
            "paid_at",
            "created_at",
        ]
        read_only_fields = fields


class SubscriptionSerializer(serializers.ModelSerializer):
    """
    Current subscription with the most recent payments.

    Usage:
        serializer = SubscriptionSerializer(request.user.subscription)
    """

    is_paid = serializers.BooleanField(read_only=True)
    recent_payments = serializers.SerializerMethodField()

    class Meta:
        model = Subscription
        fields = [
            "id",
            "plan",
            "status",
            "is_paid",
            "razorpay_subscription_id",
            "current_period_start",
            "current_period_end",
            "cancel_at_period_end",
            "canceled_at",
            "recent_payments",
        ]
        read_only_fields = fields

    def get_recent_payments(self, obj: Subscription) -> list[dict]:
        payments = obj.payments.order_by("-created_at")[:RECENT_PAYMENTS_LIMIT]
        return PaymentSerializer(payments, many=True).data
