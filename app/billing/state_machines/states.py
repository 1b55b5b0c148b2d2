"""
State enums for billing models.

These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Subscription Status (driven by Razorpay webhooks and the cancel endpoint):
    ACTIVE → PAST_DUE (subscription.halted)
    PAST_DUE → ACTIVE (subscription.charged / subscription.activated)
    any → CANCELED (subscription.cancelled, immediate cancel)
    any → COMPLETED (subscription.completed)
    CANCELED/COMPLETED → ACTIVE (a new checkout is activated)

Webhook Log Status:
    RECEIVED → PROCESSED
    RECEIVED → FAILED → PROCESSED (operator replay)
    RECEIVED → IGNORED (no handler for the event kind)
"""

from django.db import models


class PlanTier(models.TextChoices):
    """
    Plan tiers.

    FREE is the tier every user starts on and the tier a subscription
    degrades to when it is cancelled or completes.
    """

    FREE = "FREE", "Free"
    STARTER = "STARTER", "Starter"
    PRO = "PRO", "Pro"
    BUSINESS = "BUSINESS", "Business"


# Tiers a user can check out into
PAID_TIERS = (PlanTier.STARTER, PlanTier.PRO, PlanTier.BUSINESS)


class BillingInterval(models.TextChoices):
    """Billing cadence of a paid plan."""

    MONTHLY = "MONTHLY", "Monthly"
    YEARLY = "YEARLY", "Yearly"


class SubscriptionStatus(models.TextChoices):
    """
    Lifecycle status of a Subscription.

    Only ACTIVE and PAST_DUE subscriptions on a paid plan hold a Razorpay
    subscription reference.
    """

    ACTIVE = "ACTIVE", "Active"
    PAST_DUE = "PAST_DUE", "Past Due"
    CANCELED = "CANCELED", "Canceled"
    COMPLETED = "COMPLETED", "Completed"


class PaymentStatus(models.TextChoices):
    """Outcome recorded on a Payment ledger row."""

    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"


class WebhookEventKind(models.TextChoices):
    """Razorpay subscription webhook events the reconciliation engine handles."""

    ACTIVATED = "subscription.activated", "Activated"
    CHARGED = "subscription.charged", "Charged"
    HALTED = "subscription.halted", "Halted"
    CANCELLED = "subscription.cancelled", "Cancelled"
    COMPLETED = "subscription.completed", "Completed"
    UPDATED = "subscription.updated", "Updated"


class WebhookLogStatus(models.TextChoices):
    """Processing outcome recorded on a WebhookEventLog row."""

    RECEIVED = "received", "Received"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"
    IGNORED = "ignored", "Ignored"


__all__ = [
    "PlanTier",
    "PAID_TIERS",
    "BillingInterval",
    "SubscriptionStatus",
    "PaymentStatus",
    "WebhookEventKind",
    "WebhookLogStatus",
]
