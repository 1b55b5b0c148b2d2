"""
State and vocabulary enums for billing models.
"""

from billing.state_machines.states import (
    PAID_TIERS,
    BillingInterval,
    PaymentStatus,
    PlanTier,
    SubscriptionStatus,
    WebhookEventKind,
    WebhookLogStatus,
)

__all__ = [
    "PAID_TIERS",
    "BillingInterval",
    "PaymentStatus",
    "PlanTier",
    "SubscriptionStatus",
    "WebhookEventKind",
    "WebhookLogStatus",
]
