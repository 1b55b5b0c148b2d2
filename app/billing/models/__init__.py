"""
Billing domain models.

- Subscription: The user's current plan and Razorpay subscription
- Payment: Append-only ledger of charges and failed collections
- WebhookEventLog: Audit trail of inbound Razorpay webhooks
"""

from billing.models.payment import ImmutablePaymentError, Payment
from billing.models.subscription import Subscription
from billing.models.webhook_event_log import WebhookEventLog

__all__ = [
    "ImmutablePaymentError",
    "Payment",
    "Subscription",
    "WebhookEventLog",
]
