"""
Billing services.

Services own the checkout and cancellation business logic; views only
translate HTTP to service calls and ServiceResults back to responses.
Webhook reconciliation lives in billing.webhooks.
"""

from billing.services.cancellation_service import CancellationService
from billing.services.checkout_service import CheckoutService

__all__ = [
    "CancellationService",
    "CheckoutService",
]
