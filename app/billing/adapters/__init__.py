"""
Payment gateway adapters.
"""

from billing.adapters.razorpay_adapter import (
    CreateSubscriptionParams,
    RazorpayAdapter,
    SubscriptionResult,
    get_razorpay_adapter,
)

__all__ = [
    "CreateSubscriptionParams",
    "RazorpayAdapter",
    "SubscriptionResult",
    "get_razorpay_adapter",
]
