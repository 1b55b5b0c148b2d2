"""
URL configuration for the billing app.

Routes:
    - GET /subscription/ - Current subscription
    - POST /checkout/ - Create Razorpay subscription
    - POST, DELETE /cancel/ - Cancel / reverse cancellation
    - POST /portal/ - Retired billing portal (410)
    - POST /webhooks/razorpay/ - Razorpay webhook endpoint

All routes are prefixed with /api/v1/billing/ when included in the main URLconf.
"""

from django.urls import path

from billing.views import (
    BillingPortalView,
    CancelSubscriptionView,
    CheckoutView,
    SubscriptionView,
)
from billing.webhooks.views import razorpay_webhook

app_name = "billing"

urlpatterns = [
    path("subscription/", SubscriptionView.as_view(), name="subscription"),
    path("checkout/", CheckoutView.as_view(), name="checkout"),
    path("cancel/", CancelSubscriptionView.as_view(), name="cancel"),
    path("portal/", BillingPortalView.as_view(), name="portal"),
    # Webhook endpoints
    path("webhooks/razorpay/", razorpay_webhook, name="razorpay_webhook"),
]
