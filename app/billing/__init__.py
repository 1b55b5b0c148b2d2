"""
Subscription billing application.

Creates recurring Razorpay subscriptions, receives Razorpay webhooks and
reconciles them into local Subscription and Payment rows.

Usage:
    from billing.models import Payment, Subscription
    from billing.services import CancellationService, CheckoutService
"""
