"""
Payment model: append-only ledger of charges and failed collections.

The unique razorpay_invoice_id is the idempotency key for
subscription.charged webhooks: Razorpay may deliver the same charge more
than once, but only one Payment row can exist per invoice.

Usage:
    from billing.models import Payment

    Payment.objects.create(
        subscription=subscription,
        razorpay_payment_id="pay_123",
        razorpay_invoice_id="inv_123",
        amount=49900,
        status=PaymentStatus.PAID,
        paid_at=timezone.now(),
    )
"""

from __future__ import annotations

from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from billing.state_machines import PaymentStatus


class ImmutablePaymentError(Exception):
    """Raised when code tries to update or delete a Payment row."""


class Payment(UUIDPrimaryKeyMixin, BaseModel):
    """
    Immutable record of a single subscription charge outcome.

    Fields:
        subscription: Subscription the charge belongs to
        razorpay_payment_id: Razorpay payment ID (pay_xxx)
        razorpay_order_id: Razorpay order ID (order_xxx)
        razorpay_invoice_id: Razorpay invoice ID (inv_xxx), unique
        amount: Amount in minor units (paise)
        currency: ISO 4217 currency code
        status: paid or failed
        failure_reason: Why collection failed (failed rows only)
        paid_at: When the charge succeeded (paid rows only)
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    subscription = models.ForeignKey(
        "billing.Subscription",
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="Subscription this payment belongs to",
    )

    # ==========================================================================
    # Razorpay References
    # ==========================================================================

    razorpay_payment_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Razorpay payment ID (pay_xxx) - idempotency key when the invoice is absent",
    )

    razorpay_order_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Razorpay order ID (order_xxx)",
    )

    razorpay_invoice_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Razorpay invoice ID (inv_xxx) - unique constraint for idempotency",
    )

    # ==========================================================================
    # Amount & Outcome
    # ==========================================================================

    amount = models.PositiveBigIntegerField(
        default=0,
        help_text="Amount in smallest currency unit (paise)",
    )

    currency = models.CharField(
        max_length=3,
        default="INR",
        help_text="ISO 4217 currency code",
    )

    status = models.CharField(
        max_length=10,
        choices=PaymentStatus.choices,
        db_index=True,
        help_text="Outcome of the charge",
    )

    failure_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Why the charge failed",
    )

    paid_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the charge succeeded",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        indexes = [
            models.Index(
                fields=["subscription", "created_at"],
                name="billing_pay_subscri_8e2a41_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Payment({self.id}, {self.status}, {self.amount} {self.currency})"

    def save(self, *args, **kwargs):
        """Insert only; ledger rows are never rewritten."""
        if not self._state.adding:
            raise ImmutablePaymentError("Payment records cannot be modified")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutablePaymentError("Payment records cannot be deleted")
