"""
Subscription model: one row per user holding the current plan and the
Razorpay subscription it is billed through.

Usage:
    from billing.models import Subscription

    subscription = Subscription.objects.get(user=user)
    subscription.activate(
        plan=PlanTier.PRO,
        razorpay_subscription_id="sub_123",
        razorpay_plan_id="plan_pro_monthly",
    )
    subscription.save()
"""

from __future__ import annotations

from datetime import datetime

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from billing.state_machines import PAID_TIERS, PlanTier, SubscriptionStatus


class Subscription(UUIDPrimaryKeyMixin, BaseModel):
    """
    Current billing state of a single user.

    Every user gets a FREE/ACTIVE row at signup. Paid plans are attached by
    the subscription.activated webhook and removed by cancellation or
    completion, which degrade the plan to FREE and clear the Razorpay
    references.

    State Flow:
        ACTIVE -> PAST_DUE (halted after failed retries)
        PAST_DUE -> ACTIVE (charged)
        * -> ACTIVE (activated)
        * -> CANCELED (cancelled webhook or immediate cancel)
        * -> COMPLETED (all billing cycles done)

    Fields:
        user: Owning user (one subscription per user)
        plan: Current plan tier
        status: Lifecycle status (managed by django-fsm)
        razorpay_subscription_id: Razorpay subscription id (sub_xxx)
        razorpay_plan_id: Razorpay plan id (plan_xxx)
        razorpay_customer_email: Email captured from checkout notes
        cancel_at_period_end: Whether cancellation is scheduled
        current_period_start/end: Current billing period
        canceled_at: When the subscription was cancelled
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="subscription",
        help_text="User this subscription belongs to",
    )

    # ==========================================================================
    # Plan & State
    # ==========================================================================

    plan = models.CharField(
        max_length=20,
        choices=PlanTier.choices,
        default=PlanTier.FREE,
        db_index=True,
        help_text="Current plan tier",
    )

    # Not protected: the cancel path writes status through conditional
    # queryset updates as well as through transitions.
    status = FSMField(
        default=SubscriptionStatus.ACTIVE,
        choices=SubscriptionStatus.choices,
        db_index=True,
        help_text="Lifecycle status of the subscription (managed by FSM)",
    )

    # ==========================================================================
    # Razorpay Integration
    # ==========================================================================

    razorpay_subscription_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Razorpay subscription ID (sub_xxx)",
    )

    razorpay_plan_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Razorpay plan ID (plan_xxx)",
    )

    razorpay_customer_email = models.EmailField(
        null=True,
        blank=True,
        help_text="Customer email captured from checkout notes",
    )

    # ==========================================================================
    # Billing Period
    # ==========================================================================

    current_period_start = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Start of current billing period",
    )

    current_period_end = models.DateTimeField(
        null=True,
        blank=True,
        help_text="End of current billing period",
    )

    # ==========================================================================
    # Cancellation
    # ==========================================================================

    cancel_at_period_end = models.BooleanField(
        default=False,
        help_text="Whether subscription will cancel at period end",
    )

    canceled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When subscription was cancelled",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Subscription"
        verbose_name_plural = "Subscriptions"
        indexes = [
            models.Index(fields=["status", "plan"], name="billing_sub_status_0c9d3e_idx"),
            models.Index(
                fields=["status", "current_period_end"],
                name="billing_sub_status_5b1f7a_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Subscription({self.user_id}, {self.plan}, {self.status})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(field=status, source="*", target=SubscriptionStatus.ACTIVE)
    def activate(
        self,
        plan: str,
        razorpay_subscription_id: str,
        razorpay_plan_id: str | None,
        customer_email: str | None = None,
        period_start: datetime | None = None,
        period_end: datetime | None = None,
    ):
        """
        Attach a paid Razorpay subscription.

        Transition: * -> ACTIVE
        """
        self.plan = plan
        self.razorpay_subscription_id = razorpay_subscription_id
        self.razorpay_plan_id = razorpay_plan_id
        self.razorpay_customer_email = customer_email
        self.current_period_start = period_start or timezone.now()
        self.current_period_end = period_end
        self.cancel_at_period_end = False
        self.canceled_at = None

    @transition(
        field=status,
        source=[SubscriptionStatus.ACTIVE, SubscriptionStatus.PAST_DUE],
        target=SubscriptionStatus.ACTIVE,
    )
    def renew(self, period_start: datetime | None, period_end: datetime | None):
        """
        Record a successful charge and roll the billing period forward.

        Transition: ACTIVE/PAST_DUE -> ACTIVE
        """
        self.current_period_start = period_start or timezone.now()
        self.current_period_end = period_end

    @transition(
        field=status,
        source=[SubscriptionStatus.ACTIVE, SubscriptionStatus.PAST_DUE],
        target=SubscriptionStatus.PAST_DUE,
    )
    def mark_past_due(self):
        """
        Mark subscription past due after Razorpay exhausted its retries.

        Transition: ACTIVE/PAST_DUE -> PAST_DUE
        """

    @transition(field=status, source="*", target=SubscriptionStatus.CANCELED)
    def cancel(self):
        """
        Cancel the subscription and degrade to FREE.

        Transition: * -> CANCELED
        """
        self.plan = PlanTier.FREE
        self.canceled_at = timezone.now()
        self.cancel_at_period_end = False
        self._clear_razorpay_references()

    @transition(field=status, source="*", target=SubscriptionStatus.COMPLETED)
    def complete(self):
        """
        Close out a subscription whose billing cycles have all run.

        Transition: * -> COMPLETED
        """
        self.plan = PlanTier.FREE
        self.cancel_at_period_end = False
        self._clear_razorpay_references()

    def _clear_razorpay_references(self) -> None:
        self.razorpay_subscription_id = None
        self.razorpay_plan_id = None

    # ==========================================================================
    # Helper Properties
    # ==========================================================================

    @property
    def is_paid(self) -> bool:
        """Check if the subscription is on a paid tier."""
        return self.plan in PAID_TIERS

    @property
    def has_live_subscription(self) -> bool:
        """Check if a Razorpay subscription is attached and active."""
        return bool(self.razorpay_subscription_id) and (
            self.status == SubscriptionStatus.ACTIVE
        )
