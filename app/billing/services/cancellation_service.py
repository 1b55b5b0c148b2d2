"""
Cancellation service for user-initiated subscription cancellation.

Supports two modes:
- Deferred (default): Razorpay cancels at the end of the current cycle and
  the user keeps their plan until the subscription.cancelled webhook lands.
- Immediate: Razorpay cancels now and the row is downgraded to FREE right
  away; the later webhook finds nothing left to change.

A deferred cancellation can be reversed locally before the cycle ends.

Local writes are conditional updates filtered on the Razorpay reference
read before calling Razorpay, so a webhook that replaced or cleared the
reference in the meantime is never overwritten.

Usage:
    from billing.services import CancellationService

    result = CancellationService.cancel_subscription(user.id, cancel_at_period_end=True)
    result = CancellationService.reverse_cancellation(user.id)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from django.utils import timezone

from core.services import BaseService, ServiceResult

from billing.adapters import get_razorpay_adapter
from billing.exceptions import GatewayError, SubscriptionNotFoundError
from billing.models import Subscription
from billing.state_machines import PlanTier, SubscriptionStatus

if TYPE_CHECKING:
    from billing.adapters import RazorpayAdapter


NO_ACTIVE_SUBSCRIPTION_MESSAGE = "No active subscription found."
DEFERRED_CANCEL_MESSAGE = "Subscription will be cancelled at end of billing period."
IMMEDIATE_CANCEL_MESSAGE = "Subscription cancelled immediately."
CANCELLATION_REVERSED_MESSAGE = "Cancellation reversed."
CANCEL_FAILED_MESSAGE = "Failed to cancel subscription"


class CancellationService(BaseService):
    """Service for cancelling and un-cancelling a user's subscription."""

    @classmethod
    def cancel_subscription(
        cls,
        user_id: Any,
        cancel_at_period_end: bool = True,
        gateway: RazorpayAdapter | None = None,
    ) -> ServiceResult[dict[str, Any]]:
        """
        Cancel the user's Razorpay subscription.

        Args:
            user_id: Primary key of the user
            cancel_at_period_end: Defer to the end of the cycle (True) or
                cancel now (False)
            gateway: Razorpay adapter (defaults to the settings-built one)

        Returns:
            ServiceResult with {"message", "cancelAtPeriodEnd"}
        """
        logger = cls.get_logger()
        gateway = gateway or get_razorpay_adapter()

        subscription = Subscription.objects.filter(user_id=user_id).first()
        if subscription is None or not subscription.razorpay_subscription_id:
            return ServiceResult.from_exception(
                SubscriptionNotFoundError(NO_ACTIVE_SUBSCRIPTION_MESSAGE)
            )

        reference = subscription.razorpay_subscription_id
        log_context = {
            "user_id": user_id,
            "subscription_id": str(subscription.id),
            "razorpay_subscription_id": reference,
            "cancel_at_period_end": cancel_at_period_end,
        }

        try:
            gateway.cancel_subscription(reference, cancel_at_cycle_end=cancel_at_period_end)
        except GatewayError as e:
            return cls.handle_exception(
                e,
                "Failed to cancel Razorpay subscription",
                log_level=logging.WARNING if e.is_retryable else logging.ERROR,
                message=CANCEL_FAILED_MESSAGE,
                extra=log_context,
            )

        now = timezone.now()
        matching = Subscription.objects.filter(
            pk=subscription.pk, razorpay_subscription_id=reference
        )

        if cancel_at_period_end:
            updated = matching.update(cancel_at_period_end=True, updated_at=now)
            message = DEFERRED_CANCEL_MESSAGE
        else:
            updated = matching.update(
                plan=PlanTier.FREE,
                status=SubscriptionStatus.CANCELED,
                canceled_at=now,
                cancel_at_period_end=False,
                razorpay_subscription_id=None,
                razorpay_plan_id=None,
                updated_at=now,
            )
            message = IMMEDIATE_CANCEL_MESSAGE

        if not updated:
            # A webhook changed the reference after Razorpay accepted the cancel.
            logger.warning(
                "Subscription changed during cancellation, local row left as is",
                extra=log_context,
            )
        else:
            logger.info("Subscription cancellation recorded", extra=log_context)

        return ServiceResult.success(
            {"message": message, "cancelAtPeriodEnd": cancel_at_period_end}
        )

    @classmethod
    def reverse_cancellation(cls, user_id: Any) -> ServiceResult[dict[str, Any]]:
        """
        Clear a scheduled end-of-period cancellation.

        Only the local flag changes; the row keeps its plan and status.
        """
        updated = Subscription.objects.filter(user_id=user_id).update(
            cancel_at_period_end=False,
            updated_at=timezone.now(),
        )
        if not updated:
            return ServiceResult.from_exception(
                SubscriptionNotFoundError("Subscription not found.")
            )

        cls.get_logger().info(
            "Scheduled cancellation reversed",
            extra={"user_id": user_id},
        )
        return ServiceResult.success({"message": CANCELLATION_REVERSED_MESSAGE})
