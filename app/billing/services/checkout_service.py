"""
Checkout service for starting a paid Razorpay subscription.

Checkout creates the Razorpay subscription and hands the client what it
needs to open Razorpay's hosted checkout. It does not touch local state:
the Subscription row only changes when the subscription.activated webhook
arrives carrying the userId note stamped here.

Usage:
    from billing.services import CheckoutService

    result = CheckoutService.create_checkout(
        user_id=request.user.id,
        plan="PRO",
        interval="YEARLY",
    )
    if result.success:
        open_razorpay_checkout(result.data["subscriptionId"], result.data["keyId"])
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from django.contrib.auth import get_user_model

from core.services import BaseService, ServiceResult

from billing.adapters import CreateSubscriptionParams, get_razorpay_adapter
from billing.exceptions import (
    ActiveSubscriptionConflictError,
    GatewayError,
    InvalidPlanError,
    UserNotFoundError,
)
from billing.models import Subscription
from billing.plans import get_plan_reference
from billing.state_machines import BillingInterval

if TYPE_CHECKING:
    from billing.adapters import RazorpayAdapter


# =============================================================================
# Constants
# =============================================================================

# Billing cycles Razorpay charges before the subscription completes
TOTAL_COUNT_BY_INTERVAL = {
    BillingInterval.MONTHLY: 120,
    BillingInterval.YEARLY: 12,
}

ACTIVE_PLAN_MESSAGE = "Already on an active plan. Manage it from billing settings."
CHECKOUT_FAILED_MESSAGE = "Failed to create subscription"


class CheckoutService(BaseService):
    """
    Service for creating Razorpay subscriptions at checkout.

    Errors come back as failed results with codes the view maps to HTTP:
        INVALID_PLAN -> 400
        USER_NOT_FOUND -> 404
        SUBSCRIPTION_ALREADY_ACTIVE -> 409
        GATEWAY_* -> 500

    Two checkouts before the first activation both succeed; whichever
    subscription Razorpay activates last owns the row.
    """

    @classmethod
    def create_checkout(
        cls,
        user_id: Any,
        plan: str,
        interval: str = BillingInterval.MONTHLY,
        gateway: RazorpayAdapter | None = None,
    ) -> ServiceResult[dict[str, Any]]:
        """
        Create a Razorpay subscription for the user's chosen plan.

        Args:
            user_id: Primary key of the user checking out
            plan: Paid tier (STARTER, PRO, BUSINESS)
            interval: MONTHLY or YEARLY
            gateway: Razorpay adapter (defaults to the settings-built one)

        Returns:
            ServiceResult with {subscriptionId, keyId, name, email, plan, interval}
        """
        logger = cls.get_logger()
        gateway = gateway or get_razorpay_adapter()

        plan_id = get_plan_reference(plan, interval)
        if plan_id is None:
            logger.info(
                "Checkout requested for invalid plan",
                extra={"user_id": user_id, "plan": plan, "interval": interval},
            )
            return ServiceResult.from_exception(InvalidPlanError("Invalid plan"))

        User = get_user_model()
        user = User.objects.filter(pk=user_id).first()
        if user is None:
            return ServiceResult.from_exception(UserNotFoundError("User not found"))

        subscription = Subscription.objects.filter(user=user).first()
        if subscription is not None and subscription.has_live_subscription:
            logger.info(
                "Checkout blocked by active subscription",
                extra={
                    "user_id": user.pk,
                    "razorpay_subscription_id": subscription.razorpay_subscription_id,
                },
            )
            return ServiceResult.from_exception(
                ActiveSubscriptionConflictError(ACTIVE_PLAN_MESSAGE)
            )

        interval = BillingInterval(interval)
        params = CreateSubscriptionParams(
            plan_id=plan_id,
            total_count=TOTAL_COUNT_BY_INTERVAL[interval],
            notes={
                "userId": str(user.pk),
                "userEmail": user.email,
                "plan": str(plan),
                "interval": str(interval),
            },
        )

        try:
            result = gateway.create_subscription(params)
        except GatewayError as e:
            return cls.handle_exception(
                e,
                "Failed to create Razorpay subscription",
                log_level=logging.WARNING if e.is_retryable else logging.ERROR,
                message=CHECKOUT_FAILED_MESSAGE,
                extra={"user_id": user.pk, "plan": plan, "interval": interval},
            )

        logger.info(
            "Checkout subscription created",
            extra={
                "user_id": user.pk,
                "plan": plan,
                "interval": interval,
                "razorpay_subscription_id": result.id,
            },
        )

        return ServiceResult.success(
            {
                "subscriptionId": result.id,
                "keyId": gateway.key_id,
                "name": user.name or user.email,
                "email": user.email,
                "plan": str(plan),
                "interval": str(interval),
            }
        )
