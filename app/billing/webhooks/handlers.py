"""
Reconciliation engine: Razorpay subscription webhooks to local state.

Razorpay delivers events at least once and not necessarily in order. Each
handler maps one event kind onto Subscription and Payment mutations:

    subscription.activated  -> ACTIVE, plan/references/period set, welcome email
    subscription.charged    -> ACTIVE, period refreshed, paid Payment appended
    subscription.halted     -> PAST_DUE, failed Payment appended, failure email
    subscription.cancelled  -> CANCELED, FREE, references cleared
    subscription.completed  -> COMPLETED, FREE, references cleared
    subscription.updated    -> plan and plan reference updated

Charged events are idempotent on the invoice reference. The other handlers
set state unconditionally, so replays converge on the same result.

Handlers return a ServiceResult. Missing snapshots and unknown subscription
references are logged no-ops that still succeed; the caller decides how to
surface failures and exceptions.

Usage:
    from billing.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler("subscription.paused")
    def handle_subscription_paused(event: WebhookEvent) -> ServiceResult:
        ...

    result = dispatch_webhook(event)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone
from django_fsm import can_proceed

from core.services import ServiceResult

from billing.models import Payment, Subscription
from billing.plans import resolve_plan
from billing.state_machines import (
    PaymentStatus,
    PlanTier,
    SubscriptionStatus,
    WebhookEventKind,
)
from billing.tasks import send_payment_failed_email, send_welcome_upgrade_email

if TYPE_CHECKING:
    from billing.webhooks.decoder import PaymentSnapshot, WebhookEvent


logger = logging.getLogger(__name__)

HALTED_FAILURE_REASON = "Subscription halted after multiple failed retries"
DEFAULT_CURRENCY = "INR"
FALLBACK_GREETING_NAME = "there"


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event kind strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(event_kind: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Args:
        event_kind: The Razorpay event string (e.g. "subscription.charged")
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[str(event_kind)] = func
        logger.debug(f"Registered webhook handler for {event_kind}")
        return func

    return decorator


def dispatch_webhook(event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a decoded webhook to its handler.

    Unknown event kinds are logged and reported as success so Razorpay
    stops redelivering them.
    """
    handler = WEBHOOK_HANDLERS.get(event.event or "")

    if not handler:
        logger.info(
            f"No handler registered for event: {event.event}",
            extra={"razorpay_subscription_id": event.subscription_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {event.event} to handler",
        extra={"razorpay_subscription_id": event.subscription_id},
    )
    return handler(event)


def has_handler(event: WebhookEvent) -> bool:
    return (event.event or "") in WEBHOOK_HANDLERS


# =============================================================================
# Helpers
# =============================================================================


def _notify(task, *args) -> None:
    """
    Queue a notification task.

    Notifications are fire-and-forget: a broker outage must not undo or
    fail a reconciliation that has already committed.
    """
    try:
        task.delay(*args)
    except Exception:
        logger.exception(
            f"Failed to queue notification: {task.name}",
            extra={"task": task.name},
        )


def _find_user(user_id: str):
    User = get_user_model()
    try:
        return User.objects.filter(pk=user_id).first()
    except (ValueError, DjangoValidationError):
        return None


def _unresolved_plan_fallback() -> PlanTier:
    return PlanTier(getattr(settings, "BILLING_UNRESOLVED_PLAN_FALLBACK", PlanTier.STARTER))


def _already_recorded(payment: PaymentSnapshot) -> bool:
    """
    Idempotency guard for charged events.

    Keyed on the invoice reference; falls back to the payment reference
    when Razorpay omits the invoice.
    """
    if payment.invoice_id:
        return Payment.objects.filter(razorpay_invoice_id=payment.invoice_id).exists()
    if payment.id:
        return Payment.objects.filter(razorpay_payment_id=payment.id).exists()
    return False


def _skip(message: str, event: WebhookEvent, **context) -> ServiceResult:
    logger.warning(
        message,
        extra={
            "event": event.event,
            "razorpay_subscription_id": event.subscription_id,
            **context,
        },
    )
    return ServiceResult.success(None)


# =============================================================================
# Subscription Lifecycle Handlers
# =============================================================================


@register_handler(WebhookEventKind.ACTIVATED)
def handle_subscription_activated(event: WebhookEvent) -> ServiceResult:
    """
    Attach a newly authorized Razorpay subscription to its user.

    The owning user comes from the userId note stamped at checkout. An
    unknown plan reference falls back to the configured tier (STARTER by
    default) and is logged so the plan table can be fixed.
    """
    snapshot = event.subscription
    if snapshot is None or not snapshot.id:
        return _skip("subscription.activated without subscription entity", event)

    user_id = event.user_id
    if not user_id:
        return _skip("subscription.activated without userId note", event)

    user = _find_user(user_id)
    if user is None:
        logger.warning(
            "subscription.activated for unknown user",
            extra={"user_id": user_id, "razorpay_subscription_id": snapshot.id},
        )
        return ServiceResult.failure(
            f"User not found: {user_id}", error_code="USER_NOT_FOUND"
        )

    plan = resolve_plan(snapshot.plan_id)
    if plan is None:
        plan = _unresolved_plan_fallback()
        logger.warning(
            "Unresolved Razorpay plan on activation, using fallback tier",
            extra={
                "razorpay_plan_id": snapshot.plan_id,
                "razorpay_subscription_id": snapshot.id,
                "fallback_plan": plan,
            },
        )

    with transaction.atomic():
        subscription, _ = Subscription.objects.select_for_update().get_or_create(
            user=user
        )
        redelivery = (
            subscription.status == SubscriptionStatus.ACTIVE
            and subscription.razorpay_subscription_id == snapshot.id
        )
        subscription.activate(
            plan=plan,
            razorpay_subscription_id=snapshot.id,
            razorpay_plan_id=snapshot.plan_id,
            customer_email=event.user_email,
            period_start=snapshot.current_start,
            period_end=snapshot.current_end,
        )
        subscription.save()

    logger.info(
        "Subscription activated",
        extra={
            "user_id": user.pk,
            "plan": plan,
            "razorpay_subscription_id": snapshot.id,
        },
    )

    if not redelivery:
        _notify(
            send_welcome_upgrade_email,
            user.email,
            user.name or FALLBACK_GREETING_NAME,
            str(plan),
        )

    return ServiceResult.success(subscription)


@register_handler(WebhookEventKind.CHARGED)
def handle_subscription_charged(event: WebhookEvent) -> ServiceResult:
    """
    Record a successful recurring charge.

    The invoice guard runs once before taking the row lock and again under
    it, so overlapping deliveries of the same charge append one Payment.
    """
    snapshot = event.subscription
    payment = event.payment
    if snapshot is None or payment is None or not snapshot.id:
        return _skip("subscription.charged without subscription/payment entity", event)

    if _already_recorded(payment):
        logger.info(
            "Duplicate subscription.charged, skipping",
            extra={
                "razorpay_invoice_id": payment.invoice_id,
                "razorpay_payment_id": payment.id,
            },
        )
        return ServiceResult.success(None)

    with transaction.atomic():
        subscription = (
            Subscription.objects.select_for_update()
            .filter(razorpay_subscription_id=snapshot.id)
            .first()
        )
        if subscription is None:
            return _skip("subscription.charged for unknown subscription", event)

        if _already_recorded(payment):
            return ServiceResult.success(None)

        if not can_proceed(subscription.renew):
            logger.error(
                "subscription.charged for subscription in unexpected state",
                extra={
                    "subscription_id": str(subscription.id),
                    "status": subscription.status,
                },
            )
            return ServiceResult.failure(
                f"Cannot renew subscription in {subscription.status} status",
                error_code="RECONCILIATION_FAILED",
            )

        period_start, period_end = snapshot.current_start, snapshot.current_end
        if (
            period_end is not None
            and subscription.current_period_end is not None
            and period_end < subscription.current_period_end
        ):
            # Late delivery of an older cycle; keep the newer period.
            period_start = subscription.current_period_start
            period_end = subscription.current_period_end

        subscription.renew(period_start, period_end)
        subscription.save()

        recorded = Payment.objects.create(
            subscription=subscription,
            razorpay_payment_id=payment.id,
            razorpay_order_id=payment.order_id,
            razorpay_invoice_id=payment.invoice_id,
            amount=payment.amount or 0,
            currency=payment.currency or DEFAULT_CURRENCY,
            status=PaymentStatus.PAID,
            paid_at=timezone.now(),
        )

    logger.info(
        "Subscription charge recorded",
        extra={
            "subscription_id": str(subscription.id),
            "payment_id": str(recorded.id),
            "razorpay_invoice_id": payment.invoice_id,
            "amount": recorded.amount,
        },
    )
    return ServiceResult.success(recorded)


@register_handler(WebhookEventKind.HALTED)
def handle_subscription_halted(event: WebhookEvent) -> ServiceResult:
    """
    Mark a subscription past due once Razorpay stops retrying the charge.
    """
    snapshot = event.subscription
    if snapshot is None or not snapshot.id:
        return _skip("subscription.halted without subscription entity", event)

    with transaction.atomic():
        subscription = (
            Subscription.objects.select_for_update()
            .select_related("user")
            .filter(razorpay_subscription_id=snapshot.id)
            .first()
        )
        if subscription is None:
            return _skip("subscription.halted for unknown subscription", event)

        subscription.mark_past_due()
        subscription.save()

        Payment.objects.create(
            subscription=subscription,
            amount=0,
            currency=DEFAULT_CURRENCY,
            status=PaymentStatus.FAILED,
            failure_reason=HALTED_FAILURE_REASON,
        )

    user = subscription.user
    logger.warning(
        "Subscription halted",
        extra={"subscription_id": str(subscription.id), "user_id": user.pk},
    )

    recipient = user.email or event.user_email
    if recipient:
        _notify(
            send_payment_failed_email,
            recipient,
            user.name or FALLBACK_GREETING_NAME,
            1,
        )

    return ServiceResult.success(subscription)


@register_handler(WebhookEventKind.CANCELLED)
def handle_subscription_cancelled(event: WebhookEvent) -> ServiceResult:
    """Downgrade every row holding the cancelled Razorpay subscription."""
    snapshot = event.subscription
    if snapshot is None or not snapshot.id:
        return _skip("subscription.cancelled without subscription entity", event)

    with transaction.atomic():
        rows = list(
            Subscription.objects.select_for_update().filter(
                razorpay_subscription_id=snapshot.id
            )
        )
        for subscription in rows:
            subscription.cancel()
            subscription.save()

    logger.info(
        "Subscription cancelled",
        extra={"razorpay_subscription_id": snapshot.id, "rows": len(rows)},
    )
    return ServiceResult.success(len(rows))


@register_handler(WebhookEventKind.COMPLETED)
def handle_subscription_completed(event: WebhookEvent) -> ServiceResult:
    """Close out a subscription whose billing cycles have all been charged."""
    snapshot = event.subscription
    if snapshot is None or not snapshot.id:
        return _skip("subscription.completed without subscription entity", event)

    with transaction.atomic():
        rows = list(
            Subscription.objects.select_for_update().filter(
                razorpay_subscription_id=snapshot.id
            )
        )
        for subscription in rows:
            subscription.complete()
            subscription.save()

    logger.info(
        "Subscription completed",
        extra={"razorpay_subscription_id": snapshot.id, "rows": len(rows)},
    )
    return ServiceResult.success(len(rows))


@register_handler(WebhookEventKind.UPDATED)
def handle_subscription_updated(event: WebhookEvent) -> ServiceResult:
    """Follow a plan change made on the Razorpay side."""
    snapshot = event.subscription
    if snapshot is None or not snapshot.id:
        return _skip("subscription.updated without subscription entity", event)

    plan = resolve_plan(snapshot.plan_id)
    if plan is None:
        return _skip(
            "subscription.updated with unresolved plan",
            event,
            razorpay_plan_id=snapshot.plan_id,
        )

    updated = Subscription.objects.filter(razorpay_subscription_id=snapshot.id).update(
        plan=plan,
        razorpay_plan_id=snapshot.plan_id,
        updated_at=timezone.now(),
    )

    logger.info(
        "Subscription plan updated",
        extra={"razorpay_subscription_id": snapshot.id, "plan": plan, "rows": updated},
    )
    return ServiceResult.success(updated)
