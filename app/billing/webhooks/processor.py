"""
Runs a decoded webhook through the reconciliation engine and records the
outcome on its WebhookEventLog row.

Shared by the webhook view (first delivery) and the replay task.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from core.services import ServiceResult

from billing.exceptions import ReconciliationError
from billing.models import WebhookEventLog
from billing.webhooks.handlers import dispatch_webhook, has_handler

if TYPE_CHECKING:
    from billing.webhooks.decoder import WebhookEvent


logger = logging.getLogger(__name__)


def create_event_log(event: WebhookEvent, razorpay_event_id: str | None = None) -> WebhookEventLog:
    """Store an inbound webhook before it is processed."""
    return WebhookEventLog.objects.create(
        razorpay_event_id=razorpay_event_id or None,
        event=(event.event or "")[:100],
        razorpay_subscription_id=event.subscription_id,
        payload=event.payload,
    )


def process_event(event: WebhookEvent, event_log: WebhookEventLog) -> ServiceResult:
    """
    Dispatch ``event`` and record the outcome on ``event_log``.

    Never raises for handler errors: exceptions are logged and converted
    to a failed result carrying RECONCILIATION_FAILED, since Razorpay must
    still receive a 2xx once the signature and body were accepted.
    """
    event_log.mark_processing()
    log_context = {
        "webhook_event_log_id": str(event_log.id),
        "event": event.event,
        "razorpay_subscription_id": event.subscription_id,
        "attempt": event_log.attempts,
    }

    try:
        result = dispatch_webhook(event)
    except Exception as e:
        error_msg = f"{type(e).__name__}: {e}"
        logger.exception(
            "Webhook processing failed with exception",
            extra={**log_context, "error": error_msg},
        )
        event_log.mark_failed(error_msg)
        event_log.save()
        return ServiceResult.from_exception(ReconciliationError(error_msg))

    if result.success:
        if has_handler(event):
            event_log.mark_processed()
        else:
            event_log.mark_ignored()
        logger.info("Webhook processed", extra=log_context)
    else:
        error_msg = result.error or "Handler returned failure"
        event_log.mark_failed(error_msg)
        logger.warning(
            f"Webhook handler failed: {error_msg}",
            extra={**log_context, "error_code": result.error_code},
        )

    event_log.save()
    return result
