"""
Celery tasks for billing.

This module provides async tasks for:
- Welcome/upgrade emails after a subscription activates
- Payment-failure emails after Razorpay halts a subscription
- Operator-triggered replay of a stored webhook

Usage:
    from billing.tasks import send_welcome_upgrade_email

    send_welcome_upgrade_email.delay("user@example.com", "Asha", "PRO")

    # Replay a failed webhook (normally from the admin action)
    from billing.tasks import replay_webhook_event
    replay_webhook_event.delay(str(webhook_event_log.id))
"""

from __future__ import annotations

import logging
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

from billing.models import WebhookEventLog

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_EMAIL_RETRIES = 3


# =============================================================================
# Email Helpers
# =============================================================================


def _send_templated_email(to: str, subject: str, template_name: str, context: dict) -> None:
    """Render billing/emails/<template_name>.{txt,html} and send it."""
    text_content = render_to_string(f"billing/emails/{template_name}.txt", context)
    html_content = render_to_string(f"billing/emails/{template_name}.html", context)

    email = EmailMultiAlternatives(
        subject=subject,
        body=text_content,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[to],
    )
    email.attach_alternative(html_content, "text/html")
    email.send()


# =============================================================================
# Notification Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": MAX_EMAIL_RETRIES},
)
def send_welcome_upgrade_email(self, email: str, name: str, plan: str) -> bool:
    """
    Thank a user for upgrading and confirm their new plan.

    Args:
        email: Recipient address
        name: Greeting name ("there" when the user has no display name)
        plan: Plan tier the user upgraded to
    """
    logger.info(
        "Sending welcome upgrade email",
        extra={"plan": plan, "retry": self.request.retries},
    )
    _send_templated_email(
        to=email,
        subject=f"Welcome to {plan.title()}",
        template_name="welcome_upgrade",
        context={"name": name, "plan": plan.title()},
    )
    return True


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": MAX_EMAIL_RETRIES},
)
def send_payment_failed_email(self, email: str, name: str, retry_count: int) -> bool:
    """
    Tell a user their subscription payment could not be collected.

    Args:
        email: Recipient address
        name: Greeting name
        retry_count: How many collection attempts the email reports
    """
    logger.info(
        "Sending payment failed email",
        extra={"retry_count": retry_count, "retry": self.request.retries},
    )
    _send_templated_email(
        to=email,
        subject="Action needed: your payment failed",
        template_name="payment_failed",
        context={"name": name, "retry_count": retry_count},
    )
    return True


# =============================================================================
# Webhook Replay
# =============================================================================


@shared_task
def replay_webhook_event(webhook_event_log_id: str) -> dict:
    """
    Re-run a stored webhook through the reconciliation engine.

    Only failed or never-finished rows are replayed; processed and ignored
    rows are left alone. There is no automatic retry: an operator triggers
    this from the admin after fixing the underlying problem.

    Returns:
        Dict with the replay outcome
    """
    # Import here to avoid circular imports
    from billing.webhooks.decoder import decode_payload
    from billing.webhooks.processor import process_event

    if isinstance(webhook_event_log_id, str):
        webhook_event_log_id = UUID(webhook_event_log_id)

    try:
        event_log = WebhookEventLog.objects.get(id=webhook_event_log_id)
    except WebhookEventLog.DoesNotExist:
        logger.error(
            "WebhookEventLog not found",
            extra={"webhook_event_log_id": str(webhook_event_log_id)},
        )
        return {"status": "not_found", "webhook_event_log_id": str(webhook_event_log_id)}

    if not event_log.can_replay:
        logger.info(
            "WebhookEventLog not replayable, skipping",
            extra={
                "webhook_event_log_id": str(event_log.id),
                "status": event_log.status,
            },
        )
        return {"status": "skipped", "webhook_event_log_id": str(event_log.id)}

    event = decode_payload(event_log.payload)
    result = process_event(event, event_log)

    return {
        "status": event_log.status,
        "webhook_event_log_id": str(event_log.id),
        "error": None if result.success else result.error,
    }
