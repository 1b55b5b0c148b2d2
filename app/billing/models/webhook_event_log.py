"""
WebhookEventLog model for Razorpay webhook auditing and replay.

Every webhook that passes signature verification and decodes is stored with
its raw payload and processing outcome. Failed rows can be replayed from the
admin through billing.tasks.replay_webhook_event.

Usage:
    from billing.models import WebhookEventLog

    log = WebhookEventLog.objects.create(
        razorpay_event_id=request.headers.get("X-Razorpay-Event-Id"),
        event="subscription.charged",
        payload=payload,
    )
    log.mark_processing()
    ...
    log.mark_processed()
    log.save()
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from billing.state_machines import WebhookLogStatus


class WebhookEventLog(UUIDPrimaryKeyMixin, BaseModel):
    """
    Audit record of one inbound Razorpay webhook delivery.

    Razorpay retries deliveries, so the same razorpay_event_id can appear on
    several rows. Idempotency is enforced by the reconciliation engine, not
    here.

    Fields:
        razorpay_event_id: X-Razorpay-Event-Id header value, if sent
        event: Event kind string (e.g. "subscription.charged")
        razorpay_subscription_id: Subscription the event refers to
        payload: Decoded JSON body
        status: Processing outcome
        error_message: Failure details
        attempts: Number of processing attempts (first delivery + replays)
        processed_at: When the event last processed successfully
    """

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    razorpay_event_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Razorpay event ID from the X-Razorpay-Event-Id header",
    )

    event = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Razorpay event kind (e.g., 'subscription.charged')",
    )

    razorpay_subscription_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Razorpay subscription ID the event refers to",
    )

    # ==========================================================================
    # Payload
    # ==========================================================================

    payload = models.JSONField(
        help_text="Full webhook payload from Razorpay (JSON)",
    )

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=WebhookLogStatus.choices,
        default=WebhookLogStatus.RECEIVED,
        db_index=True,
        help_text="Current processing status",
    )

    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Error message if processing failed",
    )

    attempts = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of processing attempts",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When event was successfully processed",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event Log"
        verbose_name_plural = "Webhook Event Logs"
        indexes = [
            models.Index(fields=["status", "created_at"], name="billing_web_status_3d7c22_idx"),
            models.Index(fields=["event", "created_at"], name="billing_web_event_9a4b10_idx"),
        ]

    def __str__(self) -> str:
        return f"WebhookEventLog({self.event}, {self.status})"

    @property
    def can_replay(self) -> bool:
        """Only failed or never-finished events are replayed."""
        return self.status in (WebhookLogStatus.FAILED, WebhookLogStatus.RECEIVED)

    # ==========================================================================
    # Helper Methods
    # ==========================================================================
    # None of these save; the caller saves after calling.

    def mark_processing(self) -> None:
        self.attempts += 1

    def mark_processed(self) -> None:
        self.status = WebhookLogStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_ignored(self) -> None:
        self.status = WebhookLogStatus.IGNORED
        self.processed_at = timezone.now()

    def mark_failed(self, error_message: str) -> None:
        self.status = WebhookLogStatus.FAILED
        self.error_message = error_message
