"""
Decoding of Razorpay webhook payloads into typed events.

Razorpay subscription webhooks look like:

    {
        "event": "subscription.charged",
        "payload": {
            "subscription": {"entity": {"id": "sub_...", "plan_id": "plan_...", ...}},
            "payment": {"entity": {"id": "pay_...", "invoice_id": "inv_...", ...}}
        }
    }

Every field is read defensively. A field of the wrong type decodes to None
rather than failing the whole event, and notes that are not a mapping
(Razorpay sends [] for empty notes) decode to {}.

Usage:
    from billing.webhooks.decoder import decode_webhook_body

    event = decode_webhook_body(request.body)
    if event.kind == WebhookEventKind.CHARGED and event.payment:
        ...
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from billing.exceptions import MalformedPayloadError
from billing.state_machines import WebhookEventKind

logger = logging.getLogger(__name__)


# =============================================================================
# Data Types
# =============================================================================


@dataclass(frozen=True)
class SubscriptionSnapshot:
    """
    Subscription entity as carried by a webhook.

    Attributes:
        id: Razorpay subscription ID (sub_xxx)
        plan_id: Razorpay plan ID (plan_xxx)
        status: Razorpay-side status string
        current_start: Start of the current billing cycle
        current_end: End of the current billing cycle
        notes: Correlation notes stamped at checkout
    """

    id: str | None = None
    plan_id: str | None = None
    status: str | None = None
    current_start: datetime | None = None
    current_end: datetime | None = None
    notes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentSnapshot:
    """
    Payment entity as carried by a webhook.

    Attributes:
        id: Razorpay payment ID (pay_xxx)
        order_id: Razorpay order ID (order_xxx)
        invoice_id: Razorpay invoice ID (inv_xxx)
        amount: Amount in minor units (paise)
        currency: ISO 4217 currency code
        status: Razorpay-side payment status
    """

    id: str | None = None
    order_id: str | None = None
    invoice_id: str | None = None
    amount: int | None = None
    currency: str | None = None
    status: str | None = None


@dataclass(frozen=True)
class WebhookEvent:
    """
    A decoded Razorpay webhook.

    Attributes:
        event: Raw event string from the payload
        kind: Recognized event kind, or None for events we don't handle
        subscription: Subscription snapshot, if the payload carried one
        payment: Payment snapshot, if the payload carried one
        payload: The decoded JSON body, kept for the audit log
    """

    event: str | None
    kind: WebhookEventKind | None
    subscription: SubscriptionSnapshot | None = None
    payment: PaymentSnapshot | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def notes(self) -> dict[str, Any]:
        """Correlation notes from the subscription entity."""
        if self.subscription is None:
            return {}
        return self.subscription.notes

    @property
    def user_id(self) -> str | None:
        """Owning user id stamped into notes at checkout."""
        value = self.notes.get("userId")
        if isinstance(value, bool):
            return None
        if isinstance(value, (str, int)):
            return str(value) or None
        return None

    @property
    def user_email(self) -> str | None:
        return _str(self.notes.get("userEmail"))

    @property
    def subscription_id(self) -> str | None:
        return self.subscription.id if self.subscription else None


# =============================================================================
# Field Readers
# =============================================================================


def _str(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _timestamp(value: Any) -> datetime | None:
    """Convert Unix seconds to an aware UTC datetime."""
    seconds = _int(value)
    if seconds is None or seconds <= 0:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _entity(payload: dict[str, Any], name: str) -> dict[str, Any] | None:
    wrapper = payload.get(name)
    if not isinstance(wrapper, dict):
        return None
    entity = wrapper.get("entity")
    return entity if isinstance(entity, dict) else None


def _event_kind(event: str | None) -> WebhookEventKind | None:
    if event in WebhookEventKind.values:
        return WebhookEventKind(event)
    return None


# =============================================================================
# Decoding
# =============================================================================


def decode_payload(data: dict[str, Any]) -> WebhookEvent:
    """
    Decode an already-parsed webhook body.

    Used directly when replaying a stored WebhookEventLog payload.
    """
    if not isinstance(data, dict):
        raise MalformedPayloadError("Webhook payload must be a JSON object")

    event = _str(data.get("event"))
    payload = _mapping(data.get("payload"))

    subscription = None
    sub_entity = _entity(payload, "subscription")
    if sub_entity is not None:
        subscription = SubscriptionSnapshot(
            id=_str(sub_entity.get("id")),
            plan_id=_str(sub_entity.get("plan_id")),
            status=_str(sub_entity.get("status")),
            current_start=_timestamp(sub_entity.get("current_start")),
            current_end=_timestamp(sub_entity.get("current_end")),
            notes=_mapping(sub_entity.get("notes")),
        )

    payment = None
    pay_entity = _entity(payload, "payment")
    if pay_entity is not None:
        payment = PaymentSnapshot(
            id=_str(pay_entity.get("id")),
            order_id=_str(pay_entity.get("order_id")),
            invoice_id=_str(pay_entity.get("invoice_id")),
            amount=_int(pay_entity.get("amount")),
            currency=_str(pay_entity.get("currency")),
            status=_str(pay_entity.get("status")),
        )

    return WebhookEvent(
        event=event,
        kind=_event_kind(event),
        subscription=subscription,
        payment=payment,
        payload=data,
    )


def decode_webhook_body(body: bytes | str) -> WebhookEvent:
    """
    Parse and decode a raw webhook body.

    Raises:
        MalformedPayloadError: Body is not valid UTF-8 JSON or not an object
    """
    try:
        data = json.loads(body)
    except ValueError as e:
        # Covers JSONDecodeError and UnicodeDecodeError
        raise MalformedPayloadError(
            "Webhook body is not valid JSON", details={"error": str(e)}
        ) from e

    return decode_payload(data)
