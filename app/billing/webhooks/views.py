"""
Webhook endpoint view for Razorpay.

The view:
1. Verifies the X-Razorpay-Signature header against the raw body
2. Decodes the JSON body into a WebhookEvent
3. Stores a WebhookEventLog row
4. Runs the reconciliation engine synchronously
5. Acknowledges with 200 even when reconciliation fails, flagging the
   failure in the body so Razorpay does not redeliver into the same error

Usage:
    # In urls.py
    from billing.webhooks.views import razorpay_webhook

    urlpatterns = [
        path("webhooks/razorpay/", razorpay_webhook, name="razorpay_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from billing.adapters import get_razorpay_adapter
from billing.exceptions import MalformedPayloadError, WebhookSignatureError
from billing.webhooks.decoder import decode_webhook_body
from billing.webhooks.processor import create_event_log, process_event
from billing.webhooks.signature import SIGNATURE_HEADER

logger = logging.getLogger(__name__)

EVENT_ID_HEADER = "X-Razorpay-Event-Id"


@csrf_exempt
@require_POST
def razorpay_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive and reconcile a Razorpay webhook.

    Security:
    - Signature verification over the untouched body prevents spoofing
    - CSRF exemption required for external webhooks
    - Only POST requests accepted

    Returns:
        JsonResponse with status:
        - 200 {"received": true}: Event applied, ignored or a duplicate
        - 200 {"received": true, "warning": "Processing error"}: Accepted
          but reconciliation failed; see the WebhookEventLog row
        - 400 {"error": "Invalid signature"}: Signature missing or wrong
        - 400 {"error": "Invalid JSON"}: Body could not be decoded
    """
    body = request.body
    signature = request.headers.get(SIGNATURE_HEADER, "")

    # Step 1: Verify signature
    try:
        get_razorpay_adapter().ensure_webhook_signature(body, signature)
    except WebhookSignatureError as e:
        logger.warning("Webhook signature verification failed", extra=e.details)
        return JsonResponse({"error": e.message}, status=400)

    # Step 2: Decode
    try:
        event = decode_webhook_body(body)
    except MalformedPayloadError as e:
        logger.warning("Webhook body could not be decoded", extra={"error": str(e)})
        return JsonResponse({"error": "Invalid JSON"}, status=400)

    logger.info(
        f"Received Razorpay webhook: {event.event}",
        extra={
            "event": event.event,
            "razorpay_subscription_id": event.subscription_id,
        },
    )

    # Step 3: Record and reconcile
    try:
        event_log = create_event_log(event, request.headers.get(EVENT_ID_HEADER))
        result = process_event(event, event_log)
    except Exception:
        logger.exception(
            "Failed to record webhook",
            extra={"event": event.event},
        )
        return JsonResponse({"received": True, "warning": "Processing error"})

    if not result.success:
        return JsonResponse({"received": True, "warning": "Processing error"})

    return JsonResponse({"received": True})
