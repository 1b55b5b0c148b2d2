"""
Razorpay webhook signature verification.

Razorpay signs the raw request body with HMAC-SHA256 using the webhook
secret and sends the hex digest in the X-Razorpay-Signature header. The
digest must be computed over the untouched bytes, before any JSON parsing.
"""

from __future__ import annotations

import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Razorpay-Signature"


def compute_signature(body: bytes | str, secret: str) -> str:
    """Return the hex HMAC-SHA256 digest of ``body`` keyed by ``secret``."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_webhook_signature(
    body: bytes | str,
    signature: str | None,
    secret: str | None,
) -> bool:
    """
    Verify a Razorpay webhook signature.

    Never raises: a missing secret, a missing or non-string signature and a
    mismatch all return False.

    Args:
        body: Raw request body
        signature: X-Razorpay-Signature header value
        secret: Razorpay webhook secret

    Returns:
        True if the signature matches the body
    """
    if not secret:
        logger.warning("Razorpay webhook secret not configured, rejecting request")
        return False

    if not signature or not isinstance(signature, str):
        return False

    if not isinstance(body, (bytes, str)):
        return False

    expected = compute_signature(body, secret)
    # Compare as bytes; compare_digest rejects non-ASCII str input.
    return hmac.compare_digest(
        expected.encode("ascii"), signature.encode("utf-8", "replace")
    )
