"""Slack request signature verification: constant-time HMAC.

Security contract:
- Signing base string is b"v0:" + timestamp + b":" + raw body (no re-encoding)
- Signature is "v0=" + hex(HMAC-SHA256(secret, base string))
- All comparisons use hmac.compare_digest() (constant-time, no timing attacks)
- verify() returns False on any failure and never raises
- Missing secret in verify_request() -> ConfigurationError (500), not a 401
- Secrets and expected signatures are never logged
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time

from speckit_bot.config import Settings
from speckit_bot.errors import ConfigurationError
from speckit_bot.webhooks.models import InboundWebhookRequest

logger = logging.getLogger(__name__)

SIGNATURE_VERSION = "v0"

# Slack's header names first, generic fallbacks second
SIGNATURE_HEADERS = ("x-slack-signature", "x-signature")
TIMESTAMP_HEADERS = ("x-slack-request-timestamp", "x-request-timestamp")

_BODY_PREVIEW_LENGTH = 200


def _to_bytes(value: str | bytes) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def compute_signature(
    raw_body: bytes, timestamp: str | bytes, secret: str | bytes
) -> str:
    """Compute the "v0=<hex>" signature for a body and timestamp."""
    base = b"%s:%s:%s" % (
        SIGNATURE_VERSION.encode("ascii"),
        _to_bytes(timestamp),
        raw_body,
    )
    digest = hmac.new(_to_bytes(secret), base, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_VERSION}={digest}"


def is_fresh(timestamp: str | bytes, tolerance: int, now: float | None = None) -> bool:
    """Check that a unix-seconds timestamp is within tolerance of now."""
    try:
        ts = int(_to_bytes(timestamp).decode("ascii"))
    except (ValueError, UnicodeDecodeError):
        return False
    current = time.time() if now is None else now
    return abs(current - ts) <= tolerance


def verify(
    raw_body: bytes,
    timestamp: str | bytes | None,
    signature: str | bytes | None,
    secret: str | bytes | None,
    *,
    tolerance: int | None = None,
    now: float | None = None,
) -> bool:
    """Verify a Slack-style request signature.

    Args:
        raw_body: Exact request body bytes
        timestamp: Value of the request timestamp header
        signature: Value of the signature header ("v0=<hex>")
        secret: Signing secret
        tolerance: Optional freshness window in seconds (replay defense)
        now: Clock override for the freshness check

    Returns:
        True if the signature matches (and the timestamp is fresh, when a
        tolerance is given)
    """
    if not secret or not timestamp or not signature:
        return False

    if tolerance is not None and not is_fresh(timestamp, tolerance, now):
        logger.warning("Webhook timestamp outside tolerance: %r", timestamp)
        return False

    expected = compute_signature(raw_body, timestamp, secret)
    return hmac.compare_digest(expected.encode("ascii"), _to_bytes(signature))


def _first_header(request: InboundWebhookRequest, names: tuple[str, ...]) -> str | None:
    for name in names:
        value = request.header(name)
        if value:
            return value
    return None


def body_preview(body: bytes) -> str:
    """Truncated, decoded body for log lines."""
    text = body[:_BODY_PREVIEW_LENGTH].decode("utf-8", errors="replace")
    if len(body) > _BODY_PREVIEW_LENGTH:
        text += "..."
    return text


def request_signature(request: InboundWebhookRequest) -> str | None:
    return _first_header(request, SIGNATURE_HEADERS)


def verify_request(request: InboundWebhookRequest, settings: Settings) -> bool:
    """Verify an inbound request against the configured signing secret.

    Raises:
        ConfigurationError: no signing secret is configured
    """
    secret = settings.signing_secret
    if not secret:
        logger.error("Slack signing secret not configured, cannot verify %s", request.path)
        raise ConfigurationError("Slack signing secret is not configured")

    tolerance = settings.timestamp_tolerance or None
    ok = verify(
        request.body,
        _first_header(request, TIMESTAMP_HEADERS),
        request_signature(request),
        secret,
        tolerance=tolerance,
        now=request.received_at,
    )
    if not ok:
        logger.warning(
            "Invalid webhook signature on %s (body=%s)",
            request.path,
            body_preview(request.body),
        )
    return ok
