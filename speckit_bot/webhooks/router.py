"""Event router: handshake vs. event callback vs. slash command.

Slack issues a one-time ``url_verification`` request when an events URL is
registered. That request is answered by echoing its challenge and is the
only path that skips signature verification.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from speckit_bot.webhooks.models import RouteDecision, RouteKind
from speckit_bot.webhooks.parser import parse_form

logger = logging.getLogger(__name__)

HANDSHAKE_TYPE = "url_verification"


def parse_body(raw_body: bytes, content_type: str = "") -> dict[str, Any]:
    """Decode a webhook body as JSON or form data.

    Undecodable JSON yields an empty dict so routing can still proceed to
    signature verification.
    """
    if content_type == "application/x-www-form-urlencoded":
        return parse_form(raw_body)

    stripped = raw_body.lstrip()
    if content_type == "application/json" or stripped[:1] in (b"{", b"["):
        try:
            data = json.loads(raw_body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.debug("Webhook body is not valid JSON")
            return {}
        return data if isinstance(data, dict) else {}

    return parse_form(raw_body)


def route(parsed_body: dict[str, Any]) -> RouteDecision:
    """Classify a parsed body."""
    body_type = parsed_body.get("type")

    if body_type == HANDSHAKE_TYPE:
        return RouteDecision(
            kind=RouteKind.HANDSHAKE,
            payload=parsed_body,
            challenge=str(parsed_body.get("challenge", "")),
        )

    if body_type:
        return RouteDecision(kind=RouteKind.EVENT_CALLBACK, payload=parsed_body)

    return RouteDecision(kind=RouteKind.COMMAND, payload=parsed_body)
