"""Slack Events API callbacks: app mentions and channel messages.

Only verified ``event_callback`` payloads reach this module. Work that
triggers the agent is deferred; the HTTP reply is always {"status": "ok"}.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from speckit_bot.agent import AgentRunner
from speckit_bot.commands import clean_text
from speckit_bot.webhooks.dispatcher import DispatchContext

logger = logging.getLogger(__name__)

_MENTION_PATTERN = re.compile(r"<@[^>]+>")

TRIGGER_KEYWORDS = ("specify", "plan", "tasks")

SLACKBOT_USER = "USLACKBOT"


def strip_mentions(text: str) -> str:
    return _MENTION_PATTERN.sub("", text).strip()


def _event_text(event: dict[str, Any]) -> str:
    # Slack omits or nulls text on some message shapes
    text = event.get("text")
    return text if isinstance(text, str) else ""


class EventHandler:
    """Handles event_callback payloads for the Spec Kit bot."""

    def __init__(self, runner: AgentRunner, bot_name: str = "SpecKitBot"):
        self._runner = runner
        self._bot_name = bot_name

    def handle(self, payload: dict[str, Any], ctx: DispatchContext) -> bool:
        """Handle one callback payload.

        Returns:
            True if the event triggered agent work
        """
        event = payload.get("event")
        if payload.get("type") != "event_callback" or not isinstance(event, dict):
            logger.info("Ignoring Slack payload of type %s", payload.get("type"))
            return False

        event_type = event.get("type", "")
        logger.info("Received Slack event: %s", event_type)

        if event_type == "app_mention":
            return self._on_app_mention(event, ctx)
        if event_type == "message":
            return self._on_message(event, ctx)

        logger.info("Unhandled event type: %s", event_type)
        return False

    def _on_app_mention(self, event: dict[str, Any], ctx: DispatchContext) -> bool:
        request = strip_mentions(_event_text(event))
        if not request:
            return False
        logger.info("App mentioned by %s in %s", event.get("user"), event.get("channel"))
        self._defer_general(request, event, ctx)
        return True

    def _on_message(self, event: dict[str, Any], ctx: DispatchContext) -> bool:
        # Bot posts, edits, joins etc. all carry a subtype
        if event.get("subtype") or event.get("bot_id") or event.get("user") == SLACKBOT_USER:
            return False

        text = _event_text(event)
        lowered = text.lower()
        if f"@{self._bot_name}".lower() not in lowered and not any(
            keyword in lowered for keyword in TRIGGER_KEYWORDS
        ):
            return False

        logger.info("Message from %s in %s directed at the bot", event.get("user"), event.get("channel"))
        self._defer_general(text, event, ctx)
        return True

    def _defer_general(self, text: str, event: dict[str, Any], ctx: DispatchContext) -> None:
        ctx.defer(
            self._runner.run,
            "general",
            clean_text(text),
            event.get("user", ""),
            event.get("channel", ""),
        )
