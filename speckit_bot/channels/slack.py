"""Slack follow-up channel: out-of-band replies after a command is acknowledged.

Two delivery paths:
- response_url from the slash command payload (no token needed, valid ~30 min)
- chat.postMessage with the bot token (any channel the bot is in)

Security: bot token comes from Settings, never logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import requests

from speckit_bot.webhooks.models import ResponseType

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 10

# Slack rejects message text above 40k characters
_MAX_TEXT_LENGTH = 39_000


@dataclass
class SendResult:
    """Result of sending a message to Slack."""

    success: bool
    channel_id: str = ""
    error: str = ""
    response_id: str = ""  # Slack message ts


def _truncate(text: str) -> str:
    if len(text) > _MAX_TEXT_LENGTH:
        return text[:_MAX_TEXT_LENGTH] + "\n…(truncated)"
    return text


class SlackClient:
    """Minimal Slack Web API client for follow-up messages."""

    def __init__(
        self,
        bot_token: str = "",
        api_url: str = "https://slack.com/api",
        username: str = "SpecKitBot",
        icon_emoji: str = ":robot_face:",
    ):
        self._bot_token = bot_token
        self._api_url = api_url.rstrip("/")
        self._username = username
        self._icon_emoji = icon_emoji

    @property
    def is_configured(self) -> bool:
        return bool(self._bot_token)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._bot_token}",
            "Content-Type": "application/json; charset=utf-8",
        }

    def _call(self, method: str, payload: dict[str, Any], channel: str = "") -> SendResult:
        if not self._bot_token:
            logger.error("Slack bot token not set, cannot call %s", method)
            return SendResult(success=False, channel_id=channel, error="Slack bot token not configured")

        try:
            resp = requests.post(
                f"{self._api_url}/{method}",
                json=payload,
                headers=self._headers(),
                timeout=_TIMEOUT_SECONDS,
            )
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("Slack %s request failed: %s", method, type(e).__name__)
            return SendResult(success=False, channel_id=channel, error=str(e))

        if data.get("ok"):
            return SendResult(success=True, channel_id=channel, response_id=str(data.get("ts", "")))

        error = str(data.get("error", f"HTTP {resp.status_code}"))
        logger.error("Slack %s returned error: %s", method, error)
        return SendResult(success=False, channel_id=channel, error=error)

    def post_message(self, channel: str, text: str) -> SendResult:
        """Send a message via chat.postMessage."""
        result = self._call(
            "chat.postMessage",
            {
                "channel": channel,
                "text": _truncate(text),
                "username": self._username,
                "icon_emoji": self._icon_emoji,
            },
            channel=channel,
        )
        if result.success:
            logger.info("Message sent to Slack channel %s", channel)
        return result

    def respond(
        self,
        response_url: str,
        text: str,
        response_type: ResponseType = ResponseType.IN_CHANNEL,
    ) -> SendResult:
        """Post a delayed reply to a slash command's response_url."""
        try:
            resp = requests.post(
                response_url,
                json={"response_type": response_type.value, "text": _truncate(text)},
                timeout=_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            logger.error("Slack response_url post failed: %s", type(e).__name__)
            return SendResult(success=False, error=str(e))

        if resp.status_code == 200:
            return SendResult(success=True)
        return SendResult(success=False, error=f"Slack response_url error: {resp.status_code}")

    def follow_up(self, channel: str, text: str, response_url: str = "") -> SendResult:
        """Deliver a follow-up, preferring the command's response_url."""
        if response_url:
            result = self.respond(response_url, text)
            if result.success:
                return result
            logger.warning("response_url delivery failed, falling back to chat.postMessage")
        return self.post_message(channel, text)

    def auth_test(self) -> SendResult:
        """Check the bot token against auth.test."""
        result = self._call("auth.test", {})
        if result.success:
            logger.info("Slack connection successful")
        return result
