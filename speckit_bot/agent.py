"""Background agent runner.

Runs the external Spec Kit agent for a command and posts the outcome back to
Slack. Always invoked off the request path (via DispatchContext.defer).
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess

from speckit_bot.channels.slack import SendResult, SlackClient
from speckit_bot.config import Settings

logger = logging.getLogger(__name__)

AGENT_NAME = "Enhanced Spec Kit Agent"


class AgentRunner:
    """Spawns the agent process and reports its result."""

    def __init__(self, settings: Settings, slack: SlackClient):
        self._command = settings.agent_command
        self._timeout = settings.agent_timeout
        self._slack = slack

    @property
    def is_configured(self) -> bool:
        return bool(self._command.strip())

    def _env(self, command: str, text: str, user_id: str, channel_id: str) -> dict[str, str]:
        env = dict(os.environ)
        env.update(
            {
                "SLACK_USER_ID": user_id,
                "SLACK_CHANNEL_ID": channel_id,
                "SLACK_COMMAND": command,
                "SLACK_TEXT": text,
            }
        )
        return env

    def run(
        self,
        command: str,
        text: str,
        user_id: str,
        channel_id: str,
        response_url: str = "",
    ) -> SendResult | None:
        """Run the agent for one command and send the follow-up message.

        Returns:
            The follow-up SendResult, or None when no agent is configured
        """
        if not self.is_configured:
            logger.warning("No agent command configured, skipping %s for channel %s", command, channel_id)
            return None

        logger.info("Running %s with command: %s", AGENT_NAME, command)
        try:
            proc = subprocess.run(
                shlex.split(self._command),
                env=self._env(command, text, user_id, channel_id),
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.error("Failed to start %s: %s", AGENT_NAME, e)
            return self._slack.follow_up(
                channel_id, f"❌ Failed to start {AGENT_NAME}: {e}", response_url
            )

        if proc.returncode == 0:
            logger.info("%s completed successfully", AGENT_NAME)
            message = f"✅ {AGENT_NAME} completed!\n\n{proc.stdout}"
        else:
            logger.error("%s failed with code %d", AGENT_NAME, proc.returncode)
            message = f"❌ {AGENT_NAME} failed: {proc.stderr}"

        return self._slack.follow_up(channel_id, message, response_url)
