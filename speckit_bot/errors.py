"""Error kinds raised by the webhook pipeline.

Mapping to the HTTP boundary:
- ConfigurationError  -> 500 {"error": "Server configuration error"} (logged)
- AuthenticationError -> 401 {"error": "Unauthorized"} (no detail leaked)
- ValidationError     -> 200 ephemeral usage message
- UnknownCommandError -> 200 ephemeral "unrecognized" message
"""

from __future__ import annotations

from speckit_bot.webhooks.models import CommandResult


class WebhookError(Exception):
    """Base class for webhook pipeline errors."""


class ConfigurationError(WebhookError):
    """Required configuration (e.g. the signing secret) is missing."""


class AuthenticationError(WebhookError):
    """Request signature is missing, stale, replayed or forged."""


class ValidationError(WebhookError):
    """Command is registered but its input is not acceptable."""

    def __init__(self, command: str, usage: str):
        self.command = command
        self.usage = usage
        super().__init__(f"Invalid input for /{command}")

    def to_result(self) -> CommandResult:
        return CommandResult.ephemeral(self.usage)


class UnknownCommandError(WebhookError):
    """No handler is registered under the command name."""

    def __init__(self, command: str, available: list[tuple[str, str]] | None = None):
        self.command = command
        self.available = available or []
        super().__init__(f"Unknown command: /{command}")

    def to_result(self) -> CommandResult:
        text = f"Sorry, `/{self.command}` is an unrecognized command."
        if self.available:
            lines = [f"\u2022 `/{name}` {description}".rstrip() for name, description in self.available]
            text += "\nAvailable commands:\n" + "\n".join(lines)
        return CommandResult.ephemeral(text)
