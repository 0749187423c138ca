"""Slash command parser: form-url-encoded body -> ParsedCommand.

The parser does no trimming or sanitization; handlers that forward free text
downstream clean it themselves.
"""

from __future__ import annotations

from urllib.parse import parse_qs

from speckit_bot.webhooks.models import ParsedCommand


def normalize_command_name(name: str | None) -> str:
    """'/Specify' -> 'specify'."""
    return (name or "").strip().lstrip("/").lower()


def parse_form(raw_body: bytes) -> dict[str, str]:
    """Decode a form body, keeping the first value of each field."""
    text = raw_body.decode("utf-8", errors="replace")
    fields = parse_qs(text, keep_blank_values=True)
    return {key: values[0] for key, values in fields.items() if values}


def parse_command(raw_body: bytes, name: str | None = None) -> ParsedCommand:
    """Parse a slash command body.

    Args:
        raw_body: Form-encoded request body
        name: Command name when the route already knows it; otherwise the
            body's ``command`` field is used

    Returns:
        ParsedCommand with an empty argument when ``text`` is absent
    """
    form = parse_form(raw_body)
    return ParsedCommand(
        name=normalize_command_name(name or form.get("command")),
        argument=form.get("text", ""),
        user_id=form.get("user_id", ""),
        channel_id=form.get("channel_id", ""),
        response_url=form.get("response_url", ""),
        team_id=form.get("team_id", ""),
        trigger_id=form.get("trigger_id", ""),
    )
