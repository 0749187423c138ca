"""CLI for the Slack webhook gateway.

Usage:
    speckit-bot serve [--host 0.0.0.0] [--port 3000]
    speckit-bot check
"""

from __future__ import annotations

import argparse
import sys

from speckit_bot.app import check_configuration, configure_logging, create_app
from speckit_bot.channels.slack import SlackClient
from speckit_bot.config import get_settings
from speckit_bot.errors import ConfigurationError


def cmd_serve(args: argparse.Namespace) -> None:
    """Run the webhook server (refuses to start without a signing secret)."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    try:
        check_configuration(settings)
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    host = args.host or settings.host
    port = args.port or settings.port
    print(f"Slack webhook server on http://{host}:{port}")
    print("  Events:   /slack/events")
    print("  Commands: /slack/commands, /slack/{specify,plan,tasks,status}")
    uvicorn.run(create_app(settings), host=host, port=port, log_level=settings.log_level.lower())


def cmd_check(args: argparse.Namespace) -> None:
    """Check the bot token against Slack's auth.test."""
    settings = get_settings()
    configure_logging(settings.log_level)
    client = SlackClient(bot_token=settings.bot_token, api_url=settings.slack_api_url)
    if not client.is_configured:
        print("ERROR: SLACK_BOT_TOKEN is not set", file=sys.stderr)
        sys.exit(1)
    result = client.auth_test()
    if not result.success:
        print(f"Slack connection failed: {result.error}", file=sys.stderr)
        sys.exit(1)
    print("Slack connection successful")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="speckit-bot",
        description="Signed Slack webhook gateway for the Spec Kit agent",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_serve = sub.add_parser("serve", help="Run the webhook server")
    p_serve.add_argument("--host", help="Bind address (default from settings)")
    p_serve.add_argument("--port", type=int, help="Port (default from settings)")
    p_serve.set_defaults(func=cmd_serve)

    p_check = sub.add_parser("check", help="Verify the Slack bot token")
    p_check.set_defaults(func=cmd_check)

    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
