"""FastAPI application factory for the Slack webhook gateway.

Wiring happens once here: settings -> Slack client -> agent runner ->
handler registry (frozen) -> pipeline -> routes.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from speckit_bot.agent import AgentRunner
from speckit_bot.channels.slack import SlackClient
from speckit_bot.commands import build_registry
from speckit_bot.config import Settings, get_settings
from speckit_bot.errors import ConfigurationError
from speckit_bot.events import EventHandler
from speckit_bot.webhooks.dispatcher import HandlerRegistry
from speckit_bot.webhooks.handlers import register_slack_routes
from speckit_bot.webhooks.pipeline import WebhookPipeline

logger = logging.getLogger(__name__)

SERVICE_NAME = "Enhanced Spec Kit Agent Slack Webhook Server"

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=_LOG_FORMAT)


def check_configuration(settings: Settings) -> None:
    """Raise ConfigurationError when the signing secret is missing."""
    if not settings.is_configured:
        raise ConfigurationError(
            "SLACK_SIGNING_SECRET is not set; Slack requests cannot be verified"
        )


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse({"error": "Internal server error"}, status_code=500)


def create_app(
    settings: Settings | None = None,
    *,
    registry: HandlerRegistry | None = None,
    slack: SlackClient | None = None,
    runner: AgentRunner | None = None,
) -> FastAPI:
    """Build the FastAPI app.

    Args:
        settings: Configuration; defaults to get_settings()
        registry: Command registry; defaults to the built-in Spec Kit commands
        slack: Follow-up client; defaults to one built from settings
        runner: Agent runner; defaults to one built from settings

    A missing signing secret is logged at start-up; requests then get 500
    until it is configured.
    """
    settings = settings or get_settings()
    try:
        check_configuration(settings)
    except ConfigurationError as e:
        logger.error("%s", e)

    slack = slack or SlackClient(
        bot_token=settings.bot_token,
        api_url=settings.slack_api_url,
        username=settings.bot_name,
    )
    runner = runner or AgentRunner(settings, slack)
    if registry is None:
        registry = build_registry(runner)
    registry.freeze()

    pipeline = WebhookPipeline(
        settings,
        registry,
        events=EventHandler(runner, bot_name=settings.bot_name),
    )

    app = FastAPI(title=SERVICE_NAME)
    app.state.settings = settings
    app.state.pipeline = pipeline
    app.add_exception_handler(Exception, _unhandled_exception_handler)

    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": SERVICE_NAME,
        }

    register_slack_routes(app, pipeline)
    return app
