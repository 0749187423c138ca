"""Slack HTTP handlers: FastAPI routes in front of the webhook pipeline.

Each handler:
1. Reads raw body (needed for HMAC verification)
2. Snapshots headers into an InboundWebhookRequest
3. Runs the shared pipeline with BackgroundTasks as the deferral scheduler
4. Returns the pipeline's status code and JSON body

Deferred work runs after the response is sent, so Slack's 3 second
acknowledgement budget only covers verification, parsing and dispatch.
"""

from __future__ import annotations

import logging
import time

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import JSONResponse

from speckit_bot.webhooks.models import InboundWebhookRequest
from speckit_bot.webhooks.pipeline import WebhookPipeline

logger = logging.getLogger(__name__)


async def _handle_slack(
    request: Request,
    background_tasks: BackgroundTasks,
    pipeline: WebhookPipeline,
    command_name: str | None = None,
) -> JSONResponse:
    start = time.time()

    inbound = InboundWebhookRequest(
        body=await request.body(),
        headers=dict(request.headers),
        received_at=start,
        path=request.url.path,
    )
    result = pipeline.handle(inbound, background_tasks.add_task, command_name)

    elapsed_ms = (time.time() - start) * 1000
    logger.debug("Slack request processed in %.1fms: %s -> %d", elapsed_ms, inbound.path, result.status_code)

    return JSONResponse(result.body, status_code=result.status_code)


def register_slack_routes(app: FastAPI, pipeline: WebhookPipeline) -> None:
    """Register Slack endpoint routes on the FastAPI app."""

    @app.post("/slack/events")
    async def slack_events(request: Request, background_tasks: BackgroundTasks):
        """Events API: url_verification handshake and event callbacks."""
        return await _handle_slack(request, background_tasks, pipeline)

    @app.post("/slack/commands")
    async def slack_commands(request: Request, background_tasks: BackgroundTasks):
        """Any slash command; the form's `command` field names it."""
        return await _handle_slack(request, background_tasks, pipeline)

    @app.get("/slack/counts")
    async def slack_counts():
        """Per-path receive counts."""
        return {"counts": dict(pipeline.counts)}

    @app.post("/slack/{command}")
    async def slack_command(command: str, request: Request, background_tasks: BackgroundTasks):
        """Per-command endpoint, e.g. /slack/specify."""
        return await _handle_slack(request, background_tasks, pipeline, command_name=command)

    logger.info(
        "Slack routes registered: /slack/{events,commands,%s}",
        ",".join(pipeline.registry.names()),
    )
