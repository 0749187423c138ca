"""Verification-and-dispatch pipeline shared by every Slack endpoint.

Flow per request:
1. Parse body and route (handshake short-circuits here, unsigned)
2. Verify signature (500 if no secret, 401 if invalid)
3. Optional replay check on the signature (401 if seen)
4. Event callback -> dedup by event_id -> EventHandler, 200 {"status": "ok"}
5. Slash command -> parse -> dispatch, 200 {"response_type", "text"}

Security contract:
- Nothing is dispatched unless verified, except the url_verification handshake
- Error bodies are fixed strings; no exception text or secrets are returned
"""

from __future__ import annotations

import logging
from collections import Counter

from speckit_bot.config import Settings
from speckit_bot.errors import AuthenticationError, ConfigurationError
from speckit_bot.events import EventHandler
from speckit_bot.webhooks.dispatcher import DispatchContext, HandlerRegistry, dispatch
from speckit_bot.webhooks.idempotency import DedupStore
from speckit_bot.webhooks.models import (
    InboundWebhookRequest,
    PipelineResponse,
    RouteKind,
    Scheduler,
)
from speckit_bot.webhooks.parser import parse_command
from speckit_bot.webhooks.router import parse_body, route
from speckit_bot.webhooks.verification import (
    body_preview,
    request_signature,
    verify_request,
)

logger = logging.getLogger(__name__)

UNAUTHORIZED = PipelineResponse(401, {"error": "Unauthorized"})
CONFIG_ERROR = PipelineResponse(500, {"error": "Server configuration error"})


class WebhookPipeline:
    """One parameterized pipeline for handshake, events and commands."""

    def __init__(
        self,
        settings: Settings,
        registry: HandlerRegistry,
        events: EventHandler | None = None,
        dedup: DedupStore | None = None,
    ):
        self.settings = settings
        self.registry = registry
        self.events = events
        self.dedup = dedup or DedupStore(settings.redis_url, settings.dedup_ttl_seconds)
        self.counts: Counter[str] = Counter()

    def _audit(self, request: InboundWebhookRequest, kind: str, command: str, status: str) -> None:
        self.counts[request.path or "unknown"] += 1
        logger.info(
            "SLACK_AUDIT path=%s kind=%s command=%s status=%s count=%d",
            request.path,
            kind,
            command,
            status,
            self.counts[request.path or "unknown"],
        )

    def _authenticate(self, request: InboundWebhookRequest) -> None:
        if not verify_request(request, self.settings):
            raise AuthenticationError("invalid signature")

        if self.settings.replay_protection and self.dedup.is_duplicate(
            "signature", request_signature(request) or ""
        ):
            raise AuthenticationError("replayed request")

    def handle(
        self,
        request: InboundWebhookRequest,
        scheduler: Scheduler,
        command_name: str | None = None,
    ) -> PipelineResponse:
        """Run one request through the pipeline.

        Args:
            request: Snapshot of the inbound request
            scheduler: Runs deferred work after the response is sent
            command_name: Set by per-command routes; otherwise the form's
                ``command`` field names the command
        """
        decision = route(parse_body(request.body, request.content_type))

        if decision.kind is RouteKind.HANDSHAKE:
            logger.info("URL verification challenge received on %s", request.path)
            self._audit(request, decision.kind.value, "", "challenge")
            return PipelineResponse(200, {"challenge": decision.challenge})

        try:
            self._authenticate(request)
        except ConfigurationError:
            self._audit(request, decision.kind.value, command_name or "", "config_error")
            return CONFIG_ERROR
        except AuthenticationError as e:
            logger.warning("Rejected %s request on %s: %s", decision.kind.value, request.path, e)
            self._audit(request, decision.kind.value, command_name or "", "unauthorized")
            return UNAUTHORIZED

        ctx = DispatchContext(settings=self.settings, scheduler=scheduler)

        if decision.kind is RouteKind.EVENT_CALLBACK:
            return self._handle_event(request, decision.payload, ctx)

        command = parse_command(request.body, command_name)
        logger.debug("Command body for %s: %s", command.display_name, body_preview(request.body))
        result = dispatch(command, self.registry, ctx)
        self._audit(request, decision.kind.value, command.display_name, result.response_type.value)
        return PipelineResponse(200, result.to_dict())

    def _handle_event(
        self, request: InboundWebhookRequest, payload: dict, ctx: DispatchContext
    ) -> PipelineResponse:
        event_id = str(payload.get("event_id", ""))
        if self.dedup.is_duplicate("event", event_id):
            logger.info(
                "Duplicate Slack event %s (retry=%s)",
                event_id,
                request.header("x-slack-retry-num"),
            )
            self._audit(request, "event_callback", "", "duplicate")
            return PipelineResponse(200, {"status": "ok"})

        if self.events is not None:
            try:
                self.events.handle(payload, ctx)
            except Exception:
                # Slack retries non-200 replies and the event id is already marked
                logger.exception("Event handler failed for Slack event %s", event_id)
                self._audit(request, "event_callback", "", "error")
                return PipelineResponse(200, {"status": "ok"})
        self._audit(request, "event_callback", "", "ok")
        return PipelineResponse(200, {"status": "ok"})
