"""Value types shared by the webhook pipeline."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping


class ResponseType(str, Enum):
    """Visibility of a slash-command acknowledgement."""

    EPHEMERAL = "ephemeral"  # invoker only
    IN_CHANNEL = "in_channel"  # everyone in the channel


@dataclass(frozen=True)
class InboundWebhookRequest:
    """Immutable snapshot of one incoming HTTP request.

    ``body`` holds the exact bytes received; signature recomputation needs
    them before any parsing happens.
    """

    body: bytes
    headers: Mapping[str, str]
    received_at: float = field(default_factory=time.time)
    path: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "headers", {k.lower(): v for k, v in self.headers.items()}
        )

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    @property
    def content_type(self) -> str:
        return (self.header("content-type") or "").split(";")[0].strip().lower()


@dataclass(frozen=True)
class ParsedCommand:
    """Slash command decoded from a form-encoded body."""

    name: str
    argument: str = ""
    user_id: str = ""
    channel_id: str = ""
    response_url: str = ""
    team_id: str = ""
    trigger_id: str = ""

    @property
    def display_name(self) -> str:
        return f"/{self.name}"


@dataclass(frozen=True)
class CommandResult:
    """Acknowledgement produced by a handler."""

    response_type: ResponseType
    text: str

    @classmethod
    def ephemeral(cls, text: str) -> CommandResult:
        return cls(ResponseType.EPHEMERAL, text)

    @classmethod
    def in_channel(cls, text: str) -> CommandResult:
        return cls(ResponseType.IN_CHANNEL, text)

    def to_dict(self) -> dict[str, str]:
        return {"response_type": self.response_type.value, "text": self.text}


class RouteKind(str, Enum):
    HANDSHAKE = "handshake"
    EVENT_CALLBACK = "event_callback"
    COMMAND = "command"


@dataclass(frozen=True)
class RouteDecision:
    """Outcome of the event router for one parsed body."""

    kind: RouteKind
    payload: dict[str, Any] = field(default_factory=dict)
    challenge: str = ""


@dataclass
class PipelineResponse:
    """Status code and JSON body handed back to the HTTP layer."""

    status_code: int
    body: dict[str, Any]


# Callable that takes (fn, *args, **kwargs) and runs fn later, off the request path.
Scheduler = Callable[..., None]
