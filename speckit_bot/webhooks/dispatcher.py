"""Slash command dispatcher: routes parsed commands to registered handlers.

Maps a command name to a handler through a HandlerRegistry that is filled at
start-up and frozen before the first request.

Contract:
- Always produces a CommandResult; Slack treats non-200 replies as failures
- Unknown command -> ephemeral "unrecognized" result
- Required argument missing -> ephemeral usage hint, handler never invoked
- Handler exception -> logged, ephemeral generic failure (no exception detail)
- Long-running work goes through DispatchContext.defer(); handlers return an
  acknowledgement immediately and follow up out of band
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from speckit_bot.config import Settings
from speckit_bot.errors import UnknownCommandError, ValidationError
from speckit_bot.webhooks.models import CommandResult, ParsedCommand, Scheduler
from speckit_bot.webhooks.parser import normalize_command_name

logger = logging.getLogger(__name__)

_FAILURE_TEXT = "Sorry, something went wrong while handling `{command}`. Please try again."


def _run_inline(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
    fn(*args, **kwargs)


@dataclass
class DispatchContext:
    """Per-request collaborators handed to a command handler.

    The default scheduler runs deferred work inline, which blocks the caller
    until the agent finishes. It exists for tests and one-off scripts; the
    HTTP pipeline always passes BackgroundTasks.add_task.
    """

    settings: Settings | None = None
    scheduler: Scheduler = _run_inline

    def defer(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        """Hand work off the request path (runs after the response is sent)."""
        self.scheduler(fn, *args, **kwargs)


CommandHandler = Callable[[ParsedCommand, DispatchContext], CommandResult]


@dataclass(frozen=True)
class CommandSpec:
    """Registry entry for one slash command."""

    name: str
    handler: CommandHandler
    requires_argument: bool = False
    usage: str = ""
    description: str = ""

    @property
    def usage_hint(self) -> str:
        if self.usage and "Usage:" in self.usage:
            return self.usage
        return f"Please provide some text for /{self.name}. Usage: `/{self.name} {self.usage or '<text>'}`"


class HandlerRegistry:
    """Command name -> CommandSpec. Read-only once frozen."""

    def __init__(self) -> None:
        self._specs: dict[str, CommandSpec] = {}
        self._frozen = False

    def register(
        self,
        name: str,
        handler: CommandHandler,
        *,
        requires_argument: bool = False,
        usage: str = "",
        description: str = "",
    ) -> CommandSpec:
        if self._frozen:
            raise RuntimeError("HandlerRegistry is frozen; register handlers at start-up")
        key = normalize_command_name(name)
        if not key:
            raise ValueError("Command name must not be empty")
        if key in self._specs:
            raise ValueError(f"Command already registered: /{key}")
        spec = CommandSpec(
            name=key,
            handler=handler,
            requires_argument=requires_argument,
            usage=usage,
            description=description,
        )
        self._specs[key] = spec
        return spec

    def command(
        self,
        name: str,
        *,
        requires_argument: bool = False,
        usage: str = "",
        description: str = "",
    ) -> Callable[[CommandHandler], CommandHandler]:
        """Decorator form of register()."""

        def decorator(fn: CommandHandler) -> CommandHandler:
            self.register(
                name,
                fn,
                requires_argument=requires_argument,
                usage=usage,
                description=description,
            )
            return fn

        return decorator

    def freeze(self) -> HandlerRegistry:
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> CommandSpec | None:
        return self._specs.get(normalize_command_name(name))

    def names(self) -> list[str]:
        return sorted(self._specs)

    def describe(self) -> list[tuple[str, str]]:
        """(name, description) pairs, sorted by name."""
        return [(name, self._specs[name].description) for name in self.names()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def __len__(self) -> int:
        return len(self._specs)


def resolve(command: ParsedCommand, registry: HandlerRegistry) -> CommandSpec:
    """Look up and validate a command before execution.

    Raises:
        UnknownCommandError: name not registered
        ValidationError: a required argument is missing
    """
    spec = registry.get(command.name)
    if spec is None:
        raise UnknownCommandError(command.name, registry.describe())
    if spec.requires_argument and not command.argument.strip():
        raise ValidationError(spec.name, spec.usage_hint)
    return spec


def dispatch(
    command: ParsedCommand,
    registry: HandlerRegistry,
    context: DispatchContext | None = None,
) -> CommandResult:
    """Dispatch a parsed command and return its acknowledgement.

    Without a context, deferred work runs inline before this returns.
    """
    try:
        spec = resolve(command, registry)
    except UnknownCommandError as e:
        logger.info(
            "Unrecognized command %s from user=%s channel=%s",
            command.display_name,
            command.user_id,
            command.channel_id,
        )
        return e.to_result()
    except ValidationError as e:
        logger.info(
            "Missing argument for %s from user=%s channel=%s",
            command.display_name,
            command.user_id,
            command.channel_id,
        )
        return e.to_result()

    ctx = context or DispatchContext()
    try:
        result = spec.handler(command, ctx)
    except Exception:
        logger.exception(
            "Handler for %s failed (user=%s channel=%s)",
            command.display_name,
            command.user_id,
            command.channel_id,
        )
        return CommandResult.ephemeral(_FAILURE_TEXT.format(command=command.display_name))

    logger.info(
        "Processed %s from user=%s channel=%s -> %s",
        command.display_name,
        command.user_id,
        command.channel_id,
        result.response_type.value,
    )
    return result
