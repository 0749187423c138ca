"""Built-in Spec Kit slash commands: /specify, /plan, /tasks, /status.

Each handler acknowledges immediately and defers the agent run, which posts
its result back through the follow-up channel.
"""

from __future__ import annotations

import re

from speckit_bot.agent import AgentRunner
from speckit_bot.webhooks.dispatcher import DispatchContext, HandlerRegistry
from speckit_bot.webhooks.models import CommandResult, ParsedCommand

_MAX_AGENT_TEXT_LENGTH = 4000

# <http://x|label> -> label, <#C1|general> -> #general
_LABELED_LINK = re.compile(r"<([@#!]?)[^<>|]*\|([^<>]*)>")
# <@U123> -> @U123, <http://x> -> http://x
_BARE_LINK = re.compile(r"<([^<>]*)>")


def clean_text(text: str) -> str:
    """Strip Slack angle-bracket markup from free text before it leaves Slack."""
    result = _LABELED_LINK.sub(lambda m: m.group(1) + m.group(2), text)
    result = _BARE_LINK.sub(r"\1", result)
    result = result.replace("<", "").replace(">", "")
    result = re.sub(r"\s+", " ", result).strip()
    return result[:_MAX_AGENT_TEXT_LENGTH]


USAGE = {
    "specify": (
        "Please provide a description of the feature you want to build. "
        "Usage: `/specify Build a real-time chat feature`"
    ),
    "plan": (
        "Please provide a specification or feature description. "
        "Usage: `/plan [specification or feature description]`"
    ),
    "tasks": (
        "Please provide a technical plan or feature description. "
        "Usage: `/tasks [technical plan or feature description]`"
    ),
}


def _defer_agent(runner: AgentRunner, command: ParsedCommand, ctx: DispatchContext) -> None:
    ctx.defer(
        runner.run,
        command.name,
        clean_text(command.argument),
        command.user_id,
        command.channel_id,
        command.response_url,
    )


def build_registry(runner: AgentRunner) -> HandlerRegistry:
    """Register the built-in commands. The caller freezes the registry."""
    registry = HandlerRegistry()

    @registry.command(
        "specify",
        requires_argument=True,
        usage=USAGE["specify"],
        description="Generate an enhanced feature specification",
    )
    def specify(command: ParsedCommand, ctx: DispatchContext) -> CommandResult:
        _defer_agent(runner, command, ctx)
        return CommandResult.in_channel(
            f'🤖 Processing your specification request: "{command.argument}"\n\n'
            "📊 Gathering MCP data and generating enhanced specification..."
        )

    @registry.command(
        "plan",
        requires_argument=True,
        usage=USAGE["plan"],
        description="Generate a technical implementation plan",
    )
    def plan(command: ParsedCommand, ctx: DispatchContext) -> CommandResult:
        _defer_agent(runner, command, ctx)
        return CommandResult.in_channel(
            f'📋 Processing your technical plan request: "{command.argument}"\n\n'
            "🔧 Generating technical implementation plan with MCP integration..."
        )

    @registry.command(
        "tasks",
        requires_argument=True,
        usage=USAGE["tasks"],
        description="Break a plan down into actionable tasks",
    )
    def tasks(command: ParsedCommand, ctx: DispatchContext) -> CommandResult:
        _defer_agent(runner, command, ctx)
        return CommandResult.in_channel(
            f'📝 Processing your task breakdown request: "{command.argument}"\n\n'
            "✅ Generating actionable task breakdown with MCP integration..."
        )

    @registry.command("status", description="Show task status and progress")
    def status(command: ParsedCommand, ctx: DispatchContext) -> CommandResult:
        ctx.defer(runner.run, "status", "", command.user_id, command.channel_id, command.response_url)
        return CommandResult.in_channel(
            "📊 Checking task status and progress...\n\n"
            "🔄 Retrieving current task information..."
        )

    return registry
