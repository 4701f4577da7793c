"""The message tool: send a message to a channel recipient."""

from __future__ import annotations

import threading
from typing import Any, Callable, Optional

from miclaw.tools.tool import JSONSchema, Tool, ToolCall, ToolResult, parse_object

SendMessage = Callable[[str, str], None]

_SUPPORTED_CHANNEL = "signal"


def parse_message_target(raw: str) -> tuple[str, str]:
    """Split ``channel:address``; raise ValueError when either part is missing."""
    channel, sep, address = raw.partition(":")
    if not sep or not address.strip():
        raise ValueError("to must include channel and address, e.g. signal:dm:user-uuid")
    return channel, address


def _parse_message_params(raw: Any) -> tuple[str, str]:
    try:
        data = parse_object(raw)
        for key in ("to", "content"):
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"{key} must be a string")
    except ValueError as exc:
        raise ValueError(f"parse message parameters: {exc}") from exc
    to = (data.get("to") or "").strip()
    content = (data.get("content") or "").strip()
    if not to:
        raise ValueError("to is required")
    if not content:
        raise ValueError("content is required")
    return to, content


def message_tool(send_message: SendMessage) -> Tool:
    """A tool that sends messages through ``send_message(to, content)``.

    Exceptions raised by the sender become error results.
    """

    def run(call: ToolCall, _cancel: Optional[threading.Event]) -> ToolResult:
        try:
            to, content = _parse_message_params(call.parameters)
            channel, _ = parse_message_target(to)
        except ValueError as exc:
            return ToolResult(content=str(exc), is_error=True)
        if channel != _SUPPORTED_CHANNEL:
            return ToolResult(content=f"unsupported channel: {channel}", is_error=True)
        try:
            send_message(to, content)
        except Exception as exc:
            return ToolResult(content=str(exc), is_error=True)
        return ToolResult(content=f"message sent to {to}")

    return Tool(
        name="message",
        description="Send a message to a recipient",
        parameters=JSONSchema(
            type="object",
            required=["to", "content"],
            properties={
                "to": JSONSchema(
                    type="string",
                    description=(
                        "Message target (for example: signal:dm:user-uuid or "
                        "signal:group:group-id)"
                    ),
                ),
                "content": JSONSchema(type="string", description="Message content to send"),
            },
        ),
        run_fn=run,
    )