"""Core tool types shared by every agent tool."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

RawParameters = Union[str, bytes, bytearray, dict, None]


class ToolError(Exception):
    """Raised by a tool when a call fails outright rather than producing an error result."""


@dataclass
class JSONSchema:
    """A small subset of JSON Schema used to describe tool parameters."""

    type: str = ""
    description: str = ""
    enum: list[str] = field(default_factory=list)
    properties: dict[str, JSONSchema] = field(default_factory=dict)
    required: list[str] = field(default_factory=list)
    items: Optional[JSONSchema] = None

    def to_dict(self) -> dict[str, Any]:
        """Return the schema as a JSON-compatible dict."""
        out: dict[str, Any] = {}
        if self.type:
            out["type"] = self.type
        if self.description:
            out["description"] = self.description
        if self.enum:
            out["enum"] = list(self.enum)
        if self.properties or self.type == "object":
            out["properties"] = {
                name: schema.to_dict() for name, schema in self.properties.items()
            }
        if self.required:
            out["required"] = list(self.required)
        if self.items is not None:
            out["items"] = self.items.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JSONSchema:
        """Build a schema from a dict produced by :meth:`to_dict`."""
        items = data.get("items")
        return cls(
            type=data.get("type", ""),
            description=data.get("description", ""),
            enum=list(data.get("enum", [])),
            properties={
                name: cls.from_dict(value)
                for name, value in (data.get("properties") or {}).items()
            },
            required=list(data.get("required", [])),
            items=cls.from_dict(items) if items is not None else None,
        )


@dataclass
class ToolResult:
    """What a tool hands back to the agent."""

    content: str = ""
    is_error: bool = False


@dataclass
class ToolCall:
    """A request from the model to run a tool with raw JSON parameters."""

    id: str = ""
    name: str = ""
    parameters: RawParameters = None


@dataclass
class ToolDef:
    """A tool description in the form model providers expect."""

    name: str
    description: str
    parameters: str


RunFn = Callable[[ToolCall, Optional[threading.Event]], ToolResult]


@dataclass(eq=False)
class Tool:
    """A named, described tool backed by a run function."""

    name: str
    description: str
    parameters: JSONSchema
    run_fn: RunFn = field(repr=False)

    def run(self, call: ToolCall, cancel: Optional[threading.Event] = None) -> ToolResult:
        """Run the tool; ``cancel`` is set when the caller gives up on the call."""
        return self.run_fn(call, cancel)


def to_provider_defs(tools: list[Tool]) -> list[ToolDef]:
    """Describe tools for a model provider, with parameters as JSON text."""
    return [
        ToolDef(
            name=t.name,
            description=t.description,
            parameters=json.dumps(t.parameters.to_dict(), separators=(",", ":")),
        )
        for t in tools
    ]


def parse_object(raw: RawParameters) -> dict[str, Any]:
    """Decode raw tool parameters into a dict; empty input means an empty object."""
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, (bytes, bytearray)):
        raw = bytes(raw).decode("utf-8")
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid JSON parameters: {exc}") from exc
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError("parameters must be a JSON object")
    return value


def sleep_tool() -> Tool:
    """A tool the agent calls to signal it is done until new input arrives."""

    def run(_call: ToolCall, _cancel: Optional[threading.Event]) -> ToolResult:
        return ToolResult(content="sleeping")

    return Tool(
        name="sleep",
        description="Mark work complete and sleep until new input arrives",
        parameters=JSONSchema(type="object"),
        run_fn=run,
    )