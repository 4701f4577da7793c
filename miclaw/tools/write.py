"""The write tool: replace a file's content, creating parent directories."""

from __future__ import annotations

import json
import os
import threading
from dataclasses import dataclass
from typing import Any, Optional

from miclaw.tools.tool import (
    JSONSchema,
    Tool,
    ToolCall,
    ToolError,
    ToolResult,
    parse_object,
)


@dataclass(frozen=True)
class _WriteParams:
    path: str
    content: str
    create_dirs: bool


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _reason(op: str, exc: OSError, fallback: str) -> str:
    reason = exc.strerror or str(exc)
    reason = reason[:1].lower() + reason[1:]
    return f"{op} {exc.filename or fallback}: {reason}"


def _parse_write_params(raw: Any) -> _WriteParams:
    try:
        data = parse_object(raw)
        path = data.get("path")
        content = data.get("content")
        create_dirs = data.get("create_dirs")
        if path is not None and not isinstance(path, str):
            raise ValueError("path must be a string")
        if content is not None and not isinstance(content, str):
            raise ValueError("content must be a string")
        if create_dirs is not None and not isinstance(create_dirs, bool):
            raise ValueError("create_dirs must be a boolean")
    except ValueError as exc:
        raise ToolError(f"parse write parameters: {exc}") from exc
    if not path:
        raise ToolError("write parameter path is required")
    if content is None:
        raise ToolError("write parameter content is required")
    return _WriteParams(path, content, True if create_dirs is None else create_dirs)


def _ensure_parent(path: str, create_dirs: bool) -> None:
    parent = os.path.dirname(path) or "."
    if create_dirs:
        try:
            os.makedirs(parent, mode=0o755, exist_ok=True)
        except OSError as exc:
            raise ToolError(
                f"create parent directories for {_quote(path)}: {_reason('mkdir', exc, parent)}"
            ) from exc
        return
    try:
        os.stat(parent)
    except OSError as exc:
        raise ToolError(
            f"parent directory {_quote(parent)}: {_reason('stat', exc, parent)}"
        ) from exc


def _write_content(path: str, content: str) -> int:
    data = content.encode("utf-8", errors="surrogateescape")
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
    except OSError as exc:
        raise ToolError(f"write file {_quote(path)}: {_reason('open', exc, path)}") from exc
    return len(data)


def write_tool() -> Tool:
    """A tool that writes a file, raising ToolError when it cannot."""

    def run(call: ToolCall, _cancel: Optional[threading.Event]) -> ToolResult:
        params = _parse_write_params(call.parameters)
        _ensure_parent(params.path, params.create_dirs)
        written = _write_content(params.path, params.content)
        return ToolResult(content=f"wrote {written} bytes to {params.path}")

    return Tool(
        name="write",
        description="Write content to a file, replacing existing content",
        parameters=JSONSchema(
            type="object",
            properties={
                "path": JSONSchema(type="string", description="Path to the file to write"),
                "content": JSONSchema(
                    type="string", description="Full file content to write"
                ),
                "create_dirs": JSONSchema(
                    type="boolean",
                    description="Create parent directories when missing (default: true)",
                ),
            },
            required=["path", "content"],
        ),
        run_fn=run,
    )