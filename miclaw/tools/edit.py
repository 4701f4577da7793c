"""The edit tool: exact text replacement in an existing file."""

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
class _EditParams:
    path: str
    old_text: str
    new_text: str
    replace_all: bool


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _reason(op: str, exc: OSError, fallback: str) -> str:
    reason = exc.strerror or str(exc)
    reason = reason[:1].lower() + reason[1:]
    return f"{op} {exc.filename or fallback}: {reason}"


def _parse_edit_params(raw: Any) -> _EditParams:
    try:
        data = parse_object(raw)
        for key in ("path", "old_text", "new_text"):
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"{key} must be a string")
        replace_all = data.get("replace_all")
        if replace_all is not None and not isinstance(replace_all, bool):
            raise ValueError("replace_all must be a boolean")
    except ValueError as exc:
        raise ToolError(f"parse edit parameters: {exc}") from exc
    if not data.get("path"):
        raise ToolError("edit parameter path is required")
    if not data.get("old_text"):
        raise ToolError("edit parameter old_text is required")
    if data.get("new_text") is None:
        raise ToolError("edit parameter new_text is required")
    return _EditParams(
        data["path"], data["old_text"], data["new_text"], bool(replace_all)
    )


def edit_content(
    before: str, path: str, old_text: str, new_text: str, replace_all: bool = False
) -> tuple[str, int]:
    """Replace ``old_text`` in ``before``; return the new text and the count replaced.

    Without ``replace_all`` the match must be unique. Raises ToolError otherwise.
    """
    count = before.count(old_text)
    if count == 0:
        raise ToolError(f"old_text not found in {_quote(path)}")
    if replace_all:
        return before.replace(old_text, new_text), count
    if count > 1:
        raise ToolError(
            f"old_text must be unique in {_quote(path)} (found {count} matches)"
        )
    return before.replace(old_text, new_text, 1), 1


def _edit_summary(params: _EditParams, count: int) -> str:
    old = params.old_text.replace("\n", "\\n")
    new = params.new_text.replace("\n", "\\n")
    return (
        f"--- {params.path}\n+++ {params.path}\n"
        f"@@ replaced {count} occurrence(s) @@\n-{old}\n+{new}"
    )


def _read_existing(path: str) -> str:
    try:
        with open(path, "rb") as fh:
            return fh.read().decode("utf-8", errors="surrogateescape")
    except OSError as exc:
        raise ToolError(f"read file {_quote(path)}: {_reason('open', exc, path)}") from exc


def _write_back(path: str, text: str) -> None:
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
        with os.fdopen(fd, "wb") as fh:
            fh.write(text.encode("utf-8", errors="surrogateescape"))
    except OSError as exc:
        raise ToolError(f"write file {_quote(path)}: {_reason('open', exc, path)}") from exc


def edit_tool() -> Tool:
    """A tool that replaces text in a file, raising ToolError when it cannot."""

    def run(call: ToolCall, _cancel: Optional[threading.Event]) -> ToolResult:
        params = _parse_edit_params(call.parameters)
        before = _read_existing(params.path)
        after, count = edit_content(
            before, params.path, params.old_text, params.new_text, params.replace_all
        )
        _write_back(params.path, after)
        return ToolResult(content=_edit_summary(params, count))

    return Tool(
        name="edit",
        description="Replace text in an existing file",
        parameters=JSONSchema(
            type="object",
            properties={
                "path": JSONSchema(type="string", description="Path to the file to edit"),
                "old_text": JSONSchema(type="string", description="Exact text to replace"),
                "new_text": JSONSchema(type="string", description="Replacement text"),
                "replace_all": JSONSchema(
                    type="boolean",
                    description=(
                        "Replace all occurrences instead of requiring a unique match "
                        "(default: false)"
                    ),
                ),
            },
            required=["path", "old_text", "new_text"],
        ),
        run_fn=run,
    )