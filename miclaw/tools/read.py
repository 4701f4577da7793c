"""The read tool: file contents with line numbers, paginated and size capped."""

from __future__ import annotations

import threading
from typing import Any, Optional

from miclaw.tools.tool import JSONSchema, Tool, ToolCall, ToolResult, parse_object

READ_DEFAULT_LIMIT = 1000
READ_MAX_OUTPUT_BYTES = 512 * 1024
READ_TRUNCATION_MESSAGE = "[read output truncated at 512KB]"


def _describe_os_error(op: str, path: str, exc: OSError) -> str:
    reason = exc.strerror or str(exc)
    reason = reason[:1].lower() + reason[1:]
    return f"{op} {path}: {reason}"


def _optional_int(data: dict[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return value


def _parse_read_params(raw: Any) -> tuple[str, int, int]:
    try:
        data = parse_object(raw)
        path = data.get("path")
        if path is None:
            path = ""
        if not isinstance(path, str):
            raise ValueError("path must be a string")
        offset = _optional_int(data, "offset")
        limit = _optional_int(data, "limit")
    except ValueError as exc:
        raise ValueError(f"invalid read parameters: {exc}") from exc
    return (
        path,
        0 if offset is None else offset,
        READ_DEFAULT_LIMIT if limit is None else limit,
    )


def read_file_content(path: str, offset: int = 0, limit: int = READ_DEFAULT_LIMIT) -> str:
    """Up to ``limit`` numbered lines starting after ``offset`` lines.

    Raises OSError when the file cannot be read and ValueError for binary
    content. Output beyond 512KB is cut and ends with a truncation notice.
    """
    if limit == 0:
        return ""
    output = bytearray()
    taken = 0
    with open(path, "rb") as fh:
        for line_no, line in enumerate(fh):
            if b"\x00" in line:
                raise ValueError("binary file")
            if line_no < offset:
                continue
            if taken >= limit:
                break
            if not _append_line(output, line_no + 1, line.removesuffix(b"\n")):
                break
            taken += 1
    return output.decode("utf-8", errors="replace")


def _append_line(output: bytearray, line_no: int, text: bytes) -> bool:
    line = b"%6d\t" % line_no + text + b"\n"
    if len(output) + len(line) <= READ_MAX_OUTPUT_BYTES:
        output += line
        return True
    message = READ_TRUNCATION_MESSAGE.encode()
    room = READ_MAX_OUTPUT_BYTES - len(message)
    if len(output) > room:
        del output[room:]
    if output:
        if len(output) + 1 + len(message) > READ_MAX_OUTPUT_BYTES:
            del output[READ_MAX_OUTPUT_BYTES - 1 - len(message):]
        output += b"\n"
    output += message
    return False


def read_tool() -> Tool:
    """A tool that reads a file with line numbers."""

    def run(call: ToolCall, _cancel: Optional[threading.Event]) -> ToolResult:
        try:
            path, offset, limit = _parse_read_params(call.parameters)
            return ToolResult(content=read_file_content(path, offset, limit))
        except OSError as exc:
            return ToolResult(content=_describe_os_error("open", path, exc), is_error=True)
        except ValueError as exc:
            return ToolResult(content=str(exc), is_error=True)

    return Tool(
        name="read",
        description="Read file contents with line numbers",
        parameters=JSONSchema(
            type="object",
            required=["path"],
            properties={
                "path": JSONSchema(type="string", description="Path to the file to read"),
                "offset": JSONSchema(
                    type="integer", description="Line number to start reading from"
                ),
                "limit": JSONSchema(
                    type="integer", description="Maximum number of lines to return"
                ),
            },
        ),
        run_fn=run,
    )