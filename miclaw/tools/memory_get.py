"""The memory_get tool: fetch a memory chunk with its neighbours.

The store is any object with ``get_chunk(chunk_id)`` returning a chunk or
None; chunks carry ``path``, ``start_line``, ``end_line`` and ``text``.
"""

from __future__ import annotations

import re
import threading
from typing import Any, Optional

from miclaw.tools.tool import JSONSchema, Tool, ToolCall, ToolResult, parse_object

_INDEX_RE = re.compile(r"[+-]?[0-9]+")


def split_chunk_id(chunk_id: str) -> Optional[tuple[str, int]]:
    """Split ``path:index`` into its parts, or None when it has no such form."""
    i = chunk_id.rfind(":")
    if i <= 0 or i == len(chunk_id) - 1:
        return None
    index = chunk_id[i + 1:]
    if not _INDEX_RE.fullmatch(index):
        return None
    return chunk_id[:i], int(index)


def _format_chunk(chunk: Any) -> str:
    return f"[{chunk.path}:{chunk.start_line}-{chunk.end_line}]\n{chunk.text}"


def format_memory_get_result(prev: Any, chunk: Any, next_chunk: Any) -> str:
    """The current chunk, preceded and followed by its neighbours when present."""
    parts = []
    if prev is not None:
        parts.append("[previous]\n" + _format_chunk(prev))
    parts.append("[current]\n" + _format_chunk(chunk))
    if next_chunk is not None:
        parts.append("[next]\n" + _format_chunk(next_chunk))
    return "\n\n".join(parts)


def _adjacent(store: Any, chunk_id: str) -> tuple[Any, Any]:
    split = split_chunk_id(chunk_id)
    if split is None:
        return None, None
    path, index = split
    prev = store.get_chunk(f"{path}:{index - 1}") if index > 0 else None
    nxt = store.get_chunk(f"{path}:{index + 1}")
    return prev, nxt


def _parse_chunk_id(raw: Any) -> str:
    data = parse_object(raw)
    value = data.get("chunk_id")
    if value is not None and not isinstance(value, str):
        raise ValueError("chunk_id must be a string")
    if value is None or not value.strip():
        raise ValueError("chunk_id is required")
    return value.strip()


def memory_get_tool(store: Any) -> Tool:
    """A tool that returns a chunk by id; store failures become error results."""

    def run(call: ToolCall, _cancel: Optional[threading.Event]) -> ToolResult:
        try:
            chunk_id = _parse_chunk_id(call.parameters)
        except ValueError as exc:
            return ToolResult(content=str(exc), is_error=True)
        try:
            chunk = store.get_chunk(chunk_id)
            if chunk is None:
                return ToolResult(content="chunk not found", is_error=True)
            prev, nxt = _adjacent(store, chunk_id)
        except Exception as exc:
            return ToolResult(content=str(exc), is_error=True)
        return ToolResult(content=format_memory_get_result(prev, chunk, nxt))

    return Tool(
        name="memory_get",
        description="Get a memory chunk by chunk_id with neighboring context",
        parameters=JSONSchema(
            type="object",
            required=["chunk_id"],
            properties={
                "chunk_id": JSONSchema(
                    type="string", description="Chunk ID in path:index format"
                ),
            },
        ),
        run_fn=run,
    )