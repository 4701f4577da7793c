"""The ls tool: list directory entries with type and size, flat or as a tree."""

from __future__ import annotations

import os
import stat
import threading
from collections.abc import Iterator
from typing import Any, Optional

from miclaw.tools.tool import JSONSchema, Tool, ToolCall, ToolResult, parse_object

LS_MAX_DEPTH = 5


def _entry_type(st: os.stat_result) -> str:
    if stat.S_ISLNK(st.st_mode):
        return "symlink"
    if stat.S_ISDIR(st.st_mode):
        return "dir"
    return "file"


def format_entry(name: str, path: str) -> str:
    """``name (type, size)`` for the entry at ``path``, without following symlinks."""
    st = os.lstat(path)
    return f"{name} ({_entry_type(st)}, {st.st_size})"


def _visible_entries(base: str, show_hidden: bool) -> list[os.DirEntry]:
    with os.scandir(base) as it:
        entries = sorted(it, key=lambda e: e.name)
    return [e for e in entries if show_hidden or not e.name.startswith(".")]


def list_tree_entries(base: str, max_depth: int, show_hidden: bool = False) -> list[str]:
    """Tree-drawn lines for ``base`` down to ``max_depth`` levels.

    Raises OSError when a directory or entry cannot be read.
    """
    return list(_tree(base, max_depth, show_hidden, "", 1))


def _tree(
    base: str, max_depth: int, show_hidden: bool, prefix: str, level: int
) -> Iterator[str]:
    entries = _visible_entries(base, show_hidden)
    last = len(entries) - 1
    for idx, entry in enumerate(entries):
        if idx == last:
            branch, next_prefix = "└── ", prefix + "    "
        else:
            branch, next_prefix = "├── ", prefix + "│   "
        yield prefix + branch + format_entry(entry.name, entry.path)
        if entry.is_dir(follow_symlinks=False) and level < max_depth:
            yield from _tree(
                os.path.join(base, entry.name), max_depth, show_hidden, next_prefix, level + 1
            )


def _parse_ls_params(raw: Any) -> tuple[str, int, bool]:
    data = parse_object(raw)
    path = data.get("path")
    if path is None:
        path = ""
    if not isinstance(path, str):
        raise ValueError("path must be a string")
    depth = data.get("depth")
    if depth is None:
        depth = 0
    if isinstance(depth, bool) or not isinstance(depth, int):
        raise ValueError("depth must be an integer")
    show_hidden = data.get("show_hidden")
    if show_hidden is None:
        show_hidden = False
    if not isinstance(show_hidden, bool):
        raise ValueError("show_hidden must be a boolean")
    if depth == 0:
        depth = 1
    if depth < 1 or depth > LS_MAX_DEPTH:
        raise ValueError(f"ls depth must be between 1 and {LS_MAX_DEPTH}")
    return path, depth, show_hidden


def _describe(exc: OSError) -> str:
    reason = exc.strerror or str(exc)
    reason = reason[:1].lower() + reason[1:]
    if exc.filename:
        return f"open {exc.filename}: {reason}"
    return reason


def ls_tool() -> Tool:
    """A tool that lists a directory, flat at depth 1 and as a tree deeper."""

    def run(call: ToolCall, _cancel: Optional[threading.Event]) -> ToolResult:
        try:
            path, depth, show_hidden = _parse_ls_params(call.parameters)
            root = os.path.normpath(path or ".")
            if depth == 1:
                lines = sorted(
                    format_entry(e.name, e.path)
                    for e in _visible_entries(root, show_hidden)
                )
            else:
                lines = list_tree_entries(root, depth, show_hidden)
            return ToolResult(content="\n".join(lines))
        except OSError as exc:
            return ToolResult(content=_describe(exc), is_error=True)
        except ValueError as exc:
            return ToolResult(content=str(exc), is_error=True)

    return Tool(
        name="ls",
        description="List directory entries with type and size",
        parameters=JSONSchema(
            type="object",
            properties={
                "path": JSONSchema(type="string", description="directory to list"),
                "depth": JSONSchema(type="integer", description="max directory depth"),
                "show_hidden": JSONSchema(
                    type="boolean", description="include files that begin with dot"
                ),
            },
            required=["path"],
        ),
        run_fn=run,
    )