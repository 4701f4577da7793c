"""The glob tool: find files under a directory by path pattern."""

from __future__ import annotations

import os
import stat
import threading
from collections.abc import Iterator
from typing import Any, Optional

from miclaw.tools.path_match import match_path_pattern
from miclaw.tools.tool import JSONSchema, Tool, ToolCall, ToolResult, parse_object

GLOB_RESULT_LIMIT = 1000


def _join(parent: str, name: str) -> str:
    if parent == ".":
        return name
    if parent.endswith("/"):
        return parent + name
    return parent + "/" + name


def _walk_files(path: str) -> Iterator[str]:
    """Yield non-directory paths below ``path`` in lexical order."""
    if not stat.S_ISDIR(os.lstat(path).st_mode):
        yield path
        return
    yield from _walk_dir(path)


def _walk_dir(path: str) -> Iterator[str]:
    with os.scandir(path) as it:
        entries = sorted(it, key=lambda e: e.name)
    for entry in entries:
        child = _join(path, entry.name)
        if entry.is_dir(follow_symlinks=False):
            yield from _walk_dir(child)
        else:
            yield child


def glob_paths(root: str, pattern: str) -> list[str]:
    """Sorted paths, relative to ``root``, of files matching ``pattern``.

    At most 1000 paths are collected in walk order. Raises OSError when the
    root is missing or a directory cannot be read.
    """
    root = os.path.normpath(root or ".")
    os.stat(root)
    prefix = root.replace(os.sep, "/") + "/"
    paths: list[str] = []
    for path in _walk_files(root):
        relative = path.replace(os.sep, "/")
        if root != ".":
            relative = relative.removeprefix(prefix)
        if match_path_pattern(pattern, relative):
            paths.append(relative)
            if len(paths) >= GLOB_RESULT_LIMIT:
                break
    return sorted(paths)


def _parse_glob_params(raw: Any) -> tuple[str, str]:
    data = parse_object(raw)
    pattern = data.get("pattern") or ""
    path = data.get("path") or ""
    if not isinstance(pattern, str):
        raise ValueError("pattern must be a string")
    if not isinstance(path, str):
        raise ValueError("path must be a string")
    return pattern, path or "."


def _describe(exc: OSError) -> str:
    reason = exc.strerror or str(exc)
    reason = reason[:1].lower() + reason[1:]
    if exc.filename:
        return f"{exc.filename}: {reason}"
    return reason


def glob_tool() -> Tool:
    """A tool that lists files matching a glob pattern."""

    def run(call: ToolCall, _cancel: Optional[threading.Event]) -> ToolResult:
        try:
            pattern, path = _parse_glob_params(call.parameters)
            return ToolResult(content="\n".join(glob_paths(path, pattern)))
        except OSError as exc:
            return ToolResult(content=_describe(exc), is_error=True)
        except ValueError as exc:
            return ToolResult(content=str(exc), is_error=True)

    return Tool(
        name="glob",
        description="Find file paths using glob pattern",
        parameters=JSONSchema(
            type="object",
            properties={
                "pattern": JSONSchema(type="string", description="glob pattern to match"),
                "path": JSONSchema(type="string", description="directory to search"),
            },
            required=["pattern"],
        ),
        run_fn=run,
    )