"""The grep tool: regex search over file contents, honouring .gitignore."""

from __future__ import annotations

import os
import re
import stat
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from itertools import islice
from typing import Any, Optional, Union

from miclaw.tools.path_match import match_path_pattern
from miclaw.tools.tool import JSONSchema, Tool, ToolCall, ToolResult, parse_object

GREP_DEFAULT_MAX_RESULTS = 100


@dataclass(frozen=True)
class _GrepParams:
    pattern: str
    path: str
    include: str
    exclude: str
    context_lines: int
    max_results: int


def _string(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value


def _integer(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return value


def _parse_grep_params(raw: Any) -> _GrepParams:
    data = parse_object(raw)
    context_lines = _integer(data, "context_lines")
    if context_lines < 0:
        raise ValueError("context_lines must be non-negative")
    max_results = _integer(data, "max_results")
    if max_results <= 0:
        max_results = GREP_DEFAULT_MAX_RESULTS
    return _GrepParams(
        pattern=_string(data, "pattern"),
        path=_string(data, "path") or ".",
        include=_string(data, "include"),
        exclude=_string(data, "exclude"),
        context_lines=context_lines,
        max_results=max_results,
    )


def _join(parent: str, name: str) -> str:
    if parent == ".":
        return name
    if parent.endswith("/"):
        return parent + name
    return parent + "/" + name


def _base(path: str) -> str:
    if path == "":
        return "."
    stripped = path.rstrip("/")
    if not stripped:
        return "/"
    return stripped.rsplit("/", 1)[-1]


def load_gitignore_patterns(root: str) -> list[str]:
    """Patterns from ``root/.gitignore``; comments and negations are skipped."""
    try:
        with open(os.path.join(root, ".gitignore"), "rb") as fh:
            raw = fh.read().decode("utf-8", errors="surrogateescape")
    except FileNotFoundError:
        return []
    patterns: list[str] = []
    for line in raw.split("\n"):
        pattern = line.removesuffix("\r").strip()
        if not pattern or pattern.startswith("#") or pattern.startswith("!"):
            continue
        pattern = pattern.replace(os.sep, "/").removesuffix("/").removeprefix("./")
        patterns.append(pattern)
    return patterns


def is_ignored(path: str, patterns: list[str]) -> bool:
    """Whether a slash-separated relative path matches any ignore pattern.

    Patterns containing a slash match the whole path; others match its last
    element.
    """
    for pattern in patterns:
        if "/" in pattern:
            if match_path_pattern(pattern, path):
                return True
        elif match_path_pattern(pattern, _base(path)):
            return True
    return False


def search_matches_in_file(
    rel_path: str,
    abs_path: str,
    regex: Union[str, re.Pattern[str]],
    context_lines: int = 0,
) -> list[str]:
    """``path:line:text`` entries for each matching line plus its context.

    Binary files (containing a NUL byte) yield nothing. Raises OSError when
    the file cannot be read.
    """
    compiled = re.compile(regex) if isinstance(regex, str) else regex
    with open(abs_path, "rb") as fh:
        content = fh.read()
    if b"\x00" in content:
        return []
    lines = content.decode("utf-8", errors="surrogateescape").split("\n")
    results: list[str] = []
    for i, line in enumerate(lines):
        if not compiled.search(line):
            continue
        start = max(i - context_lines, 0)
        end = min(i + context_lines, len(lines) - 1)
        results.extend(
            f"{rel_path}:{j + 1}:{lines[j]}" for j in range(start, end + 1)
        )
    return results


def _grep_lines(
    params: _GrepParams, root: str, regex: re.Pattern[str], patterns: list[str]
) -> Iterator[str]:
    prefix = root.replace(os.sep, "/") + "/"

    def relative(path: str) -> str:
        rel = path.replace(os.sep, "/")
        return rel if root == "." else rel.removeprefix(prefix)

    def visit(path: str, is_dir: bool) -> Iterator[str]:
        rel = relative(path)
        if is_dir:
            if rel and is_ignored(rel, patterns):
                return
            with os.scandir(path) as it:
                entries = sorted(it, key=lambda e: e.name)
            for entry in entries:
                yield from visit(_join(path, entry.name), entry.is_dir(follow_symlinks=False))
            return
        if is_ignored(rel, patterns):
            return
        if params.include and not match_path_pattern(params.include, rel):
            return
        if params.exclude and match_path_pattern(params.exclude, rel):
            return
        yield from search_matches_in_file(rel, path, regex, params.context_lines)

    yield from visit(root, stat.S_ISDIR(os.lstat(root).st_mode))


def _describe(exc: OSError) -> str:
    reason = exc.strerror or str(exc)
    reason = reason[:1].lower() + reason[1:]
    if exc.filename:
        return f"{exc.filename}: {reason}"
    return reason


def grep_tool() -> Tool:
    """A tool that searches file contents with a regular expression."""

    def run(call: ToolCall, _cancel: Optional[threading.Event]) -> ToolResult:
        try:
            params = _parse_grep_params(call.parameters)
            root = os.path.normpath(params.path)
            os.stat(root)
            regex = re.compile(params.pattern)
            patterns = load_gitignore_patterns(root)
            found = islice(_grep_lines(params, root, regex, patterns), params.max_results)
            return ToolResult(content="\n".join(found))
        except OSError as exc:
            return ToolResult(content=_describe(exc), is_error=True)
        except (ValueError, re.error) as exc:
            return ToolResult(content=str(exc), is_error=True)

    return Tool(
        name="grep",
        description="Search file contents by regex with optional context and .gitignore support",
        parameters=JSONSchema(
            type="object",
            properties={
                "pattern": JSONSchema(
                    type="string", description="regular expression pattern to search"
                ),
                "path": JSONSchema(type="string", description="directory to search"),
                "include": JSONSchema(type="string", description="glob for files to include"),
                "exclude": JSONSchema(type="string", description="glob for files to exclude"),
                "context_lines": JSONSchema(
                    type="integer",
                    description="lines of context before and after each match",
                ),
                "max_results": JSONSchema(
                    type="integer", description="maximum number of output lines"
                ),
            },
            required=["pattern"],
        ),
        run_fn=run,
    )