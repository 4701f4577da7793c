"""The apply_patch tool: apply unified diff hunks to an existing file."""

from __future__ import annotations

import json
import os
import re
import threading
from collections.abc import Iterator
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

_HEADER_RE = re.compile(r"^@@ -([0-9]+)(?:,([0-9]+))? \+([0-9]+)(?:,([0-9]+))? @@")
_NO_NEWLINE_MARKER = "\\ No newline at end of file"
_SEARCH_WINDOW = 3
_KINDS = (" ", "+", "-")


@dataclass(frozen=True)
class PatchLine:
    """One body line of a hunk: ``kind`` is ' ', '+' or '-'."""

    kind: str
    text: str


@dataclass(frozen=True)
class Hunk:
    """A single ``@@`` section of a unified diff."""

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: tuple[PatchLine, ...] = ()


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _reason(op: str, exc: OSError, fallback: str) -> str:
    reason = exc.strerror or str(exc)
    reason = reason[:1].lower() + reason[1:]
    return f"{op} {exc.filename or fallback}: {reason}"


def parse_unified_patch(raw: str) -> list[Hunk]:
    """Parse the hunks of a unified diff; raise ValueError if it is malformed."""
    lines = raw.replace("\r\n", "\n").split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    hunks: list[Hunk] = []
    i = 0
    while i < len(lines):
        if lines[i].startswith("@@ "):
            hunk, i = _parse_one_hunk(lines, i)
            hunks.append(hunk)
        else:
            i += 1
    if not hunks:
        raise ValueError("invalid unified diff: no hunks found")
    return hunks


def _parse_one_hunk(lines: list[str], start: int) -> tuple[Hunk, int]:
    old_start, old_count, new_start, new_count = _parse_hunk_header(lines[start])
    body: list[PatchLine] = []
    i = start + 1
    while i < len(lines) and not lines[i].startswith("@@ "):
        line = lines[i]
        if line != _NO_NEWLINE_MARKER:
            try:
                body.append(_parse_patch_line(line))
            except ValueError as exc:
                raise ValueError(f"parse hunk line {i + 1}: {exc}") from exc
        i += 1
    if not body:
        raise ValueError(f"hunk at line {start + 1} has no body")
    old_side, new_side = _count_hunk_sides(body)
    if old_side != old_count or new_side != new_count:
        raise ValueError(
            f"hunk count mismatch at line {start + 1}: header -{old_count} +{new_count}, "
            f"body -{old_side} +{new_side}"
        )
    return Hunk(old_start, old_count, new_start, new_count, tuple(body)), i


def _parse_hunk_header(line: str) -> tuple[int, int, int, int]:
    m = _HEADER_RE.match(line)
    if m is None:
        raise ValueError(f"invalid hunk header: {_quote(line)}")
    old_start = int(m.group(1))
    new_start = int(m.group(3))
    old_count = int(m.group(2)) if m.group(2) else 1
    new_count = int(m.group(4)) if m.group(4) else 1
    if old_start <= 0 or new_start <= 0:
        raise ValueError(f"invalid hunk header values: {_quote(line)}")
    return old_start, old_count, new_start, new_count


def _parse_patch_line(line: str) -> PatchLine:
    kind = line[:1]
    if kind not in _KINDS:
        raise ValueError(f"invalid patch line prefix {kind!r}")
    return PatchLine(kind, line[1:])


def _count_hunk_sides(lines: list[PatchLine] | tuple[PatchLine, ...]) -> tuple[int, int]:
    old_side = sum(1 for line in lines if line.kind != "+")
    new_side = sum(1 for line in lines if line.kind != "-")
    return old_side, new_side


def split_file_lines(text: str) -> tuple[list[str], bool]:
    """Split file text into lines and report whether it ended with a newline."""
    if text == "":
        return [], False
    trailing = text.endswith("\n")
    parts = text.split("\n")
    if trailing:
        parts.pop()
    return parts, trailing


def join_file_lines(lines: list[str], trailing_newline: bool) -> str:
    """Inverse of :func:`split_file_lines`."""
    if not lines:
        return "\n" if trailing_newline else ""
    out = "\n".join(lines)
    return out + "\n" if trailing_newline else out


def apply_hunks(lines: list[str], hunks: list[Hunk]) -> tuple[list[str], list[str]]:
    """Apply hunks in order; return the new lines and one summary line per hunk.

    Each hunk is looked for at its expected place and up to three lines either
    side of it. Raises ValueError when a hunk's context cannot be found.
    """
    out = list(lines)
    summary: list[str] = []
    delta = 0
    for number, hunk in enumerate(hunks, 1):
        expected = hunk.old_start - 1 + delta
        try:
            start = _find_hunk_start(out, hunk, expected)
            out, old_side, new_side = _rewrite_with_hunk(out, hunk, start)
            if old_side != hunk.old_count or new_side != hunk.new_count:
                raise ValueError(
                    f"hunk body count mismatch: got -{old_side} +{new_side}"
                )
        except ValueError as exc:
            raise ValueError(f"hunk {number} failed: {exc}") from exc
        delta += new_side - old_side
        summary.append(f"hunk {number} applied at line {start + 1}")
    return out, summary


def _find_hunk_start(lines: list[str], hunk: Hunk, expected: int) -> int:
    target = min(max(expected, 0), len(lines))
    for start in _hunk_candidates(target, len(lines), _SEARCH_WINDOW):
        if _hunk_matches(lines, hunk, start):
            return start
    raise ValueError(f"context did not match around expected line {expected + 1}")


def _hunk_candidates(expected: int, maximum: int, window: int) -> Iterator[int]:
    seen: set[int] = set()
    for d in range(window + 1):
        for candidate in (expected + d, expected - d):
            if 0 <= candidate <= maximum and candidate not in seen:
                seen.add(candidate)
                yield candidate


def _hunk_matches(lines: list[str], hunk: Hunk, start: int) -> bool:
    i = start
    for line in hunk.lines:
        if line.kind == "+":
            continue
        if i >= len(lines) or lines[i] != line.text:
            return False
        i += 1
    return True


def _rewrite_with_hunk(lines: list[str], hunk: Hunk, start: int) -> tuple[list[str], int, int]:
    out = lines[:start]
    i, old_side, new_side = start, 0, 0
    for line in hunk.lines:
        if line.kind == "+":
            out.append(line.text)
            new_side += 1
            continue
        if i >= len(lines) or lines[i] != line.text:
            raise ValueError(f"context mismatch at line {i + 1}")
        if line.kind == " ":
            out.append(line.text)
            new_side += 1
        old_side += 1
        i += 1
    out.extend(lines[i:])
    return out, old_side, new_side


def _parse_patch_params(raw: Any) -> tuple[str, str]:
    try:
        data = parse_object(raw)
        for key in ("path", "patch"):
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"{key} must be a string")
    except ValueError as exc:
        raise ToolError(f"parse apply_patch parameters: {exc}") from exc
    path = data.get("path")
    patch = data.get("patch")
    if not path:
        raise ToolError("apply_patch parameter path is required")
    if not patch:
        raise ToolError("apply_patch parameter patch is required")
    return path, patch


def _read_file(path: str) -> str:
    try:
        with open(path, "rb") as fh:
            return fh.read().decode("utf-8", errors="surrogateescape")
    except OSError as exc:
        raise ToolError(f"read file {_quote(path)}: {_reason('open', exc, path)}") from exc


def _write_file(path: str, text: str) -> None:
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
        with os.fdopen(fd, "wb") as fh:
            fh.write(text.encode("utf-8", errors="surrogateescape"))
    except OSError as exc:
        raise ToolError(f"write file {_quote(path)}: {_reason('open', exc, path)}") from exc


def patch_tool() -> Tool:
    """A tool that applies a unified diff, raising ToolError when it cannot."""

    def run(call: ToolCall, _cancel: Optional[threading.Event]) -> ToolResult:
        path, patch = _parse_patch_params(call.parameters)
        lines, trailing = split_file_lines(_read_file(path))
        try:
            hunks = parse_unified_patch(patch)
            after, summary = apply_hunks(lines, hunks)
        except ValueError as exc:
            raise ToolError(str(exc)) from exc
        _write_file(path, join_file_lines(after, trailing))
        return ToolResult(
            content=f"applied {len(hunks)} hunk(s) to {path}\n" + "\n".join(summary)
        )

    return Tool(
        name="apply_patch",
        description="Apply a unified diff patch to an existing file",
        parameters=JSONSchema(
            type="object",
            properties={
                "path": JSONSchema(type="string", description="Path to an existing file"),
                "patch": JSONSchema(type="string", description="Unified diff patch text"),
            },
            required=["path", "patch"],
        ),
        run_fn=run,
    )