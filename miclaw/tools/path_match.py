"""Glob-style matching of slash-separated paths, with ``**`` spanning directories."""

from __future__ import annotations

from functools import lru_cache
from typing import Union

_STAR = ("star",)
_ANY = ("any",)

Token = Union[tuple, tuple]


class _BadPattern(Exception):
    """A segment pattern is malformed."""


def match_path_pattern(pattern: str, target: str) -> bool:
    """Whether ``target`` matches ``pattern``.

    A pattern without a slash is matched against the last element of the
    target. Otherwise segments are matched one by one, where a ``**`` segment
    spans any number of directories.
    """
    p = _clean(_trim(pattern))
    t = _clean(_trim(target))
    if "/" not in p:
        return _match_segment(p, _base(t))
    return _match_segments(tuple(p.split("/")), tuple(t.split("/")), 0, 0)


def _trim(value: str) -> str:
    return value.removeprefix("./").removesuffix("/")


def _clean(p: str) -> str:
    if p == "":
        return "."
    rooted = p.startswith("/")
    parts: list[str] = []
    for seg in p.split("/"):
        if seg in ("", "."):
            continue
        if seg == "..":
            if parts and parts[-1] != "..":
                parts.pop()
            elif not rooted:
                parts.append("..")
            continue
        parts.append(seg)
    joined = "/".join(parts)
    if rooted:
        return "/" + joined
    return joined or "."


def _base(p: str) -> str:
    if p == "":
        return "."
    stripped = p.rstrip("/")
    if stripped == "":
        return "/"
    return stripped.rsplit("/", 1)[-1]


def _match_segments(patterns: tuple[str, ...], targets: tuple[str, ...], pi: int, ti: int) -> bool:
    if pi == len(patterns):
        return ti == len(targets)
    seg = patterns[pi]
    if seg == "**":
        if pi + 1 == len(patterns):
            return True
        return any(
            _match_segments(patterns, targets, pi + 1, nxt)
            for nxt in range(ti, len(targets) + 1)
        )
    if ti >= len(targets) or not _match_segment(seg, targets[ti]):
        return False
    return _match_segments(patterns, targets, pi + 1, ti + 1)


def _match_segment(pattern: str, target: str) -> bool:
    try:
        tokens = _compile(pattern)
    except _BadPattern:
        return False
    return _match_tokens(tokens, target)


@lru_cache(maxsize=256)
def _compile(pattern: str) -> tuple:
    tokens: list[tuple] = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if not tokens or tokens[-1] is not _STAR:
                tokens.append(_STAR)
            i += 1
        elif c == "?":
            tokens.append(_ANY)
            i += 1
        elif c == "\\":
            if i + 1 >= n:
                raise _BadPattern
            tokens.append(("lit", pattern[i + 1]))
            i += 2
        elif c == "[":
            cls, i = _parse_class(pattern, i + 1)
            tokens.append(cls)
        else:
            tokens.append(("lit", c))
            i += 1
    return tuple(tokens)


def _parse_class(pattern: str, i: int) -> tuple[tuple, int]:
    negated = False
    if i < len(pattern) and pattern[i] == "^":
        negated = True
        i += 1
    ranges: list[tuple[str, str]] = []
    while True:
        if i < len(pattern) and pattern[i] == "]" and ranges:
            i += 1
            break
        lo, i = _class_char(pattern, i)
        hi = lo
        if i < len(pattern) and pattern[i] == "-":
            hi, i = _class_char(pattern, i + 1)
        ranges.append((lo, hi))
    return ("class", negated, tuple(ranges)), i


def _class_char(pattern: str, i: int) -> tuple[str, int]:
    if i >= len(pattern) or pattern[i] in "-]":
        raise _BadPattern
    if pattern[i] == "\\":
        i += 1
        if i >= len(pattern):
            raise _BadPattern
    return pattern[i], i + 1


def _single(token: tuple, ch: str) -> bool:
    kind = token[0]
    if kind == "lit":
        return token[1] == ch
    if kind == "any":
        return ch != "/"
    _, negated, ranges = token
    inside = any(lo <= ch <= hi for lo, hi in ranges)
    return inside != negated


def _match_tokens(tokens: tuple, s: str) -> bool:
    positions = {0}
    for token in tokens:
        nxt: set[int] = set()
        if token is _STAR:
            for p in positions:
                q = p
                nxt.add(q)
                while q < len(s) and s[q] != "/":
                    q += 1
                    nxt.add(q)
        else:
            for p in positions:
                if p < len(s) and _single(token, s[p]):
                    nxt.add(p + 1)
        if not nxt:
            return False
        positions = nxt
    return len(s) in positions