"""Five-field cron expressions evaluated in UTC."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

CRON_SEARCH_LIMIT = 60 * 24 * 366 * 4

_INT_RE = re.compile(r"[+-]?[0-9]+")
_MINUTE = timedelta(minutes=1)


def _to_utc(t: datetime) -> datetime:
    if t.tzinfo is None:
        return t.replace(tzinfo=timezone.utc)
    return t.astimezone(timezone.utc)


def _atoi(raw: str, message: str) -> int:
    if not _INT_RE.fullmatch(raw):
        raise ValueError(message)
    return int(raw)


@dataclass(frozen=True)
class CronExpr:
    """A parsed cron expression: allowed values for each of the five fields."""

    minute: frozenset[int]
    hour: frozenset[int]
    dom: frozenset[int]
    month: frozenset[int]
    dow: frozenset[int]

    def _day_matches(self, t: datetime) -> bool:
        weekday = (t.weekday() + 1) % 7  # Sunday is 0
        return t.month in self.month and t.day in self.dom and weekday in self.dow

    def matches(self, t: datetime) -> bool:
        """Whether the minute containing ``t`` (in UTC) is selected."""
        t = _to_utc(t)
        return t.minute in self.minute and t.hour in self.hour and self._day_matches(t)

    def next_after(self, t: datetime) -> datetime:
        """The first matching minute strictly after ``t``.

        The search covers about four years; when nothing matches, the end of
        that window is returned.
        """
        start = _to_utc(t).replace(second=0, microsecond=0) + _MINUTE
        end = start + CRON_SEARCH_LIMIT * _MINUTE
        current = start
        while current < end:
            if not self._day_matches(current):
                current = current.replace(hour=0, minute=0) + timedelta(days=1)
                continue
            if current.hour not in self.hour:
                current = current.replace(minute=0) + timedelta(hours=1)
                continue
            if current.minute in self.minute:
                return current
            current += _MINUTE
        return end


def parse_cron_expr(expr: str) -> CronExpr:
    """Parse ``minute hour day-of-month month day-of-week``; raise ValueError if invalid."""
    parts = expr.split()
    if len(parts) != 5:
        raise ValueError("invalid cron expression: expected 5 fields")
    bounds = [(0, 59), (0, 23), (1, 31), (1, 12), (0, 6)]
    minute, hour, dom, month, dow = (
        _parse_field(raw, lo, hi) for raw, (lo, hi) in zip(parts, bounds)
    )
    return CronExpr(minute=minute, hour=hour, dom=dom, month=month, dow=dow)


def _parse_field(raw: str, lo: int, hi: int) -> frozenset[int]:
    values: set[int] = set()
    for part in raw.split(","):
        if part == "":
            raise ValueError("invalid cron field")
        values.update(_field_values(part, lo, hi))
    return frozenset(values)


def _field_values(raw: str, lo: int, hi: int) -> range:
    if raw == "*":
        return range(lo, hi + 1)
    if "/" in raw:
        return _step_values(raw, lo, hi)
    if "-" in raw:
        start, end = _parse_range(raw, lo, hi)
        return range(start, end + 1)
    value = _atoi(raw, "invalid cron field value")
    if value < lo or value > hi:
        raise ValueError("invalid cron field value")
    return range(value, value + 1)


def _step_values(raw: str, lo: int, hi: int) -> range:
    parts = raw.split("/")
    if len(parts) != 2 or parts[0] == "" or parts[1] == "":
        raise ValueError("invalid cron field")
    step = _atoi(parts[1], "invalid cron step")
    if step <= 0:
        raise ValueError("invalid cron step")
    start, end = lo, hi
    base = parts[0]
    if base != "*":
        if "-" in base:
            start, end = _parse_range(base, lo, hi)
        else:
            value = _atoi(base, "invalid cron field value")
            if value < lo or value > hi:
                raise ValueError("invalid cron field value")
            start = end = value
    return range(start, end + 1, step)


def _parse_range(raw: str, lo: int, hi: int) -> tuple[int, int]:
    parts = raw.split("-")
    if len(parts) != 2 or parts[0] == "" or parts[1] == "":
        raise ValueError("invalid cron range")
    start = _atoi(parts[0], "invalid cron range")
    end = _atoi(parts[1], "invalid cron range")
    if not (lo <= start <= hi and lo <= end <= hi) or start > end:
        raise ValueError("invalid cron range")
    return start, end