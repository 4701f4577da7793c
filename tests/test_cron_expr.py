from datetime import datetime, timedelta, timezone

import pytest

from miclaw.tools.cron_expr import CRON_SEARCH_LIMIT, parse_cron_expr

UTC = timezone.utc


def _t(*args):
    return datetime(*args, tzinfo=UTC)


def test_every_minute_matches_any_time():
    expr = parse_cron_expr("* * * * *")
    for raw in ["2026-02-21T09:00:00+00:00", "2026-02-21T12:13:47+00:00", "2026-02-21T23:59:59+00:00"]:
        assert expr.matches(datetime.fromisoformat(raw))


def test_specific_time():
    expr = parse_cron_expr("30 14 * * *")
    assert expr.matches(_t(2026, 2, 21, 14, 30))
    assert not expr.matches(_t(2026, 2, 21, 14, 31))
    assert not expr.matches(_t(2026, 2, 21, 13, 30))


def test_step_value():
    expr = parse_cron_expr("*/5 * * * *")
    assert expr.matches(_t(2026, 2, 21, 10, 25))
    assert not expr.matches(_t(2026, 2, 21, 10, 26))


def test_range():
    expr = parse_cron_expr("1-5 * * * *")
    assert expr.matches(_t(2026, 2, 21, 8, 3))
    assert not expr.matches(_t(2026, 2, 21, 8, 6))


def test_comma_list():
    expr = parse_cron_expr("0,15,30,45 * * * *")
    assert expr.matches(_t(2026, 2, 21, 7, 30))
    assert not expr.matches(_t(2026, 2, 21, 7, 16))


def test_range_with_step():
    expr = parse_cron_expr("10-20/5 * * * *")
    assert expr.minute == frozenset({10, 15, 20})


def test_single_value_with_step_selects_only_that_value():
    expr = parse_cron_expr("5/10 * * * *")
    assert expr.minute == frozenset({5})


@pytest.mark.parametrize(
    "raw",
    [
        "* * *",
        "60 * * * *",
        "*/0 * * * *",
        "5-1 * * * *",
        ",5 * * * *",
        "a * * * *",
        "* 24 * * *",
        "* * 0 * *",
        "* * * 13 *",
        "* * * * 7",
        "1-2-3 * * * *",
        "*/x * * * *",
    ],
)
def test_invalid_expressions(raw):
    with pytest.raises(ValueError):
        parse_cron_expr(raw)


def test_matches_converts_to_utc():
    expr = parse_cron_expr("30 14 * * *")
    plus_two = timezone(timedelta(hours=2))
    assert expr.matches(datetime(2026, 2, 21, 16, 30, tzinfo=plus_two))


def test_next_after_step():
    expr = parse_cron_expr("*/5 * * * *")
    assert expr.next_after(_t(2026, 2, 21, 10, 0, 30)) == _t(2026, 2, 21, 10, 5)


def test_next_after_is_strictly_after():
    expr = parse_cron_expr("30 14 * * *")
    assert expr.next_after(_t(2026, 2, 21, 14, 30)) == _t(2026, 2, 22, 14, 30)


def test_next_after_day_of_week_sunday_is_zero():
    expr = parse_cron_expr("0 0 * * 0")
    # 2026-02-21 is a Saturday.
    assert expr.next_after(_t(2026, 2, 21, 12, 0)) == _t(2026, 2, 22, 0, 0)


def test_next_after_month_boundary():
    expr = parse_cron_expr("0 9 1 * *")
    assert expr.next_after(_t(2026, 2, 21, 10, 0)) == _t(2026, 3, 1, 9, 0)


def test_next_after_impossible_date_returns_end_of_window():
    expr = parse_cron_expr("0 0 31 2 *")
    start = _t(2026, 2, 21, 10, 0, 15)
    got = expr.next_after(start)
    assert got == _t(2026, 2, 21, 10, 1) + timedelta(minutes=CRON_SEARCH_LIMIT)


def test_next_after_result_matches():
    expr = parse_cron_expr("15 3 * 6 1-5")
    got = expr.next_after(_t(2026, 2, 21, 10, 0))
    assert expr.matches(got)
    assert got > _t(2026, 2, 21, 10, 0)