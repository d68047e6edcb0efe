from datetime import datetime, timedelta, timezone

import pytest

from site_harvest.errors import ScheduleError, ScheduleErrorKind
from site_harvest.schedule import next_run_after, parse_cron

NOW = datetime(2024, 3, 15, 10, 17, 42)  # Friday


@pytest.mark.parametrize(
    "expr,expected",
    [
        ("* * * * *", datetime(2024, 3, 15, 10, 18)),
        ("*/15 * * * *", datetime(2024, 3, 15, 10, 30)),
        ("0 * * * *", datetime(2024, 3, 15, 11, 0)),
        ("30 9 * * *", datetime(2024, 3, 16, 9, 30)),
        ("0 0 1 * *", datetime(2024, 4, 1, 0, 0)),
        ("0 12 * * mon", datetime(2024, 3, 18, 12, 0)),
        ("0 12 * * 7", datetime(2024, 3, 17, 12, 0)),
        ("0 8 * * 1-5", datetime(2024, 3, 18, 8, 0)),
        ("5,45 10 * * *", datetime(2024, 3, 15, 10, 45)),
        ("0 0 * jan *", datetime(2025, 1, 1, 0, 0)),
        ("@hourly", datetime(2024, 3, 15, 11, 0)),
        ("@daily", datetime(2024, 3, 16, 0, 0)),
        ("@weekly", datetime(2024, 3, 17, 0, 0)),
        ("@yearly", datetime(2025, 1, 1, 0, 0)),
        ("0 0 29 2 *", datetime(2028, 2, 29, 0, 0)),
    ],
)
def test_next_run_after(expr, expected):
    assert next_run_after(expr, NOW) == expected


def test_strictly_after_now():
    now = datetime(2024, 3, 15, 10, 30)
    assert next_run_after("30 10 * * *", now) == datetime(2024, 3, 16, 10, 30)


def test_day_of_month_or_weekday():
    # 13th of the month OR any Friday: 2024-03-15 is a Friday
    now = datetime(2024, 3, 14, 12, 0)
    assert next_run_after("0 0 13 * fri", now) == datetime(2024, 3, 15, 0, 0)


def test_tzinfo_preserved():
    now = datetime(2024, 3, 15, 10, 17, tzinfo=timezone.utc)
    result = next_run_after("*/5 * * * *", now)
    assert result.tzinfo is timezone.utc
    assert result - now < timedelta(minutes=5)


@pytest.mark.parametrize(
    "expr",
    ["", "* * * *", "* * * * * *", "60 * * * *", "* 24 * * *", "* * 0 * *", "* * * 13 *", "*/0 * * * *", "a * * * *", "5-1 * * * *", "1,,2 * * * *"],
)
def test_invalid_expressions(expr):
    with pytest.raises(ScheduleError) as exc_info:
        next_run_after(expr, NOW)
    assert exc_info.value.kind is ScheduleErrorKind.INVALID_EXPRESSION


def test_never_fires():
    with pytest.raises(ScheduleError):
        next_run_after("0 0 31 4 *", NOW)


def test_parse_cron_fields():
    sched = parse_cron("0-10/5 1,2 * * sun,7")
    assert sched.minutes == frozenset({0, 5, 10})
    assert sched.hours == frozenset({1, 2})
    assert sched.weekdays == frozenset({0})
    assert sched.weekdays_restricted and not sched.days_restricted
