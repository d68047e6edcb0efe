"""Cron expression parsing and next-run calculation.

Only the calculation lives here: recurring execution of a monitor check is
left to an external scheduler (cron, systemd timers, a task queue) which
calls the monitor endpoint at the times returned by :func:`next_run_after`.

Supported syntax is the classic 5-field form::

    minute hour day-of-month month day-of-week

with ``*``, lists (``1,15``), ranges (``1-5``), steps (``*/10``, ``0-30/5``),
month and weekday names (``jan``, ``mon``), ``7`` as an alias for Sunday and
the ``@hourly``/``@daily``/``@midnight``/``@weekly``/``@monthly``/
``@yearly``/``@annually`` macros.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Optional, Set, Tuple

from site_harvest.errors import ScheduleError

__all__ = ["CronSchedule", "parse_cron", "next_run_after"]

_MACROS: Dict[str, str] = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}

_MONTH_NAMES: Dict[str, int] = {
    name: idx
    for idx, name in enumerate(
        ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"), start=1
    )
}
_DAY_NAMES: Dict[str, int] = {
    name: idx for idx, name in enumerate(("sun", "mon", "tue", "wed", "thu", "fri", "sat"))
}

# years searched before an expression is declared unsatisfiable (covers Feb 29 across 2100)
_SEARCH_YEARS = 10


@dataclass(frozen=True)
class CronSchedule:
    """Parsed cron expression: the allowed values of each field."""

    minutes: FrozenSet[int]
    hours: FrozenSet[int]
    days: FrozenSet[int]
    months: FrozenSet[int]
    weekdays: FrozenSet[int]
    days_restricted: bool
    weekdays_restricted: bool

    def matches_day(self, moment: datetime) -> bool:
        weekday = (moment.weekday() + 1) % 7  # cron counts from Sunday
        in_days = moment.day in self.days
        in_weekdays = weekday in self.weekdays
        if self.days_restricted and self.weekdays_restricted:
            return in_days or in_weekdays
        if self.days_restricted:
            return in_days
        if self.weekdays_restricted:
            return in_weekdays
        return True


def _value(token: str, names: Optional[Dict[str, int]], expression: str) -> int:
    lowered = token.lower()
    if names and lowered in names:
        return names[lowered]
    try:
        return int(token)
    except ValueError:
        raise ScheduleError("Invalid cron expression", f"bad value {token!r} in {expression!r}") from None


def _parse_field(
    field: str,
    low: int,
    high: int,
    expression: str,
    names: Optional[Dict[str, int]] = None,
) -> Tuple[FrozenSet[int], bool]:
    values: Set[int] = set()
    for part in field.split(","):
        if not part:
            raise ScheduleError("Invalid cron expression", f"empty list item in {expression!r}")
        base, _, step_txt = part.partition("/")
        step = 1
        if step_txt:
            step = _value(step_txt, None, expression)
            if step <= 0:
                raise ScheduleError("Invalid cron expression", f"step must be positive in {expression!r}")
        if base == "*":
            start, stop = low, high
        elif "-" in base:
            left, _, right = base.partition("-")
            start, stop = _value(left, names, expression), _value(right, names, expression)
        else:
            start = _value(base, names, expression)
            stop = high if step_txt else start
        if not (low <= start <= high and low <= stop <= high) or start > stop:
            raise ScheduleError(
                "Invalid cron expression", f"{part!r} is outside {low}-{high} in {expression!r}"
            )
        values.update(range(start, stop + 1, step))
    return frozenset(values), not field.startswith("*")


def parse_cron(expression: str) -> CronSchedule:
    """Parse *expression* or raise :class:`ScheduleError`."""
    if not isinstance(expression, str) or not expression.strip():
        raise ScheduleError("Invalid cron expression", "expression is empty")
    text = expression.strip()
    text = _MACROS.get(text.lower(), text)
    fields = text.split()
    if len(fields) != 5:
        raise ScheduleError(
            "Invalid cron expression", f"expected 5 fields, got {len(fields)} in {expression!r}"
        )
    minutes, _ = _parse_field(fields[0], 0, 59, expression)
    hours, _ = _parse_field(fields[1], 0, 23, expression)
    days, days_restricted = _parse_field(fields[2], 1, 31, expression)
    months, _ = _parse_field(fields[3], 1, 12, expression, _MONTH_NAMES)
    weekdays, weekdays_restricted = _parse_field(fields[4], 0, 7, expression, _DAY_NAMES)
    if 7 in weekdays:
        weekdays = (weekdays - {7}) | {0}
    return CronSchedule(
        minutes=minutes,
        hours=hours,
        days=days,
        months=months,
        weekdays=weekdays,
        days_restricted=days_restricted,
        weekdays_restricted=weekdays_restricted,
    )


def _next_month(moment: datetime) -> datetime:
    if moment.month == 12:
        return moment.replace(year=moment.year + 1, month=1, day=1, hour=0, minute=0)
    return moment.replace(month=moment.month + 1, day=1, hour=0, minute=0)


def next_run_after(expression: str, now: datetime) -> datetime:
    """Return the first minute strictly after *now* matched by *expression*.

    Seconds are dropped and ``now``'s tzinfo is kept. Expressions that never
    fire (``0 0 30 2 *``) raise :class:`ScheduleError`.
    """
    schedule = parse_cron(expression)
    candidate = now.replace(second=0, microsecond=0) + timedelta(minutes=1)
    last_year = candidate.year + _SEARCH_YEARS

    while candidate.year <= last_year:
        if candidate.month not in schedule.months:
            candidate = _next_month(candidate)
            continue
        if not schedule.matches_day(candidate):
            candidate = candidate.replace(hour=0, minute=0) + timedelta(days=1)
            continue
        if candidate.hour not in schedule.hours:
            candidate = candidate.replace(minute=0) + timedelta(hours=1)
            continue
        if candidate.minute not in schedule.minutes:
            candidate += timedelta(minutes=1)
            continue
        return candidate

    raise ScheduleError("Invalid cron expression", f"{expression!r} never fires")
