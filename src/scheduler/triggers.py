"""Build APScheduler triggers from daily times and cron expressions.

Cron expressions use the standard layout, optionally with a leading seconds
field::

    [second] minute hour day month day_of_week

Numeric weekdays follow cron (0 and 7 are Sunday). APScheduler numbers
weekdays from Monday, so numeric weekdays are rewritten to names first.
"""
from __future__ import annotations

import re
from datetime import tzinfo
from typing import List

from apscheduler.triggers.cron import CronTrigger

from src.scheduler.errors import InvalidTriggerError

_CRON_WEEKDAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat", "sun")
_NUMERIC_RANGE = re.compile(r"^(\d+)(?:-(\d+))?$")


def _weekday_name(value: str) -> str:
    number = int(value)
    if number >= len(_CRON_WEEKDAYS):
        raise InvalidTriggerError(f"Invalid day of week: {value}")
    return _CRON_WEEKDAYS[number]


def _translate_weekday_part(part: str) -> List[str]:
    expression, _, step = part.partition("/")
    if expression == "*" and step:
        return [_weekday_name(str(day)) for day in range(0, 7, int(step))]
    match = _NUMERIC_RANGE.match(expression)
    if match is None:
        return [part]

    suffix = f"/{step}" if step else ""
    start, end = match.group(1), match.group(2)
    if end is None:
        return [_weekday_name(start) + suffix]

    first, last = int(start), int(end)
    if first > last:
        raise InvalidTriggerError(f"Invalid day of week range: {part}")
    if step:
        # Stepped ranges: expand so the step is counted in cron order
        return [_weekday_name(str(day)) for day in range(first, last + 1, int(step))]
    if first == 0 and last >= 1:
        names = ["sun"]
        if last >= 6:
            names.append("mon-sat")
        else:
            names.append(f"mon-{_weekday_name(end)}")
        return names
    if last == 7 and first >= 1:
        names = ["sun"]
        if first <= 6:
            names.append(f"{_weekday_name(start)}-sat")
        return names
    return [f"{_weekday_name(start)}-{_weekday_name(end)}"]


def translate_day_of_week(field: str) -> str:
    """Rewrite a cron day-of-week field into APScheduler weekday names."""
    parts: List[str] = []
    for part in field.split(","):
        for name in _translate_weekday_part(part.strip().lower()):
            if name not in parts:
                parts.append(name)
    return ",".join(parts)


def parse_cron_expression(expression: str, timezone: tzinfo) -> CronTrigger:
    if not isinstance(expression, str) or not expression.strip():
        raise InvalidTriggerError("Cron expression is required")

    fields = expression.split()
    if len(fields) == 5:
        second = "0"
        minute, hour, day, month, day_of_week = fields
    elif len(fields) == 6:
        second, minute, hour, day, month, day_of_week = fields
    else:
        raise InvalidTriggerError(
            f"Invalid cron expression: {expression} (expected 5 or 6 fields)"
        )

    try:
        return CronTrigger(
            second=second,
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=translate_day_of_week(day_of_week),
            timezone=timezone,
        )
    except InvalidTriggerError:
        raise
    except ValueError as e:
        raise InvalidTriggerError(f"Invalid cron expression: {expression} ({e})") from e


def daily_trigger(hour: int, minute: int, timezone: tzinfo) -> CronTrigger:
    if not isinstance(hour, int) or isinstance(hour, bool) or not 0 <= hour <= 23:
        raise InvalidTriggerError(f"Hour must be an integer between 0 and 23, got {hour!r}")
    if not isinstance(minute, int) or isinstance(minute, bool) or not 0 <= minute <= 59:
        raise InvalidTriggerError(
            f"Minute must be an integer between 0 and 59, got {minute!r}"
        )
    return CronTrigger(hour=hour, minute=minute, second=0, timezone=timezone)
