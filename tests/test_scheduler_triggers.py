from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from src.scheduler.errors import InvalidTriggerError, JobValidationError
from src.scheduler.triggers import (
    daily_trigger,
    parse_cron_expression,
    translate_day_of_week,
)

SHANGHAI = ZoneInfo("Asia/Shanghai")


def _next(trigger, now):
    return trigger.get_next_fire_time(None, now)


class TestTranslateDayOfWeek:
    @pytest.mark.parametrize(
        "field,expected",
        [
            ("*", "*"),
            ("0", "sun"),
            ("7", "sun"),
            ("1", "mon"),
            ("1-5", "mon-fri"),
            ("0-6", "sun,mon-sat"),
            ("5-7", "sun,fri-sat"),
            ("0,6", "sun,sat"),
            ("mon-fri", "mon-fri"),
            ("1-5/2", "mon,wed,fri"),
            ("*/2", "sun,tue,thu,sat"),
            ("*/3", "sun,wed,sat"),
        ],
    )
    def test_translate(self, field, expected):
        assert translate_day_of_week(field) == expected

    def test_out_of_range(self):
        with pytest.raises(InvalidTriggerError):
            translate_day_of_week("8")


class TestParseCronExpression:
    def test_five_fields_fire_on_the_minute(self):
        trigger = parse_cron_expression("30 9 * * *", SHANGHAI)
        now = datetime(2026, 3, 2, 8, 0, tzinfo=SHANGHAI)
        assert _next(trigger, now) == datetime(2026, 3, 2, 9, 30, 0, tzinfo=SHANGHAI)

    def test_six_fields_with_seconds(self):
        trigger = parse_cron_expression("*/30 * * * * *", SHANGHAI)
        now = datetime(2026, 3, 2, 12, 0, 10, tzinfo=SHANGHAI)
        assert _next(trigger, now) == datetime(2026, 3, 2, 12, 0, 30, tzinfo=SHANGHAI)

    def test_every_half_hour(self):
        trigger = parse_cron_expression("0 */30 * * * *", SHANGHAI)
        now = datetime(2026, 3, 2, 12, 5, tzinfo=SHANGHAI)
        assert _next(trigger, now) == datetime(2026, 3, 2, 12, 30, tzinfo=SHANGHAI)

    def test_sunday_as_zero(self):
        trigger = parse_cron_expression("0 10 * * 0", SHANGHAI)
        # 2026-03-02 is a Monday
        now = datetime(2026, 3, 2, 0, 0, tzinfo=SHANGHAI)
        assert _next(trigger, now) == datetime(2026, 3, 8, 10, 0, tzinfo=SHANGHAI)

    def test_weekdays(self):
        trigger = parse_cron_expression("0 9 * * 1-5", SHANGHAI)
        # Friday evening rolls over to Monday
        now = datetime(2026, 3, 6, 18, 0, tzinfo=SHANGHAI)
        assert _next(trigger, now) == datetime(2026, 3, 9, 9, 0, tzinfo=SHANGHAI)

    def test_stepped_weekdays_count_from_sunday(self):
        trigger = parse_cron_expression("0 9 * * */2", SHANGHAI)
        # Monday morning: the next even cron weekday is Tuesday
        now = datetime(2026, 3, 2, 0, 0, tzinfo=SHANGHAI)
        assert _next(trigger, now) == datetime(2026, 3, 3, 9, 0, tzinfo=SHANGHAI)

    @pytest.mark.parametrize(
        "expression",
        ["", "   ", "* * *", "* * * * * * *", "61 * * * *", "not a cron at all", None],
    )
    def test_invalid(self, expression):
        with pytest.raises(InvalidTriggerError):
            parse_cron_expression(expression, SHANGHAI)

    def test_invalid_trigger_is_a_validation_error(self):
        with pytest.raises(JobValidationError):
            parse_cron_expression("bad", SHANGHAI)


class TestDailyTrigger:
    def test_next_fire_today(self):
        trigger = daily_trigger(9, 0, SHANGHAI)
        now = datetime(2026, 3, 2, 8, 59, 59, tzinfo=SHANGHAI)
        assert _next(trigger, now) == datetime(2026, 3, 2, 9, 0, tzinfo=SHANGHAI)

    def test_next_fire_tomorrow(self):
        trigger = daily_trigger(9, 0, SHANGHAI)
        now = datetime(2026, 3, 2, 9, 0, 1, tzinfo=SHANGHAI)
        assert _next(trigger, now) == datetime(2026, 3, 3, 9, 0, tzinfo=SHANGHAI)

    @pytest.mark.parametrize(
        "hour,minute", [(24, 0), (-1, 0), (9, 60), (9, -1), ("9", 0), (True, 0)]
    )
    def test_out_of_range(self, hour, minute):
        with pytest.raises(InvalidTriggerError):
            daily_trigger(hour, minute, SHANGHAI)
