import datetime as dt

import pytest

from gantt_scheduler.errors import CalendarError
from gantt_scheduler.work_calendar import (
    DEFAULT_CALENDAR,
    CalendarException,
    DaySchedule,
    WorkCalendar,
    validate_calendar,
    weekday_index,
)

# 2024-01-05 is a Friday.
FRI = dt.date(2024, 1, 5)
SAT = dt.date(2024, 1, 6)
SUN = dt.date(2024, 1, 7)
MON = dt.date(2024, 1, 8)


def test_weekends_are_not_workdays():
    assert DEFAULT_CALENDAR.is_workday(FRI)
    assert not DEFAULT_CALENDAR.is_workday(SAT)
    assert not DEFAULT_CALENDAR.is_workday(SUN)


def test_clamp_moves_weekend_to_monday_and_is_idempotent():
    assert DEFAULT_CALENDAR.clamp_to_workdays(SAT) == MON
    assert DEFAULT_CALENDAR.clamp_to_workdays(MON) == MON
    once = DEFAULT_CALENDAR.clamp_to_workdays(SUN)
    assert DEFAULT_CALENDAR.clamp_to_workdays(once) == once


def test_next_and_previous_workday_skip_weekend():
    assert DEFAULT_CALENDAR.next_workday(FRI) == MON
    assert DEFAULT_CALENDAR.previous_workday(MON) == FRI


def test_add_workdays_skips_holidays():
    calendar = WorkCalendar.standard(holidays=[MON])
    assert not calendar.is_workday(MON)
    assert calendar.add_workdays(FRI, 1) == dt.date(2024, 1, 9)
    assert calendar.add_workdays(dt.date(2024, 1, 9), -1) == FRI


def test_add_workdays_clamps_non_workday_start():
    assert DEFAULT_CALENDAR.add_workdays(SAT, 0) == MON
    assert DEFAULT_CALENDAR.add_workdays(SAT, 1) == dt.date(2024, 1, 9)


def test_workdays_between_counts_half_open_range():
    assert DEFAULT_CALENDAR.workdays_between(MON, dt.date(2024, 1, 15)) == 5
    assert DEFAULT_CALENDAR.workdays_between(FRI, MON) == 1
    assert DEFAULT_CALENDAR.workdays_between(MON, MON) == 0
    assert DEFAULT_CALENDAR.workdays_between(dt.date(2024, 1, 15), MON) == -5


def test_exception_overrides_weekend_and_holiday():
    calendar = WorkCalendar(
        holidays=(),
        exceptions=(
            CalendarException(date=SAT, is_working_day=True, working_hours=4.0, reason="release weekend"),
            CalendarException(date=MON, is_working_day=False, reason="office move"),
        ),
    )
    assert calendar.is_workday(SAT)
    assert calendar.working_hours(SAT) == 4.0
    assert not calendar.is_workday(MON)
    assert calendar.working_hours(MON) == 0.0
    assert calendar.next_workday(FRI) == SAT


def test_working_hours_follow_week_pattern():
    assert DEFAULT_CALENDAR.working_hours(FRI) == 8.0
    assert DEFAULT_CALENDAR.working_hours(SAT) == 0.0


def test_calendar_without_workdays_raises_instead_of_looping():
    calendar = WorkCalendar(week=tuple(DaySchedule(working=False, hours=0.0) for _ in range(7)))
    with pytest.raises(CalendarError):
        calendar.next_workday(FRI)


def test_validate_calendar_reports_every_problem():
    calendar = WorkCalendar(
        name=" ",
        week=tuple(DaySchedule(working=False, hours=30.0) for _ in range(7)),
        exceptions=(CalendarException(date=MON), CalendarException(date=MON)),
    )
    errors = validate_calendar(calendar)
    assert "calendar name is required" in errors
    assert "at least one weekday must be a working day" in errors
    assert any("hours must be between 0 and 24" in err for err in errors)
    assert any("exception already exists" in err for err in errors)
    assert validate_calendar(DEFAULT_CALENDAR) == []


@pytest.mark.parametrize("value, expected", [("mon", 0), ("Friday", 4), ("sun", 6), (2, 2)])
def test_weekday_index_accepts_names_and_numbers(value, expected):
    assert weekday_index(value) == expected


def test_weekday_index_rejects_unknown_values():
    with pytest.raises(ValueError):
        weekday_index("someday")
    with pytest.raises(ValueError):
        weekday_index(7)
