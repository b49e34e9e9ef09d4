from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Iterator

from .errors import CalendarError

MAX_WORKDAY_SEARCH_DAYS = 3660
"""Upper bound on how far next/previous workday searches walk before giving up."""

WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class DaySchedule:
    """Working flag and hours for one weekday."""

    working: bool
    hours: float = 8.0


@dataclass(frozen=True)
class Holiday:
    date: date
    name: str = ""
    kind: str = "public"


@dataclass(frozen=True)
class CalendarException:
    """
    One-off override for a single date.

    Exceptions take precedence over both the weekday pattern and the holiday
    list, so a worked Saturday is expressed as an exception with is_working_day=True.
    """

    date: date
    is_working_day: bool = False
    working_hours: float = 0.0
    reason: str = ""
    kind: str = "custom"


def _default_week() -> tuple[DaySchedule, ...]:
    return tuple(DaySchedule(working=idx < 5, hours=8.0 if idx < 5 else 0.0) for idx in range(7))


@dataclass(frozen=True)
class WorkCalendar:
    """
    Working-time calendar shared read-only by every component of a pass.

    `week` is indexed by `date.weekday()` (Monday = 0).
    """

    name: str = "Global Calendar"
    week: tuple[DaySchedule, ...] = field(default_factory=_default_week)
    holidays: tuple[Holiday, ...] = ()
    exceptions: tuple[CalendarException, ...] = ()

    def __post_init__(self) -> None:
        # Derived lookups; the dataclass stays frozen for callers.
        object.__setattr__(self, "_holiday_dates", frozenset(h.date for h in self.holidays))
        object.__setattr__(self, "_exceptions_by_date", {exc.date: exc for exc in self.exceptions})

    @classmethod
    def standard(cls, holidays: Iterable[date] = ()) -> "WorkCalendar":
        """Monday-to-Friday, eight hours a day, with optional holiday dates."""
        return cls(holidays=tuple(Holiday(date=d) for d in sorted(set(holidays))))

    def exception_for(self, day: date) -> CalendarException | None:
        return self._exceptions_by_date.get(day)

    def is_workday(self, day: date) -> bool:
        exception = self.exception_for(day)
        if exception is not None:
            return exception.is_working_day
        if not self.week[day.weekday()].working:
            return False
        return day not in self._holiday_dates

    def working_hours(self, day: date) -> float:
        exception = self.exception_for(day)
        if exception is not None:
            return exception.working_hours if exception.is_working_day else 0.0
        if not self.is_workday(day):
            return 0.0
        return self.week[day.weekday()].hours

    def next_workday(self, day: date) -> date:
        """First workday strictly after `day`."""
        return self._walk(day, _ONE_DAY)

    def previous_workday(self, day: date) -> date:
        """Last workday strictly before `day`."""
        return self._walk(day, -_ONE_DAY)

    def clamp_to_workdays(self, day: date) -> date:
        """Return `day` if it is a workday, else the next one. Idempotent."""
        if self.is_workday(day):
            return day
        return self.next_workday(day)

    def add_workdays(self, day: date, workdays: int) -> date:
        """
        Move `workdays` working days away from `day` (backwards when negative).

        The start is clamped first, so the result is always a workday and
        `workdays_between(day, add_workdays(day, n)) == n` for workday inputs.
        """

        current = self.clamp_to_workdays(day)
        if workdays > 0:
            for _ in range(workdays):
                current = self.next_workday(current)
        elif workdays < 0:
            for _ in range(-workdays):
                current = self.previous_workday(current)
        return current

    def workdays_between(self, start: date, end: date) -> int:
        """Number of workdays in [start, end); negative when end precedes start."""
        if end < start:
            return -self.workdays_between(end, start)
        return sum(1 for day in iter_days(start, end) if self.is_workday(day))

    def _walk(self, day: date, step: timedelta) -> date:
        current = day
        for _ in range(MAX_WORKDAY_SEARCH_DAYS):
            try:
                current = current + step
            except OverflowError as exc:
                raise CalendarError([f"date arithmetic left the supported range from {day}"], self.name) from exc
            if self.is_workday(current):
                return current
        raise CalendarError(
            [f"no workday within {MAX_WORKDAY_SEARCH_DAYS} days of {day.isoformat()}"],
            self.name,
        )


DEFAULT_CALENDAR = WorkCalendar()


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day in [start, end)."""
    current = start
    while current < end:
        yield current
        current += _ONE_DAY


def validate_calendar(calendar: WorkCalendar) -> list[str]:
    """Return every problem found in the calendar configuration (empty when valid)."""

    errors: list[str] = []
    if not calendar.name or not calendar.name.strip():
        errors.append("calendar name is required")
    if len(calendar.week) != 7:
        errors.append(f"week must define 7 days, got {len(calendar.week)}")
    elif not any(day.working for day in calendar.week):
        errors.append("at least one weekday must be a working day")
    for idx, day in enumerate(calendar.week[:7]):
        if not 0 <= day.hours <= 24:
            errors.append(f"{WEEKDAY_NAMES[idx]} hours must be between 0 and 24, got {day.hours}")

    seen: set[date] = set()
    for exc in calendar.exceptions:
        if exc.date in seen:
            errors.append(f"exception already exists for {exc.date.isoformat()}")
        seen.add(exc.date)
        if not 0 <= exc.working_hours <= 24:
            errors.append(f"exception {exc.date.isoformat()} hours must be between 0 and 24")
    return errors


def ensure_valid_calendar(calendar: WorkCalendar) -> WorkCalendar:
    errors = validate_calendar(calendar)
    if errors:
        raise CalendarError(errors, calendar.name)
    return calendar


def weekday_index(value: str | int) -> int:
    """Map 'mon', 'Monday' or 0-6 to a `date.weekday()` index."""

    if isinstance(value, bool):
        raise ValueError(f"invalid weekday {value!r}")
    if isinstance(value, int):
        if 0 <= value <= 6:
            return value
        raise ValueError(f"weekday index must be 0-6, got {value}")
    text = value.strip().lower()
    for idx, name in enumerate(WEEKDAY_NAMES):
        if text == name or (len(text) >= 3 and name.startswith(text)):
            return idx
    raise ValueError(f"unknown weekday {value!r}")
