from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from .errors import CalendarError, InvalidDateRangeError
from .models import Task
from .work_calendar import WorkCalendar


@dataclass(frozen=True)
class DateValidation:
    """Outcome of reconciling a task's candidate dates with its constraints."""

    start_date: date
    end_date: date
    duration: int
    was_constrained: bool


def validate_task_dates(
    task: Task,
    candidate_start: date,
    candidate_end: date,
    constrained_start: date | None,
    calendar: WorkCalendar,
) -> DateValidation:
    """
    Reconcile candidate dates against the resolver and the minimum-duration rule.

    `was_constrained` is set whenever the dependency constraint moved the
    start or the end had to be pushed out to reach the minimum duration, so
    callers can tell the user their edit was adjusted.
    """

    if task.duration is not None and task.duration < 0:
        raise InvalidDateRangeError(task.id, f"negative duration {task.duration}")

    try:
        return _reconcile(task, candidate_start, candidate_end, constrained_start, calendar)
    except (CalendarError, OverflowError) as exc:
        raise InvalidDateRangeError(task.id, f"cannot place dates: {exc}") from exc


def _reconcile(
    task: Task,
    candidate_start: date,
    candidate_end: date,
    constrained_start: date | None,
    calendar: WorkCalendar,
) -> DateValidation:
    minimum = task.min_duration
    was_constrained = False

    start = calendar.clamp_to_workdays(candidate_start)
    if constrained_start is not None and constrained_start > start:
        start = constrained_start
        was_constrained = True

    if task.is_milestone:
        return DateValidation(start, start, 0, was_constrained)

    end = candidate_end
    duration = calendar.workdays_between(start, end)
    if duration < minimum:
        end = calendar.add_workdays(start, minimum)
        was_constrained = True

    if end <= start:
        end = calendar.add_workdays(start, minimum)
        was_constrained = True

    duration = calendar.workdays_between(start, end)
    if end < start or duration < minimum:
        raise InvalidDateRangeError(
            task.id,
            f"cannot satisfy start {start.isoformat()} <= end {end.isoformat()} with duration >= {minimum}",
        )
    return DateValidation(start, end, duration, was_constrained)
