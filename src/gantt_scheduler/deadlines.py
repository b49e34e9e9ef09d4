from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Literal

from .models import Task
from .work_calendar import DEFAULT_CALENDAR, WorkCalendar

DeadlineState = Literal["none", "exceeded", "passed", "today", "approaching", "on-track"]
Severity = Literal["none", "error", "warning", "success"]


@dataclass(frozen=True)
class DeadlineStatus:
    status: DeadlineState
    is_overdue: bool
    days_until_deadline: int | None
    days_overdue: int | None
    message: str
    severity: Severity

    @property
    def has_deadline(self) -> bool:
        return self.status != "none"


def _days(count: int) -> str:
    return f"{count} day{'s' if count != 1 else ''}"


def finish_day(task: Task, calendar: WorkCalendar = DEFAULT_CALENDAR) -> date | None:
    """Last worked day of a task; end_date itself for milestones."""
    if task.end_date is None:
        return None
    if task.is_milestone or (task.start_date is not None and task.end_date <= task.start_date):
        return task.end_date
    return calendar.previous_workday(task.end_date)


def deadline_status(
    task: Task,
    today: date,
    approaching_days: int = 7,
    calendar: WorkCalendar = DEFAULT_CALENDAR,
) -> DeadlineStatus:
    """
    Classify a task against its deadline as of `today`.

    The deadline is compared with the last worked day, not the end_date
    boundary, so a task worked through Friday meets a Friday deadline.
    """

    if task.deadline is None:
        return DeadlineStatus("none", False, None, None, "No deadline set", "none")

    days_until = (task.deadline - today).days
    finished = finish_day(task, calendar)
    if finished is not None and finished > task.deadline:
        overdue = (finished - task.deadline).days
        return DeadlineStatus("exceeded", True, days_until, overdue, f"Overdue by {_days(overdue)}", "error")
    if days_until < 0:
        return DeadlineStatus("passed", True, days_until, None, "Deadline has passed", "error")
    if days_until == 0:
        return DeadlineStatus("today", False, 0, None, "Deadline is today", "warning")
    if days_until <= approaching_days:
        return DeadlineStatus("approaching", False, days_until, None, f"Due in {_days(days_until)}", "warning")
    return DeadlineStatus("on-track", False, days_until, None, f"Due in {_days(days_until)}", "success")
