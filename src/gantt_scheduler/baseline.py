from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Literal

from .errors import BaselineError
from .models import Baseline, Task
from .work_calendar import WorkCalendar

VarianceStatus = Literal["ahead", "on-track", "behind", "no-baseline"]


@dataclass(frozen=True)
class BaselinePerformance:
    """Variance of current dates against the baseline snapshot; None when unmeasured."""

    start_variance: int | None
    finish_variance: int | None
    duration_variance: int | None
    start_status: VarianceStatus
    finish_status: VarianceStatus
    duration_status: VarianceStatus

    @property
    def has_baseline(self) -> bool:
        return self.start_status != "no-baseline"

    @property
    def statuses(self) -> dict[str, VarianceStatus]:
        return {
            "start": self.start_status,
            "finish": self.finish_status,
            "duration": self.duration_status,
        }


NO_BASELINE = BaselinePerformance(None, None, None, "no-baseline", "no-baseline", "no-baseline")


def has_baseline_data(task: Task) -> bool:
    return task.baseline is not None


def set_baseline(task: Task) -> Task:
    """Freeze the task's current dates as its baseline; an existing baseline is never overwritten."""

    if task.baseline is not None:
        raise BaselineError(f"Task '{task.id}' already has a baseline")
    if task.start_date is None or task.end_date is None:
        raise BaselineError(f"Task '{task.id}' needs start_date and end_date to set a baseline")
    return replace(task, baseline=Baseline(start_date=task.start_date, end_date=task.end_date))


def variance_status(variance: int) -> VarianceStatus:
    if variance < -1:
        return "ahead"
    if variance > 1:
        return "behind"
    return "on-track"


def date_variance(baseline_date: date, actual_date: date, calendar: WorkCalendar | None = None) -> int:
    """Positive when the actual date is later than the baseline."""
    if calendar is None:
        return (actual_date - baseline_date).days
    return calendar.workdays_between(baseline_date, actual_date)


def calculate_baseline_performance(task: Task, calendar: WorkCalendar | None = None) -> BaselinePerformance:
    """
    Compare a task's current dates with its baseline.

    Variances are in calendar days, or in workdays when a calendar is given.
    Never raises: a task without a baseline (or without current dates)
    reports "no-baseline" rather than a zero variance.
    """

    baseline = task.baseline
    if baseline is None or task.start_date is None or task.end_date is None:
        return NO_BASELINE

    start_variance = date_variance(baseline.start_date, task.start_date, calendar)
    finish_variance = date_variance(baseline.end_date, task.end_date, calendar)
    baseline_duration = date_variance(baseline.start_date, baseline.end_date, calendar)
    current_duration = date_variance(task.start_date, task.end_date, calendar)
    duration_variance = current_duration - baseline_duration

    return BaselinePerformance(
        start_variance=start_variance,
        finish_variance=finish_variance,
        duration_variance=duration_variance,
        start_status=variance_status(start_variance),
        finish_status=variance_status(finish_variance),
        duration_status=variance_status(duration_variance),
    )


def format_variance(variance: int | None) -> str:
    if variance is None:
        return "-"
    if variance > 0:
        return f"+{variance}d"
    return f"{variance}d"
