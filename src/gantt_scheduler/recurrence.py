from __future__ import annotations

import calendar as _calendar
import logging
import re
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Any, Iterable, Iterator, Literal, Mapping, Sequence

from .errors import InvalidRecurrenceRuleError
from .models import FREQUENCIES, RecurrenceRule, ScheduleWindow, SeriesMembership, Task
from .work_calendar import WEEKDAY_NAMES, WorkCalendar

logger = logging.getLogger(__name__)

DEFAULT_MAX_OCCURRENCES = 100
WEEKLY_SEARCH_DAYS = 14
LARGE_OCCURRENCE_WARNING = 1000

SeriesScope = Literal["this", "future", "all"]

_INSTANCE_SUFFIX = re.compile(r" \(\d+\)$")
_PROTECTED_FIELDS = frozenset({"id", "series", "recurrence"})


@dataclass(frozen=True)
class RuleValidation:
    errors: list[str]
    warnings: list[str]

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class RecurrenceSummary:
    total_recurring_tasks: int
    total_instances: int
    series_count: int
    frequency_breakdown: dict[str, int]
    average_instances_per_series: int


def validate_recurrence_rule(
    rule: RecurrenceRule | None,
    max_occurrence_warning: int = LARGE_OCCURRENCE_WARNING,
) -> RuleValidation:
    """Collect every violated constraint of a rule rather than stopping at the first."""

    errors: list[str] = []
    warnings: list[str] = []
    if rule is None:
        return RuleValidation(["recurrence rule is required"], [])

    if rule.frequency not in FREQUENCIES:
        errors.append(f"invalid frequency {rule.frequency!r}; must be daily, weekly, or monthly")
    if not _is_int(rule.interval) or rule.interval < 1:
        errors.append(f"interval must be at least 1, got {rule.interval!r}")
    if rule.start_date is None:
        errors.append("start date is required")

    if rule.weekdays is not None:
        if rule.frequency != "weekly":
            errors.append("weekdays are only allowed for weekly recurrence")
        elif not rule.weekdays:
            errors.append("at least one weekday must be selected for weekly recurrence")
        bad = sorted((day for day in rule.weekdays if not _is_int(day) or not 0 <= day <= 6), key=repr)
        if bad:
            errors.append(f"weekdays must be between 0 (Monday) and 6 (Sunday), got {bad}")

    if rule.day_of_month is not None:
        if rule.frequency != "monthly":
            errors.append("day of month is only allowed for monthly recurrence")
        if not _is_int(rule.day_of_month) or not 1 <= rule.day_of_month <= 31:
            errors.append(f"day of month must be between 1 and 31, got {rule.day_of_month!r}")

    if rule.max_occurrences is not None:
        if not _is_int(rule.max_occurrences) or rule.max_occurrences < 1:
            errors.append(f"max occurrences must be at least 1, got {rule.max_occurrences!r}")
        elif rule.max_occurrences > max_occurrence_warning:
            warnings.append("large number of occurrences may impact performance")

    if rule.end_date is not None and rule.start_date is not None and rule.end_date <= rule.start_date:
        errors.append(
            f"end date {rule.end_date.isoformat()} must be after start date {rule.start_date.isoformat()}"
        )

    return RuleValidation(errors, warnings)


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def ensure_valid_rule(rule: RecurrenceRule | None, max_occurrence_warning: int = LARGE_OCCURRENCE_WARNING) -> RecurrenceRule:
    result = validate_recurrence_rule(rule, max_occurrence_warning)
    if not result.is_valid:
        raise InvalidRecurrenceRuleError(result.errors, rule.id if rule is not None else None)
    for warning in result.warnings:
        logger.warning("Recurrence rule '%s': %s", rule.id, warning)
    return rule


def create_recurrence_rule(
    rule_id: str,
    frequency: str,
    interval: int,
    start_date: date,
    end_date: date | None = None,
    max_occurrences: int | None = None,
    weekdays: Iterable[int] | None = None,
    day_of_month: int | None = None,
) -> RecurrenceRule:
    rule = RecurrenceRule(
        id=rule_id,
        frequency=frequency,  # type: ignore[arg-type]
        interval=interval,
        start_date=start_date,
        end_date=end_date,
        max_occurrences=max_occurrences,
        weekdays=frozenset(weekdays) if weekdays is not None else None,
        day_of_month=day_of_month,
    )
    return ensure_valid_rule(rule)


def is_recurring_task(task: Task) -> bool:
    return task.recurrence is not None and task.recurrence.is_active


def can_make_recurring(task: Task) -> bool:
    return not is_recurring_task(task) and not task.is_recurring_instance


def enable_recurrence(task: Task, rule: RecurrenceRule) -> Task:
    if task.is_recurring_instance:
        raise InvalidRecurrenceRuleError(["recurring instances cannot start a new series"], rule.id)
    return replace(task, recurrence=ensure_valid_rule(replace(rule, is_active=True)))


def disable_recurrence(task: Task) -> Task:
    """Deactivate the rule but keep it, so the series history survives."""
    if task.recurrence is None:
        return task
    return replace(task, recurrence=replace(task.recurrence, is_active=False))


def occurrence_dates(
    rule: RecurrenceRule,
    window: ScheduleWindow,
    default_max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> list[tuple[int, date]]:
    """
    (index, date) pairs for every occurrence inside the window.

    Occurrences before window.start are skipped but still consume an index
    and count towards max_occurrences, so indexes do not depend on the window.
    """

    limit = rule.max_occurrences or default_max_occurrences
    stop = window.end if rule.end_date is None else min(rule.end_date, window.end)

    result: list[tuple[int, date]] = []
    for index, day in enumerate(_iter_occurrences(rule)):
        if index >= limit or day > stop:
            break
        if day >= window.start:
            result.append((index, day))
    return result


def generate_recurring_instances(
    task: Task,
    window: ScheduleWindow,
    default_max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
    calendar: WorkCalendar | None = None,
) -> list[Task]:
    """
    Expand the task's recurrence rule into concrete instances.

    Each instance keeps the base task's duration; its end is measured in
    workdays when a calendar is given, otherwise in calendar days. An
    inactive rule yields no instances. Deterministic for a given rule and window.
    """

    rule = ensure_valid_rule(task.recurrence)
    if not rule.is_active:
        return []

    duration = _base_duration(task, calendar)
    instances = [
        _make_instance(task, rule, index, day, duration, calendar)
        for index, day in occurrence_dates(rule, window, default_max_occurrences)
    ]
    logger.debug("Generated %d instances of '%s' (%s)", len(instances), task.id, describe_rule(rule))
    return instances


def instance_name(base_name: str, index: int) -> str:
    if index == 0:
        return base_name
    return f"{base_name} ({index + 1})"


def detach_instance(task: Task) -> Task:
    """Cut an instance loose from its series and drop the numbered suffix."""
    if not task.is_recurring_instance:
        return task
    return replace(task, series=None, name=_INSTANCE_SUFFIX.sub("", task.name))


def in_series(task: Task, series_id: str) -> bool:
    if task.series is not None and task.series.series_id == series_id:
        return True
    return task.recurrence is not None and task.recurrence.id == series_id


def series_instances(tasks: Sequence[Task], series_id: str) -> list[Task]:
    """Series members ordered by instance index; the originating task counts as index 0."""
    members = [task for task in tasks if in_series(task, series_id)]
    return sorted(members, key=lambda task: (task.series.instance_index if task.series else -1, task.id))


def update_series(
    tasks: Sequence[Task],
    target: Task,
    changes: Mapping[str, Any],
    scope: SeriesScope = "this",
) -> list[Task]:
    """
    Apply `changes` to one instance, to it and every later instance, or to the whole series.

    Series linkage (id, series, recurrence) is never overwritten.
    """

    protected = sorted(_PROTECTED_FIELDS & set(changes))
    if protected:
        raise ValueError(f"cannot change series fields {protected}")

    series_id = _series_id(target)
    if series_id is None:
        raise ValueError(f"Task '{target.id}' is not part of a recurring series")
    target_index = target.series.instance_index if target.series else 0

    def selected(task: Task) -> bool:
        if scope == "this":
            return task.id == target.id
        if not in_series(task, series_id):
            return False
        if scope == "all":
            return True
        index = task.series.instance_index if task.series else 0
        return task.series is not None and index >= target_index

    return [replace(task, **changes) if selected(task) else task for task in tasks]


def describe_rule(rule: RecurrenceRule | None) -> str:
    if rule is None:
        return "No recurrence"

    interval = rule.interval
    if rule.frequency == "daily":
        return "Daily" if interval == 1 else f"Every {interval} days"
    if rule.frequency == "weekly":
        if rule.weekdays:
            names = ", ".join(WEEKDAY_NAMES[day].capitalize() for day in sorted(rule.weekdays))
            return f"Weekly on {names}"
        return "Weekly" if interval == 1 else f"Every {interval} weeks"
    if rule.frequency == "monthly":
        if rule.day_of_month:
            return f"Monthly on day {rule.day_of_month}"
        return "Monthly" if interval == 1 else f"Every {interval} months"
    return f"Every {interval} {rule.frequency}"


def format_rule(rule: RecurrenceRule | None) -> str:
    if rule is None:
        return "No recurrence"
    text = f"{describe_rule(rule)} starting {rule.start_date.isoformat()}"
    if rule.end_date:
        text += f" until {rule.end_date.isoformat()}"
    if rule.max_occurrences:
        text += f" (max {rule.max_occurrences} occurrences)"
    return text


def recurrence_summary(tasks: Sequence[Task]) -> RecurrenceSummary:
    recurring = [task for task in tasks if is_recurring_task(task)]
    instances = [task for task in tasks if task.is_recurring_instance]
    series_count = len({task.recurrence.id for task in recurring})
    breakdown: dict[str, int] = {}
    for task in recurring:
        breakdown[task.recurrence.frequency] = breakdown.get(task.recurrence.frequency, 0) + 1
    return RecurrenceSummary(
        total_recurring_tasks=len(recurring),
        total_instances=len(instances),
        series_count=series_count,
        frequency_breakdown=breakdown,
        average_instances_per_series=round(len(instances) / series_count) if series_count else 0,
    )


def _series_id(task: Task) -> str | None:
    if task.series is not None:
        return task.series.series_id
    if task.recurrence is not None:
        return task.recurrence.id
    return None


def _iter_occurrences(rule: RecurrenceRule) -> Iterator[date]:
    # The start date is always occurrence 0; the rule shapes only later steps.
    yield rule.start_date

    if rule.frequency == "daily":
        day = rule.start_date
        while True:
            day += timedelta(days=rule.interval)
            yield day

    elif rule.frequency == "weekly" and rule.weekdays:
        day = rule.start_date
        while True:
            day = _next_listed_weekday(day, rule)
            yield day

    elif rule.frequency == "weekly":
        day = rule.start_date
        while True:
            day += timedelta(days=7 * rule.interval)
            yield day

    else:
        target_day = rule.day_of_month or rule.start_date.day
        step = 1
        while True:
            yield _add_months(rule.start_date, step * rule.interval, target_day)
            step += 1


def _next_listed_weekday(day: date, rule: RecurrenceRule) -> date:
    # Steps one day at a time; the explicit weekday set drives the cadence.
    candidate = day
    for _ in range(WEEKLY_SEARCH_DAYS):
        candidate += timedelta(days=1)
        if candidate.weekday() in rule.weekdays:
            return candidate
    raise InvalidRecurrenceRuleError([f"no listed weekday within {WEEKLY_SEARCH_DAYS} days of {day}"], rule.id)


def _add_months(anchor: date, months: int, day: int) -> date:
    """Date `months` after anchor on `day`, clamped to the month's last day."""
    month_index = anchor.month - 1 + months
    year = anchor.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, min(day, _calendar.monthrange(year, month)[1]))


def _base_duration(task: Task, calendar: WorkCalendar | None) -> int:
    if task.duration is not None:
        return task.duration
    if task.is_milestone:
        return 0
    if task.start_date is not None and task.end_date is not None:
        if calendar is None:
            return (task.end_date - task.start_date).days
        return calendar.workdays_between(task.start_date, task.end_date)
    return task.min_duration


def _make_instance(
    task: Task,
    rule: RecurrenceRule,
    index: int,
    day: date,
    duration: int,
    calendar: WorkCalendar | None,
) -> Task:
    if task.is_milestone or duration == 0:
        end = day
    elif calendar is None:
        end = day + timedelta(days=duration)
    else:
        end = calendar.add_workdays(day, duration)

    return replace(
        task,
        id=f"{task.id}_{index}",
        name=instance_name(task.name, index),
        start_date=day,
        end_date=end,
        duration=duration,
        recurrence=None,
        series=SeriesMembership(original_task_id=task.id, series_id=rule.id, instance_index=index),
        baseline=None,
        split=None,
        total_float=None,
        free_float=None,
        is_critical=False,
    )
