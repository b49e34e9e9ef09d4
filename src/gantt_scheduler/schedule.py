from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from functools import cached_property
from typing import Sequence

from .critical_path import FloatResult, apply_float, run_cpm
from .dependencies import constrained_start, predecessors_of
from .errors import CalendarError, InvalidDateRangeError
from .graph import DependencyGraph
from .models import Link, Task
from .segments import shift_segments
from .validation import validate_task_dates
from .work_calendar import DEFAULT_CALENDAR, WorkCalendar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduleResult:
    """Output of one full scheduling pass."""

    tasks: list[Task]
    errors: list[InvalidDateRangeError] = field(default_factory=list)
    constrained_task_ids: list[str] = field(default_factory=list)
    critical_path: list[str] = field(default_factory=list)
    project_start: date | None = None
    project_finish: date | None = None
    float_results: dict[str, FloatResult] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    @cached_property
    def _by_id(self) -> dict[str, Task]:
        return {task.id: task for task in self.tasks}

    def task(self, task_id: str) -> Task:
        return self._by_id[task_id]


def compute_schedule(
    tasks: Sequence[Task],
    links: Sequence[Link],
    calendar: WorkCalendar = DEFAULT_CALENDAR,
) -> ScheduleResult:
    """
    Schedule every task and compute float over the whole graph.

    - Rejects duplicate ids, unknown references and dependency cycles (fatal).
    - Resolves and validates each task's dates in dependency order; a task
      that cannot be placed is reported in `errors`, keeps its input values,
      and takes its successors down with it.
    - Runs the critical path engine over the successfully scheduled tasks.
    - Rolls summary tasks up from their children.

    Inputs are never modified; the returned tasks keep the input order.
    """

    graph = DependencyGraph.build(tasks, links)
    order = graph.topological_order()

    scheduled: dict[str, Task] = {}
    errors: list[InvalidDateRangeError] = []
    constrained: list[str] = []

    for task_id in order:
        task = graph.tasks[task_id]
        if task.is_group:
            continue
        try:
            placed, was_constrained = _schedule_task(task, graph, scheduled, calendar)
        except InvalidDateRangeError as exc:
            logger.warning("Excluding task from schedule: %s", exc)
            errors.append(exc)
            continue
        scheduled[task_id] = placed
        if was_constrained:
            constrained.append(task_id)

    analysis = run_cpm(graph.restricted_to(scheduled.values()), calendar)
    for task_id, task in scheduled.items():
        scheduled[task_id] = apply_float(task, analysis.results.get(task_id))

    final = _roll_up_groups(tasks, scheduled, calendar)
    result_tasks = [final.get(task.id) or apply_float(task, None) for task in tasks]

    logger.debug(
        "Scheduled %d of %d tasks (%d constrained, %d errors)",
        len(scheduled),
        len(tasks),
        len(constrained),
        len(errors),
    )
    constrained_ids = set(constrained)
    return ScheduleResult(
        tasks=result_tasks,
        errors=errors,
        constrained_task_ids=[task.id for task in tasks if task.id in constrained_ids],
        critical_path=analysis.critical_path,
        project_start=analysis.project_start,
        project_finish=analysis.project_finish,
        float_results=analysis.results,
    )


def planned_duration(task: Task, calendar: WorkCalendar) -> int:
    """Duration to preserve while scheduling: dates win over the stored duration."""

    if task.is_milestone:
        return 0
    if task.start_date is not None and task.end_date is not None:
        if task.end_date < task.start_date:
            raise InvalidDateRangeError(
                task.id,
                f"end_date {task.end_date.isoformat()} precedes start_date {task.start_date.isoformat()}",
            )
        return calendar.workdays_between(task.start_date, task.end_date)
    if task.duration is not None:
        if task.duration < 0:
            raise InvalidDateRangeError(task.id, f"negative duration {task.duration}")
        return task.duration
    return task.min_duration


def _schedule_task(
    task: Task,
    graph: DependencyGraph,
    scheduled: dict[str, Task],
    calendar: WorkCalendar,
) -> tuple[Task, bool]:
    predecessors = predecessors_of(task.id, graph, scheduled)
    duration = planned_duration(task, calendar)
    constraint = constrained_start(task, predecessors, calendar, duration)

    candidate_start = task.start_date if task.start_date is not None else constraint
    if candidate_start is None:
        raise InvalidDateRangeError(task.id, "no start_date and no predecessors to derive one from")

    try:
        effective_start = calendar.clamp_to_workdays(candidate_start)
        if constraint is not None and constraint > effective_start:
            effective_start = constraint
        # Tasks pushed by a predecessor keep their length rather than shrinking.
        candidate_end = calendar.add_workdays(effective_start, duration)
    except (CalendarError, OverflowError) as exc:
        raise InvalidDateRangeError(task.id, f"cannot place dates: {exc}") from exc

    validated = validate_task_dates(task, candidate_start, candidate_end, constraint, calendar)

    if task.is_split:
        shift = calendar.workdays_between(task.start_date, validated.start_date)
        return shift_segments(task, shift, calendar), validated.was_constrained

    placed = replace(
        task,
        start_date=validated.start_date,
        end_date=validated.end_date,
        duration=validated.duration,
    )
    return placed, validated.was_constrained


def _roll_up_groups(tasks: Sequence[Task], scheduled: dict[str, Task], calendar: WorkCalendar) -> dict[str, Task]:
    """Derive summary-task spans, progress and float from their children, deepest first."""

    final = dict(scheduled)
    groups = [task for task in tasks if task.is_group]
    by_id = {task.id: task for task in tasks}

    def depth(task: Task) -> int:
        level = 0
        parent_id = task.parent_id
        while parent_id is not None:
            level += 1
            parent_id = by_id[parent_id].parent_id
        return level

    for group in sorted(groups, key=depth, reverse=True):
        children = [final[task.id] for task in tasks if task.parent_id == group.id and task.id in final]
        children = [child for child in children if child.start_date is not None and child.end_date is not None]
        if not children:
            final[group.id] = apply_float(group, None)
            continue

        start = min(child.start_date for child in children)
        end = max(child.end_date for child in children)
        weights = [child.duration or 0 for child in children]
        if sum(weights) > 0:
            progress = sum(child.progress * weight for child, weight in zip(children, weights)) / sum(weights)
        else:
            progress = sum(child.progress for child in children) / len(children)

        floats = [child for child in children if child.total_float is not None]
        total_float = min((child.total_float for child in floats), default=None)
        free_float = min((child.free_float for child in floats), default=None)
        final[group.id] = replace(
            group,
            start_date=start,
            end_date=end,
            duration=max(0, calendar.workdays_between(start, end)),
            progress=min(100.0, max(0.0, progress)),
            total_float=total_float,
            free_float=free_float,
            is_critical=total_float == 0,
        )
    return final
