from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Sequence

from .errors import InvalidDateRangeError
from .graph import DependencyGraph
from .models import Link, Task
from .work_calendar import WorkCalendar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FloatResult:
    """Earliest/latest dates and float for one task, in workdays."""

    task_id: str
    early_start: date
    early_finish: date
    late_start: date
    late_finish: date
    total_float: int
    free_float: int

    @property
    def is_critical(self) -> bool:
        return self.total_float == 0


@dataclass(frozen=True)
class CriticalPathAnalysis:
    results: dict[str, FloatResult]
    order: list[str]
    project_start: date | None
    project_finish: date | None
    project_duration: int = 0

    @property
    def critical_path(self) -> list[str]:
        """Critical task ids in topological order."""
        return [task_id for task_id in self.order if self.results[task_id].is_critical]


def analyze_critical_path(tasks: Sequence[Task], links: Sequence[Link], calendar: WorkCalendar) -> CriticalPathAnalysis:
    """Validate the graph, then run the forward and backward passes over fully dated tasks."""
    graph = DependencyGraph.build(tasks, links)
    return run_cpm(graph, calendar)


def run_cpm(graph: DependencyGraph, calendar: WorkCalendar) -> CriticalPathAnalysis:
    """
    Forward/backward pass over an indexed graph whose tasks all carry dates.

    Work happens in integer workday offsets from the earliest task start so
    every lag, duration and float is measured in the calendar's workdays.
    """

    order = graph.topological_order()
    if not order:
        return CriticalPathAnalysis(results={}, order=[], project_start=None, project_finish=None)

    for task_id in order:
        task = graph.tasks[task_id]
        if task.start_date is None or task.end_date is None:
            raise InvalidDateRangeError(task_id, "critical path analysis needs start_date and end_date")

    origin = min(graph.tasks[task_id].start_date for task_id in order)
    offsets: dict[date, int] = {}

    def offset(day: date) -> int:
        if day not in offsets:
            offsets[day] = calendar.workdays_between(origin, day)
        return offsets[day]

    duration: dict[str, int] = {}
    es: dict[str, int] = {}
    ef: dict[str, int] = {}
    for task_id in order:
        task = graph.tasks[task_id]
        dur = 0 if task.is_milestone else calendar.workdays_between(task.start_date, task.end_date)
        duration[task_id] = dur
        start = offset(task.start_date)
        for link in graph.predecessors(task_id):
            start = max(start, _forward_constraint(link, es[link.from_id], ef[link.from_id], dur))
        es[task_id] = start
        ef[task_id] = start + dur

    finish = max(ef.values())
    lf: dict[str, int] = {}
    ls: dict[str, int] = {}
    for task_id in reversed(order):
        dur = duration[task_id]
        late = finish
        for link in graph.successors(task_id):
            late = min(late, _backward_constraint(link, ls[link.to_id], lf[link.to_id], dur))
        lf[task_id] = late
        ls[task_id] = late - dur

    dates: dict[int, date] = {}

    def date_at(value: int) -> date:
        if value not in dates:
            dates[value] = calendar.add_workdays(origin, value)
        return dates[value]

    results: dict[str, FloatResult] = {}
    for task_id in order:
        total = ls[task_id] - es[task_id]
        slacks = [
            _link_slack(link, es[task_id], ef[task_id], es[link.to_id], ef[link.to_id])
            for link in graph.successors(task_id)
        ]
        free = min(min(slacks), total) if slacks else 0
        results[task_id] = FloatResult(
            task_id=task_id,
            early_start=date_at(es[task_id]),
            early_finish=date_at(ef[task_id]),
            late_start=date_at(ls[task_id]),
            late_finish=date_at(lf[task_id]),
            total_float=total,
            free_float=max(free, 0),
        )

    analysis = CriticalPathAnalysis(
        results=results,
        order=order,
        project_start=date_at(0),
        project_finish=date_at(finish),
        project_duration=finish,
    )
    logger.debug(
        "CPM over %d tasks: %d workdays, critical path %s",
        len(order),
        finish,
        " -> ".join(analysis.critical_path),
    )
    return analysis


def apply_float(task: Task, result: FloatResult | None) -> Task:
    """Copy computed float onto a task; tasks without a result lose any stale values."""
    if result is None:
        return replace(task, total_float=None, free_float=None, is_critical=False)
    return replace(
        task,
        total_float=result.total_float,
        free_float=result.free_float,
        is_critical=result.is_critical,
    )


def _forward_constraint(link: Link, pred_es: int, pred_ef: int, succ_duration: int) -> int:
    if link.type == "FS":
        return pred_ef + link.lag
    if link.type == "SS":
        return pred_es + link.lag
    if link.type == "FF":
        return pred_ef + link.lag - succ_duration
    return pred_es + link.lag - succ_duration  # SF


def _backward_constraint(link: Link, succ_ls: int, succ_lf: int, pred_duration: int) -> int:
    """Latest finish the predecessor may have without pushing the successor's late dates."""
    if link.type == "FS":
        return succ_ls - link.lag
    if link.type == "SS":
        return succ_ls - link.lag + pred_duration
    if link.type == "FF":
        return succ_lf - link.lag
    return succ_lf - link.lag + pred_duration  # SF


def _link_slack(link: Link, pred_es: int, pred_ef: int, succ_es: int, succ_ef: int) -> int:
    if link.type == "FS":
        return succ_es - (pred_ef + link.lag)
    if link.type == "SS":
        return succ_es - (pred_es + link.lag)
    if link.type == "FF":
        return succ_ef - (pred_ef + link.lag)
    return succ_ef - (pred_es + link.lag)  # SF
