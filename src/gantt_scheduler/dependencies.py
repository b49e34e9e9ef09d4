from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Mapping, Sequence

from .errors import CalendarError, InvalidDateRangeError
from .graph import DependencyGraph
from .models import Link, Task
from .work_calendar import WorkCalendar


@dataclass(frozen=True)
class Predecessor:
    """A predecessor task with final dates together with the link that binds it."""

    task: Task
    link: Link


def constraint_start(predecessor: Predecessor, duration: int, calendar: WorkCalendar) -> date:
    """
    Earliest successor start allowed by a single link.

    FS and SS bound the successor's start directly; FF and SF bound its end,
    so the start is back-solved by the successor's duration in workdays.
    """

    pred = predecessor.task
    link = predecessor.link
    if pred.start_date is None or pred.end_date is None:
        raise InvalidDateRangeError(link.to_id, f"predecessor '{pred.id}' has no dates (link '{link.id}')")

    if link.type == "FS":
        return calendar.add_workdays(pred.end_date, link.lag)
    if link.type == "SS":
        return calendar.add_workdays(pred.start_date, link.lag)
    if link.type == "FF":
        finish = calendar.add_workdays(pred.end_date, link.lag)
        return calendar.add_workdays(finish, -duration)
    if link.type == "SF":
        finish = calendar.add_workdays(pred.start_date, link.lag)
        return calendar.add_workdays(finish, -duration)
    raise InvalidDateRangeError(link.to_id, f"link '{link.id}' has unknown type {link.type!r}")


def resolve_start(
    task: Task,
    predecessors: Sequence[Predecessor],
    calendar: WorkCalendar,
    duration: int | None = None,
) -> date:
    """
    Return the earliest permissible start for `task`.

    Takes the latest of the candidate start and every predecessor
    constraint, then clamps to a workday. A task without predecessors keeps
    its own start (clamped); a task with neither cannot be placed.
    """

    if duration is None:
        duration = task.duration if task.duration is not None else task.min_duration

    try:
        candidates = [constraint_start(pred, duration, calendar) for pred in predecessors]
        if task.start_date is not None:
            candidates.append(task.start_date)
        if not candidates:
            raise InvalidDateRangeError(task.id, "no start_date and no predecessors to derive one from")
        return calendar.clamp_to_workdays(max(candidates))
    except CalendarError as exc:
        raise InvalidDateRangeError(task.id, str(exc)) from exc


def constrained_start(
    task: Task,
    predecessors: Sequence[Predecessor],
    calendar: WorkCalendar,
    duration: int | None = None,
) -> date | None:
    """Latest predecessor-derived start, clamped, or None without predecessors."""

    if not predecessors:
        return None
    if duration is None:
        duration = task.duration if task.duration is not None else task.min_duration
    try:
        latest = max(constraint_start(pred, duration, calendar) for pred in predecessors)
        return calendar.clamp_to_workdays(latest)
    except CalendarError as exc:
        raise InvalidDateRangeError(task.id, str(exc)) from exc


def predecessors_of(task_id: str, graph: DependencyGraph, scheduled: Mapping[str, Task]) -> list[Predecessor]:
    """Collect predecessors from the graph index using already-scheduled task versions."""

    result: list[Predecessor] = []
    for link in graph.predecessors(task_id):
        pred = scheduled.get(link.from_id)
        if pred is None:
            raise InvalidDateRangeError(task_id, f"predecessor '{link.from_id}' could not be scheduled")
        result.append(Predecessor(task=pred, link=link))
    return result
