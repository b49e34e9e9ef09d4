from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import List, Literal, Sequence

from .models import Link, Task

NodeType = Literal["bar", "split", "lozenge", "bracket"]


@dataclass
class FlatRenderRow:
    """One chart row; dates use the exclusive end boundary of the scheduled task."""

    order: int
    indent: int
    node_type: NodeType
    node_id: str
    name: str
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    progress: float = 0.0
    is_critical: bool = False
    depends_on: list[str] = field(default_factory=list)
    segments: list[tuple[dt.date, dt.date]] = field(default_factory=list)
    baseline: tuple[dt.date, dt.date] | None = None
    deadline: dt.date | None = None


def to_render_rows(tasks: Sequence[Task], links: Sequence[Link] = ()) -> list[FlatRenderRow]:
    """
    Convert scheduled tasks into a flat list of render rows with indentation.

    Top-level tasks keep their input order; summary rows precede their
    children and each nesting level increases indent by 1.
    """

    depends_on: dict[str, list[str]] = {}
    for link in links:
        depends_on.setdefault(link.to_id, []).append(link.from_id)

    children: dict[str | None, list[Task]] = {}
    for task in tasks:
        children.setdefault(task.parent_id, []).append(task)

    rows: List[FlatRenderRow] = []
    order = 0
    for task in children.get(None, []):
        order = _append_task(task, children, depends_on, rows, order, indent=0)
    return rows


def _append_task(
    task: Task,
    children: dict[str | None, list[Task]],
    depends_on: dict[str, list[str]],
    rows: List[FlatRenderRow],
    order: int,
    indent: int,
) -> int:
    """Append the task and its children (if any); return updated order counter."""

    rows.append(
        FlatRenderRow(
            order=order,
            indent=indent,
            node_type=_node_type(task),
            node_id=task.id,
            name=task.name,
            start_date=task.start_date,
            end_date=task.end_date,
            progress=task.progress,
            is_critical=task.is_critical,
            depends_on=list(depends_on.get(task.id, [])),
            segments=[(segment.start_date, segment.end_date) for segment in task.segments if segment.is_active],
            baseline=(task.baseline.start_date, task.baseline.end_date) if task.baseline else None,
            deadline=task.deadline,
        )
    )
    order += 1
    for child in children.get(task.id, []):
        order = _append_task(child, children, depends_on, rows, order, indent=indent + 1)
    return order


def _node_type(task: Task) -> NodeType:
    if task.is_group:
        return "bracket"
    if task.is_milestone:
        return "lozenge"
    if task.is_split:
        return "split"
    return "bar"
