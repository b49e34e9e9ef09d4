from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Any, Sequence

import yaml

from .baseline import calculate_baseline_performance
from .models import Task
from .schedule import ScheduleResult


def _iso(value: dt.date | None) -> str | None:
    return value.isoformat() if value is not None else None


def task_to_dict(task: Task) -> dict[str, Any]:
    """Plain-data view of a scheduled task; optional sections appear only when set."""

    data: dict[str, Any] = {
        "id": task.id,
        "name": task.name,
        "start_date": _iso(task.start_date),
        "end_date": _iso(task.end_date),
        "duration": task.duration,
        "progress": task.progress,
        "total_float": task.total_float,
        "free_float": task.free_float,
        "critical": task.is_critical,
    }
    if task.is_milestone:
        data["milestone"] = True
    if task.is_group:
        data["group"] = True
    if task.parent_id is not None:
        data["parent"] = task.parent_id
    if task.deadline is not None:
        data["deadline"] = _iso(task.deadline)
    if task.baseline is not None:
        performance = calculate_baseline_performance(task)
        data["baseline"] = {
            "start_date": _iso(task.baseline.start_date),
            "end_date": _iso(task.baseline.end_date),
            "start_variance": performance.start_variance,
            "finish_variance": performance.finish_variance,
            "duration_variance": performance.duration_variance,
        }
    if task.is_split:
        data["segments"] = [
            {
                "id": segment.id,
                "start_date": _iso(segment.start_date),
                "end_date": _iso(segment.end_date),
                "duration": segment.duration,
            }
            for segment in task.segments
        ]
    if task.series is not None:
        data["series"] = {
            "id": task.series.series_id,
            "original_task": task.series.original_task_id,
            "index": task.series.instance_index,
        }
    return data


def schedule_to_dict(
    result: ScheduleResult,
    project_name: str | None = None,
    instances: Sequence[Task] = (),
) -> dict[str, Any]:
    data: dict[str, Any] = {
        "project": {
            "name": project_name,
            "start": _iso(result.project_start),
            "finish": _iso(result.project_finish),
        },
        "critical_path": list(result.critical_path),
        "tasks": [task_to_dict(task) for task in result.tasks],
    }
    if result.errors:
        data["errors"] = [{"task": exc.task_id, "reason": exc.reason} for exc in result.errors]
    if instances:
        data["recurring_instances"] = [task_to_dict(task) for task in instances]
    return data


def dump_schedule(
    result: ScheduleResult,
    out_path: str,
    project_name: str | None = None,
    instances: Sequence[Task] = (),
) -> None:
    """Write the computed schedule as YAML to `out_path`."""

    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as fh:
        yaml.safe_dump(schedule_to_dict(result, project_name, instances), fh, sort_keys=False, allow_unicode=True)
