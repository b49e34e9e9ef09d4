from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from typing import Any

import yaml

from .config import SchedulerSettings, settings_from_mapping
from .errors import InvalidRecurrenceRuleError, ProjectValidationError, SegmentError
from .models import LINK_TYPES, Baseline, Link, Project, RecurrenceRule, ScheduleWindow, Task
from .recurrence import ensure_valid_rule
from .segments import SegmentRange, split_task
from .work_calendar import (
    DEFAULT_CALENDAR,
    CalendarException,
    DaySchedule,
    Holiday,
    WorkCalendar,
    ensure_valid_calendar,
    weekday_index,
)

_TASK_KEYS = {
    "id",
    "name",
    "start_date",
    "end_date",
    "duration",
    "progress",
    "milestone",
    "group",
    "parent",
    "baseline",
    "deadline",
    "recurrence",
    "segments",
    "meta",
}

_RULE_KEYS = {
    "id",
    "frequency",
    "interval",
    "start_date",
    "end_date",
    "max_occurrences",
    "weekdays",
    "day_of_month",
    "active",
}


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable YAML path strings like tasks[0].baseline."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return ".".join(self.parts) if self.parts else "root"


def load_project(path: str) -> Project:
    """Load a Project from a YAML file at the given path (no scheduling)."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    return parse_project(raw)


def parse_project(data: Any) -> Project:
    """Build a Project from already-loaded YAML data."""
    return _parse_project(data, _Path())


def _parse_project(data: Any, path: _Path) -> Project:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping at top level")
    _assert_allowed_keys(data, {"project", "settings", "calendar", "tasks", "links"}, path)

    project_raw = data.get("project")
    if not isinstance(project_raw, dict):
        raise ProjectValidationError(f"{path}: missing required mapping 'project'")
    project_path = path.child("project")
    _assert_allowed_keys(project_raw, {"name", "window", "meta"}, project_path)
    name = _require_str(project_raw, "name", project_path)
    window = _parse_window(project_raw.get("window"), project_path.child("window"))
    project_meta = _parse_meta(project_raw.get("meta"), project_path.child("meta"))

    settings = settings_from_mapping(data.get("settings"), str(path.child("settings")))
    calendar = _parse_calendar(data.get("calendar"), path.child("calendar"))

    tasks_raw = data.get("tasks")
    if tasks_raw is None:
        raise ProjectValidationError(f"{path}: missing required field 'tasks'")
    if not isinstance(tasks_raw, list):
        raise ProjectValidationError(f"{path.child('tasks')}: expected list")

    ids: set[str] = set()
    tasks: list[Task] = []
    for idx, task_raw in enumerate(tasks_raw):
        tasks.append(_parse_task(task_raw, path.child(f"tasks[{idx}]"), ids, settings))

    links_raw = data.get("links") or []
    if not isinstance(links_raw, list):
        raise ProjectValidationError(f"{path.child('links')}: expected list")
    link_ids: set[str] = set()
    links = [
        _parse_link(link_raw, path.child(f"links[{idx}]"), ids, link_ids)
        for idx, link_raw in enumerate(links_raw)
    ]

    return Project(
        name=name,
        tasks=tasks,
        links=links,
        calendar=calendar,
        settings=settings,
        window=window,
        meta=project_meta,
    )


def _parse_window(data: Any, path: _Path) -> ScheduleWindow | None:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping with start and end")
    _assert_allowed_keys(data, {"start", "end"}, path)
    start = _parse_date(_require_value(data, "start", path), path.child("start"))
    end = _parse_date(_require_value(data, "end", path), path.child("end"))
    if end < start:
        raise ProjectValidationError(f"{path}: end {end.isoformat()} precedes start {start.isoformat()}")
    return ScheduleWindow(start=start, end=end)


def _parse_calendar(data: Any, path: _Path) -> WorkCalendar:
    if data is None:
        return DEFAULT_CALENDAR
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for calendar")
    _assert_allowed_keys(data, {"name", "working_days", "hours_per_day", "hours", "holidays", "exceptions"}, path)

    name = data.get("name", DEFAULT_CALENDAR.name)
    if not isinstance(name, str):
        raise ProjectValidationError(f"{path.child('name')}: expected string")

    working_raw = data.get("working_days", [0, 1, 2, 3, 4])
    if not isinstance(working_raw, list):
        raise ProjectValidationError(f"{path.child('working_days')}: expected list of weekdays")
    working = {_parse_weekday(value, path.child(f"working_days[{idx}]")) for idx, value in enumerate(working_raw)}

    hours_per_day = _parse_hours(data.get("hours_per_day", 8.0), path.child("hours_per_day"))
    hours_raw = data.get("hours") or {}
    if not isinstance(hours_raw, dict):
        raise ProjectValidationError(f"{path.child('hours')}: expected mapping of weekday to hours")
    hours = {
        _parse_weekday(key, path.child(f"hours.{key}")): _parse_hours(value, path.child(f"hours.{key}"))
        for key, value in hours_raw.items()
    }

    week = tuple(
        DaySchedule(working=idx in working, hours=hours.get(idx, hours_per_day) if idx in working else 0.0)
        for idx in range(7)
    )

    holidays_raw = data.get("holidays") or []
    if not isinstance(holidays_raw, list):
        raise ProjectValidationError(f"{path.child('holidays')}: expected list")
    holidays = tuple(
        _parse_holiday(value, path.child(f"holidays[{idx}]")) for idx, value in enumerate(holidays_raw)
    )

    exceptions_raw = data.get("exceptions") or []
    if not isinstance(exceptions_raw, list):
        raise ProjectValidationError(f"{path.child('exceptions')}: expected list")
    exceptions = tuple(
        _parse_exception(value, path.child(f"exceptions[{idx}]")) for idx, value in enumerate(exceptions_raw)
    )

    return ensure_valid_calendar(WorkCalendar(name=name, week=week, holidays=holidays, exceptions=exceptions))


def _parse_holiday(data: Any, path: _Path) -> Holiday:
    if not isinstance(data, dict):
        return Holiday(date=_parse_date(data, path))
    _assert_allowed_keys(data, {"date", "name", "kind"}, path)
    return Holiday(
        date=_parse_date(_require_value(data, "date", path), path.child("date")),
        name=str(data.get("name", "")),
        kind=str(data.get("kind", "public")),
    )


def _parse_exception(data: Any, path: _Path) -> CalendarException:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for calendar exception")
    _assert_allowed_keys(data, {"date", "working", "hours", "reason", "kind"}, path)
    working = _parse_bool(data.get("working", False), path.child("working"))
    hours = _parse_hours(data.get("hours", 8.0 if working else 0.0), path.child("hours"))
    return CalendarException(
        date=_parse_date(_require_value(data, "date", path), path.child("date")),
        is_working_day=working,
        working_hours=hours,
        reason=str(data.get("reason", "")),
        kind=str(data.get("kind", "custom")),
    )


def _parse_task(data: Any, path: _Path, ids: set[str], settings: SchedulerSettings) -> Task:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for task")
    _assert_allowed_keys(data, _TASK_KEYS, path)

    task_id = _require_str(data, "id", path)
    _register_id(task_id, path.child("id"), ids)
    name = _require_str(data, "name", path)

    is_group = _parse_bool(data.get("group", False), path.child("group"))
    is_milestone = _parse_bool(data.get("milestone", False), path.child("milestone"))
    if is_group and is_milestone:
        raise ProjectValidationError(f"{path}: a task cannot be both group and milestone")
    if is_group and ({"start_date", "end_date", "duration", "segments", "recurrence"} & set(data)):
        raise ProjectValidationError(f"{path}: group tasks must not define scheduling fields")

    start_date = _optional_date(data, "start_date", path)
    end_date = _optional_date(data, "end_date", path)
    duration = data.get("duration")
    if duration is not None and (not isinstance(duration, int) or isinstance(duration, bool) or duration < 0):
        raise ProjectValidationError(f"{path.child('duration')}: expected non-negative integer")
    if start_date is not None and end_date is not None and end_date < start_date:
        raise ProjectValidationError(
            f"{path}: end_date {end_date.isoformat()} precedes start_date {start_date.isoformat()}"
        )
    if is_milestone:
        if duration not in (None, 0):
            raise ProjectValidationError(f"{path.child('duration')}: milestones have duration 0")
        duration = 0
        if start_date is not None and end_date is None:
            end_date = start_date

    progress = data.get("progress", 0.0)
    if not isinstance(progress, (int, float)) or isinstance(progress, bool) or not 0 <= progress <= 100:
        raise ProjectValidationError(f"{path.child('progress')}: expected number between 0 and 100")

    parent = data.get("parent")
    if parent is not None and (not isinstance(parent, str) or not parent.strip()):
        raise ProjectValidationError(f"{path.child('parent')}: expected task id string")

    task = Task(
        id=task_id,
        name=name,
        start_date=start_date,
        end_date=end_date,
        duration=duration,
        progress=float(progress),
        is_milestone=is_milestone,
        is_group=is_group,
        parent_id=parent,
        baseline=_parse_baseline(data.get("baseline"), path.child("baseline")),
        deadline=_optional_date(data, "deadline", path),
        recurrence=_parse_rule(data.get("recurrence"), path.child("recurrence"), task_id, settings),
        meta=_parse_meta(data.get("meta"), path.child("meta")),
    )

    if "segments" in data:
        task = _apply_segments(task, data["segments"], path.child("segments"), settings)
    return task


def _parse_baseline(data: Any, path: _Path) -> Baseline | None:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping with start_date and end_date")
    _assert_allowed_keys(data, {"start_date", "end_date"}, path)
    start = _parse_date(_require_value(data, "start_date", path), path.child("start_date"))
    end = _parse_date(_require_value(data, "end_date", path), path.child("end_date"))
    if end < start:
        raise ProjectValidationError(f"{path}: end_date precedes start_date")
    return Baseline(start_date=start, end_date=end)


def _parse_rule(data: Any, path: _Path, task_id: str, settings: SchedulerSettings) -> RecurrenceRule | None:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for recurrence rule")
    _assert_allowed_keys(data, _RULE_KEYS, path)

    weekdays = None
    if "weekdays" in data:
        weekdays_raw = data["weekdays"]
        if not isinstance(weekdays_raw, list):
            raise ProjectValidationError(f"{path.child('weekdays')}: expected list of weekdays")
        weekdays = frozenset(
            _parse_weekday(value, path.child(f"weekdays[{idx}]")) for idx, value in enumerate(weekdays_raw)
        )

    rule = RecurrenceRule(
        id=str(data.get("id", f"{task_id}-series")),
        frequency=data.get("frequency"),
        interval=data.get("interval", 1),
        start_date=_parse_date(_require_value(data, "start_date", path), path.child("start_date")),
        end_date=_optional_date(data, "end_date", path),
        max_occurrences=data.get("max_occurrences"),
        weekdays=weekdays,
        day_of_month=data.get("day_of_month"),
        is_active=_parse_bool(data.get("active", True), path.child("active")),
    )
    for key in ("max_occurrences", "day_of_month"):
        value = data.get(key)
        if value is not None and (not isinstance(value, int) or isinstance(value, bool)):
            raise ProjectValidationError(f"{path.child(key)}: expected integer")

    try:
        return ensure_valid_rule(rule, settings.max_occurrence_warning)
    except InvalidRecurrenceRuleError as exc:
        raise ProjectValidationError(f"{path}: {exc}") from exc


def _apply_segments(task: Task, data: Any, path: _Path, settings: SchedulerSettings) -> Task:
    if not isinstance(data, list) or not data:
        raise ProjectValidationError(f"{path}: expected non-empty list of segments")

    ranges: list[SegmentRange] = []
    for idx, raw in enumerate(data):
        seg_path = path.child(f"[{idx}]")
        if not isinstance(raw, dict):
            raise ProjectValidationError(f"{seg_path}: expected mapping for segment")
        _assert_allowed_keys(raw, {"start_date", "end_date", "duration"}, seg_path)
        duration = _require_value(raw, "duration", seg_path)
        if not isinstance(duration, int) or isinstance(duration, bool):
            raise ProjectValidationError(f"{seg_path.child('duration')}: expected integer")
        ranges.append(
            SegmentRange(
                start_date=_parse_date(_require_value(raw, "start_date", seg_path), seg_path.child("start_date")),
                end_date=_parse_date(_require_value(raw, "end_date", seg_path), seg_path.child("end_date")),
                duration=duration,
            )
        )

    try:
        return split_task(task, ranges, settings.gap_warning_days)
    except SegmentError as exc:
        raise ProjectValidationError(f"{path}: {exc}") from exc


def _parse_link(data: Any, path: _Path, task_ids: set[str], link_ids: set[str]) -> Link:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for link")
    _assert_allowed_keys(data, {"id", "from", "to", "type", "lag"}, path)

    from_id = _require_str(data, "from", path)
    to_id = _require_str(data, "to", path)
    for key, value in (("from", from_id), ("to", to_id)):
        if value not in task_ids:
            raise ProjectValidationError(f"{path.child(key)}: unknown task id '{value}'")

    link_id = data.get("id", f"{from_id}->{to_id}")
    if not isinstance(link_id, str) or not link_id.strip():
        raise ProjectValidationError(f"{path.child('id')}: expected non-empty string")
    if link_id in link_ids:
        raise ProjectValidationError(f"{path.child('id')}: duplicate link id '{link_id}'")
    link_ids.add(link_id)

    link_type = data.get("type", "FS")
    if link_type not in LINK_TYPES:
        raise ProjectValidationError(f"{path.child('type')}: expected one of {list(LINK_TYPES)}")
    lag = data.get("lag", 0)
    if not isinstance(lag, int) or isinstance(lag, bool):
        raise ProjectValidationError(f"{path.child('lag')}: expected integer workdays")

    return Link(id=link_id, from_id=from_id, to_id=to_id, type=link_type, lag=lag)


def _assert_allowed_keys(data: dict[str, Any], allowed: set[str], path: _Path) -> None:
    extras = sorted(set(data.keys()) - allowed)
    if extras:
        raise ProjectValidationError(f"{path}: unexpected fields {extras}")


def _require_str(data: dict[str, Any], key: str, path: _Path) -> str:
    value = _require_value(data, key, path)
    if not isinstance(value, str) or not value.strip():
        raise ProjectValidationError(f"{path.child(key)}: expected non-empty string")
    return value


def _require_value(data: dict[str, Any], key: str, path: _Path) -> Any:
    if key not in data:
        raise ProjectValidationError(f"{path}: missing required field '{key}'")
    return data[key]


def _optional_date(data: dict[str, Any], key: str, path: _Path) -> _dt.date | None:
    value = data.get(key)
    if value is None:
        return None
    return _parse_date(value, path.child(key))


def _parse_date(value: Any, path: _Path) -> _dt.date:
    # YAML turns unquoted ISO dates into date objects already.
    if isinstance(value, _dt.date) and not isinstance(value, _dt.datetime):
        return value
    if not isinstance(value, str):
        raise ProjectValidationError(f"{path}: expected YYYY-MM-DD")
    try:
        parsed = _dt.date.fromisoformat(value)
    except ValueError as exc:
        raise ProjectValidationError(f"{path}: expected YYYY-MM-DD") from exc
    return parsed


def _parse_bool(value: Any, path: _Path) -> bool:
    if not isinstance(value, bool):
        raise ProjectValidationError(f"{path}: expected true or false")
    return value


def _parse_hours(value: Any, path: _Path) -> float:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or not 0 <= value <= 24:
        raise ProjectValidationError(f"{path}: expected hours between 0 and 24")
    return float(value)


def _parse_weekday(value: Any, path: _Path) -> int:
    if not isinstance(value, (str, int)):
        raise ProjectValidationError(f"{path}: expected weekday name or 0-6")
    try:
        return weekday_index(value)
    except ValueError as exc:
        raise ProjectValidationError(f"{path}: {exc}") from exc


def _parse_meta(value: Any, path: _Path) -> dict[str, Any] | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ProjectValidationError(f"{path}: expected mapping for meta")
    return value


def _register_id(value: str, path: _Path, ids: set[str]) -> None:
    if value in ids:
        raise ProjectValidationError(f"{path}: duplicate task id '{value}'")
    ids.add(value)
