import datetime as dt
import textwrap

import pytest

from gantt_scheduler.errors import CalendarError, ProjectValidationError
from gantt_scheduler.parse_project import load_project, parse_project

PROJECT_YAML = textwrap.dedent(
    """
    project:
      name: Website relaunch
      window: {start: 2024-01-01, end: 2024-03-31}
    settings:
      gap_warning_days: 10
    calendar:
      name: Office
      working_days: [mon, tue, wed, thu, fri]
      holidays:
        - 2024-01-15
        - {date: 2024-02-19, name: Presidents Day}
      exceptions:
        - {date: 2024-01-20, working: true, hours: 4, reason: launch prep}
    tasks:
      - id: P
        name: Design phase
        group: true
      - id: A
        name: Wireframes
        parent: P
        start_date: 2024-01-08
        duration: 3
        baseline: {start_date: 2024-01-08, end_date: 2024-01-10}
        deadline: "2024-01-19"
      - id: B
        name: Review
        parent: P
        milestone: true
      - id: C
        name: Build
        start_date: 2024-01-22
        end_date: 2024-02-05
        segments:
          - {start_date: 2024-01-22, end_date: 2024-01-25, duration: 3}
          - {start_date: 2024-01-29, end_date: 2024-02-01, duration: 3}
      - id: S
        name: Standup
        start_date: 2024-01-08
        duration: 1
        recurrence:
          frequency: weekly
          interval: 1
          start_date: 2024-01-08
          weekdays: [mon, thu]
    links:
      - {id: L1, from: A, to: B}
      - {from: B, to: C, type: SS, lag: 1}
    """
)


def _write(tmp_path, text):
    path = tmp_path / "project.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_load_full_project(tmp_path):
    project = load_project(_write(tmp_path, PROJECT_YAML))

    assert project.name == "Website relaunch"
    assert project.window.end == dt.date(2024, 3, 31)
    assert project.settings.gap_warning_days == 10
    assert [task.id for task in project.tasks] == ["P", "A", "B", "C", "S"]

    calendar = project.calendar
    assert calendar.name == "Office"
    assert not calendar.is_workday(dt.date(2024, 1, 15))
    assert calendar.is_workday(dt.date(2024, 1, 20))
    assert calendar.working_hours(dt.date(2024, 1, 20)) == 4.0

    tasks = {task.id: task for task in project.tasks}
    assert tasks["P"].is_group
    assert tasks["A"].parent_id == "P"
    assert tasks["A"].deadline == dt.date(2024, 1, 19)
    assert tasks["A"].baseline.end_date == dt.date(2024, 1, 10)
    assert tasks["B"].is_milestone and tasks["B"].duration == 0
    assert len(tasks["C"].segments) == 2
    assert tasks["S"].recurrence.weekdays == frozenset({0, 3})
    assert tasks["S"].recurrence.id == "S-series"

    assert [link.id for link in project.links] == ["L1", "B->C"]
    assert project.links[1].type == "SS"
    assert project.links[1].lag == 1


def test_minimal_project_uses_defaults():
    project = parse_project({"project": {"name": "Tiny"}, "tasks": [{"id": "A", "name": "A", "start_date": "2024-01-08"}]})

    assert project.links == []
    assert project.window is None
    assert project.settings.default_max_occurrences == 100
    assert project.calendar.is_workday(dt.date(2024, 1, 8))


def _with_task(**fields):
    task = {"id": "A", "name": "A"}
    task.update(fields)
    return {"project": {"name": "P"}, "tasks": [task]}


@pytest.mark.parametrize(
    "data, message",
    [
        ([], "root: expected mapping at top level"),
        ({"tasks": []}, "missing required mapping 'project'"),
        ({"project": {"name": "P"}}, "missing required field 'tasks'"),
        (_with_task(start_date="08/01/2024"), "tasks[0].start_date: expected YYYY-MM-DD"),
        (_with_task(colour="red"), "tasks[0]: unexpected fields ['colour']"),
        (_with_task(duration=-2), "tasks[0].duration: expected non-negative integer"),
        (_with_task(progress=120), "tasks[0].progress"),
        (_with_task(group=True, milestone=True), "cannot be both group and milestone"),
        (_with_task(start_date="2024-01-10", end_date="2024-01-08"), "precedes start_date"),
        (_with_task(recurrence={"frequency": "hourly", "start_date": "2024-01-01"}), "tasks[0].recurrence"),
        (_with_task(segments=[]), "tasks[0].segments: expected non-empty list"),
    ],
)
def test_invalid_documents_report_yaml_path(data, message):
    with pytest.raises(ProjectValidationError) as excinfo:
        parse_project(data)
    assert message in str(excinfo.value)


def test_duplicate_task_ids_are_rejected():
    data = {"project": {"name": "P"}, "tasks": [{"id": "A", "name": "A"}, {"id": "A", "name": "Again"}]}
    with pytest.raises(ProjectValidationError, match=r"tasks\[1\]\.id: duplicate task id 'A'"):
        parse_project(data)


def test_links_must_reference_known_tasks():
    data = _with_task()
    data["links"] = [{"from": "A", "to": "Z"}]
    with pytest.raises(ProjectValidationError, match=r"links\[0\]\.to: unknown task id 'Z'"):
        parse_project(data)


def test_link_type_is_checked():
    data = {"project": {"name": "P"}, "tasks": [{"id": "A", "name": "A"}, {"id": "B", "name": "B"}]}
    data["links"] = [{"from": "A", "to": "B", "type": "XX"}]
    with pytest.raises(ProjectValidationError, match=r"links\[0\]\.type"):
        parse_project(data)


def test_overlapping_segments_are_reported_with_path():
    data = _with_task(
        start_date="2024-01-08",
        segments=[
            {"start_date": "2024-01-08", "end_date": "2024-01-11", "duration": 3},
            {"start_date": "2024-01-10", "end_date": "2024-01-12", "duration": 2},
        ],
    )
    with pytest.raises(ProjectValidationError, match=r"tasks\[0\]\.segments: .*overlap"):
        parse_project(data)


def test_calendar_without_working_days_is_rejected():
    data = _with_task()
    data["calendar"] = {"working_days": []}
    with pytest.raises(CalendarError):
        parse_project(data)


def test_unknown_weekday_name_is_reported():
    data = _with_task()
    data["calendar"] = {"working_days": ["mon", "funday"]}
    with pytest.raises(ProjectValidationError, match=r"calendar\.working_days\[1\]"):
        parse_project(data)


def test_unknown_settings_are_rejected():
    data = _with_task()
    data["settings"] = {"colour": 3}
    with pytest.raises(ProjectValidationError, match="settings: unexpected fields"):
        parse_project(data)
