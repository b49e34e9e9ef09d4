import datetime as dt

import pytest
import yaml

from gantt_scheduler.export_schedule import dump_schedule, schedule_to_dict
from gantt_scheduler.models import Baseline, Link, Task
from gantt_scheduler.render_gantt import render_gantt, route_dependency
from gantt_scheduler.render_rows import to_render_rows
from gantt_scheduler.schedule import compute_schedule
from gantt_scheduler.segments import SegmentRange, split_task

MON = dt.date(2024, 1, 8)


def _scheduled():
    build = split_task(
        Task(id="C", name="Build", start_date=dt.date(2024, 1, 10), end_date=dt.date(2024, 1, 19)),
        [
            SegmentRange(dt.date(2024, 1, 10), dt.date(2024, 1, 12), 2),
            SegmentRange(dt.date(2024, 1, 15), dt.date(2024, 1, 17), 2),
        ],
    )
    tasks = [
        Task(id="G", name="Phase", is_group=True),
        Task(
            id="A",
            name="Design",
            start_date=MON,
            duration=2,
            parent_id="G",
            baseline=Baseline(MON, dt.date(2024, 1, 9)),
            deadline=dt.date(2024, 1, 12),
        ),
        Task(id="M", name="Sign-off", is_milestone=True, parent_id="G"),
        build,
    ]
    links = [Link(id="L1", from_id="A", to_id="M"), Link(id="L2", from_id="M", to_id="C")]
    return compute_schedule(tasks, links), links


def test_rows_follow_hierarchy_and_carry_schedule_data():
    result, links = _scheduled()

    rows = to_render_rows(result.tasks, links)

    assert [(row.node_id, row.indent, row.node_type) for row in rows] == [
        ("G", 0, "bracket"),
        ("A", 1, "bar"),
        ("M", 1, "lozenge"),
        ("C", 0, "split"),
    ]
    assert rows[2].depends_on == ["A"]
    assert len(rows[3].segments) == 2
    assert rows[1].is_critical
    assert rows[1].baseline == (MON, dt.date(2024, 1, 9))


def test_renderer_produces_svg(tmp_path):
    result, links = _scheduled()
    out_file = tmp_path / "charts" / "chart.svg"

    render_gantt(to_render_rows(result.tasks, links), out_path=str(out_file), title="Relaunch")

    assert out_file.exists()
    assert out_file.read_text(encoding="utf-8").lstrip().startswith("<?xml")


def test_renderer_rejects_empty_rows(tmp_path):
    with pytest.raises(ValueError):
        render_gantt([], out_path=str(tmp_path / "x.svg"), title="Empty")


def test_backward_dependency_uses_detour():
    a_rect = (10.0, 14.0, -0.3, 0.3)
    b_rect = (11.0, 12.0, 0.7, 1.3)

    route = route_dependency(a_rect, b_rect, {"A": a_rect, "B": b_rect})

    assert len(route) == 6
    assert route[0][0] > a_rect[1]
    assert route[-1][0] < b_rect[0]


def test_export_writes_schedule_yaml(tmp_path):
    result, _ = _scheduled()
    out_file = tmp_path / "schedule.yaml"

    dump_schedule(result, str(out_file), project_name="Relaunch")
    data = yaml.safe_load(out_file.read_text(encoding="utf-8"))

    assert data["project"]["name"] == "Relaunch"
    assert data["critical_path"] == result.critical_path
    tasks = {task["id"]: task for task in data["tasks"]}
    assert tasks["A"]["start_date"] == "2024-01-08"
    assert tasks["A"]["baseline"]["finish_variance"] == 1
    assert tasks["M"]["milestone"] is True
    assert len(tasks["C"]["segments"]) == 2
    assert "errors" not in data


def test_export_lists_errors():
    result = compute_schedule([Task(id="A", name="A", duration=1)], [])

    data = schedule_to_dict(result)

    assert data["errors"] == [{"task": "A", "reason": "no start_date and no predecessors to derive one from"}]
