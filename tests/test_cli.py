import textwrap

import yaml

from gantt_scheduler.__main__ import main

PROJECT_YAML = textwrap.dedent(
    """
    project:
      name: CLI demo
    tasks:
      - {id: A, name: Plan, start_date: 2024-01-08, duration: 2, deadline: 2024-01-12}
      - {id: B, name: Do, duration: 3, baseline: {start_date: 2024-01-10, end_date: 2024-01-12}}
      - id: R
        name: Sync
        start_date: 2024-01-08
        duration: 1
        recurrence: {frequency: weekly, interval: 1, start_date: 2024-01-08, max_occurrences: 3}
    links:
      - {from: A, to: B}
    """
)


def _project(tmp_path, text=PROJECT_YAML):
    path = tmp_path / "project.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_cli_prints_report_and_writes_outputs(tmp_path, capsys):
    chart = tmp_path / "out" / "chart.svg"
    export = tmp_path / "out" / "schedule.yaml"

    code = main(
        [
            _project(tmp_path),
            "--out",
            str(chart),
            "--export",
            str(export),
            "--today",
            "2024-01-02",
            "--no-view",
        ]
    )

    assert code == 0
    out = capsys.readouterr().out
    assert "Project: CLI demo" in out
    assert "Critical path: A -> B" in out
    assert "R_2" in out
    assert chart.exists()
    data = yaml.safe_load(export.read_text(encoding="utf-8"))
    assert len(data["recurring_instances"]) == 3


def test_cli_reports_validation_errors(tmp_path, capsys):
    code = main([_project(tmp_path, "project: {name: Broken}\ntasks: [{id: A}]\n")])

    assert code == 2
    assert "tasks[0]: missing required field 'name'" in capsys.readouterr().err


def test_cli_reports_cycles(tmp_path, capsys):
    text = textwrap.dedent(
        """
        project: {name: Loop}
        tasks:
          - {id: A, name: A, start_date: 2024-01-08, duration: 1}
          - {id: B, name: B, duration: 1}
        links:
          - {from: A, to: B}
          - {from: B, to: A}
        """
    )

    assert main([_project(tmp_path, text)]) == 2
    assert "Dependency cycle detected" in capsys.readouterr().err


def test_cli_missing_file(tmp_path, capsys):
    assert main([str(tmp_path / "nope.yaml")]) == 1
    assert "project file not found" in capsys.readouterr().err


def test_cli_unscheduled_task_exits_with_error(tmp_path, capsys):
    text = "project: {name: Partial}\ntasks:\n  - {id: A, name: A, duration: 1}\n"

    assert main([_project(tmp_path, text)]) == 2
    captured = capsys.readouterr()
    assert "Unscheduled tasks" in captured.out
    assert "Task 'A'" in captured.err
