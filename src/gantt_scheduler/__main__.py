from __future__ import annotations

import argparse
import datetime as dt
import logging
import sys
import webbrowser
from pathlib import Path
from typing import Sequence

import yaml

from .baseline import calculate_baseline_performance, format_variance
from .deadlines import deadline_status
from .errors import ProjectValidationError, SchedulingError
from .export_schedule import dump_schedule
from .models import Project, ScheduleWindow, Task
from .parse_project import load_project
from .recurrence import describe_rule, generate_recurring_instances, is_recurring_task
from .render_gantt import render_gantt
from .render_rows import to_render_rows
from .schedule import ScheduleResult, compute_schedule

logger = logging.getLogger("gantt_scheduler")

DEFAULT_RECURRENCE_HORIZON_DAYS = 365


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gantt-scheduler",
        description="Schedule a project file: dependencies, critical path, float, baselines and recurrences",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("project", help="Path to project YAML")
    parser.add_argument("--out", help="Write an SVG Gantt chart to this path")
    parser.add_argument("--export", help="Write the computed schedule as YAML to this path")
    parser.add_argument(
        "--today",
        type=_parse_date,
        default=dt.date.today(),
        help="Reference date for deadline status (YYYY-MM-DD)",
    )
    parser.add_argument("--min-date", type=_parse_date, help="Override inferred chart start (YYYY-MM-DD)")
    parser.add_argument("--max-date", type=_parse_date, help="Override inferred chart end (YYYY-MM-DD)")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Log scheduling details")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only log errors")
    parser.add_argument(
        "--view",
        dest="view",
        action="store_true",
        default=False,
        help="Best-effort open the chart after rendering",
    )
    parser.add_argument(
        "--no-view",
        dest="view",
        action="store_false",
        help="Do not open the chart after rendering",
    )
    return parser


def _configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)


def expand_recurrences(project: Project) -> list[Task]:
    """Instances of every active series, bounded by the project window or a one-year horizon."""

    instances: list[Task] = []
    for task in project.tasks:
        if not is_recurring_task(task):
            continue
        rule = task.recurrence
        window = project.window or ScheduleWindow(
            start=rule.start_date,
            end=rule.end_date or rule.start_date + dt.timedelta(days=DEFAULT_RECURRENCE_HORIZON_DAYS),
        )
        instances.extend(
            generate_recurring_instances(
                task,
                window,
                default_max_occurrences=project.settings.default_max_occurrences,
                calendar=project.calendar,
            )
        )
    return instances


def format_report(project: Project, result: ScheduleResult, instances: Sequence[Task], today: dt.date) -> str:
    lines = [f"Project: {project.name}"]
    if result.project_start and result.project_finish:
        lines.append(f"Span: {result.project_start.isoformat()} -> {result.project_finish.isoformat()}")
    lines.append(f"Critical path: {' -> '.join(result.critical_path) or '-'}")
    lines.append("")

    header = f"{'ID':<12} {'Name':<28} {'Start':<10} {'End':<10} {'Dur':>4} {'TF':>4} {'FF':>4} {'Crit':<4} {'Finish var':>10} {'Deadline':<12}"
    lines.append(header)
    lines.append("-" * len(header))
    for task in result.tasks:
        performance = calculate_baseline_performance(task)
        status = deadline_status(
            task,
            today,
            approaching_days=project.settings.approaching_deadline_days,
            calendar=project.calendar,
        )
        name = ("  " * _depth(task, result.tasks) + task.name)[:28]
        lines.append(
            f"{task.id:<12} {name:<28} {_fmt(task.start_date):<10} {_fmt(task.end_date):<10} "
            f"{_fmt(task.duration):>4} {_fmt(task.total_float):>4} {_fmt(task.free_float):>4} "
            f"{'yes' if task.is_critical else '':<4} {format_variance(performance.finish_variance):>10} "
            f"{status.status if status.has_deadline else '-':<12}"
        )

    if instances:
        lines.append("")
        lines.append("Recurring series:")
        for task in project.tasks:
            if not is_recurring_task(task):
                continue
            own = [inst for inst in instances if inst.series.original_task_id == task.id]
            lines.append(f"  {task.id}: {describe_rule(task.recurrence)}, {len(own)} instances")
            for inst in own:
                lines.append(f"    {inst.id:<16} {_fmt(inst.start_date)} -> {_fmt(inst.end_date)}")

    if result.errors:
        lines.append("")
        lines.append("Unscheduled tasks:")
        lines.extend(f"  {exc}" for exc in result.errors)
    return "\n".join(lines)


def _fmt(value: object) -> str:
    if value is None:
        return "-"
    if isinstance(value, dt.date):
        return value.isoformat()
    return str(value)


def _depth(task: Task, tasks: Sequence[Task]) -> int:
    parents = {t.id: t.parent_id for t in tasks}
    level = 0
    parent_id = task.parent_id
    while parent_id is not None:
        level += 1
        parent_id = parents.get(parent_id)
    return level


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose, args.quiet)
    project_path = Path(args.project)

    try:
        project = load_project(str(project_path))
    except (yaml.YAMLError, ProjectValidationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError:
        print(f"Error: project file not found: {project_path}", file=sys.stderr)
        return 1
    except Exception as exc:  # Unexpected
        print(f"Unexpected error while loading project: {exc}", file=sys.stderr)
        return 1

    try:
        result = compute_schedule(project.tasks, project.links, project.calendar)
        instances = expand_recurrences(project)
    except SchedulingError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except Exception as exc:
        print(f"Unexpected error while scheduling: {exc}", file=sys.stderr)
        return 1

    print(format_report(project, result, instances, args.today))

    if args.export:
        dump_schedule(result, args.export, project_name=project.name, instances=instances)
        logger.info("Wrote schedule to %s", args.export)

    if args.out:
        try:
            render_gantt(
                rows=to_render_rows(result.tasks, project.links),
                out_path=args.out,
                title=project.name,
                min_date=args.min_date,
                max_date=args.max_date,
            )
        except Exception as exc:
            print(f"Unexpected error while rendering: {exc}", file=sys.stderr)
            return 1
        if args.view:
            try:
                webbrowser.open(Path(args.out).resolve().as_uri())
            except webbrowser.Error as exc:
                logger.warning("Could not open %s: %s", args.out, exc)

    if not result.ok:
        for exc in result.errors:
            print(f"Error: {exc}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
