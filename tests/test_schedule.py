import datetime as dt

import pytest

from gantt_scheduler.errors import CyclicDependencyError, InvalidDateRangeError, ProjectValidationError
from gantt_scheduler.models import Link, Task
from gantt_scheduler.schedule import compute_schedule
from gantt_scheduler.segments import SegmentRange, split_task
from gantt_scheduler.work_calendar import DEFAULT_CALENDAR, WorkCalendar

MON = dt.date(2024, 1, 8)


def _chain(*ids, start=MON, duration=1):
    tasks = [Task(id=ids[0], name=ids[0], start_date=start, duration=duration)]
    tasks += [Task(id=task_id, name=task_id, duration=duration) for task_id in ids[1:]]
    links = [Link(id=f"L{idx}", from_id=a, to_id=b) for idx, (a, b) in enumerate(zip(ids, ids[1:]), start=1)]
    return tasks, links


def test_fs_lag_places_successor_on_friday():
    tasks = [
        Task(id="A", name="A", start_date=MON, end_date=dt.date(2024, 1, 10)),
        Task(id="B", name="B", duration=1),
    ]
    links = [Link(id="L1", from_id="A", to_id="B", lag=2)]

    result = compute_schedule(tasks, links)

    assert result.task("B").start_date == dt.date(2024, 1, 12)
    assert result.task("B").end_date == dt.date(2024, 1, 15)


def test_simple_chain_is_fully_critical():
    tasks, links = _chain("A", "B", "C")

    result = compute_schedule(tasks, links)

    assert [task.start_date for task in result.tasks] == [MON, dt.date(2024, 1, 9), dt.date(2024, 1, 10)]
    assert all(task.total_float == 0 and task.is_critical for task in result.tasks)
    assert result.critical_path == ["A", "B", "C"]
    assert result.project_finish == dt.date(2024, 1, 11)


def test_adding_back_link_raises_cycle_error():
    tasks, links = _chain("A", "B")
    links.append(Link(id="L2", from_id="B", to_id="A"))

    with pytest.raises(CyclicDependencyError) as excinfo:
        compute_schedule(tasks, links)

    assert set(excinfo.value.cycle) == {"A", "B"}
    assert "B -> A" in " ".join(excinfo.value.links)


def test_pushed_task_keeps_its_duration_and_is_reported_constrained():
    tasks = [
        Task(id="A", name="A", start_date=MON, end_date=dt.date(2024, 1, 10)),
        Task(id="B", name="B", start_date=MON, end_date=dt.date(2024, 1, 11)),
    ]
    links = [Link(id="L1", from_id="A", to_id="B")]

    result = compute_schedule(tasks, links)
    b = result.task("B")

    assert b.start_date == dt.date(2024, 1, 10)
    assert b.end_date == dt.date(2024, 1, 15)
    assert b.duration == 3
    assert result.constrained_task_ids == ["B"]


def test_inputs_are_not_modified():
    tasks, links = _chain("A", "B")
    snapshot = list(tasks)

    compute_schedule(tasks, links)

    assert tasks == snapshot
    assert tasks[1].start_date is None


def test_recomputation_is_idempotent():
    tasks, links = _chain("A", "B", "C", duration=2)

    first = compute_schedule(tasks, links)
    second = compute_schedule(first.tasks, links)

    assert first.tasks == second.tasks


def test_unplaceable_task_is_reported_and_fails_its_successors():
    tasks = [
        Task(id="A", name="A", start_date=MON, duration=1),
        Task(id="B", name="B", duration=1),
        Task(id="C", name="C", duration=1),
    ]
    links = [Link(id="L1", from_id="B", to_id="C")]

    result = compute_schedule(tasks, links)

    assert not result.ok
    assert [exc.task_id for exc in result.errors] == ["B", "C"]
    assert all(isinstance(exc, InvalidDateRangeError) for exc in result.errors)
    assert "'B'" in str(result.errors[1])
    assert result.task("A").is_critical
    assert result.task("C").total_float is None


def test_explicit_end_before_start_is_an_error():
    tasks = [Task(id="A", name="A", start_date=dt.date(2024, 1, 10), end_date=MON)]

    result = compute_schedule(tasks, [])

    assert [exc.task_id for exc in result.errors] == ["A"]


def test_unknown_link_endpoint_is_fatal():
    with pytest.raises(ProjectValidationError):
        compute_schedule([Task(id="A", name="A", start_date=MON)], [Link(id="L1", from_id="A", to_id="Z")])


def test_milestone_has_zero_duration_and_drives_successor():
    tasks = [
        Task(id="A", name="A", start_date=MON, duration=2),
        Task(id="M", name="Review", duration=0, is_milestone=True),
        Task(id="B", name="B", duration=1),
    ]
    links = [Link(id="L1", from_id="A", to_id="M"), Link(id="L2", from_id="M", to_id="B")]

    result = compute_schedule(tasks, links)
    milestone = result.task("M")

    assert milestone.start_date == milestone.end_date == dt.date(2024, 1, 10)
    assert milestone.duration == 0
    assert result.task("B").start_date == dt.date(2024, 1, 10)


def test_holiday_pushes_successor():
    calendar = WorkCalendar.standard(holidays=[dt.date(2024, 1, 9)])
    tasks, links = _chain("A", "B")

    result = compute_schedule(tasks, links, calendar)

    assert result.task("A").end_date == dt.date(2024, 1, 10)
    assert result.task("B").start_date == dt.date(2024, 1, 10)


def test_group_rolls_up_children():
    tasks = [
        Task(id="G", name="Phase", is_group=True),
        Task(id="A", name="A", start_date=MON, end_date=dt.date(2024, 1, 10), progress=50.0, parent_id="G"),
        Task(id="B", name="B", start_date=dt.date(2024, 1, 10), end_date=dt.date(2024, 1, 15), parent_id="G"),
    ]

    result = compute_schedule(tasks, [])
    group = result.task("G")

    assert (group.start_date, group.end_date, group.duration) == (MON, dt.date(2024, 1, 15), 5)
    assert group.progress == pytest.approx(20.0)
    assert group.total_float == 0
    assert group.is_critical


def test_split_task_segments_move_with_the_task():
    split = split_task(
        Task(id="S", name="S", start_date=MON, end_date=dt.date(2024, 1, 17)),
        [
            SegmentRange(MON, dt.date(2024, 1, 10), 2),
            SegmentRange(dt.date(2024, 1, 15), dt.date(2024, 1, 17), 2),
        ],
    )
    tasks = [Task(id="A", name="A", start_date=MON, duration=3), split]
    links = [Link(id="L1", from_id="A", to_id="S")]

    result = compute_schedule(tasks, links)
    moved = result.task("S")

    assert [(seg.start_date, seg.end_date) for seg in moved.segments] == [
        (dt.date(2024, 1, 11), dt.date(2024, 1, 15)),
        (dt.date(2024, 1, 18), dt.date(2024, 1, 22)),
    ]
    assert moved.start_date == dt.date(2024, 1, 11)
    assert moved.duration == 4


def _link_holds(link, pred, succ):
    if link.type == "FS":
        return succ.start_date >= DEFAULT_CALENDAR.add_workdays(pred.end_date, link.lag)
    if link.type == "SS":
        return succ.start_date >= DEFAULT_CALENDAR.add_workdays(pred.start_date, link.lag)
    if link.type == "FF":
        return succ.end_date >= DEFAULT_CALENDAR.add_workdays(pred.end_date, link.lag)
    return succ.end_date >= DEFAULT_CALENDAR.add_workdays(pred.start_date, link.lag)


def test_schedule_invariants_hold():
    tasks = [
        Task(id="A", name="A", start_date=MON, duration=3),
        Task(id="B", name="B", duration=2),
        Task(id="C", name="C", start_date=dt.date(2024, 1, 6), duration=1),
        Task(id="D", name="D", duration=4),
        Task(id="E", name="E", duration=2),
        Task(id="M", name="M", is_milestone=True),
    ]
    links = [
        Link(id="L1", from_id="A", to_id="B", lag=1),
        Link(id="L2", from_id="C", to_id="D", type="SS", lag=2),
        Link(id="L3", from_id="B", to_id="M"),
        Link(id="L4", from_id="D", to_id="M", type="FF", lag=1),
        Link(id="L5", from_id="A", to_id="E", type="SF", lag=4),
    ]

    result = compute_schedule(tasks, links)
    by_id = {task.id: task for task in result.tasks}

    assert result.ok
    for task in result.tasks:
        assert task.end_date >= task.start_date
        assert task.total_float >= task.free_float >= 0
        assert task.is_critical == (task.total_float == 0)
        assert DEFAULT_CALENDAR.is_workday(task.start_date)
    for link in links:
        assert _link_holds(link, by_id[link.from_id], by_id[link.to_id]), link.id

    assert by_id["M"].duration == 0
    assert by_id["M"].start_date == dt.date(2024, 1, 17)
    assert (by_id["E"].start_date, by_id["E"].end_date) == (dt.date(2024, 1, 10), dt.date(2024, 1, 12))
    assert by_id["E"].total_float == 3
    assert {task.id for task in result.tasks if task.is_critical} == {"C", "D", "M"}


def test_result_task_lookup_by_id():
    tasks, links = _chain("A", "B")

    result = compute_schedule(tasks, links)

    assert result.task("B") is result.tasks[1]
    with pytest.raises(KeyError):
        result.task("missing")
