from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Literal

from .config import DEFAULT_SETTINGS, SchedulerSettings
from .work_calendar import DEFAULT_CALENDAR, WorkCalendar


LinkType = Literal["FS", "SS", "FF", "SF"]
"""Dependency types: finish-to-start, start-to-start, finish-to-finish, start-to-finish."""

LINK_TYPES: tuple[LinkType, ...] = ("FS", "SS", "FF", "SF")

Frequency = Literal["daily", "weekly", "monthly"]
"""Recurrence frequencies supported by the generator."""

FREQUENCIES: tuple[Frequency, ...] = ("daily", "weekly", "monthly")


@dataclass(frozen=True)
class Link:
    """Directed dependency between two tasks; weak reference by id on both ends."""

    id: str
    from_id: str
    to_id: str
    type: LinkType = "FS"
    lag: int = 0

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return f"{self.id}: {self.from_id} -> {self.to_id}"


@dataclass(frozen=True)
class Baseline:
    """Frozen snapshot of a task's planned dates."""

    start_date: date
    end_date: date


@dataclass(frozen=True)
class RecurrenceRule:
    """Recurrence rule owned by the task that originates a series."""

    id: str
    frequency: Frequency
    interval: int
    start_date: date
    end_date: date | None = None
    max_occurrences: int | None = None
    weekdays: frozenset[int] | None = None
    day_of_month: int | None = None
    is_active: bool = True


@dataclass(frozen=True)
class SeriesMembership:
    """Links a generated instance back to its series."""

    original_task_id: str
    series_id: str
    instance_index: int


@dataclass(frozen=True)
class Segment:
    """Contiguous sub-range of a split task."""

    id: str
    start_date: date
    end_date: date
    duration: int
    progress: float = 0.0
    is_active: bool = True


@dataclass(frozen=True)
class SplitState:
    """Ordered segments of a split task plus the fields to restore on merge."""

    segments: tuple[Segment, ...]
    original_start: date | None
    original_end: date | None
    original_duration: int | None


@dataclass(frozen=True)
class Task:
    """
    Schedulable task.

    Dates follow the finish-boundary convention: the task occupies the
    workdays in [start_date, end_date), so a milestone has start == end and
    an FS successor with lag 0 starts on end_date.
    """

    id: str
    name: str
    start_date: date | None = None
    end_date: date | None = None
    duration: int | None = None
    progress: float = 0.0
    is_milestone: bool = False
    is_group: bool = False
    parent_id: str | None = None
    baseline: Baseline | None = None
    deadline: date | None = None
    total_float: int | None = None
    free_float: int | None = None
    is_critical: bool = False
    recurrence: RecurrenceRule | None = None
    series: SeriesMembership | None = None
    split: SplitState | None = None
    meta: dict[str, Any] | None = field(default=None, compare=False)

    @property
    def is_split(self) -> bool:
        """True when the task carries at least one segment."""
        return self.split is not None and len(self.split.segments) > 0

    @property
    def segments(self) -> tuple[Segment, ...]:
        """Segments of a split task, empty otherwise."""
        return self.split.segments if self.split is not None else ()

    @property
    def is_recurring_instance(self) -> bool:
        """True for tasks produced by the recurrence generator."""
        return self.series is not None

    @property
    def min_duration(self) -> int:
        """Smallest legal duration in workdays."""
        return 0 if self.is_milestone else 1


TaskInstance = Task
"""A Task produced by the recurrence generator (its `series` is set)."""


@dataclass(frozen=True)
class ScheduleWindow:
    """Inclusive date window used to bound recurrence expansion."""

    start: date
    end: date


@dataclass
class Project:
    """Root container loaded from a project file."""

    name: str
    tasks: list[Task] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)
    calendar: WorkCalendar = DEFAULT_CALENDAR
    settings: SchedulerSettings = DEFAULT_SETTINGS
    window: ScheduleWindow | None = None
    meta: dict[str, Any] | None = None
