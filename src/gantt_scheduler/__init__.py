"""Scheduling core: calendar arithmetic, dependency propagation, critical path, baselines, recurrence and segments."""

from .baseline import BaselinePerformance, calculate_baseline_performance, set_baseline
from .config import DEFAULT_SETTINGS, SchedulerSettings
from .critical_path import CriticalPathAnalysis, FloatResult, analyze_critical_path
from .deadlines import DeadlineStatus, deadline_status
from .dependencies import resolve_start
from .errors import (
    BaselineError,
    CalendarError,
    CyclicDependencyError,
    InvalidDateRangeError,
    InvalidRecurrenceRuleError,
    InvalidSegmentDurationError,
    ProjectValidationError,
    SchedulingError,
    SegmentError,
    SegmentOverlapError,
)
from .models import (
    Baseline,
    Link,
    Project,
    RecurrenceRule,
    ScheduleWindow,
    Segment,
    SeriesMembership,
    SplitState,
    Task,
    TaskInstance,
)
from .parse_project import load_project
from .recurrence import generate_recurring_instances, validate_recurrence_rule
from .schedule import ScheduleResult, compute_schedule
from .segments import SegmentRange, get_segment_summary, merge_task_segments, split_task
from .validation import validate_task_dates
from .work_calendar import DEFAULT_CALENDAR, WorkCalendar

__all__ = [
    "Baseline",
    "BaselineError",
    "BaselinePerformance",
    "CalendarError",
    "CriticalPathAnalysis",
    "CyclicDependencyError",
    "DEFAULT_CALENDAR",
    "DEFAULT_SETTINGS",
    "DeadlineStatus",
    "FloatResult",
    "InvalidDateRangeError",
    "InvalidRecurrenceRuleError",
    "InvalidSegmentDurationError",
    "Link",
    "Project",
    "ProjectValidationError",
    "RecurrenceRule",
    "ScheduleResult",
    "ScheduleWindow",
    "SchedulerSettings",
    "SchedulingError",
    "Segment",
    "SegmentError",
    "SegmentOverlapError",
    "SegmentRange",
    "SeriesMembership",
    "SplitState",
    "Task",
    "TaskInstance",
    "WorkCalendar",
    "analyze_critical_path",
    "calculate_baseline_performance",
    "compute_schedule",
    "deadline_status",
    "generate_recurring_instances",
    "get_segment_summary",
    "load_project",
    "merge_task_segments",
    "resolve_start",
    "set_baseline",
    "split_task",
    "validate_recurrence_rule",
    "validate_task_dates",
]
