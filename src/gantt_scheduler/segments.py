from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Sequence

from .errors import InvalidSegmentDurationError, SegmentOverlapError
from .models import Segment, SplitState, Task
from .work_calendar import WorkCalendar

logger = logging.getLogger(__name__)

DEFAULT_GAP_WARNING_DAYS = 30


@dataclass(frozen=True)
class SegmentRange:
    """Requested segment boundaries when splitting a task."""

    start_date: date
    end_date: date
    duration: int


@dataclass(frozen=True)
class SegmentGap:
    """Idle calendar days between two consecutive segments."""

    id: str
    start_date: date
    end_date: date
    duration: int
    before_segment: str
    after_segment: str


@dataclass(frozen=True)
class SegmentValidation:
    duration_errors: list[str]
    overlap_errors: list[str]
    warnings: list[str]

    @property
    def errors(self) -> list[str]:
        return self.duration_errors + self.overlap_errors

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class SegmentSummary:
    is_split: bool
    segment_count: int
    total_duration: int
    total_progress: float
    gaps: list[SegmentGap]
    gap_count: int
    total_gap_duration: int


def validate_segments(
    segments: Sequence[Segment | SegmentRange],
    gap_warning_days: int = DEFAULT_GAP_WARNING_DAYS,
) -> SegmentValidation:
    """
    Check ordering, durations and overlap of a segment list.

    Gaps are never errors; a gap longer than `gap_warning_days` produces a
    warning only.
    """

    duration_errors: list[str] = []
    overlap_errors: list[str] = []
    warnings: list[str] = []

    if not segments:
        return SegmentValidation(["at least one segment is required"], [], [])

    for idx, segment in enumerate(segments, start=1):
        if not isinstance(segment.duration, int) or segment.duration <= 0:
            duration_errors.append(f"segment {idx}: duration must be positive, got {segment.duration!r}")
        if segment.start_date >= segment.end_date:
            duration_errors.append(
                f"segment {idx}: start {segment.start_date.isoformat()} must be before end {segment.end_date.isoformat()}"
            )

    for idx, segment in enumerate(segments, start=1):
        for other_idx in range(idx + 1, len(segments) + 1):
            other = segments[other_idx - 1]
            if segment.start_date < other.end_date and segment.end_date > other.start_date:
                overlap_errors.append(f"segments {idx} and {other_idx} overlap")

    if not duration_errors and not overlap_errors:
        for gap in _gaps(_ordered(segments)):
            if gap[2] > gap_warning_days:
                warnings.append(f"large gap detected: {gap[2]} days between segments")

    return SegmentValidation(duration_errors, overlap_errors, warnings)


def ensure_valid_segments(
    task_id: str,
    segments: Sequence[Segment | SegmentRange],
    gap_warning_days: int = DEFAULT_GAP_WARNING_DAYS,
) -> SegmentValidation:
    """Raise the matching segment error, or log any warnings and return the validation."""

    result = validate_segments(segments, gap_warning_days)
    if result.duration_errors:
        raise InvalidSegmentDurationError(result.duration_errors, task_id)
    if result.overlap_errors:
        raise SegmentOverlapError(result.overlap_errors, task_id)
    for warning in result.warnings:
        logger.warning("Task '%s': %s", task_id, warning)
    return result


def split_task(
    task: Task,
    ranges: Sequence[SegmentRange],
    gap_warning_days: int = DEFAULT_GAP_WARNING_DAYS,
) -> Task:
    """
    Split a task into ordered segments and derive its aggregate fields.

    Validation happens before anything changes, so a failing split leaves
    the task untouched. The pre-split start/end/duration are preserved for
    merge_task_segments; re-splitting keeps the values from the first split.
    """

    if not ranges:
        return task

    ensure_valid_segments(task.id, ranges, gap_warning_days)
    segments = [
        Segment(
            id=f"{task.id}-seg-{idx}",
            start_date=r.start_date,
            end_date=r.end_date,
            duration=r.duration,
            progress=task.progress,
        )
        for idx, r in enumerate(_ordered(ranges), start=1)
    ]

    if task.split is not None:
        state = replace(task.split, segments=tuple(segments))
    else:
        state = SplitState(
            segments=tuple(segments),
            original_start=task.start_date,
            original_end=task.end_date,
            original_duration=task.duration,
        )
    logger.debug("Split task '%s' into %d segments", task.id, len(segments))
    return _with_state(task, state)


def merge_task_segments(task: Task) -> Task:
    """Restore the pre-split fields and drop the segments."""

    if not task.is_split:
        return task

    segments = task.segments
    state = task.split
    start = state.original_start if state.original_start is not None else segments[0].start_date
    end = state.original_end if state.original_end is not None else segments[-1].end_date
    if state.original_duration is not None:
        duration = state.original_duration
    else:
        ensure_valid_segments(task.id, segments)
        duration = sum(segment.duration for segment in segments)

    return replace(task, split=None, start_date=start, end_date=end, duration=duration)


def add_segment(task: Task, segment_range: SegmentRange, gap_warning_days: int = DEFAULT_GAP_WARNING_DAYS) -> Task:
    if not task.is_split:
        return split_task(task, [segment_range], gap_warning_days)

    taken = {segment.id for segment in task.segments}
    idx = len(taken) + 1
    while f"{task.id}-seg-{idx}" in taken:
        idx += 1
    new_segment = Segment(
        id=f"{task.id}-seg-{idx}",
        start_date=segment_range.start_date,
        end_date=segment_range.end_date,
        duration=segment_range.duration,
    )
    updated = list(task.segments) + [new_segment]
    ensure_valid_segments(task.id, updated, gap_warning_days)
    return _with_state(task, replace(task.split, segments=tuple(_ordered(updated))))


def remove_segment(task: Task, segment_id: str) -> Task:
    """Drop one segment; removing the last one merges the task back."""

    if not task.is_split:
        return task
    remaining = [segment for segment in task.segments if segment.id != segment_id]
    if len(remaining) == len(task.segments):
        raise KeyError(f"Task '{task.id}' has no segment '{segment_id}'")
    if not remaining:
        return merge_task_segments(task)
    return _with_state(task, replace(task.split, segments=tuple(remaining)))


def update_segment(
    task: Task,
    segment_id: str,
    *,
    gap_warning_days: int = DEFAULT_GAP_WARNING_DAYS,
    **changes: Any,
) -> Task:
    if not task.is_split:
        return task
    if segment_id not in {segment.id for segment in task.segments}:
        raise KeyError(f"Task '{task.id}' has no segment '{segment_id}'")
    updated = [replace(segment, **changes) if segment.id == segment_id else segment for segment in task.segments]
    ensure_valid_segments(task.id, updated, gap_warning_days)
    return _with_state(task, replace(task.split, segments=tuple(_ordered(updated))))


def shift_segments(task: Task, workdays: int, calendar: WorkCalendar) -> Task:
    """Move every segment, and the preserved pre-split dates, by whole workdays."""

    if not task.is_split or workdays == 0:
        return task
    state = task.split
    shifted = tuple(
        replace(
            segment,
            start_date=calendar.add_workdays(segment.start_date, workdays),
            end_date=calendar.add_workdays(segment.end_date, workdays),
        )
        for segment in state.segments
    )
    return _with_state(
        task,
        SplitState(
            segments=shifted,
            original_start=_shift(state.original_start, workdays, calendar),
            original_end=_shift(state.original_end, workdays, calendar),
            original_duration=state.original_duration,
        ),
    )


def calculate_segment_gaps(segments: Sequence[Segment]) -> list[SegmentGap]:
    return [
        SegmentGap(
            id=f"gap_{before.id}_{after.id}",
            start_date=before.end_date,
            end_date=after.start_date,
            duration=days,
            before_segment=before.id,
            after_segment=after.id,
        )
        for before, after, days in _gaps(_ordered(segments))
    ]


def total_segment_duration(task: Task) -> int:
    if not task.is_split:
        return task.duration or 0
    return sum(segment.duration for segment in task.segments)


def total_segment_progress(task: Task) -> float:
    if not task.is_split:
        return task.progress
    return sum(segment.progress for segment in task.segments) / len(task.segments)


def get_segment_summary(task: Task) -> SegmentSummary:
    if not task.is_split:
        return SegmentSummary(
            is_split=False,
            segment_count=0,
            total_duration=task.duration or 0,
            total_progress=task.progress,
            gaps=[],
            gap_count=0,
            total_gap_duration=0,
        )

    gaps = calculate_segment_gaps(task.segments)
    return SegmentSummary(
        is_split=True,
        segment_count=len(task.segments),
        total_duration=total_segment_duration(task),
        total_progress=total_segment_progress(task),
        gaps=gaps,
        gap_count=len(gaps),
        total_gap_duration=sum(gap.duration for gap in gaps),
    )


def _with_state(task: Task, state: SplitState) -> Task:
    segments = state.segments
    return replace(
        task,
        split=state,
        start_date=segments[0].start_date,
        end_date=segments[-1].end_date,
        duration=sum(segment.duration for segment in segments),
        progress=sum(segment.progress for segment in segments) / len(segments),
    )


def _ordered(segments):
    return sorted(segments, key=lambda segment: (segment.start_date, segment.end_date))


def _gaps(ordered):
    for before, after in zip(ordered, ordered[1:]):
        days = (after.start_date - before.end_date).days
        if days > 0:
            yield before, after, days


def _shift(day: date | None, workdays: int, calendar: WorkCalendar) -> date | None:
    if day is None:
        return None
    return calendar.add_workdays(day, workdays)
