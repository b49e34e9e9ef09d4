from __future__ import annotations

from typing import Sequence


class SchedulingError(Exception):
    """Base class for every error raised by the scheduling core."""


class ProjectValidationError(SchedulingError):
    """Raised when the project structure is invalid (duplicates, bad refs, malformed input)."""


class CyclicDependencyError(ProjectValidationError):
    """
    Raised when the link graph contains a cycle.

    Fatal for the whole scheduling pass: no date in the graph can be trusted
    until a link on the cycle is removed or retyped.
    """

    def __init__(self, cycle: Sequence[str], links: Sequence[str] = ()) -> None:
        self.cycle = list(cycle)
        self.links = list(links)
        message = f"Dependency cycle detected: {' -> '.join(self.cycle)}"
        if self.links:
            message += f" (links: {', '.join(self.links)})"
        super().__init__(message)


class InvalidDateRangeError(SchedulingError):
    """Raised when a task cannot be given a valid start <= end range."""

    def __init__(self, task_id: str, reason: str) -> None:
        self.task_id = task_id
        self.reason = reason
        super().__init__(f"Task '{task_id}': {reason}")


class _ViolationsError(ProjectValidationError):
    """Carries every violated constraint instead of a single message."""

    subject = "input"

    def __init__(self, violations: Sequence[str], subject_id: str | None = None) -> None:
        self.violations = list(violations)
        self.subject_id = subject_id
        prefix = f"Invalid {self.subject}"
        if subject_id:
            prefix += f" '{subject_id}'"
        super().__init__(f"{prefix}: {'; '.join(self.violations)}")


class InvalidRecurrenceRuleError(_ViolationsError):
    subject = "recurrence rule"


class CalendarError(_ViolationsError):
    subject = "calendar"


class SegmentError(_ViolationsError):
    subject = "segments for task"


class SegmentOverlapError(SegmentError):
    """Two segments of the same task overlap."""


class InvalidSegmentDurationError(SegmentError):
    """A segment has a non-positive duration or its end does not follow its start."""


class BaselineError(SchedulingError):
    """Raised when a baseline snapshot would be overwritten."""
